"""
Talk review HTTP API.

Thin transport adapter: authenticates the bearer token, parses bodies, calls the talk
authority / account service and maps their typed failures onto status codes. No
permission rule lives here.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict

from cfp.api.services import get_services
from cfp.auth.models import Identity
from cfp.core.models import Talk, TalkDraft, TalkPatch
from cfp.errors import AuthError, Forbidden, TalkServiceError

logger = logging.getLogger(__name__)

_STATUS_BY_KIND = {
    "missing_credential": 401,
    "invalid_credential": 401,
    "forbidden": 403,
    "not_found": 404,
    "conflict": 409,
    "invalid_input": 400,
    "unavailable": 503,
}


app = FastAPI(title="Talk review API")


class SignupRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class TalkBody(BaseModel):
    model_config = ConfigDict(extra="ignore")

    title: Optional[str] = None
    abstract: Optional[str] = None
    duration: Any = None
    notes: Optional[str] = None
    status: Optional[str] = None


def _error_response(err: TalkServiceError) -> JSONResponse:
    # No `WWW-Authenticate` on 401: clients handle login themselves.
    return JSONResponse(
        status_code=_STATUS_BY_KIND.get(err.kind, 500),
        content={"ok": False, "error": err.kind, "detail": err.message},
    )


def talk_to_wire(talk: Talk) -> Dict[str, Any]:
    return {
        "id": talk.id,
        "title": talk.title,
        "abstract": talk.abstract,
        "speakerId": talk.speaker_id,
        "status": talk.status.value,
        "duration": talk.duration_minutes,
        "notes": talk.notes,
        "createdAt": talk.created_at.isoformat() if talk.created_at else None,
        "updatedAt": talk.updated_at.isoformat() if talk.updated_at else None,
    }


def _is_public_path(path: str) -> bool:
    if path == "/healthz":
        return True
    # Account creation and login must be reachable without a token.
    if path in ("/api/auth/signup", "/api/auth/login"):
        return True
    return False


def _identity(request: Request) -> Identity:
    return request.state.identity


@app.on_event("startup")
def _startup_maybe_migrate_db() -> None:
    """Apply DB migrations when DB_AUTO_MIGRATE=1; failures are logged, not fatal."""
    try:
        from cfp.storage.migrate import maybe_auto_migrate

        did_attempt, msg = maybe_auto_migrate()
        if did_attempt:
            logger.info("DB migrations: %s", msg)
    except Exception as e:
        logger.warning("DB migrations: startup auto-migrate failed: %s", str(e))


@app.on_event("startup")
def _startup_load_services() -> None:
    """Load the signing key and stores before the first request (fails fast)."""
    get_services()


@app.exception_handler(TalkServiceError)
async def _talk_service_error_handler(_request: Request, exc: TalkServiceError) -> JSONResponse:
    return _error_response(exc)


@app.exception_handler(RequestValidationError)
async def _validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
    errors: List[Dict[str, Any]] = [
        {"loc": [str(p) for p in e.get("loc", ())], "msg": e.get("msg", "")} for e in exc.errors()
    ]
    return JSONResponse(status_code=400, content={"ok": False, "error": "invalid_input", "detail": errors})


@app.middleware("http")
async def authenticate_and_log(request: Request, call_next):
    """Log every request and require a valid bearer token on non-public paths."""
    start_time = time.time()
    logger.debug("%s %s", request.method, request.url.path)
    try:
        path = request.url.path or ""
        if request.method != "OPTIONS" and not _is_public_path(path):
            from cfp.auth.deps import authenticate_request

            try:
                request.state.identity = authenticate_request(request, get_services().verifier)
            except AuthError as e:
                return _error_response(e)

        response = await call_next(request)
        process_time = time.time() - start_time
        logger.debug("%s %s - %d (%.3fs)", request.method, request.url.path, response.status_code, process_time)
        return response
    except Exception as e:
        process_time = time.time() - start_time
        logger.exception("%s %s - ERROR after %.3fs: %s", request.method, request.url.path, process_time, str(e))
        raise


@app.get("/healthz")
def healthz() -> Dict[str, Any]:
    return {"ok": True}


# ---- Accounts ----


@app.post("/api/auth/signup", status_code=201)
def auth_signup(req: SignupRequest) -> Dict[str, Any]:
    get_services().accounts.signup(name=req.name, email=req.email, password=req.password, role=req.role)
    return {"msg": "User registered successfully"}


@app.post("/api/auth/login")
def auth_login(req: LoginRequest) -> JSONResponse:
    token = get_services().accounts.login(email=req.email, password=req.password)
    resp = JSONResponse(content={"token": token})
    resp.headers["Cache-Control"] = "no-store"
    return resp


@app.get("/api/auth/me")
def auth_me(request: Request) -> Dict[str, Any]:
    user = get_services().accounts.me(_identity(request))
    return user.public_dict()


@app.get("/api/auth/admin")
def auth_admin(request: Request) -> Dict[str, Any]:
    if not _identity(request).is_organizer:
        raise Forbidden("Access denied. Organizers only.")
    return {"msg": "Hello, organizer!"}


# ---- Talks ----


@app.post("/api/talks")
def create_talk(request: Request, body: TalkBody) -> Dict[str, Any]:
    draft = TalkDraft(title=body.title, abstract=body.abstract, duration_minutes=body.duration, notes=body.notes)
    talk = get_services().talks.create(_identity(request), draft)
    return talk_to_wire(talk)


@app.get("/api/talks")
def list_talks(request: Request) -> List[Dict[str, Any]]:
    return [talk_to_wire(t) for t in get_services().talks.list(_identity(request))]


@app.get("/api/talks/{talk_id}")
def get_talk(request: Request, talk_id: str) -> Dict[str, Any]:
    return talk_to_wire(get_services().talks.get(_identity(request), talk_id))


@app.put("/api/talks/{talk_id}")
def update_talk(request: Request, talk_id: str, body: TalkBody) -> Dict[str, Any]:
    patch = TalkPatch(
        title=body.title,
        abstract=body.abstract,
        duration_minutes=body.duration,
        notes=body.notes,
        status=body.status,
    )
    talk = get_services().talks.update(_identity(request), talk_id, patch)
    return talk_to_wire(talk)


@app.delete("/api/talks/{talk_id}")
def delete_talk(request: Request, talk_id: str) -> Dict[str, Any]:
    get_services().talks.delete(_identity(request), talk_id)
    return {"msg": "Talk removed"}


def run(host: str = "0.0.0.0", port: int = 8080) -> None:
    import uvicorn

    log_level = os.getenv("LOG_LEVEL", "info").upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    logger.setLevel(getattr(logging, log_level, logging.INFO))

    # Map Python logging levels to uvicorn log levels
    uvicorn_log_level = (
        log_level.lower() if log_level.lower() in ["critical", "error", "warning", "info", "debug", "trace"] else "info"
    )

    logger.info("Starting talk review API on %s:%d (log_level=%s)", host, port, log_level)
    uvicorn.run(app, host=host, port=port, log_level=uvicorn_log_level)
