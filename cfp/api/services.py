"""Process-wide service graph, built once from configuration."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from cfp.auth.config import load_auth_config
from cfp.auth.local import AccountService
from cfp.auth.tokens import TokenIssuer, TokenVerifier, build_issuer, build_verifier
from cfp.storage.config import build_postgres_dsn, load_store_config
from cfp.talks.authority import TalkAuthority

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Services:
    verifier: TokenVerifier
    issuer: TokenIssuer
    talks: TalkAuthority
    accounts: AccountService


@lru_cache(maxsize=1)
def get_services() -> Services:
    """
    Build stores, the token verifier/issuer and the authorities.

    Raises RuntimeError when the signing key or the selected backend is not configured,
    so a misconfigured process fails at startup instead of on the first request.
    """
    auth_cfg = load_auth_config()
    store_cfg = load_store_config()

    if store_cfg.backend == "postgres":
        from cfp.storage.postgres_store import PostgresTalkStore, PostgresUserStore

        dsn = build_postgres_dsn(store_cfg)
        if not dsn:
            raise RuntimeError("STORE_BACKEND=postgres requires POSTGRES_DSN or POSTGRES_* env vars")
        talk_store = PostgresTalkStore(dsn)
        user_store = PostgresUserStore(dsn)
    else:
        from cfp.storage.memory_store import MemoryTalkStore, MemoryUserStore

        talk_store = MemoryTalkStore()
        user_store = MemoryUserStore()

    issuer = build_issuer(auth_cfg)
    services = Services(
        verifier=build_verifier(auth_cfg),
        issuer=issuer,
        talks=TalkAuthority(talk_store),
        accounts=AccountService(user_store, issuer, auth_cfg),
    )
    logger.info(
        "Services ready: backend=%s token_alg=%s token_ttl=%ss signup_roles=%s",
        store_cfg.backend,
        auth_cfg.token_algorithm,
        auth_cfg.token_ttl_seconds,
        ",".join(auth_cfg.signup_roles),
    )
    return services
