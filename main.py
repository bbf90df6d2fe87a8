#!/usr/bin/env python3
"""
Talk review service - entry point.
Serves the HTTP API, applies DB migrations, or signs development tokens.
"""

import argparse
import logging
import sys

# Configure logging
logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s", stream=sys.stderr
)

#
# NOTE: Keep cfp imports lazy (inside functions) so `migrate` does not import FastAPI
# and `issue-token` does not touch storage.
#


def issue_dev_token(subject_id: str, email: str, role: str, ttl_seconds: int = 0) -> str:
    """Sign a token with the configured key (for local testing against the API)."""
    from cfp.auth.config import load_auth_config
    from cfp.auth.models import Identity
    from cfp.auth.tokens import build_issuer

    issuer = build_issuer(load_auth_config())
    identity = Identity(subject_id=subject_id, email=email, role=role)
    return issuer.issue(identity, ttl_seconds=ttl_seconds or None)


def run_migrate(status_only: bool = False) -> int:
    """Apply pending migrations (or list them with --status) against the configured Postgres."""
    from cfp.storage.config import build_postgres_dsn, load_store_config
    from cfp.storage.migrate import MigrationError, apply_migrations, migration_status

    dsn = build_postgres_dsn(load_store_config())
    if not dsn:
        print("Postgres not configured (set POSTGRES_DSN or POSTGRES_* env vars).", file=sys.stderr)
        return 2

    try:
        if status_only:
            for migration, applied in migration_status(dsn=dsn):
                print(f"{migration.version}  {'applied' if applied else 'pending'}  {migration.name}")
            return 0
        report = apply_migrations(dsn=dsn)
    except MigrationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    print(report.summary())
    return 0


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        description="Talk submission and review service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Run the API (memory backend unless STORE_BACKEND=postgres)
  AUTH_TOKEN_SECRET=change-me python main.py serve --port 5000

  # Apply Postgres migrations, or just show what is pending
  python main.py migrate
  python main.py migrate --status

  # Sign a token for manual testing
  python main.py issue-token --sub u1 --email org@example.com --role organizer
        """,
    )
    sub = parser.add_subparsers(dest="command")

    serve = sub.add_parser("serve", help="Run the HTTP API")
    serve.add_argument("--host", default="0.0.0.0", help="Bind host (default: 0.0.0.0)")
    serve.add_argument("--port", type=int, default=8080, help="Listen port (default: 8080)")

    mig = sub.add_parser("migrate", help="Apply pending Postgres migrations")
    mig.add_argument("--status", action="store_true", help="List applied and pending migrations without applying")

    tok = sub.add_parser("issue-token", help="Sign a bearer token with the configured key")
    tok.add_argument("--sub", required=True, help="Subject id (user id)")
    tok.add_argument("--email", required=True, help="Email claim")
    tok.add_argument("--role", required=True, choices=["attendee", "speaker", "organizer"], help="Role claim")
    tok.add_argument("--ttl", type=int, default=0, help="Lifetime in seconds (default: AUTH_TOKEN_TTL_SECONDS)")

    args = parser.parse_args(argv)

    if args.command == "serve":
        from cfp.api.server import run

        run(host=args.host, port=args.port)
        return 0

    if args.command == "migrate":
        return run_migrate(status_only=args.status)

    if args.command == "issue-token":
        try:
            print(issue_dev_token(args.sub, args.email, args.role, ttl_seconds=args.ttl))
        except RuntimeError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 2
        return 0

    parser.print_help()
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
