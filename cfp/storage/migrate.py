"""
Schema migrations for the Postgres talk and user stores.

Files in `migrations/` are named `<NNNN>_<slug>.sql` and applied in version order, one
transaction each, while holding an advisory lock so replicas starting together do not
race. The `schema_migrations` ledger records a checksum per version; editing an applied
file, or running against a database migrated by a newer build, is refused.

After migrating, the columns the stores rely on (ownership, status and the `version`
compare-and-swap token) are checked, so a broken schema fails at startup rather than
on the first talk write.
"""

from __future__ import annotations

import hashlib
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from cfp.storage.config import StoreConfig, build_postgres_dsn, load_store_config

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).parent / "migrations"

# Arbitrary but fixed: every replica must use the same key.
MIGRATION_LOCK_KEY = 7_310_442_018

_FILENAME_RE = re.compile(r"^(\d{4})_[a-z0-9_]+\.sql$")

# Columns PostgresTalkStore / PostgresUserStore read or use in WHERE clauses.
REQUIRED_COLUMNS: Dict[str, Tuple[str, ...]] = {
    "users": ("id", "email", "password_hash", "role"),
    "talks": ("seq", "id", "speaker_id", "status", "duration_minutes", "version"),
}


class MigrationError(RuntimeError):
    pass


@dataclass(frozen=True)
class Migration:
    version: str
    name: str
    checksum: str
    sql: str


@dataclass
class MigrationReport:
    applied: List[str] = field(default_factory=list)
    already_applied: List[str] = field(default_factory=list)

    def summary(self) -> str:
        if not self.applied:
            return f"Schema up to date ({len(self.already_applied)} migration(s) already applied)"
        return f"Applied {len(self.applied)} migration(s): {', '.join(self.applied)}"


def load_migrations(directory: Path = MIGRATIONS_DIR) -> List[Migration]:
    migrations: List[Migration] = []
    seen: Dict[str, str] = {}
    for p in sorted(directory.glob("*.sql")):
        m = _FILENAME_RE.match(p.name)
        if not m:
            raise MigrationError(f"Bad migration filename {p.name!r} (expected NNNN_slug.sql)")
        version = m.group(1)
        if version in seen:
            raise MigrationError(f"Duplicate migration version {version}: {seen[version]}, {p.name}")
        seen[version] = p.name
        raw = p.read_bytes()
        migrations.append(
            Migration(version=version, name=p.name, checksum=hashlib.sha256(raw).hexdigest(), sql=raw.decode("utf-8"))
        )
    return migrations


def pending_migrations(migrations: Iterable[Migration], applied: Dict[str, str]) -> List[Migration]:
    """Which of `migrations` still need to run, given the ledger's {version: checksum}."""
    migs = list(migrations)
    known = {m.version for m in migs}
    unknown = sorted(v for v in applied if v not in known)
    if unknown:
        raise MigrationError(f"Database has migrations this build does not know: {', '.join(unknown)}")

    pending: List[Migration] = []
    for m in migs:
        prev = applied.get(m.version)
        if prev is None:
            pending.append(m)
        elif prev != m.checksum:
            raise MigrationError(f"Checksum mismatch for {m.name}: db={prev[:12]} file={m.checksum[:12]}")
    return pending


def missing_columns(conn) -> List[str]:
    rows = conn.execute(
        """
        SELECT table_name, column_name
        FROM information_schema.columns
        WHERE table_schema = current_schema() AND table_name = ANY(%s)
        """,
        (list(REQUIRED_COLUMNS),),
    ).fetchall()
    present = {(str(r[0]), str(r[1])) for r in rows}
    return [f"{table}.{col}" for table, cols in REQUIRED_COLUMNS.items() for col in cols if (table, col) not in present]


def _default_connect(dsn: str):
    import psycopg  # type: ignore[import-not-found]

    return psycopg.connect(dsn)


def _read_ledger(conn) -> Dict[str, str]:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS schema_migrations (
          version text PRIMARY KEY,
          checksum text NOT NULL,
          applied_at timestamptz NOT NULL DEFAULT now()
        )
        """
    )
    rows = conn.execute("SELECT version, checksum FROM schema_migrations").fetchall()
    return {str(r[0]): str(r[1]) for r in rows}


def apply_migrations(
    *,
    dsn: str,
    migrations: Optional[Iterable[Migration]] = None,
    connect: Optional[Callable[[str], Any]] = None,
) -> MigrationReport:
    migs = list(migrations) if migrations is not None else load_migrations()
    report = MigrationReport()

    with (connect or _default_connect)(dsn) as conn:
        conn.execute("SELECT pg_advisory_lock(%s)", (MIGRATION_LOCK_KEY,))
        try:
            applied = _read_ledger(conn)
            pending = pending_migrations(migs, applied)
            report.already_applied = sorted(applied)

            for m in pending:
                with conn.transaction():
                    conn.execute(m.sql)
                    conn.execute(
                        "INSERT INTO schema_migrations (version, checksum) VALUES (%s, %s)", (m.version, m.checksum)
                    )
                logger.info("Applied migration %s", m.name)
                report.applied.append(m.version)

            missing = missing_columns(conn)
            if missing:
                raise MigrationError(f"Schema is missing required columns: {', '.join(missing)}")
        finally:
            conn.execute("SELECT pg_advisory_unlock(%s)", (MIGRATION_LOCK_KEY,))

    return report


def migration_status(*, dsn: str, connect: Optional[Callable[[str], Any]] = None) -> List[Tuple[Migration, bool]]:
    """Each known migration paired with whether the database has applied it (read-only)."""
    migs = load_migrations()
    with (connect or _default_connect)(dsn) as conn:
        rows = conn.execute("SELECT to_regclass('schema_migrations')").fetchone()
        applied: Dict[str, str] = {}
        if rows and rows[0] is not None:
            applied = {str(r[0]): str(r[1]) for r in conn.execute("SELECT version, checksum FROM schema_migrations")}
    pending = {m.version for m in pending_migrations(migs, applied)}
    return [(m, m.version not in pending) for m in migs]


def maybe_auto_migrate(cfg: Optional[StoreConfig] = None) -> Tuple[bool, str]:
    """
    Migrate at startup when DB_AUTO_MIGRATE=1 and the Postgres backend is selected.

    Returns: (did_attempt, message)
    """
    cfg = cfg or load_store_config()
    if cfg.backend != "postgres":
        return False, "Store backend is not postgres"
    if not cfg.db_auto_migrate:
        return False, "DB_AUTO_MIGRATE is disabled"
    dsn = build_postgres_dsn(cfg)
    if not dsn:
        return False, "Postgres DSN not configured"
    return True, apply_migrations(dsn=dsn).summary()
