from __future__ import annotations

import logging
from pathlib import Path

from event_scheduler.infra.db.connection import Database

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent / "migrations"


def _version_of(path: Path) -> int:
    # 001_init.sql -> 1
    return int(path.stem.split("_", 1)[0])


async def apply_migrations(db: Database, now_iso: str, migrations_dir: Path = MIGRATIONS_DIR) -> list[int]:
    """Run every `NNN_name.sql` not yet recorded in schema_migrations, in order. Returns applied versions."""
    await db.execute(
        "CREATE TABLE IF NOT EXISTS schema_migrations (version INTEGER PRIMARY KEY, applied_at TEXT NOT NULL);"
    )
    done = {row["version"] for row in await db.fetchall("SELECT version FROM schema_migrations;")}

    pending = sorted(
        (p for p in Path(migrations_dir).glob("*.sql") if p.is_file() and _version_of(p) not in done),
        key=_version_of,
    )
    applied: list[int] = []
    for path in pending:
        version = _version_of(path)
        await db.executescript(path.read_text(encoding="utf-8"))
        await db.execute(
            "INSERT INTO schema_migrations(version, applied_at) VALUES (?, ?);",
            (version, now_iso),
        )
        logger.info("Applied migration %s", path.name)
        applied.append(version)
    return applied
