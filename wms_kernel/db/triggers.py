"""
Module: wms_kernel.db.triggers
Responsibility: Loading and installing the PostgreSQL immutability triggers.
    This is the database-level complement to the ORM listeners in
    db/immutability.py.
Architecture position: Kernel > DB.  May import from db/ only.

Invariants enforced:
    - stock_movements rows: no UPDATE, no DELETE.
    - audit_events rows: no UPDATE, no DELETE.

Failure modes:
    - PostgreSQL RAISE EXCEPTION on any violation (surfaces as
      IntegrityError / InternalError from SQLAlchemy).
    - FileNotFoundError if SQL files are missing from the sql/ directory.

Audit relevance:
    The ORM listeners only see writes that go through a Session.  Raw SQL,
    bulk statements and manual psql sessions are stopped here.
"""

from pathlib import Path

from sqlalchemy import text
from sqlalchemy.engine import Engine

from wms_kernel.logging_config import get_logger

logger = get_logger("db.triggers")

SQL_DIR = Path(__file__).parent / "sql"

# Installed in this order
TRIGGER_FILES = [
    "01_stock_movement.sql",
    "02_audit_event.sql",
]

DROP_FILE = "99_drop_all.sql"

ALL_TRIGGER_NAMES = [
    "trg_stock_movement_immutability_update",
    "trg_stock_movement_immutability_delete",
    "trg_audit_event_immutability_update",
    "trg_audit_event_immutability_delete",
]


def _load_sql_file(filename: str) -> str:
    return (SQL_DIR / filename).read_text(encoding="utf-8")


def _load_all_trigger_sql() -> str:
    parts = []
    for filename in TRIGGER_FILES:
        parts.append(f"-- Loading: {filename}")
        parts.append(_load_sql_file(filename))
    return "\n".join(parts)


def install_immutability_triggers(engine: Engine) -> None:
    """
    Install the database-level immutability triggers.

    Preconditions: Tables exist.  Engine is connected to PostgreSQL.
    Postconditions: Every trigger in ALL_TRIGGER_NAMES is installed.
        Functions use CREATE OR REPLACE, so re-running is safe.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_all_trigger_sql()))
        conn.commit()
    logger.info("immutability_triggers_installed", extra={"count": len(ALL_TRIGGER_NAMES)})


def uninstall_immutability_triggers(engine: Engine) -> None:
    """
    Remove the immutability triggers and their functions.

    Only for dropping the schema in tests and migrations.
    """
    with engine.connect() as conn:
        conn.execute(text(_load_sql_file(DROP_FILE)))
        conn.commit()
    logger.info("immutability_triggers_uninstalled")


def installed_trigger_names(engine: Engine) -> set[str]:
    """Return which of ALL_TRIGGER_NAMES are present in the database."""
    with engine.connect() as conn:
        rows = conn.execute(
            text(
                "SELECT tgname FROM pg_trigger "
                "WHERE NOT tgisinternal AND tgname = ANY(:names)"
            ),
            {"names": ALL_TRIGGER_NAMES},
        ).scalars().all()
    return set(rows)
