"""Report store: persisted analysis runs and their proposals.

Any SQLAlchemy URL works; the CLI defaults to a local SQLite file
(RELINFER_DATABASE_URL). Tables are created on first use.
"""

from typing import Any

from sqlalchemy import MetaData, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase

# Constraint names stay stable across SQLite and PostgreSQL stores
convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata_obj = MetaData(naming_convention=convention)


class Base(DeclarativeBase):
    """Base class for report store models."""

    metadata = metadata_obj


def _register_models() -> None:
    # AnalysisRun / ProposalRecord live next to the relationship models
    from relinfer.analysis.relationships import db_models as _relationship_models  # noqa: F401


def _enable_sqlite_foreign_keys(dbapi_conn: Any, connection_record: Any) -> None:
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_store_engine(url: str) -> Engine:
    """Create an engine for the report store.

    SQLite connections get foreign keys switched on so deleting a run
    removes its proposals.
    """
    engine = create_engine(url)
    if engine.dialect.name == "sqlite":
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


def init_database(engine: Engine) -> None:
    """Create the analysis_runs and relationship_proposals tables if missing."""
    _register_models()
    with engine.begin() as conn:
        Base.metadata.create_all(conn)


def reset_database(engine: Engine) -> None:
    """Drop every stored run and recreate an empty report store."""
    _register_models()
    with engine.begin() as conn:
        Base.metadata.drop_all(conn)
        Base.metadata.create_all(conn)
