"""Alembic migrations for the check store, shipped inside the package."""

from __future__ import annotations

from contextlib import contextmanager
from importlib import resources
from pathlib import Path
from typing import Iterator, Optional

from alembic import command as alembic_command
from alembic.config import Config as AlembicConfig
from alembic.runtime.migration import MigrationContext
import sqlalchemy as sa
from sqlalchemy.pool import NullPool


_SCRIPTS_PACKAGE = "wptchecks.db_migration_scripts"


def _database_url(db_path: Path) -> str:
    return f"sqlite:///{db_path}"


@contextmanager
def _alembic_config(db_path: Path) -> Iterator[AlembicConfig]:
    with resources.as_file(resources.files(_SCRIPTS_PACKAGE)) as script_location:
        alembic_cfg = AlembicConfig()
        alembic_cfg.set_main_option("script_location", str(script_location))
        alembic_cfg.set_main_option("sqlalchemy.url", _database_url(db_path))
        yield alembic_cfg


def migrate_check_db(path: str | Path, revision: str = "head") -> None:
    db_path = Path(path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with _alembic_config(db_path) as alembic_cfg:
        alembic_command.upgrade(alembic_cfg, revision)


def current_revision(path: str | Path) -> Optional[str]:
    """Revision the database at ``path`` is on, ``None`` if never migrated."""
    engine = sa.create_engine(_database_url(Path(path)), poolclass=NullPool)
    try:
        with engine.connect() as connection:
            return MigrationContext.configure(connection).get_current_revision()
    finally:
        engine.dispose()
