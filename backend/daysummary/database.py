from collections.abc import Generator, Iterable
from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, sessionmaker

from daysummary.config import get_settings

settings = get_settings()

# Create sync engine (using psycopg2)
# Convert postgresql:// to postgresql+psycopg2:// if needed
database_url = settings.database_url
if database_url.startswith("postgresql://"):
    database_url = database_url.replace("postgresql://", "postgresql+psycopg2://", 1)

engine = create_engine(
    database_url,
    pool_pre_ping=True,
    pool_size=10,
    max_overflow=20,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database sessions."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def upsert(
    db: Session,
    model: Any,
    values: dict[str, Any],
    index_elements: Iterable[str],
) -> None:
    """INSERT ... ON CONFLICT DO UPDATE for PostgreSQL and SQLite.

    Every column in ``values`` that is not part of the conflict target is
    overwritten with the incoming value.
    """
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        insert = postgresql.insert
    elif dialect == "sqlite":
        insert = sqlite.insert
    else:
        raise NotImplementedError(f"upsert is not supported for dialect {dialect}")

    keys = list(index_elements)
    stmt = insert(model).values(**values)
    stmt = stmt.on_conflict_do_update(
        index_elements=keys,
        set_={
            column: stmt.excluded[column]
            for column in values
            if column not in keys
        },
    )
    db.execute(stmt)


def init_db():
    """Run database migrations to ensure schema is up to date."""
    import os

    from alembic import command
    from alembic.config import Config

    backend_dir = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    alembic_ini = os.path.join(backend_dir, "alembic.ini")

    if os.path.exists(alembic_ini):
        alembic_cfg = Config(alembic_ini)
        alembic_cfg.set_main_option("script_location", os.path.join(backend_dir, "alembic"))
        command.upgrade(alembic_cfg, "head")
    else:
        # Fallback to create_all for development without alembic.ini
        from daysummary.models import Base

        Base.metadata.create_all(bind=engine)
