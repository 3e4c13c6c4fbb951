# app/database.py
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Postgres connection
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=5       : checkout + webhook traffic is small but concurrent
# - pool_pre_ping=True: validate connections before using them
#
# SQLite URLs (local dev / tests) get none of the pool options;
# SQLite pools do not accept them.
# ---------------------------------------------------------


def _engine_options(db_url: str) -> tuple[str, dict]:
    if db_url.startswith("sqlite"):
        return db_url, {"connect_args": {"check_same_thread": False}}

    # Append sslmode=require if it is not already present
    if "sslmode=" not in db_url:
        if "?" in db_url:
            db_url = db_url + "&sslmode=require"
        else:
            db_url = db_url + "?sslmode=require"

    return db_url, {"pool_pre_ping": True, "pool_size": 5, "max_overflow": 5}


db_url, engine_options = _engine_options(settings.DATABASE_URL)

engine = create_engine(
    db_url,
    echo=False,        # set to True if you want to debug SQL queries
    **engine_options,
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session
