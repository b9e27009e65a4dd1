"""
Database engine helpers shared by the API, the repositories and the admin scripts.
"""
import logging

from sqlalchemy import Engine, text
from sqlmodel import SQLModel, create_engine

logger = logging.getLogger(__name__)


def make_engine(database_url: str, echo: bool = False, **engine_kwargs) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # the TestClient and uvicorn workers use the connection from other threads
        connect_args["check_same_thread"] = False
    return create_engine(database_url, connect_args=connect_args, echo=echo, **engine_kwargs)


def create_schema(engine: Engine) -> None:
    """Create all tables that don't exist yet."""
    from . import models  # noqa: F401  registers the tables on SQLModel.metadata

    SQLModel.metadata.create_all(engine)


def drop_schema(engine: Engine) -> None:
    from . import models  # noqa: F401

    SQLModel.metadata.drop_all(engine)
    logger.warning("Dropped all tables on %s", engine.url.render_as_string(hide_password=True))


def ping(engine: Engine) -> None:
    """Round-trip a trivial query; raises if the database is unreachable."""
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
