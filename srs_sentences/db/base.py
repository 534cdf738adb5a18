from typing import Optional

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine

from srs_sentences.config import get_settings

_engine = None


def get_engine() -> Engine:
    global _engine
    if _engine is None:
        database_url = get_settings().database_url
        connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
        _engine = create_engine(database_url, echo=False, connect_args=connect_args)
    return _engine


def init_db(engine: Optional[Engine] = None) -> None:
    """Create the state table if missing."""
    from srs_sentences.db import schemas  # noqa: F401  registers tables

    SQLModel.metadata.create_all(engine or get_engine())
