"""Database layer — engine, session, ORM base."""

from amm_core.db.base import Base
from amm_core.db.engine import get_engine, get_session, init_engine

__all__ = ["Base", "get_engine", "get_session", "init_engine"]
