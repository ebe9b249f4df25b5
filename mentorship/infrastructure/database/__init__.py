"""Database layer - engine, models and SQLAlchemy adapters."""

from .config import close_database, create_engine, get_session_factory, init_database
from .models import Base

__all__ = ["Base", "close_database", "create_engine", "get_session_factory", "init_database"]
