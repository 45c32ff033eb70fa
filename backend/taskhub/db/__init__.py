"""Database package."""

from taskhub.db.base import Base, BaseModel
from taskhub.db.session import get_db_session, get_session_factory

__all__ = ["Base", "BaseModel", "get_db_session", "get_session_factory"]
