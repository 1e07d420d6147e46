"""User store port and its adapters."""

from authcore.repositories.base import UserStore
from authcore.repositories.memory import InMemoryUserStore
from authcore.repositories.sqlalchemy_store import SQLAlchemyUserStore

__all__ = [
    "UserStore",
    "InMemoryUserStore",
    "SQLAlchemyUserStore",
]
