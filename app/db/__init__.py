"""Database package: async engine, session factory and declarative base."""

from .session import AsyncSessionLocal, Base, close_db, engine, get_db, init_db

__all__ = ["AsyncSessionLocal", "Base", "close_db", "engine", "get_db", "init_db"]
