"""Database package"""

from app.db.session import engine, SessionLocal, get_db, transaction

__all__ = ["engine", "SessionLocal", "get_db", "transaction"]
