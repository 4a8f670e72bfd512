"""
Base model classes for the webhook DLQ.

Provides the SQLAlchemy declarative base and the UTC clock used for
every stored timestamp.
"""
from datetime import datetime, timezone
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


def utcnow() -> datetime:
    """Current UTC time as a naive datetime (the form stored in the queue table)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
