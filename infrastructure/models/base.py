"""
Declarative base for ORM models (SQLAlchemy 2.0 style)
"""
from datetime import datetime, timezone

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


# Metadata object used by migrations
metadata = Base.metadata


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
