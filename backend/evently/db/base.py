# backend/evently/db/base.py

"""
Single source of truth for the SQLAlchemy Declarative Base.

This file must NOT import evently.models; doing so creates a circular import
(evently.main -> evently.models -> evently.db.base -> evently.models).
"""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass
