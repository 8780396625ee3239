"""
Declarative base shared by the audit table and every entity table the
datastore mediates access to.
"""

from __future__ import annotations

import uuid

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


def new_uuid() -> str:
    """Default primary key generator for string ids."""
    return str(uuid.uuid4())
