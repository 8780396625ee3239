"""
SQLAlchemy ORM Models Package.

- base: Base class and id generator shared with entity tables
- audit: Audit (append-only change history)
"""

from .base import Base, new_uuid
from .audit import Audit

__all__ = [
    "Base",
    "new_uuid",
    "Audit",
]
