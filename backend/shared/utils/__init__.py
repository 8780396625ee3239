"""
Utilities module: Exceptions, validators.
"""

from shared.utils.exceptions import (
    AppException,
    NotFoundError,
    ValidationError,
    CyclicReferenceError,
    InternalError,
    DatabaseError,
)
from shared.utils.validators import (
    escape_like_pattern,
    normalize_search_term,
    decode_json_param,
)

__all__ = [
    # exceptions
    "AppException",
    "NotFoundError",
    "ValidationError",
    "CyclicReferenceError",
    "InternalError",
    "DatabaseError",
    # validators
    "escape_like_pattern",
    "normalize_search_term",
    "decode_json_param",
]
