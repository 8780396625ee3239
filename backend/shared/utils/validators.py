"""
Input validation helpers.
"""

import json
from typing import Any

from shared.config.constants import Limits
from shared.utils.exceptions import ValidationError


def escape_like_pattern(value: str) -> str:
    """
    Escape special characters in LIKE patterns.

    SQL LIKE uses % and _ as wildcards. This function escapes them
    so a search term is matched literally.

    Args:
        value: The search string to escape

    Returns:
        The escaped string safe for use in LIKE patterns
    """
    if not value:
        return value

    # Escape the escape character first, then the wildcards
    value = value.replace("\\", "\\\\")
    value = value.replace("%", "\\%")
    value = value.replace("_", "\\_")
    return value


def normalize_search_term(value: Any) -> str | None:
    """Trim a raw search parameter and cap its length; empty means no search."""
    if value is None:
        return None
    term = str(value).strip()[: Limits.MAX_SEARCH_TERM_LENGTH]
    return term or None


def decode_json_param(name: str, value: Any) -> Any:
    """
    Decode a query parameter that may arrive JSON-encoded.

    Non-string values are returned untouched.

    Raises:
        ValidationError: If the string is not valid JSON.
    """
    if not isinstance(value, str):
        return value
    try:
        return json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"Invalid JSON in {name} filter",
            field=name,
            value=value,
            errors=str(exc),
        ) from exc
