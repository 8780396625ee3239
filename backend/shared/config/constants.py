"""
Centralized constants for the datastore.
"""

from enum import Enum
from typing import Final


class AuditAction(str, Enum):
    """Kind of mutation recorded in the audit table."""

    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class SortMode(str, Enum):
    """Sort direction accepted in list query parameters."""

    ASC = "asc"
    DESC = "desc"


class PathDialect(str, Enum):
    """How recursive graph queries represent a path column."""

    ARRAY = "array"          # native array column, e.g. PostgreSQL
    DELIMITED = "delimited"  # delimited string, e.g. MSSQL, SQLite


class Limits:
    """Validation limits."""

    # Pagination defaults
    DEFAULT_PAGE: Final[int] = 1
    MIN_PAGE_SIZE: Final[int] = 1

    # Search
    MAX_SEARCH_TERM_LENGTH: Final[int] = 100


# Separator between node ids in delimited path strings
PATH_DELIMITER: Final[str] = ","

# Columns every tree table exposes to the recursive query
TREE_ID_COLUMN: Final[str] = "id"
TREE_PARENT_COLUMN: Final[str] = "parent_id"
TREE_NAME_COLUMN: Final[str] = "name"

# Default column names of a many-to-many self relation table
EDGE_SOURCE_COLUMN: Final[str] = "A"
EDGE_TARGET_COLUMN: Final[str] = "B"

# Ids per IN (...) when hydrating recursive query results; MSSQL caps a
# statement at 2100 bind parameters
HYDRATE_CHUNK_SIZE: Final[int] = 1000
