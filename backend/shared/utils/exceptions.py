"""
Typed error conditions raised by the datastore.

The core never formats transport responses: callers catch these and translate
them. Every exception carries an HTTP-style status, a machine code and the
context it was raised with.

Usage:
    from shared.utils.exceptions import NotFoundError, DatabaseError

    raise NotFoundError("device", device_id)
    raise DatabaseError("update", entity="device")
"""

from http import HTTPStatus
from typing import Any

from shared.config.logging import get_logger

logger = get_logger(__name__)


class ErrorCode:
    """Machine-readable error codes."""

    BAD_REQUEST = "R400"
    NOT_FOUND = "R404"
    DUPLICATE = "R409"
    INTERNAL_SERVER_ERROR = "R500"
    GRAPH_CYCLIC = "G400"


class AppException(Exception):
    """
    Base exception with automatic logging.

    All datastore exceptions inherit from this class
    to ensure consistent logging and error shape.
    """

    def __init__(
        self,
        status_code: int,
        code: str,
        detail: str,
        log_level: str = "warning",
        **params: Any,
    ):
        log_fn = getattr(logger, log_level, logger.warning)
        log_fn(detail, status_code=status_code, code=code, **params)

        super().__init__(detail)
        self.status_code = status_code
        self.code = code
        self.detail = detail
        self.params = params

    def to_dict(self) -> dict[str, Any]:
        """Error payload for whichever layer reports it."""
        return {"code": self.code, "params": self.params}


# =============================================================================
# 404 Not Found Errors
# =============================================================================


class NotFoundError(AppException):
    """
    Entity not found error (404).

    Usage:
        raise NotFoundError("device", "d-42")
        raise NotFoundError("device", cursor, reason="cursor")
    """

    def __init__(self, entity: str, entity_id: Any = None, **params: Any):
        if entity_id is not None:
            detail = f"{entity} with id {entity_id} is not found"
        else:
            detail = f"{entity} is not found"

        super().__init__(
            HTTPStatus.NOT_FOUND,
            ErrorCode.NOT_FOUND,
            detail,
            log_level="warning",
            entity=entity,
            entity_id=entity_id,
            **params,
        )
        self.entity = entity
        self.entity_id = entity_id


# =============================================================================
# 400 Bad Request Errors
# =============================================================================


class ValidationError(AppException):
    """
    Invalid input error (400).

    Usage:
        raise ValidationError("Unknown sort column", field="sort.by", value="foo")
    """

    def __init__(self, detail: str, code: str = ErrorCode.BAD_REQUEST, **params: Any):
        super().__init__(
            HTTPStatus.BAD_REQUEST,
            code,
            detail,
            log_level="warning",
            **params,
        )


class CyclicReferenceError(ValidationError):
    """A parent or relation change would create a circular reference."""

    def __init__(self, entity: str, node_id: Any, related_id: Any, **params: Any):
        super().__init__(
            "It's not possible, it will cause circular reference",
            code=ErrorCode.GRAPH_CYCLIC,
            entity=entity,
            node_id=node_id,
            related_id=related_id,
            **params,
        )


# =============================================================================
# 500 Internal Server Errors
# =============================================================================


class InternalError(AppException):
    """
    Internal error (500).

    Usage:
        raise InternalError("Unexpected store response", entity="device")
    """

    def __init__(self, detail: str = "Internal server error", **params: Any):
        super().__init__(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            ErrorCode.INTERNAL_SERVER_ERROR,
            detail,
            log_level="error",
            **params,
        )


class DatabaseError(InternalError):
    """Store operation failed; wraps the driver error once with context."""

    def __init__(self, operation: str, entity: str | None = None, **params: Any):
        if entity:
            detail = f"Database error during {operation} on {entity}"
        else:
            detail = f"Database error during {operation}"
        super().__init__(detail, operation=operation, entity=entity, **params)
        self.operation = operation
        self.entity = entity
