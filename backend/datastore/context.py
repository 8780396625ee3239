"""
Request context handed to the datastore by the calling use-case.

Only two things are read from it: the acting user (for audit records) and
the raw query parameters (for list operations). How the context is built
from a transport request is the caller's concern.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class UserContext(BaseModel):
    """The user performing the operation."""

    id: str | int
    name: str | None = None


class RequestParams(BaseModel):
    """Raw request parameters; ``query`` holds search and list filters."""

    query: dict[str, Any] = Field(default_factory=dict)


class RequestContext(BaseModel):
    """
    Context for one use-case call.

    Usage:
        ctx = RequestContext(
            user=UserContext(id="u-1", name="operator"),
            params=RequestParams(query={
                "search": "sensor",
                "filters": {
                    "pagination": {"page": 2, "limit": 3},
                    "sort": {"by": "name", "mode": "asc"},
                    "field": {"status": {"equals": "ACTIVE"}},
                },
            }),
        )
    """

    user: UserContext
    params: RequestParams = Field(default_factory=RequestParams)

    @property
    def query(self) -> dict[str, Any]:
        return self.params.query
