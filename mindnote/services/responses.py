"""
Response envelopes shared by all services.
"""

from datetime import datetime, timezone
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar("T")


def utc_timestamp() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


class _Envelope(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


class ErrorInfo(_Envelope):
    """Error member of a failure envelope."""

    code: str
    message: str
    details: Any | None = None


class ApiResponse(_Envelope, Generic[T]):
    """Uniform envelope returned to every caller."""

    success: bool = True
    data: T | None = None
    message: str | None = None
    error: ErrorInfo | None = None
    timestamp: str = Field(default_factory=utc_timestamp)
    request_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        """Serialize with camelCase keys, omitting unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True)


class PaginatedResponse(_Envelope, Generic[T]):
    """One page of a listing endpoint."""

    items: list[T] = Field(default_factory=list)
    total: int = 0
    page: int = 1
    limit: int = 20
    total_pages: int = 0
    has_next: bool = False
    has_prev: bool = False
