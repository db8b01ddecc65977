"""
Failure classification for catalog and collection operations.

Every failure a caller must be able to tell apart from an empty result
is raised as a KnownError subclass. The API layer converts these into a
JSON body carrying the failure kind, a message and the HTTP status.

Partial set imports are deliberately NOT an exception: the catalog
client logs a warning and the caller receives what was fetched.
"""

from enum import Enum

from pydantic import BaseModel, Field


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"

    # Service failures
    SERVICE_UNAVAILABLE = "service_unavailable"
    EXTERNAL_API_ERROR = "external_api_error"


class FailureDetail(BaseModel):
    """Detailed information about a failure."""

    kind: FailureKind = Field(
        ...,
        description="Classification of the failure",
    )
    message: str = Field(
        ...,
        description="User-appropriate explanation of what went wrong",
    )
    detail: str | None = Field(
        default=None,
        description="Additional technical detail (optional)",
    )
    suggestion: str | None = Field(
        default=None,
        description="Suggested action for the user",
    )


class KnownError(Exception):
    """
    Base class for exceptions that represent known, explainable failures.

    Subclass this for errors where the system knows exactly what went wrong.
    """

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
        status_code: int = 400,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        self.status_code = status_code
        super().__init__(message)

    def to_detail(self) -> FailureDetail:
        """Convert to a serializable failure detail."""
        return FailureDetail(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class UpstreamError(KnownError):
    """The catalog service answered with an error or could not be reached."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.EXTERNAL_API_ERROR,
            message=message,
            detail=detail,
            suggestion="The card catalog may be unavailable. Try again in a few minutes.",
            status_code=502,
        )


class NotFoundError(KnownError):
    """A requested set, card or tracker does not exist."""

    def __init__(self, resource: str, key: object):
        self.resource = resource
        self.key = key
        super().__init__(
            kind=FailureKind.NOT_FOUND,
            message=f"{resource} '{key}' not found",
            status_code=404,
        )


class ConflictError(KnownError):
    """The requested change collides with existing state."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.CONFLICT,
            message=message,
            detail=detail,
            status_code=409,
        )


class InvalidInputError(KnownError):
    """The request is well-formed but its values are not acceptable."""

    def __init__(self, message: str, detail: str | None = None):
        super().__init__(
            kind=FailureKind.INVALID_INPUT,
            message=message,
            detail=detail,
            status_code=400,
        )


class ServiceUnavailableError(KnownError):
    """A component needed for the request is not running."""

    def __init__(self, message: str, suggestion: str | None = None):
        super().__init__(
            kind=FailureKind.SERVICE_UNAVAILABLE,
            message=message,
            suggestion=suggestion,
            status_code=503,
        )
