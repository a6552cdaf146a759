"""
Failure classification for deck operations.

Four kinds of failure exist in the deck engine:

- ValidationDenied: a legality rule refused the mutation. Recoverable,
  user-visible, nothing was changed.
- PersistenceFailure: the mutation was legal but the write failed. The
  optimistic local change has been reverted. Not retried automatically.
- CatalogLookupFailure: a catalog search or refresh failed. Never fatal;
  callers fall back to stored snapshots or report the single item.
- InvariantViolation: a programming contract was broken (e.g. an entry is
  not where the caller said it was). A defect, never a user response.

ValidationDenied, PersistenceFailure and CatalogLookupFailure convert into
the ApiResponse envelope used by the HTTP layer.
"""

from enum import Enum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field

from commandzone.models.legality import Decision


class FailureKind(str, Enum):
    """Classification of failure types."""

    # Input validation failures
    INVALID_INPUT = "invalid_input"

    # Resource failures
    NOT_FOUND = "not_found"

    # Legality refusals
    NOT_COMMANDER_ELIGIBLE = "not_commander_eligible"
    COMMANDER_SLOT_OCCUPIED = "commander_slot_occupied"
    COLOR_IDENTITY_VIOLATION = "color_identity_violation"
    COPY_LIMIT_EXCEEDED = "copy_limit_exceeded"

    # Collaborator failures
    PERSISTENCE_FAILED = "persistence_failed"
    CATALOG_UNAVAILABLE = "catalog_unavailable"


class OutcomeType(str, Enum):
    """High-level outcome classification."""

    SUCCESS = "success"
    REFUSAL = "refusal"
    KNOWN_FAILURE = "known_failure"


T = TypeVar("T")


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


class ApiResponse(BaseModel, Generic[T]):
    """Response envelope carrying either data or a classified failure."""

    outcome: OutcomeType = Field(
        ...,
        description="High-level classification of the result",
    )
    data: T | None = Field(
        default=None,
        description="Response data (present on success)",
    )
    failure: FailureDetail | None = Field(
        default=None,
        description="Failure details (present on non-success)",
    )

    @classmethod
    def success(cls, data: T) -> "ApiResponse[T]":
        """Create a success response."""
        return cls(outcome=OutcomeType.SUCCESS, data=data)

    @classmethod
    def refusal(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """Create a refusal response (a rule declined the request)."""
        return cls(
            outcome=OutcomeType.REFUSAL,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
        )

    @classmethod
    def known_failure(
        cls,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ) -> "ApiResponse[Any]":
        """Create a known failure response."""
        return cls(
            outcome=OutcomeType.KNOWN_FAILURE,
            failure=FailureDetail(
                kind=kind,
                message=message,
                detail=detail,
                suggestion=suggestion,
            ),
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

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.known_failure(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


class RefusalError(Exception):
    """Exception for rule-based refusals."""

    def __init__(
        self,
        kind: FailureKind,
        message: str,
        detail: str | None = None,
        suggestion: str | None = None,
    ):
        self.kind = kind
        self.message = message
        self.detail = detail
        self.suggestion = suggestion
        super().__init__(message)

    def to_response(self) -> ApiResponse[Any]:
        """Convert to an ApiResponse."""
        return ApiResponse.refusal(
            kind=self.kind,
            message=self.message,
            detail=self.detail,
            suggestion=self.suggestion,
        )


_DENY_SUGGESTIONS: dict[FailureKind, str] = {
    FailureKind.NOT_COMMANDER_ELIGIBLE: "Put the card in another zone.",
    FailureKind.COMMANDER_SLOT_OCCUPIED: "Remove the current commander first.",
    FailureKind.COLOR_IDENTITY_VIOLATION: "Choose a card inside the commander's colors.",
    FailureKind.COPY_LIMIT_EXCEEDED: "Remove the extra copies.",
}


class ValidationDenied(RefusalError):
    """A legality rule refused a mutation. No state was changed."""

    def __init__(self, decision: Decision):
        if decision.allowed or decision.reason is None:
            raise ValueError("ValidationDenied requires a denied decision")
        self.decision = decision
        kind = FailureKind(decision.reason.value)
        super().__init__(
            kind=kind,
            message=decision.message,
            detail=decision.reason.value,
            suggestion=_DENY_SUGGESTIONS.get(kind),
        )


class PersistenceFailure(KnownError):
    """A legal mutation could not be stored; the local change was reverted."""

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.PERSISTENCE_FAILED,
            message="Your change could not be saved and has been undone.",
            detail=detail,
            suggestion="Try again in a moment.",
            status_code=503,
        )


class CatalogLookupFailure(KnownError):
    """The card catalog could not answer a search or refresh."""

    def __init__(self, detail: str | None = None):
        super().__init__(
            kind=FailureKind.CATALOG_UNAVAILABLE,
            message="The card catalog could not be reached.",
            detail=detail,
            suggestion="Stored card data is still used. Try the lookup again later.",
            status_code=502,
        )


class InvariantViolation(Exception):
    """
    A programming contract was broken.

    Raised for states that correct callers can never produce, such as asking
    to move an entry out of a zone it is not in. Not user-facing.
    """
