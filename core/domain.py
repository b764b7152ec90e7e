"""
Domain Layer Base Classes.

The domain layer contains pure business logic with no external dependencies.
This makes pricing and settlement rules:
- Easy to test (no mocking needed)
- Reusable from the API, scripts and background jobs
- Clear and self-documenting

Example Usage:
    class TierPolicy(PolicyEngine):
        def evaluate(self, context: dict) -> PolicyDecision:
            # Pure business logic here
            ...
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional, Union
from datetime import datetime, timezone
from enum import Enum


class PolicyResult(Enum):
    """Result of a policy evaluation."""
    APPROVED = "approved"
    DENIED = "denied"


@dataclass
class PolicyDecision:
    """
    The outcome of a policy evaluation.

    Attributes:
        result: The policy decision result
        reason: Human-readable explanation
        metadata: Additional context for the decision
    """
    result: PolicyResult
    reason: str
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_approved(self) -> bool:
        return self.result == PolicyResult.APPROVED

    @property
    def is_denied(self) -> bool:
        return self.result == PolicyResult.DENIED


@dataclass
class DomainEvent:
    """
    Something that happened to an order's settlement.

    Events are attached to service results and logged by the workflow,
    which gives an audit trail of completions, refunds and gift-card legs.
    """
    event_type: str
    occurred_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    data: Dict[str, Any] = field(default_factory=dict)


class PolicyEngine(ABC):
    """
    Abstract base class for policy engines.

    A PolicyEngine encapsulates a set of business rules that can be
    evaluated against a context to produce a decision.

    Example:
        class CompletionEligibilityPolicy(PolicyEngine):
            def evaluate(self, context: dict) -> PolicyDecision:
                if context.get("status") == "completed":
                    return PolicyDecision(
                        result=PolicyResult.DENIED,
                        reason="Order already completed"
                    )
                return PolicyDecision(
                    result=PolicyResult.APPROVED,
                    reason="Order can be completed"
                )
    """

    @abstractmethod
    def evaluate(self, context: Dict[str, Any]) -> PolicyDecision:
        """
        Evaluate the policy against the given context.

        Args:
            context: Dictionary containing all data needed for evaluation

        Returns:
            PolicyDecision with the result and explanation
        """
        pass


class DomainService(ABC):
    """
    Abstract base class for domain services.

    Domain services contain business logic that doesn't belong to a single entity.
    They orchestrate multiple policies and entities to perform complex operations.

    Key principles:
    - No I/O operations (database, network, file)
    - All dependencies passed as parameters
    - Return domain objects, not DTOs
    """

    @abstractmethod
    def execute(self, *args, **kwargs) -> Any:
        """
        Execute the domain service operation.

        Implementation should contain pure business logic only.
        """
        pass


@dataclass
class ValidationError:
    """A validation error with field and message."""
    field: str
    message: str
    code: str = "invalid"

    def to_dict(self) -> Dict[str, str]:
        return {"field": self.field, "message": self.message, "code": self.code}


class Validator(ABC):
    """
    Abstract base class for validators.

    Validators check that data meets business requirements before processing.
    """

    @abstractmethod
    def validate(self, data: Dict[str, Any]) -> List[ValidationError]:
        """
        Validate the data and return any errors.

        Args:
            data: The data to validate

        Returns:
            List of ValidationError objects (empty if valid)
        """
        pass

    def check(self, data: Dict[str, Any]) -> None:
        """Raise InvalidRequestError if the data has any errors."""
        errors = self.validate(data)
        if errors:
            raise InvalidRequestError(errors)


# =============================================================================
# ERRORS
# =============================================================================

class DomainError(Exception):
    """Base class for errors raised by domain and workflow code."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(DomainError, ValueError):
    """Input failed validation. Carries one record per offending field."""

    def __init__(self, errors: List[ValidationError]):
        self.errors = list(errors)
        details = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(f"Invalid request: {details}")

    @property
    def fields(self) -> List[str]:
        return [e.field for e in self.errors]


class ConflictError(DomainError):
    """The entity is in a state that does not allow the operation. Not retryable."""


class NotFoundError(DomainError):
    """The referenced entity does not exist."""


class NotAuthorizedError(DomainError):
    """The actor is not allowed to act on the entity."""


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================

CENTS = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_decimal(value: Optional[Number]) -> Decimal:
    """Convert a number to Decimal without binary float noise."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def to_money(value: Optional[Number]) -> Decimal:
    """Round a monetary amount to cents (half up)."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse an ISO format timestamp safely."""
    if not value:
        return None
    try:
        if "Z" in value:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    except (ValueError, TypeError):
        return None
