"""Structured exceptions for tournament and wallet operations.

Every error carries a kind (how the caller should react) and a code
(what went wrong) plus a user-facing message.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    """Error categories callers branch on."""

    VALIDATION = "validation"
    PRECONDITION = "precondition"
    TRANSIENT = "transient"
    CONFLICT = "conflict"


class ErrorCode(str, Enum):
    """Specific error causes."""

    # Validation
    INVALID_AMOUNT = "INVALID_AMOUNT"
    MISSING_FIELD = "MISSING_FIELD"
    INVALID_USERNAME = "INVALID_USERNAME"
    INVALID_IMAGE = "INVALID_IMAGE"
    INVALID_ROLE = "INVALID_ROLE"
    INVALID_ORDER = "INVALID_ORDER"

    # Business rules
    USERNAME_TAKEN = "USERNAME_TAKEN"
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    TOURNAMENT_FULL = "TOURNAMENT_FULL"
    ALREADY_JOINED = "ALREADY_JOINED"
    TOURNAMENT_NOT_OPEN = "TOURNAMENT_NOT_OPEN"
    REQUEST_ALREADY_PROCESSED = "REQUEST_ALREADY_PROCESSED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    EMAIL_NOT_VERIFIED = "EMAIL_NOT_VERIFIED"
    CANNOT_DELETE_SELF = "CANNOT_DELETE_SELF"
    ALREADY_FEATURED = "ALREADY_FEATURED"
    TOURNAMENT_HIDDEN = "TOURNAMENT_HIDDEN"
    NOT_FOUND = "NOT_FOUND"

    # Concurrency / backend
    CONCURRENT_UPDATE = "CONCURRENT_UPDATE"
    BACKEND_UNAVAILABLE = "BACKEND_UNAVAILABLE"
    UPLOAD_FAILED = "UPLOAD_FAILED"


class ArenaError(Exception):
    """Base exception for tournament and wallet errors.

    Attributes:
        kind: Error category for programmatic handling
        code: Specific error code
        message: User-friendly error message
        details: Additional error details
    """

    kind: ErrorKind = ErrorKind.PRECONDITION

    def __init__(
        self,
        code: ErrorCode | str,
        message: str,
        details: dict[str, Any] | None = None,
    ):
        self.code = code if isinstance(code, str) else code.value
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "code": self.code,
            "kind": self.kind.value,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ArenaError):
    """Bad input detected before any read or write."""

    kind = ErrorKind.VALIDATION


class PreconditionError(ArenaError):
    """A business rule rejected the operation after reading current state."""

    kind = ErrorKind.PRECONDITION


class NotFoundError(PreconditionError):
    """Raised when a referenced record does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__(
            code=ErrorCode.NOT_FOUND,
            message=f"{entity} not found",
            details={"entity": entity, "id": entity_id},
        )


class ConflictError(ArenaError):
    """Raised when concurrent writers kept invalidating the same record."""

    kind = ErrorKind.CONFLICT

    def __init__(
        self,
        message: str = "The record was modified concurrently, please try again",
        details: dict[str, Any] | None = None,
    ):
        super().__init__(
            code=ErrorCode.CONCURRENT_UPDATE,
            message=message,
            details=details,
        )


class TransientError(ArenaError):
    """Backend or network failure; safe to retry later."""

    kind = ErrorKind.TRANSIENT

    def __init__(
        self,
        message: str = "The service is temporarily unavailable, please try again",
        code: ErrorCode | str = ErrorCode.BACKEND_UNAVAILABLE,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(code=code, message=message, details=details)


class InsufficientBalanceError(PreconditionError):
    """Raised when the wallet cannot cover a debit."""

    def __init__(self, balance: int, required: int):
        super().__init__(
            code=ErrorCode.INSUFFICIENT_BALANCE,
            message="Insufficient wallet balance",
            details={"balance": balance, "required": required},
        )


class InvalidAmountError(ValidationError):
    """Raised when an amount is outside its allowed range."""

    def __init__(
        self,
        message: str,
        amount: int | None = None,
        min_amount: int | None = None,
        max_amount: int | None = None,
    ):
        super().__init__(
            code=ErrorCode.INVALID_AMOUNT,
            message=message,
            details={
                "amount": amount,
                "minAmount": min_amount,
                "maxAmount": max_amount,
            },
        )


class MissingFieldError(ValidationError):
    """Raised when a required field is empty after sanitization."""

    def __init__(self, field: str, message: str | None = None):
        super().__init__(
            code=ErrorCode.MISSING_FIELD,
            message=message or f"{field} is required",
            details={"field": field},
        )


class InvalidTransitionError(PreconditionError):
    """Raised when a status change is not part of the lifecycle."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            code=ErrorCode.INVALID_TRANSITION,
            message=f"Cannot change status from {current} to {requested}",
            details={"current": current, "requested": requested},
        )


class RequestAlreadyProcessedError(PreconditionError):
    """Raised when approving or rejecting a request that is no longer pending."""

    def __init__(self, request_id: str, status: str):
        super().__init__(
            code=ErrorCode.REQUEST_ALREADY_PROCESSED,
            message=f"Request has already been {status}",
            details={"requestId": request_id, "status": status},
        )
