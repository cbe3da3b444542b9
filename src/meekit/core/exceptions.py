"""
Exception hierarchy for meekit.

Provides typed exceptions for authorization and deployment so callers can tell
malformed input apart from a signature that simply does not verify, and a
rejected deployment apart from a failed funding step.
"""

from __future__ import annotations
from typing import Optional, Any, Dict


class MeeError(Exception):
    """Base exception for all meekit errors.

    Attributes:
        message: Human-readable error description
        details: Additional context about the error
        recoverable: Whether the operation can be retried with the same input
    """

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        recoverable: bool = False,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.recoverable = recoverable


# ==================== Validation Errors ====================


class ValidationError(MeeError):
    """Raised when authorization input cannot be validated at all.

    A signature that is well formed but signed by someone else is NOT a
    ValidationError; verifiers report that as a negative result.
    """
    pass


class MalformedInputError(ValidationError):
    """Raised when an input has the wrong shape (length, range, encoding)."""
    pass


class MalformedAuthorizationError(MalformedInputError):
    """Raised when an authorization blob or its scheme payload cannot be parsed.

    Examples: blob shorter than the 4-byte scheme tag, blob no longer than the
    scheme's tag plus framing, payload that does not ABI-decode.
    """
    pass


class MalformedSignatureError(MalformedInputError):
    """Raised when signature bytes are structurally invalid."""
    pass


class InvalidSignatureLengthError(MalformedSignatureError):
    """Raised when a signature is neither 64 (compact) nor 65 bytes."""

    def __init__(self, length: int, **kwargs: Any) -> None:
        super().__init__(
            f"Invalid signature length: expected 64 or 65 bytes, got {length}",
            **kwargs,
        )
        self.length = length


# ==================== Deployment Errors ====================


class DeploymentError(MeeError):
    """Raised when a deterministic deploy-and-fund call is rejected.

    The whole call is aborted; no deployment or deposit is left behind.
    """
    pass


class DeploymentFailedError(DeploymentError):
    """Raised when the host returns the zero address (e.g. address occupied)."""
    pass


class AddressMismatchError(DeploymentError):
    """Raised when the realized deployment address differs from the prediction."""

    def __init__(
        self,
        message: str,
        predicted: Optional[str] = None,
        realized: Optional[str] = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, **kwargs)
        self.predicted = predicted
        self.realized = realized


class FundingError(DeploymentError):
    """Raised when crediting a deposit fails."""
    pass


__all__ = [
    "MeeError",
    "ValidationError",
    "MalformedInputError",
    "MalformedAuthorizationError",
    "MalformedSignatureError",
    "InvalidSignatureLengthError",
    "DeploymentError",
    "DeploymentFailedError",
    "AddressMismatchError",
    "FundingError",
]
