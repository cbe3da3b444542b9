"""
ERC-4337 packed validation data.

Verifiers return a single integer: bit 0..159 carries the signature-failure
flag, bits 160..207 ``validUntil`` and bits 208..255 ``validAfter``. The
time-window check itself belongs to the caller.
"""

from __future__ import annotations

from dataclasses import dataclass

from meekit.core.exceptions import MalformedInputError

SIG_VALIDATION_SUCCESS = 0
SIG_VALIDATION_FAILED = 1

UINT48_MAX = (1 << 48) - 1


def require_uint48(value: int, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= UINT48_MAX:
        raise MalformedInputError(f"{name} must fit in uint48, got {value!r}")
    return value


def pack_validation_data(sig_failed: bool, valid_until: int, valid_after: int) -> int:
    require_uint48(valid_until, "valid_until")
    require_uint48(valid_after, "valid_after")
    return (
        (SIG_VALIDATION_FAILED if sig_failed else SIG_VALIDATION_SUCCESS)
        | (valid_until << 160)
        | (valid_after << 208)
    )


@dataclass(frozen=True)
class ValidationData:
    """Unpacked validation result."""

    sig_failed: bool
    valid_until: int = 0  # 0 means no expiry
    valid_after: int = 0

    @classmethod
    def from_packed(cls, code: int) -> "ValidationData":
        # Aggregators are not supported; any non-zero low word is a failure.
        aggregator = code & ((1 << 160) - 1)
        return cls(
            sig_failed=aggregator != SIG_VALIDATION_SUCCESS,
            valid_until=(code >> 160) & UINT48_MAX,
            valid_after=(code >> 208) & UINT48_MAX,
        )

    def pack(self) -> int:
        return pack_validation_data(self.sig_failed, self.valid_until, self.valid_after)

    def is_active(self, timestamp: int) -> bool:
        """True if the signature is valid and ``timestamp`` is inside the window."""
        if self.sig_failed:
            return False
        if timestamp < self.valid_after:
            return False
        return self.valid_until == 0 or timestamp <= self.valid_until
