"""
Authorization schemes and the verifier interface.

Every authorization blob starts with a 4-byte scheme tag. Known tags map to a
verifier through a ``SchemeBinding`` that also declares how many framing
bytes sit between the tag and the verifier payload. Unknown tags belong to
the untagged default scheme, which receives the whole blob.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, Sequence, runtime_checkable

from eth_abi import decode
from eth_abi.exceptions import DecodingError

from meekit.core.context import ExecutionContext
from meekit.core.exceptions import MalformedAuthorizationError
from meekit.core.user_operation import PackedUserOperation

SCHEME_TAG_LENGTH = 4


class SignatureScheme(Enum):
    """Known scheme tags. Values are the exact 4-byte tags."""

    SIMPLE = bytes.fromhex("177eee00")  # off-chain ECDSA over a super-tx root
    ON_CHAIN = bytes.fromhex("177eee01")  # ECDSA of a replayed EVM transaction
    ERC20_PERMIT = bytes.fromhex("177eee02")  # ECDSA of an EIP-2612 permit
    NO_PREFIX = b""  # untagged default

    @property
    def config_name(self) -> str:
        return self.name.lower()

    @classmethod
    def from_tag(cls, tag: bytes) -> "SignatureScheme":
        """Exact-width lookup; anything unknown is the untagged default."""
        if len(tag) == SCHEME_TAG_LENGTH:
            for scheme in cls:
                if scheme.value == tag:
                    return scheme
        return cls.NO_PREFIX


@runtime_checkable
class Verifier(Protocol):
    """
    Contract implemented by every scheme verifier.

    Verifiers receive the payload with tag and framing already removed (or
    the whole blob for the default scheme). Malformed payloads raise
    ``MalformedAuthorizationError``; a signature by the wrong signer is a
    negative result, never an exception.
    """

    def validate_user_op(
        self,
        user_op: PackedUserOperation,
        user_op_hash: bytes,
        payload: bytes,
        owner: str,
        context: ExecutionContext,
    ) -> int:
        """
        Validate an operation.

        Returns:
            Packed ERC-4337 validation data (0 means valid, no window)
        """
        ...

    def validate_signature_for_owner(
        self,
        owner: str,
        hash_: bytes,
        payload: bytes,
        context: ExecutionContext,
    ) -> bool:
        """Validate a signature over an externally supplied hash (ERC-1271 path)."""
        ...


@dataclass(frozen=True)
class SchemeBinding:
    """A scheme, its verifier and the framing width it declares."""

    scheme: SignatureScheme
    verifier: Verifier
    framing_width: int = 0

    def __post_init__(self) -> None:
        if self.framing_width < 0:
            raise ValueError("framing_width must be >= 0")

    @property
    def header_length(self) -> int:
        if self.scheme is SignatureScheme.NO_PREFIX:
            return 0
        return SCHEME_TAG_LENGTH + self.framing_width


def decode_payload(types: Sequence[str], payload: bytes, scheme: SignatureScheme) -> tuple[Any, ...]:
    """ABI-decode a scheme payload, reporting failures as malformed authorization."""
    try:
        return decode(list(types), payload)
    except (DecodingError, OverflowError, ValueError) as exc:
        raise MalformedAuthorizationError(
            f"Malformed {scheme.config_name} payload: {exc}",
            details={"scheme": scheme.config_name, "payload_length": len(payload)},
        ) from exc
