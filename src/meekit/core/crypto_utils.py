"""Utility helpers for keccak hashing and secp256k1 signature recovery."""

from __future__ import annotations

import logging

from eth_account import Account
from eth_account.messages import defunct_hash_message
from eth_keys.exceptions import BadSignature
from eth_utils import keccak, to_checksum_address

from meekit.core.exceptions import InvalidSignatureLengthError, MalformedInputError

logger = logging.getLogger(__name__)

_CURVE_ORDER = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)
_HALF_CURVE_ORDER = _CURVE_ORDER // 2

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"


def keccak256(data: bytes) -> bytes:
    return keccak(data)


def normalize_address(address: str) -> str:
    """Return the checksummed form of ``address``.

    Raises:
        MalformedInputError: If ``address`` is not a 20-byte hex address.
    """
    try:
        return to_checksum_address(address)
    except (ValueError, TypeError) as exc:
        raise MalformedInputError(f"Invalid address: {address!r}") from exc


def addresses_equal(left: str, right: str) -> bool:
    return left.lower() == right.lower()


def require_hash32(value: bytes, name: str = "hash") -> bytes:
    if not isinstance(value, (bytes, bytearray)) or len(value) != 32:
        raise MalformedInputError(f"{name} must be 32 bytes")
    return bytes(value)


def to_eth_signed_message_hash(message_hash: bytes) -> bytes:
    """Wrap a 32-byte hash in the EIP-191 ``personal_sign`` prefix and hash it."""
    return bytes(defunct_hash_message(primitive=require_hash32(message_hash)))


def split_signature(signature: bytes) -> tuple[int, int, int]:
    """
    Split signature bytes into ``(v, r, s)``.

    Accepts the 65-byte ``r || s || v`` form and the 64-byte EIP-2098 compact
    ``r || vs`` form.

    Raises:
        InvalidSignatureLengthError: For any other length.
    """
    if len(signature) == 65:
        r = int.from_bytes(signature[:32], "big")
        s = int.from_bytes(signature[32:64], "big")
        v = signature[64]
        return v, r, s
    if len(signature) == 64:
        r = int.from_bytes(signature[:32], "big")
        vs = int.from_bytes(signature[32:], "big")
        s = vs & ((1 << 255) - 1)
        v = (vs >> 255) + 27
        return v, r, s
    raise InvalidSignatureLengthError(len(signature))


def is_canonical_signature(r: int, s: int) -> bool:
    """
    Check whether signature components fall within range and have low-S form.

    Args:
        r: Signature r component
        s: Signature s component
    """
    if not (1 <= r < _CURVE_ORDER):
        return False
    return 1 <= s <= _HALF_CURVE_ORDER


def try_recover(message_hash: bytes, signature: bytes) -> str | None:
    """
    Recover the signer of ``message_hash``.

    Returns ``None`` instead of raising for signatures that have a valid
    length but cannot produce a signer (bad ``v``, high ``s``, zero or
    out-of-range components, ``r`` not on the curve).

    Raises:
        InvalidSignatureLengthError: If the signature length is invalid.
        MalformedInputError: If ``message_hash`` is not 32 bytes.
    """
    message_hash = require_hash32(message_hash)
    v, r, s = split_signature(bytes(signature))
    if v not in (27, 28) or not is_canonical_signature(r, s):
        return None
    try:
        return Account._recover_hash(message_hash, vrs=(v, r, s))
    except (BadSignature, ValueError):
        return None


def is_valid_signature(expected_signer: str, message_hash: bytes, signature: bytes) -> bool:
    """
    Check ``signature`` against ``expected_signer`` using two interpretations.

    Attempt 1 treats ``message_hash`` as the signed digest. Attempt 2 treats
    it as the payload of an EIP-191 ``personal_sign`` message.

    Returns:
        True if either attempt recovers ``expected_signer``.

    Raises:
        InvalidSignatureLengthError: If the signature length is invalid.
    """
    if addresses_equal(expected_signer, ZERO_ADDRESS):
        return False

    recovered = try_recover(message_hash, signature)
    if recovered is not None and addresses_equal(recovered, expected_signer):
        return True

    recovered = try_recover(to_eth_signed_message_hash(message_hash), signature)
    if recovered is not None and addresses_equal(recovered, expected_signer):
        return True

    logger.debug(
        "Signature did not recover expected signer",
        extra={
            "event": "crypto.signature_mismatch",
            "expected": expected_signer[:10],
        },
    )
    return False


__all__ = [
    "ZERO_ADDRESS",
    "keccak256",
    "normalize_address",
    "addresses_equal",
    "require_hash32",
    "to_eth_signed_message_hash",
    "split_signature",
    "is_canonical_signature",
    "try_recover",
    "is_valid_signature",
]
