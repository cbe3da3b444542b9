"""
On-chain (transaction replay) mode verifier.

The owner authorizes a super transaction by signing an ordinary EVM
transaction whose calldata ends with the 32-byte super-transaction root.
The signer is recovered from the serialized transaction itself, so wallets
that can only sign transactions can still authorize a batch.

Operation payload::

    abi.encode(bytes signedTx, bytes32[] proof, uint48 lowerBound, uint48 upperBound)

Hash payload (ERC-1271 path)::

    abi.encode(bytes signedTx, bytes32[] proof)
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

import rlp
from eth_account import Account
from eth_keys.exceptions import BadSignature
from eth_utils import big_endian_to_int
from eth_utils.exceptions import ValidationError
from hexbytes import HexBytes
from rlp.exceptions import RLPException

from meekit.core.context import ExecutionContext
from meekit.core.crypto_utils import addresses_equal, is_canonical_signature
from meekit.core.exceptions import MalformedAuthorizationError
from meekit.core.mee_hash import mee_user_op_hash
from meekit.core.merkle import verify_proof
from meekit.core.user_operation import PackedUserOperation
from meekit.core.validation_data import pack_validation_data
from meekit.validators.schemes import SignatureScheme, decode_payload

logger = logging.getLogger(__name__)

USER_OP_PAYLOAD_TYPES = ("bytes", "bytes32[]", "uint48", "uint48")
HASH_PAYLOAD_TYPES = ("bytes", "bytes32[]")

SUPER_TX_HASH_LENGTH = 32

# Envelope type -> (RLP item count, calldata position); None is legacy
ENVELOPE_LAYOUTS: Dict[Optional[int], Tuple[int, int]] = {
    None: (9, 5),
    0x01: (11, 6),  # EIP-2930
    0x02: (12, 7),  # EIP-1559
    0x03: (14, 7),  # EIP-4844
    0x04: (13, 7),  # EIP-7702
}


def _malformed(message: str, raw: bytes) -> MalformedAuthorizationError:
    return MalformedAuthorizationError(
        message,
        details={"scheme": SignatureScheme.ON_CHAIN.config_name, "length": len(raw)},
    )


def decode_envelope(signed_tx: bytes) -> Tuple[bytes, int, int]:
    """
    Structurally decode a serialized signed transaction.

    Legacy (RLP list) and typed (EIP-2718) envelopes are accepted. Signature
    values are returned as-is; whether they recover a signer is decided later.

    Returns:
        ``(calldata, r, s)``

    Raises:
        MalformedAuthorizationError: If the envelope type is unknown or the
            body is not an RLP list of the expected shape.
    """
    raw = bytes(HexBytes(signed_tx))
    if not raw:
        raise _malformed("Empty signed transaction", raw)

    tx_type = raw[0] if raw[0] <= 0x7F else None
    if tx_type not in ENVELOPE_LAYOUTS:
        raise _malformed(f"Unsupported transaction type 0x{tx_type:02x}", raw)
    item_count, data_index = ENVELOPE_LAYOUTS[tx_type]

    try:
        fields = rlp.decode(raw if tx_type is None else raw[1:])
    except RLPException as exc:
        raise _malformed(f"Undecodable signed transaction: {exc}", raw) from exc

    if not isinstance(fields, (list, tuple)) or len(fields) != item_count:
        raise _malformed("Signed transaction has an unexpected field layout", raw)
    calldata, r, s = fields[data_index], fields[-2], fields[-1]
    if not all(isinstance(item, bytes) for item in (calldata, r, s)):
        raise _malformed("Signed transaction has an unexpected field layout", raw)
    return calldata, big_endian_to_int(r), big_endian_to_int(s)


def extract_calldata(signed_tx: bytes) -> bytes:
    """Return the calldata of a serialized signed transaction."""
    return decode_envelope(signed_tx)[0]


def recover_transaction_signer(signed_tx: bytes) -> Optional[str]:
    """Recover the sender of a signed transaction, or None if its signature is unusable."""
    try:
        return Account.recover_transaction(HexBytes(signed_tx))
    except (BadSignature, ValidationError, ValueError, TypeError) as exc:
        logger.debug(
            "Could not recover transaction signer",
            extra={"event": "on_chain_mode.recover_failed", "error": str(exc)},
        )
        return None


def super_tx_hash_from(signed_tx: bytes) -> Tuple[bytes, Optional[str]]:
    """
    Split a signed transaction into its trailing super-transaction root and signer.

    The signer is None when the transaction's signature values are out of
    range or do not recover.

    Raises:
        MalformedAuthorizationError: If the transaction is undecodable or its
            calldata is shorter than 32 bytes.
    """
    calldata, r, s = decode_envelope(signed_tx)
    if len(calldata) < SUPER_TX_HASH_LENGTH:
        raise MalformedAuthorizationError(
            f"Transaction calldata must end with a {SUPER_TX_HASH_LENGTH}-byte super transaction hash, "
            f"got {len(calldata)} bytes",
            details={"scheme": SignatureScheme.ON_CHAIN.config_name, "calldata_length": len(calldata)},
        )
    if not is_canonical_signature(r, s):
        return calldata[-SUPER_TX_HASH_LENGTH:], None
    return calldata[-SUPER_TX_HASH_LENGTH:], recover_transaction_signer(signed_tx)


class OnChainModeVerifier:
    """Verifies a super-transaction root embedded in an owner-signed transaction."""

    scheme = SignatureScheme.ON_CHAIN

    def validate_user_op(
        self,
        user_op: PackedUserOperation,
        user_op_hash: bytes,
        payload: bytes,
        owner: str,
        context: ExecutionContext,
    ) -> int:
        signed_tx, proof, lower_bound, upper_bound = decode_payload(
            USER_OP_PAYLOAD_TYPES, payload, self.scheme
        )
        leaf = mee_user_op_hash(user_op_hash, lower_bound, upper_bound, context.chain_id)
        valid = self._verify(owner, signed_tx, leaf, proof)
        if not valid:
            logger.info(
                "On-chain mode validation failed",
                extra={
                    "event": "on_chain_mode.validation_failed",
                    "sender": user_op.sender[:10],
                    "owner": owner[:10],
                },
            )
        return pack_validation_data(not valid, upper_bound, lower_bound)

    def validate_signature_for_owner(
        self,
        owner: str,
        hash_: bytes,
        payload: bytes,
        context: ExecutionContext,
    ) -> bool:
        signed_tx, proof = decode_payload(HASH_PAYLOAD_TYPES, payload, self.scheme)
        return self._verify(owner, signed_tx, hash_, proof)

    @staticmethod
    def _verify(owner: str, signed_tx: bytes, leaf: bytes, proof) -> bool:
        super_tx_hash, signer = super_tx_hash_from(signed_tx)
        if signer is None or not addresses_equal(signer, owner):
            return False
        return verify_proof(proof, super_tx_hash, leaf)
