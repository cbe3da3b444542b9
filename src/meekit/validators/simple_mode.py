"""
Simple (off-chain) mode verifier.

The owner signs the root of a super-transaction Merkle tree off-chain. Each
user operation proves membership of its canonical MEE hash in that tree.

Operation payload::

    abi.encode(bytes32 superTxHash, uint48 lowerBound, uint48 upperBound,
               bytes32[] proof, bytes signature)

Hash payload (ERC-1271 path)::

    abi.encode(bytes32 superTxHash, bytes32[] proof, bytes signature)
"""

from __future__ import annotations

import logging

from meekit.core.context import ExecutionContext
from meekit.core.crypto_utils import is_valid_signature
from meekit.core.mee_hash import mee_user_op_hash
from meekit.core.merkle import verify_proof
from meekit.core.user_operation import PackedUserOperation
from meekit.core.validation_data import pack_validation_data
from meekit.validators.schemes import SignatureScheme, decode_payload

logger = logging.getLogger(__name__)

USER_OP_PAYLOAD_TYPES = ("bytes32", "uint48", "uint48", "bytes32[]", "bytes")
HASH_PAYLOAD_TYPES = ("bytes32", "bytes32[]", "bytes")


class SimpleModeVerifier:
    """Verifies a super-transaction root signed off-chain by the owner."""

    scheme = SignatureScheme.SIMPLE

    def validate_user_op(
        self,
        user_op: PackedUserOperation,
        user_op_hash: bytes,
        payload: bytes,
        owner: str,
        context: ExecutionContext,
    ) -> int:
        super_tx_hash, lower_bound, upper_bound, proof, signature = decode_payload(
            USER_OP_PAYLOAD_TYPES, payload, self.scheme
        )
        leaf = mee_user_op_hash(user_op_hash, lower_bound, upper_bound, context.chain_id)
        valid = self._verify(owner, super_tx_hash, leaf, proof, signature)
        if not valid:
            logger.info(
                "Simple mode validation failed",
                extra={
                    "event": "simple_mode.validation_failed",
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
        super_tx_hash, proof, signature = decode_payload(HASH_PAYLOAD_TYPES, payload, self.scheme)
        return self._verify(owner, super_tx_hash, hash_, proof, signature)

    @staticmethod
    def _verify(owner: str, super_tx_hash: bytes, leaf: bytes, proof, signature: bytes) -> bool:
        if not verify_proof(proof, super_tx_hash, leaf):
            return False
        return is_valid_signature(owner, super_tx_hash, signature)
