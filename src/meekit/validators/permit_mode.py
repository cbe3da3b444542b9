"""
ERC-20 permit mode verifier.

The owner signs an EIP-2612 ``Permit`` for the fee token. The permit's
``deadline`` field carries the super-transaction root, so the same signature
both approves fee spending and authorizes the batch. Executing the permit
against the token is the caller's business; this module only checks that the
owner signed it.

Operation payload::

    abi.encode(bytes32 domainSeparator, address spender, uint256 amount,
               uint256 nonce, bytes32 superTxHash, uint48 lowerBound,
               uint48 upperBound, bytes32[] proof, bytes signature)

Hash payload (ERC-1271 path): the same tuple without the two bounds.
"""

from __future__ import annotations

import logging

from eth_abi import encode

from meekit.core.context import ExecutionContext
from meekit.core.crypto_utils import is_valid_signature, keccak256, normalize_address
from meekit.core.mee_hash import mee_user_op_hash
from meekit.core.merkle import verify_proof
from meekit.core.user_operation import PackedUserOperation
from meekit.core.validation_data import pack_validation_data
from meekit.validators.schemes import SignatureScheme, decode_payload

logger = logging.getLogger(__name__)

PERMIT_TYPEHASH = keccak256(
    b"Permit(address owner,address spender,uint256 value,uint256 nonce,uint256 deadline)"
)

USER_OP_PAYLOAD_TYPES = (
    "bytes32",
    "address",
    "uint256",
    "uint256",
    "bytes32",
    "uint48",
    "uint48",
    "bytes32[]",
    "bytes",
)
HASH_PAYLOAD_TYPES = ("bytes32", "address", "uint256", "uint256", "bytes32", "bytes32[]", "bytes")


def permit_digest(
    domain_separator: bytes,
    owner: str,
    spender: str,
    value: int,
    nonce: int,
    super_tx_hash: bytes,
) -> bytes:
    """EIP-712 digest of a permit whose deadline is the super-transaction root."""
    struct_hash = keccak256(
        encode(
            ["bytes32", "address", "address", "uint256", "uint256", "uint256"],
            [
                PERMIT_TYPEHASH,
                normalize_address(owner),
                spender,
                value,
                nonce,
                int.from_bytes(super_tx_hash, "big"),
            ],
        )
    )
    return keccak256(b"\x19\x01" + domain_separator + struct_hash)


class PermitModeVerifier:
    """Verifies an owner-signed ERC-20 permit that commits to a super-transaction root."""

    scheme = SignatureScheme.ERC20_PERMIT

    def validate_user_op(
        self,
        user_op: PackedUserOperation,
        user_op_hash: bytes,
        payload: bytes,
        owner: str,
        context: ExecutionContext,
    ) -> int:
        (
            domain_separator,
            spender,
            amount,
            nonce,
            super_tx_hash,
            lower_bound,
            upper_bound,
            proof,
            signature,
        ) = decode_payload(USER_OP_PAYLOAD_TYPES, payload, self.scheme)
        leaf = mee_user_op_hash(user_op_hash, lower_bound, upper_bound, context.chain_id)
        valid = self._verify(
            owner, domain_separator, spender, amount, nonce, super_tx_hash, leaf, proof, signature
        )
        if not valid:
            logger.info(
                "Permit mode validation failed",
                extra={
                    "event": "permit_mode.validation_failed",
                    "sender": user_op.sender[:10],
                    "owner": owner[:10],
                    "spender": spender[:10],
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
        (
            domain_separator,
            spender,
            amount,
            nonce,
            super_tx_hash,
            proof,
            signature,
        ) = decode_payload(HASH_PAYLOAD_TYPES, payload, self.scheme)
        return self._verify(
            owner, domain_separator, spender, amount, nonce, super_tx_hash, hash_, proof, signature
        )

    @staticmethod
    def _verify(
        owner: str,
        domain_separator: bytes,
        spender: str,
        amount: int,
        nonce: int,
        super_tx_hash: bytes,
        leaf: bytes,
        proof,
        signature: bytes,
    ) -> bool:
        if not verify_proof(proof, super_tx_hash, leaf):
            return False
        digest = permit_digest(domain_separator, owner, spender, amount, nonce, super_tx_hash)
        return is_valid_signature(owner, digest, signature)
