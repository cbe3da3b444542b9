"""
Canonical MEE user operation hash.

Binds an operation's intrinsic hash to its validity window and the chain id,
then hashes the digest a second time so the inner digest is never itself a
signable artifact. Off-host signers must reproduce this exactly:

    inner = keccak256(abi.encode(bytes32 userOpHash, uint48 lowerBound,
                                 uint48 upperBound, uint256 chainId))
    meeUserOpHash = keccak256(inner)
"""

from __future__ import annotations

from eth_abi import encode

from meekit.core.context import ExecutionContext
from meekit.core.crypto_utils import keccak256, require_hash32
from meekit.core.exceptions import MalformedInputError
from meekit.core.user_operation import PackedUserOperation
from meekit.core.validation_data import require_uint48


def mee_user_op_hash(
    user_op_hash: bytes,
    lower_bound: int,
    upper_bound: int,
    chain_id: int,
) -> bytes:
    require_hash32(user_op_hash, "user_op_hash")
    require_uint48(lower_bound, "lower_bound")
    require_uint48(upper_bound, "upper_bound")
    if not isinstance(chain_id, int) or chain_id < 0:
        raise MalformedInputError(f"chain_id must be a non-negative integer, got {chain_id!r}")

    inner = keccak256(
        encode(
            ["bytes32", "uint48", "uint48", "uint256"],
            [user_op_hash, lower_bound, upper_bound, chain_id],
        )
    )
    return keccak256(inner)


def canonical_hash(
    operation: PackedUserOperation | bytes,
    lower_bound: int,
    upper_bound: int,
    context: ExecutionContext,
) -> bytes:
    """
    Canonical hash of an operation under ``context``.

    Args:
        operation: A user operation (hashed against the context's entry point
            and chain id) or its precomputed 32-byte intrinsic hash
        lower_bound: validAfter timestamp
        upper_bound: validUntil timestamp
        context: Execution context supplying the chain id
    """
    if isinstance(operation, PackedUserOperation):
        user_op_hash = operation.hash(context.entry_point, context.chain_id)
    else:
        user_op_hash = operation
    return mee_user_op_hash(user_op_hash, lower_bound, upper_bound, context.chain_id)
