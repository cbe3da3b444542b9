"""
Default (untagged) scheme verifier.

Blobs with no known scheme tag are plain ECDSA signatures over the hash the
caller supplied. Nothing is stripped and no hash is re-derived.
"""

from __future__ import annotations

from meekit.core.context import ExecutionContext
from meekit.core.crypto_utils import is_valid_signature
from meekit.core.user_operation import PackedUserOperation
from meekit.core.validation_data import SIG_VALIDATION_FAILED, SIG_VALIDATION_SUCCESS
from meekit.validators.schemes import SignatureScheme


class NoPrefixVerifier:
    scheme = SignatureScheme.NO_PREFIX

    def validate_user_op(
        self,
        user_op: PackedUserOperation,
        user_op_hash: bytes,
        payload: bytes,
        owner: str,
        context: ExecutionContext,
    ) -> int:
        if is_valid_signature(owner, user_op_hash, payload):
            return SIG_VALIDATION_SUCCESS
        return SIG_VALIDATION_FAILED

    def validate_signature_for_owner(
        self,
        owner: str,
        hash_: bytes,
        payload: bytes,
        context: ExecutionContext,
    ) -> bool:
        return is_valid_signature(owner, hash_, payload)
