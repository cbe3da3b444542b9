"""
Tests for on-chain (transaction replay) mode authorization.
"""

from __future__ import annotations

import pytest
import rlp
from eth_account import Account

from meekit.core.crypto_utils import keccak256
from meekit.core.exceptions import MalformedAuthorizationError
from meekit.core.mee_hash import mee_user_op_hash
from meekit.core.merkle import SuperTxMerkleTree
from meekit.core.validation_data import ValidationData, pack_validation_data
from meekit.validators.dispatcher import SchemeDispatcher
from meekit.validators.on_chain_mode import (
    HASH_PAYLOAD_TYPES,
    USER_OP_PAYLOAD_TYPES,
    decode_envelope,
    extract_calldata,
    super_tx_hash_from,
)
from meekit.validators.schemes import SignatureScheme

LOWER, UPPER = 0, 1_800_000_000
TOKEN = "0x000000000000000000000000000000000000dEaD"
TRANSFER_SELECTOR = bytes.fromhex("a9059cbb")
SECP256K1_N = int("FFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141", 16)


def _signed_tx(account, calldata: bytes, chain_id: int, typed: bool = True) -> bytes:
    tx = {
        "nonce": 0,
        "gas": 100_000,
        "to": TOKEN,
        "value": 0,
        "data": "0x" + calldata.hex(),
        "chainId": chain_id,
    }
    if typed:
        tx.update({"type": 2, "maxFeePerGas": 2_000_000_000, "maxPriorityFeePerGas": 1_000_000_000})
    else:
        tx["gasPrice"] = 1_000_000_000
    return bytes(Account.sign_transaction(tx, account.key).raw_transaction)


def _with_signature_values(raw: bytes, r=None, s=None) -> bytes:
    """Re-encode a signed transaction with replaced r and/or s."""
    typed = raw[0] <= 0x7F
    fields = list(rlp.decode(raw[1:] if typed else raw))
    current_s = int.from_bytes(fields[-1], "big")
    if r is not None:
        fields[-2] = r.to_bytes((r.bit_length() + 7) // 8, "big")
    if s is not None:
        value = s(current_s) if callable(s) else s
        fields[-1] = value.to_bytes((value.bit_length() + 7) // 8, "big")
    encoded = rlp.encode(fields)
    return raw[:1] + encoded if typed else encoded


UNUSABLE_SIGNATURES = {
    "zero_r": {"r": 0},
    "zero_s": {"s": 0},
    "high_s": {"s": lambda s: SECP256K1_N - s},
}


@pytest.fixture
def dispatcher():
    return SchemeDispatcher.default({"on_chain": 1})


@pytest.fixture
def super_tx(user_op, context):
    user_op_hash = user_op.hash(context.entry_point, context.chain_id)
    leaves = [
        mee_user_op_hash(user_op_hash, LOWER, UPPER, context.chain_id),
        keccak256(b"second leaf"),
    ]
    return user_op_hash, SuperTxMerkleTree(leaves)


class TestCalldataExtraction:
    @pytest.mark.parametrize("typed", [True, False])
    def test_root_is_last_32_bytes_of_calldata(self, owner, typed):
        root = keccak256(b"root")
        calldata = TRANSFER_SELECTOR + b"\x00" * 64 + root
        raw = _signed_tx(owner, calldata, 1, typed=typed)

        assert extract_calldata(raw) == calldata
        assert super_tx_hash_from(raw) == (root, owner.address)

    def test_short_calldata_is_malformed(self, owner):
        raw = _signed_tx(owner, b"\x01" * 31, 1)

        with pytest.raises(MalformedAuthorizationError):
            super_tx_hash_from(raw)

    @pytest.mark.parametrize("garbage", [b"", b"\x02\x01\x02", b"\xf8\x00\x01"])
    def test_undecodable_transaction_is_malformed(self, garbage):
        with pytest.raises(MalformedAuthorizationError):
            extract_calldata(garbage)


class TestOnChainModeUserOp:
    @pytest.mark.parametrize("typed", [True, False])
    def test_owner_signed_transaction_validates(self, dispatcher, user_op, owner, context, super_tx, make_blob, typed):
        user_op_hash, tree = super_tx
        leaf = tree.leaves[0]
        raw = _signed_tx(owner, TRANSFER_SELECTOR + b"\x00" * 64 + tree.root, context.chain_id, typed=typed)
        blob = make_blob(SignatureScheme.ON_CHAIN, USER_OP_PAYLOAD_TYPES, [raw, tree.proof(leaf), LOWER, UPPER])

        code = dispatcher.validate_user_op(user_op.with_signature(blob), user_op_hash, owner.address, context)

        assert code == pack_validation_data(False, UPPER, LOWER)

    def test_transaction_from_other_signer_fails(
        self, dispatcher, user_op, owner, other_account, context, super_tx, make_blob
    ):
        user_op_hash, tree = super_tx
        raw = _signed_tx(other_account, TRANSFER_SELECTOR + tree.root, context.chain_id)
        blob = make_blob(
            SignatureScheme.ON_CHAIN, USER_OP_PAYLOAD_TYPES, [raw, tree.proof(tree.leaves[0]), LOWER, UPPER]
        )

        code = dispatcher.validate_user_op(user_op.with_signature(blob), user_op_hash, owner.address, context)

        assert ValidationData.from_packed(code).sig_failed is True

    def test_transaction_committing_to_other_root_fails(self, dispatcher, user_op, owner, context, super_tx, make_blob):
        user_op_hash, tree = super_tx
        raw = _signed_tx(owner, TRANSFER_SELECTOR + keccak256(b"other root"), context.chain_id)
        blob = make_blob(
            SignatureScheme.ON_CHAIN, USER_OP_PAYLOAD_TYPES, [raw, tree.proof(tree.leaves[0]), LOWER, UPPER]
        )

        code = dispatcher.validate_user_op(user_op.with_signature(blob), user_op_hash, owner.address, context)

        assert ValidationData.from_packed(code).sig_failed is True

    def test_garbage_transaction_is_malformed(self, dispatcher, user_op, owner, context, super_tx, make_blob):
        user_op_hash, tree = super_tx
        blob = make_blob(SignatureScheme.ON_CHAIN, USER_OP_PAYLOAD_TYPES, [b"\xf8\x00", [], LOWER, UPPER])

        with pytest.raises(MalformedAuthorizationError):
            dispatcher.validate_user_op(user_op.with_signature(blob), user_op_hash, owner.address, context)


class TestOnChainModeSignature:
    def test_hash_path(self, dispatcher, owner, context, make_blob):
        leaf = keccak256(b"erc1271 hash")
        sibling = keccak256(b"sibling")
        tree = SuperTxMerkleTree([leaf, sibling])
        raw = _signed_tx(owner, TRANSFER_SELECTOR + tree.root, context.chain_id)
        blob = make_blob(SignatureScheme.ON_CHAIN, HASH_PAYLOAD_TYPES, [raw, tree.proof(leaf)])

        assert dispatcher.validate_signature_for_owner(owner.address, leaf, blob, context) is True
        assert dispatcher.validate_signature_for_owner(owner.address, sibling, blob, context) is False


class TestUnusableTransactionSignatures:
    """A replayed transaction whose signature cannot recover is a negative result."""

    @pytest.mark.parametrize("typed", [True, False])
    @pytest.mark.parametrize("mutation", sorted(UNUSABLE_SIGNATURES))
    def test_signer_is_none_but_root_is_extracted(self, owner, typed, mutation):
        root = keccak256(b"root")
        raw = _with_signature_values(
            _signed_tx(owner, TRANSFER_SELECTOR + root, 1, typed=typed), **UNUSABLE_SIGNATURES[mutation]
        )

        assert super_tx_hash_from(raw) == (root, None)

    def test_zero_r_decodes_structurally(self, owner):
        raw = _with_signature_values(_signed_tx(owner, TRANSFER_SELECTOR + keccak256(b"root"), 1), r=0)

        calldata, r, s = decode_envelope(raw)

        assert calldata.startswith(TRANSFER_SELECTOR)
        assert r == 0
        assert s > 0

    @pytest.mark.parametrize("mutation", sorted(UNUSABLE_SIGNATURES))
    def test_hash_path_returns_false(self, dispatcher, owner, context, make_blob, mutation):
        leaf = keccak256(b"erc1271 hash")
        tree = SuperTxMerkleTree([leaf, keccak256(b"sibling")])
        raw = _with_signature_values(
            _signed_tx(owner, TRANSFER_SELECTOR + tree.root, context.chain_id), **UNUSABLE_SIGNATURES[mutation]
        )
        blob = make_blob(SignatureScheme.ON_CHAIN, HASH_PAYLOAD_TYPES, [raw, tree.proof(leaf)])

        assert dispatcher.validate_signature_for_owner(owner.address, leaf, blob, context) is False

    @pytest.mark.parametrize("mutation", ["zero_r", "zero_s"])
    def test_user_op_path_sets_sig_failed(self, dispatcher, user_op, owner, context, super_tx, make_blob, mutation):
        user_op_hash, tree = super_tx
        raw = _with_signature_values(
            _signed_tx(owner, TRANSFER_SELECTOR + tree.root, context.chain_id), **UNUSABLE_SIGNATURES[mutation]
        )
        blob = make_blob(
            SignatureScheme.ON_CHAIN, USER_OP_PAYLOAD_TYPES, [raw, tree.proof(tree.leaves[0]), LOWER, UPPER]
        )

        code = dispatcher.validate_user_op(user_op.with_signature(blob), user_op_hash, owner.address, context)

        assert code == pack_validation_data(True, UPPER, LOWER)

    def test_unknown_envelope_type_is_malformed(self, owner):
        raw = _signed_tx(owner, TRANSFER_SELECTOR + keccak256(b"root"), 1)

        with pytest.raises(MalformedAuthorizationError):
            extract_calldata(b"\x05" + raw[1:])
