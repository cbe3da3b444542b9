"""
Tests for the meekit CLI commands.
"""

import json

import pytest
from click.testing import CliRunner

from meekit.cli.main import cli
from meekit.core.crypto_utils import keccak256
from meekit.core.mee_hash import mee_user_op_hash
from meekit.core.merkle import SuperTxMerkleTree

USER_OP_HASH = keccak256(b"cli user op")
FACTORY = "0x00000000000000000000000000000000000fac70"
OWNER = "0x000000000000000000000000000000000000000a"


@pytest.fixture
def runner():
    return CliRunner()


def _json(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


class TestMeeHashCommand:
    def test_json_output(self, runner):
        result = runner.invoke(
            cli,
            [
                "--json-output",
                "--chain-id",
                "137",
                "mee-hash",
                "--user-op-hash",
                "0x" + USER_OP_HASH.hex(),
                "--lower-bound",
                "10",
                "--upper-bound",
                "20",
            ],
        )

        data = _json(result)
        assert data["chain_id"] == 137
        assert data["mee_user_op_hash"] == "0x" + mee_user_op_hash(USER_OP_HASH, 10, 20, 137).hex()
        assert data["window_active"] is False

    def test_open_window_is_active_now(self, runner):
        result = runner.invoke(cli, ["--json-output", "mee-hash", "--user-op-hash", USER_OP_HASH.hex()])

        assert _json(result)["window_active"] is True

    def test_rich_output(self, runner):
        result = runner.invoke(cli, ["mee-hash", "--user-op-hash", USER_OP_HASH.hex()])

        assert result.exit_code == 0
        assert "MEE User Op Hash" in result.output

    def test_wrong_hash_length_is_usage_error(self, runner):
        result = runner.invoke(cli, ["mee-hash", "--user-op-hash", "0x1234"])

        assert result.exit_code == 2

    def test_negative_bound_fails(self, runner):
        result = runner.invoke(
            cli, ["mee-hash", "--user-op-hash", USER_OP_HASH.hex(), "--lower-bound", "-5"]
        )

        assert result.exit_code == 1


class TestSuperTxCommand:
    def test_root_and_proofs(self, runner):
        leaves = [keccak256(bytes([i])) for i in range(3)]
        tree = SuperTxMerkleTree(leaves)

        result = runner.invoke(cli, ["--json-output", "super-tx", *("0x" + leaf.hex() for leaf in leaves)])

        data = _json(result)
        assert data["root"] == "0x" + tree.root.hex()
        assert data["proofs"]["0x" + leaves[2].hex()] == ["0x" + node.hex() for node in tree.proof(leaves[2])]


class TestPredictAddressCommand:
    def test_prediction_varies_with_index(self, runner):
        args = ["--json-output", "predict-address", "--factory", FACTORY, "--creation-code", "0x6080", "--owner", OWNER]

        first = _json(runner.invoke(cli, args + ["--index", "0"]))
        second = _json(runner.invoke(cli, args + ["--index", "1"]))

        assert first["address"] != second["address"]
        assert first["template_id"] == second["template_id"]

    def test_invalid_owner_fails(self, runner):
        result = runner.invoke(
            cli,
            ["predict-address", "--factory", FACTORY, "--creation-code", "0x6080", "--owner", "0xnope"],
        )

        assert result.exit_code == 1


class TestInspectBlobCommand:
    def test_tagged_blob(self, runner):
        result = runner.invoke(cli, ["--json-output", "inspect-blob", "0x177eee01ffabcdef"])

        data = _json(result)
        assert data["scheme"] == "on_chain"
        assert data["header_length"] == 4 + data["framing_width"]

    def test_unknown_tag_blob(self, runner):
        result = runner.invoke(cli, ["--json-output", "inspect-blob", "0xdeadbeef0102"])

        data = _json(result)
        assert data["scheme"] == "no_prefix"
        assert data["payload"] == "0xdeadbeef0102"

    def test_short_blob_fails(self, runner):
        result = runner.invoke(cli, ["inspect-blob", "0x177e"])

        assert result.exit_code == 1


class TestVerifySignatureCommand:
    def test_valid_signature(self, runner, owner, sign_prefixed):
        message_hash = keccak256(b"cli message")
        signature = sign_prefixed(owner, message_hash)

        result = runner.invoke(
            cli,
            [
                "--json-output",
                "verify-signature",
                "--owner",
                owner.address,
                "--hash",
                "0x" + message_hash.hex(),
                "--signature",
                "0x" + signature.hex(),
            ],
        )

        data = _json(result)
        assert data["valid"] is True
        assert data["prefixed_signer"] == owner.address

    def test_wrong_signer_exits_non_zero(self, runner, owner, other_account, sign_raw):
        message_hash = keccak256(b"cli message")
        signature = sign_raw(other_account, message_hash)

        result = runner.invoke(
            cli,
            [
                "verify-signature",
                "--owner",
                owner.address,
                "--hash",
                message_hash.hex(),
                "--signature",
                signature.hex(),
            ],
        )

        assert result.exit_code == 1

    def test_bad_signature_length_fails(self, runner, owner):
        result = runner.invoke(
            cli,
            ["verify-signature", "--owner", owner.address, "--hash", "00" * 32, "--signature", "0x0102"],
        )

        assert result.exit_code == 1
