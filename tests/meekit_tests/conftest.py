"""Shared fixtures for meekit tests."""

from typing import Callable, Sequence

import pytest
from eth_abi import encode
from eth_account import Account
from eth_account.messages import encode_defunct

from meekit.contracts.entry_point import EntryPoint
from meekit.contracts.host import ChainState
from meekit.contracts.node_paymaster_factory import NodePaymasterFactory
from meekit.core.context import ExecutionContext
from meekit.core.user_operation import PackedUserOperation
from meekit.validators.schemes import SignatureScheme

OWNER_KEY = "0x" + "11" * 32
OTHER_KEY = "0x" + "22" * 32

CHAIN_ID = 11155111
ENTRY_POINT = "0x0000000071727De22E5E9d8BAf0edAc6f37da032"
FACTORY_ADDRESS = "0x00000000000000000000000000000000000fac70"
TEMPLATE_ID = "0x00000000000000000000000000000000000000e1"

# Arbitrary but fixed "creation code" for the node paymaster template
PAYMASTER_CREATION_CODE = bytes.fromhex("6080604052348015600f57600080fd5b50") + b"node-paymaster"


@pytest.fixture
def owner():
    return Account.from_key(OWNER_KEY)


@pytest.fixture
def other_account():
    return Account.from_key(OTHER_KEY)


@pytest.fixture
def context():
    return ExecutionContext(chain_id=CHAIN_ID, timestamp=1_700_000_000, entry_point=ENTRY_POINT)


@pytest.fixture
def user_op():
    return PackedUserOperation(
        sender="0x000000000000000000000000000000000000a11c",
        nonce=7,
        call_data=b"\xb6\x1d\x27\xf6" + b"\x00" * 64,
        account_gas_limits=PackedUserOperation.pack_gas_pair(200_000, 500_000),
        gas_fees=PackedUserOperation.pack_gas_pair(1_000_000_000, 30_000_000_000),
    )


@pytest.fixture
def host():
    return ChainState()


@pytest.fixture
def entry_point():
    return EntryPoint(address=ENTRY_POINT, chain_id=CHAIN_ID)


@pytest.fixture
def factory(host, entry_point):
    return NodePaymasterFactory(
        address=FACTORY_ADDRESS,
        creation_code=PAYMASTER_CREATION_CODE,
        host=host,
        entry_point=entry_point,
    )


@pytest.fixture
def make_blob() -> Callable[[SignatureScheme, Sequence[str], Sequence, bytes], bytes]:
    """Build ``tag || framing || abi.encode(values)`` for a tagged scheme."""

    def _make(scheme: SignatureScheme, types: Sequence[str], values: Sequence, framing: bytes = b"\x00") -> bytes:
        return scheme.value + framing + encode(list(types), list(values))

    return _make


@pytest.fixture
def sign_raw():
    """Sign a 32-byte hash directly (no EIP-191 prefix)."""

    def _sign(account, message_hash: bytes) -> bytes:
        return bytes(Account.unsafe_sign_hash(message_hash, account.key).signature)

    return _sign


@pytest.fixture
def sign_prefixed():
    """Sign a 32-byte hash as a personal_sign message."""

    def _sign(account, message_hash: bytes) -> bytes:
        return bytes(Account.sign_message(encode_defunct(primitive=message_hash), account.key).signature)

    return _sign
