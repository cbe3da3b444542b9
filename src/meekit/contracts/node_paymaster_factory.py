"""
Node paymaster factory: deterministic deploy-and-fund.

Each owner's sponsor contract (a "node paymaster") lives at a CREATE2
address derived from the factory address, the deployment index used as salt
and the hash of the init code::

    init_code = creation_code || abi.encode(address templateId, address owner)
    address   = keccak256(0xff || factory || uint256(index) || keccak256(init_code))[12:]

The prediction is read-only so callers can pre-fund or reference a sponsor
before it exists. Deployment verifies the realized address against the
prediction; this is the only check that the unmodified template was deployed.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from eth_abi import encode
from eth_utils import to_checksum_address

from meekit.contracts.entry_point import EntryPoint
from meekit.core.crypto_utils import ZERO_ADDRESS, addresses_equal, keccak256, normalize_address, require_hash32
from meekit.core.exceptions import (
    AddressMismatchError,
    DeploymentFailedError,
    FundingError,
    MalformedInputError,
)

if TYPE_CHECKING:
    from meekit.contracts.host import ChainState

logger = logging.getLogger(__name__)

CREATE2_PREFIX = b"\xff"
UINT256_MAX = (1 << 256) - 1


def _salt_bytes(salt: int) -> bytes:
    if not isinstance(salt, int) or isinstance(salt, bool) or not 0 <= salt <= UINT256_MAX:
        raise MalformedInputError(f"salt must fit in uint256, got {salt!r}")
    return salt.to_bytes(32, "big")


def compute_create2_address(deployer: str, salt: int, init_code_hash: bytes) -> str:
    """
    CREATE2 address as defined by EIP-1014.

    Args:
        deployer: Address executing CREATE2
        salt: uint256 salt
        init_code_hash: keccak256 of the full init code

    Returns:
        Checksummed address
    """
    deployer_bytes = bytes.fromhex(normalize_address(deployer)[2:])
    digest = keccak256(
        CREATE2_PREFIX + deployer_bytes + _salt_bytes(salt) + require_hash32(init_code_hash, "init_code_hash")
    )
    return to_checksum_address(digest[12:])


@dataclass
class NodePaymasterFactory:
    """
    Deploys and funds per-owner node paymasters at predictable addresses.

    The factory holds no state of its own: occupancy lives in the host and
    deposits in the entry point.
    """

    address: str
    creation_code: bytes
    host: "ChainState"
    entry_point: EntryPoint

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address)
        self.creation_code = bytes(self.creation_code)
        self.host.attach(self.entry_point)

    def init_code(self, template_id: str, owner: str) -> bytes:
        """Creation code followed by the ABI-encoded constructor arguments."""
        return self.creation_code + encode(
            ["address", "address"],
            [normalize_address(template_id), normalize_address(owner)],
        )

    def predict_address(self, template_id: str, owner: str, index: int) -> str:
        """Address the paymaster for ``(template_id, owner, index)`` will occupy."""
        return compute_create2_address(
            self.address, index, keccak256(self.init_code(template_id, owner))
        )

    def is_deployed(self, template_id: str, owner: str, index: int) -> bool:
        return self.host.has_code(self.predict_address(template_id, owner, index))

    def deploy_and_fund(
        self,
        template_id: str,
        owner: str,
        index: int,
        attached_value: int = 0,
    ) -> str:
        """
        Deploy the paymaster and credit ``attached_value`` to its deposit.

        Deployment, verification and funding run as one host call; if any
        step fails the writes of this call are undone and nothing is deployed
        or funded.

        Args:
            template_id: Template (entry point) address passed to the constructor
            owner: Paymaster owner
            index: Per-owner deployment index, used as CREATE2 salt
            attached_value: Amount forwarded to the entry point deposit

        Returns:
            The realized (and predicted) paymaster address

        Raises:
            DeploymentFailedError: The host returned the zero address, e.g.
                because the address is already occupied.
            AddressMismatchError: The realized address differs from the
                prediction.
            FundingError: ``attached_value`` is negative or the deposit failed.
        """
        if not isinstance(attached_value, int) or isinstance(attached_value, bool) or attached_value < 0:
            raise FundingError(f"attached_value must be a non-negative integer, got {attached_value!r}")

        init_code = self.init_code(template_id, owner)
        predicted = compute_create2_address(self.address, index, keccak256(init_code))

        with self.host.atomic():
            realized = self.host.create2(self.address, index, init_code)
            if addresses_equal(realized, ZERO_ADDRESS):
                raise DeploymentFailedError(
                    "Node paymaster deployment failed",
                    details={"owner": owner, "index": index, "predicted": predicted},
                )
            if not addresses_equal(realized, predicted):
                raise AddressMismatchError(
                    "Node paymaster deployed at an unexpected address",
                    predicted=predicted,
                    realized=realized,
                    details={"owner": owner, "index": index},
                )
            if attached_value:
                self.entry_point.deposit_to(realized, attached_value)

        logger.info(
            "Node paymaster deployed",
            extra={
                "event": "factory.paymaster_deployed",
                "owner": owner[:10],
                "index": index,
                "address": realized[:10],
                "funded": attached_value,
            },
        )
        return realized
