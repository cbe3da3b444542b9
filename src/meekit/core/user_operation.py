"""
ERC-4337 (v0.7) packed user operation.

The intrinsic hash produced here is what every MEE scheme binds to a
validity window. Packing follows the EntryPoint v0.7 ``getUserOpHash``:
dynamic fields are hashed, the signature is excluded, and the result is
bound to the entry point address and chain id.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from eth_abi import encode

from meekit.core.crypto_utils import keccak256


@dataclass(frozen=True)
class PackedUserOperation:
    """
    ERC-4337 PackedUserOperation struct.

    ``signature`` carries the authorization blob and is not part of the hash,
    so attaching a blob never changes the intrinsic hash.
    """

    sender: str  # Smart account address
    nonce: int = 0
    init_code: bytes = b""
    call_data: bytes = b""
    account_gas_limits: bytes = b"\x00" * 32  # verificationGasLimit (16) || callGasLimit (16)
    pre_verification_gas: int = 50_000
    gas_fees: bytes = b"\x00" * 32  # maxPriorityFeePerGas (16) || maxFeePerGas (16)
    paymaster_and_data: bytes = b""
    signature: bytes = b""

    @staticmethod
    def pack_gas_pair(high: int, low: int) -> bytes:
        """Pack two uint128 values into one bytes32 (``high << 128 | low``)."""
        return ((high << 128) | low).to_bytes(32, "big")

    def pack(self) -> bytes:
        """ABI-encode the user operation for hashing (without signature)."""
        return encode(
            [
                "address",
                "uint256",
                "bytes32",
                "bytes32",
                "bytes32",
                "uint256",
                "bytes32",
                "bytes32",
            ],
            [
                self.sender,
                self.nonce,
                keccak256(self.init_code),
                keccak256(self.call_data),
                self.account_gas_limits,
                self.pre_verification_gas,
                self.gas_fees,
                keccak256(self.paymaster_and_data),
            ],
        )

    def hash(self, entry_point: str, chain_id: int) -> bytes:
        """
        Get the user operation hash.

        Args:
            entry_point: EntryPoint contract address
            chain_id: Chain ID for replay protection

        Returns:
            32-byte intrinsic hash
        """
        return keccak256(
            encode(
                ["bytes32", "address", "uint256"],
                [keccak256(self.pack()), entry_point, chain_id],
            )
        )

    def with_signature(self, signature: bytes) -> "PackedUserOperation":
        return replace(self, signature=bytes(signature))
