"""
Super-transaction Merkle proofs.

A super transaction groups several canonical MEE hashes as leaves of one
tree; the owner signs only the root. Pair hashing is commutative (sorted
before hashing) so proofs carry no left/right markers, which matches
OpenZeppelin ``MerkleProof.processProof``.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from meekit.core.crypto_utils import keccak256, require_hash32


def hash_pair(a: bytes, b: bytes) -> bytes:
    if a > b:
        a, b = b, a
    return keccak256(a + b)


def process_proof(proof: Iterable[bytes], leaf: bytes) -> bytes:
    computed = require_hash32(leaf, "leaf")
    for sibling in proof:
        computed = hash_pair(computed, require_hash32(sibling, "proof item"))
    return computed


def verify_proof(proof: Iterable[bytes], root: bytes, leaf: bytes) -> bool:
    """Return True if ``proof`` links ``leaf`` to ``root``. An empty proof means root == leaf."""
    return process_proof(proof, leaf) == require_hash32(root, "root")


class SuperTxMerkleTree:
    """Signer-side tree builder for a set of canonical MEE hashes."""

    def __init__(self, leaves: Sequence[bytes]):
        if not leaves:
            raise ValueError("Merkle tree requires at least one leaf.")
        self.leaves: List[bytes] = [require_hash32(leaf, "leaf") for leaf in leaves]
        self.levels = self._build_levels(self.leaves)

    @staticmethod
    def _build_levels(leaves: List[bytes]) -> List[List[bytes]]:
        levels = [leaves]
        current = leaves
        while len(current) > 1:
            next_level = []
            for i in range(0, len(current), 2):
                if i + 1 < len(current):
                    next_level.append(hash_pair(current[i], current[i + 1]))
                else:
                    # Odd node is promoted unchanged
                    next_level.append(current[i])
            levels.append(next_level)
            current = next_level
        return levels

    @property
    def root(self) -> bytes:
        return self.levels[-1][0]

    def proof(self, leaf: bytes) -> List[bytes]:
        if leaf not in self.leaves:
            raise ValueError("Leaf not found in the Merkle tree.")

        proof: List[bytes] = []
        index = self.leaves.index(leaf)
        for level in self.levels[:-1]:
            sibling = index + 1 if index % 2 == 0 else index - 1
            if sibling < len(level):
                proof.append(level[sibling])
            index //= 2
        return proof
