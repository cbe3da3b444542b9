"""
meekit - authorization core for sponsor-paid MEE user operations

Validates the authorization blob attached to an ERC-4337 style user operation
and predicts/deploys the per-owner sponsor (node paymaster) contract.

Main Components:
- core: recovery primitive, canonical MEE hash, Merkle proofs, config, logging
- validators: scheme-tagged dispatcher and the per-scheme verifiers
- contracts: deterministic CREATE2 deployer, host state, deposit registry
- cli: off-host tooling for signers and operators
"""

__version__ = "0.1.0"
__author__ = "MEE Development Team"

__all__ = []
