"""Deterministic deployment of node paymasters and the state they touch."""

from meekit.contracts.entry_point import EntryPoint
from meekit.contracts.host import ChainState
from meekit.contracts.node_paymaster_factory import NodePaymasterFactory, compute_create2_address

__all__ = ["ChainState", "EntryPoint", "NodePaymasterFactory", "compute_create2_address"]
