"""
meekit core module

Primitives shared by every authorization scheme:
- ECDSA recovery with raw/prefixed fallback
- Canonical (double-hashed) MEE user operation hash
- ERC-4337 user operation packing and validation data
- Super-transaction Merkle proofs
- Configuration, logging and the exception hierarchy
"""

__all__ = []
