"""
Fuzzing Tests for meekit

Property-based tests that drive the dispatcher, canonical hash, signature
recovery, Merkle proofs and deterministic deployment with generated input.
"""
