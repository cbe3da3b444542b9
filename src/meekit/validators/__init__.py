"""
Authorization scheme routing and verifiers.

``SchemeDispatcher`` reads the scheme tag of an authorization blob and hands
the payload to the matching verifier.
"""

from meekit.validators.dispatcher import SchemeDispatcher
from meekit.validators.schemes import SchemeBinding, SignatureScheme, Verifier

__all__ = ["SchemeDispatcher", "SchemeBinding", "SignatureScheme", "Verifier"]
