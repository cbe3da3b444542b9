"""
Scheme dispatcher.

Reads the 4-byte scheme tag from the front of an authorization blob, strips
the tag plus the scheme's declared framing bytes and hands the remainder to
that scheme's verifier. Blobs with an unknown tag go, unmodified, to the
default (untagged) scheme together with the caller's hash.

The dispatcher is pure routing: it never derives hashes for the default
scheme, never retries and never catches a verifier's exception.
"""

from __future__ import annotations

import logging
from typing import Dict, Iterable, Optional, Tuple

from meekit.core import config
from meekit.core.context import ExecutionContext
from meekit.core.exceptions import MalformedAuthorizationError
from meekit.core.user_operation import PackedUserOperation
from meekit.validators.no_prefix import NoPrefixVerifier
from meekit.validators.on_chain_mode import OnChainModeVerifier
from meekit.validators.permit_mode import PermitModeVerifier
from meekit.validators.schemes import SCHEME_TAG_LENGTH, SchemeBinding, SignatureScheme
from meekit.validators.simple_mode import SimpleModeVerifier

logger = logging.getLogger(__name__)


class SchemeDispatcher:
    """
    Routes authorization blobs to scheme verifiers.

    The binding table is fixed at construction. Adding a scheme means adding
    a ``SignatureScheme`` member and one binding; the routing logic does not
    change.
    """

    def __init__(self, bindings: Iterable[SchemeBinding], default: SchemeBinding):
        if default.scheme is not SignatureScheme.NO_PREFIX:
            raise ValueError("Default binding must use the NO_PREFIX scheme")
        self._bindings: Dict[SignatureScheme, SchemeBinding] = {}
        for binding in bindings:
            if binding.scheme is SignatureScheme.NO_PREFIX:
                raise ValueError("NO_PREFIX can only be bound as the default")
            if binding.scheme in self._bindings:
                raise ValueError(f"Duplicate binding for {binding.scheme.name}")
            self._bindings[binding.scheme] = binding
        self._default = default

    @classmethod
    def default(cls, framing_widths: Optional[Dict[str, int]] = None) -> "SchemeDispatcher":
        """
        Build the dispatcher with every known scheme.

        Args:
            framing_widths: Per-scheme framing width keyed by scheme config
                name; missing entries come from configuration
        """
        framing_widths = framing_widths or {}

        def width(scheme: SignatureScheme) -> int:
            name = scheme.config_name
            if name in framing_widths:
                return framing_widths[name]
            return config.framing_width_for(name)

        return cls(
            bindings=[
                SchemeBinding(SignatureScheme.SIMPLE, SimpleModeVerifier(), width(SignatureScheme.SIMPLE)),
                SchemeBinding(SignatureScheme.ON_CHAIN, OnChainModeVerifier(), width(SignatureScheme.ON_CHAIN)),
                SchemeBinding(
                    SignatureScheme.ERC20_PERMIT,
                    PermitModeVerifier(),
                    width(SignatureScheme.ERC20_PERMIT),
                ),
            ],
            default=SchemeBinding(SignatureScheme.NO_PREFIX, NoPrefixVerifier()),
        )

    def binding_for(self, scheme: SignatureScheme) -> SchemeBinding:
        if scheme is SignatureScheme.NO_PREFIX:
            return self._default
        return self._bindings[scheme]

    def parse(self, blob: bytes) -> Tuple[SchemeBinding, bytes]:
        """
        Split an authorization blob into its binding and verifier payload.

        Raises:
            MalformedAuthorizationError: If the blob is shorter than a tag, or
                a known scheme's blob is not longer than tag plus framing.
        """
        blob = bytes(blob)
        if len(blob) < SCHEME_TAG_LENGTH:
            raise MalformedAuthorizationError(
                f"Authorization blob must be at least {SCHEME_TAG_LENGTH} bytes, got {len(blob)}",
                details={"length": len(blob)},
            )

        binding = self._bindings.get(SignatureScheme.from_tag(blob[:SCHEME_TAG_LENGTH]))
        if binding is None:
            return self._default, blob

        if len(blob) <= binding.header_length:
            raise MalformedAuthorizationError(
                f"{binding.scheme.config_name} blob must be longer than "
                f"{binding.header_length} bytes, got {len(blob)}",
                details={
                    "scheme": binding.scheme.config_name,
                    "length": len(blob),
                    "framing_width": binding.framing_width,
                },
            )
        return binding, blob[binding.header_length:]

    def validate_user_op(
        self,
        user_op: PackedUserOperation,
        user_op_hash: bytes,
        owner: str,
        context: ExecutionContext,
    ) -> int:
        """
        Validate ``user_op`` for ``owner``.

        Args:
            user_op: Operation whose ``signature`` holds the authorization blob
            user_op_hash: Intrinsic hash supplied by the host
            owner: Claimed owner address
            context: Execution context (chain id, time, entry point)

        Returns:
            Packed validation data from the scheme verifier
        """
        binding, payload = self.parse(user_op.signature)
        logger.debug(
            "Dispatching user operation",
            extra={
                "event": "dispatch.user_op",
                "scheme": binding.scheme.config_name,
                "sender": user_op.sender[:10],
                "payload_length": len(payload),
            },
        )
        return binding.verifier.validate_user_op(user_op, user_op_hash, payload, owner, context)

    def validate_signature_for_owner(
        self,
        owner: str,
        hash_: bytes,
        blob: bytes,
        context: ExecutionContext,
    ) -> bool:
        binding, payload = self.parse(blob)
        logger.debug(
            "Dispatching signature check",
            extra={
                "event": "dispatch.signature",
                "scheme": binding.scheme.config_name,
                "owner": owner[:10],
            },
        )
        return binding.verifier.validate_signature_for_owner(owner, hash_, payload, context)
