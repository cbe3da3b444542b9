"""
In-memory execution host.

Models the two host behaviours the deterministic deployer relies on:

- CREATE2 address occupancy: deploying to an address that already holds code
  yields the zero address instead of overwriting it.
- Atomic calls: ``atomic()`` holds the host lock for the whole body and
  journals the writes that body makes. If the body raises, only those writes
  are undone, so a failed call leaves no deployment or deposit behind and
  writes made by other threads meanwhile are kept.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, List, Optional, Protocol

from meekit.contracts.node_paymaster_factory import compute_create2_address
from meekit.core.crypto_utils import ZERO_ADDRESS, keccak256, normalize_address

logger = logging.getLogger(__name__)


UndoFn = Callable[[], None]


class Journaled(Protocol):
    """State whose writes can be undone by a failing host call."""

    def bind_journal(self, record: Callable[[UndoFn], None]) -> None:
        """Route an undo action for every later write through ``record``."""
        ...


class ChainState:
    """Code-by-address store with CREATE2 semantics and call-level rollback."""

    def __init__(self) -> None:
        self._code: Dict[str, bytes] = {}
        self._lock = threading.RLock()
        # Undo logs of the open atomic() calls, innermost last
        self._journals: List[List[UndoFn]] = []
        self._journal_owner: Optional[int] = None

    def attach(self, component: Journaled) -> None:
        """Make writes to ``component`` part of every later ``atomic()`` call."""
        component.bind_journal(self.record_undo)

    def record_undo(self, undo: UndoFn) -> None:
        """
        Register ``undo`` with the innermost open call.

        Only writes made by the thread running that call are journaled; writes
        from other threads are not part of it and survive its rollback.
        """
        if self._journals and self._journal_owner == threading.get_ident():
            self._journals[-1].append(undo)

    def has_code(self, address: str) -> bool:
        with self._lock:
            return normalize_address(address) in self._code

    def get_code(self, address: str) -> bytes:
        with self._lock:
            return self._code.get(normalize_address(address), b"")

    def create2(self, deployer: str, salt: int, init_code: bytes) -> str:
        """
        Deploy ``init_code`` at its CREATE2 address.

        Returns:
            The realized address, or the zero address if it is already occupied
        """
        address = compute_create2_address(deployer, salt, keccak256(init_code))
        with self._lock:
            if address in self._code:
                logger.warning(
                    "CREATE2 target already occupied",
                    extra={"event": "host.create2_collision", "address": address[:10]},
                )
                return ZERO_ADDRESS
            self._code[address] = bytes(init_code)
            self.record_undo(lambda: self._code.pop(address, None))

        logger.debug(
            "CREATE2 deployment",
            extra={
                "event": "host.create2",
                "deployer": deployer[:10],
                "address": address[:10],
                "code_size": len(init_code),
            },
        )
        return address

    @contextmanager
    def atomic(self) -> Iterator["ChainState"]:
        """
        Run the body as one indivisible host call.

        Concurrent ``atomic()`` bodies are serialized. If the body raises, the
        writes it made are undone in reverse order and the exception
        propagates. A nested call that succeeds hands its writes to the
        enclosing call.
        """
        with self._lock:
            journal: List[UndoFn] = []
            self._journals.append(journal)
            self._journal_owner = threading.get_ident()
            try:
                yield self
            except BaseException:
                self._journals.pop()
                for undo in reversed(journal):
                    undo()
                logger.info(
                    "Host call reverted",
                    extra={"event": "host.reverted", "writes": len(journal)},
                )
                raise
            else:
                self._journals.pop()
                if self._journals:
                    self._journals[-1].extend(journal)
            finally:
                if not self._journals:
                    self._journal_owner = None
