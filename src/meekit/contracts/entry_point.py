"""
ERC-4337 EntryPoint deposit registry.

Only the parts the sponsor flow touches are modelled: deposits keyed by
account address (credited by the node paymaster factory) and the canonical
user operation hash. Bundling and execution are out of scope.
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from functools import partial
from typing import Callable, Dict, Optional

from meekit.core import config
from meekit.core.crypto_utils import normalize_address
from meekit.core.exceptions import FundingError
from meekit.core.user_operation import PackedUserOperation

logger = logging.getLogger(__name__)


@dataclass
class EntryPoint:
    """
    Deposit registry of an ERC-4337 EntryPoint.

    Balances are keyed by checksummed address.
    """

    address: str = config.ENTRY_POINT_ADDRESS
    chain_id: int = config.Config.CHAIN_ID

    # Deposits (for gas prepayment)
    deposits: Dict[str, int] = field(default_factory=dict)

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False, compare=False)
    _record_undo: Optional[Callable[[Callable[[], None]], None]] = field(default=None, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.address = normalize_address(self.address)

    # ==================== Deposit Management ====================

    def deposit_to(self, account: str, amount: int) -> bool:
        """
        Credit ``amount`` to ``account``'s deposit.

        Raises:
            FundingError: If ``amount`` is not a positive integer.
        """
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise FundingError(
                f"Deposit amount must be a positive integer, got {amount!r}",
                details={"account": account},
            )
        account = normalize_address(account)
        with self._lock:
            self.deposits[account] = self.deposits.get(account, 0) + amount
            balance = self.deposits[account]
            if self._record_undo is not None:
                self._record_undo(partial(self._revert_deposit, account, amount))

        logger.info(
            "Deposit credited",
            extra={
                "event": "entry_point.deposit",
                "account": account[:10],
                "amount": amount,
                "balance": balance,
            },
        )
        return True

    def balance_of(self, account: str) -> int:
        """Get account deposit balance."""
        with self._lock:
            return self.deposits.get(normalize_address(account), 0)

    def get_user_op_hash(self, user_op: PackedUserOperation) -> bytes:
        return user_op.hash(self.address, self.chain_id)

    # ==================== Host journaling ====================

    def bind_journal(self, record: Callable[[Callable[[], None]], None]) -> None:
        """Journal every later deposit through ``record``, replacing any previous host."""
        self._record_undo = record

    def _revert_deposit(self, account: str, amount: int) -> None:
        with self._lock:
            remaining = self.deposits.get(account, 0) - amount
            if remaining:
                self.deposits[account] = remaining
            else:
                self.deposits.pop(account, None)
