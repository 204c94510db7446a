"""
Ledger - Balance-Transfer Primitive

Holds the account balances the registry moves value between:
- Callers' accounts (debited when they attach value to a call)
- The registry's own account (where deposits accumulate)
- The owner's account (credited on withdraw)

All amounts are integers in wei. Optional JSON persistence so balances
survive restarts alongside the registry state.
"""

import os
import json
import logging
import tempfile
import threading
from pathlib import Path
from typing import Optional, Callable

from .constitution import require_amount
from .identity import to_principal, short

logger = logging.getLogger("riddler.ledger")


class Ledger:
    """
    In-process account ledger.

    transfer() reports failure by returning False rather than raising,
    the same contract a low-level value call has on chain.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._balances: dict[str, int] = {}
        self._lock = threading.RLock()
        # Recipient hook, called with (sender, recipient, amount) before the
        # recipient is credited. Raising reverts the transfer.
        self._on_receive: Optional[Callable[[str, str, int], None]] = None
        if self.path:
            self._load()

    def set_receive_hook(self, fn: Optional[Callable[[str, str, int], None]]):
        self._on_receive = fn

    # ============================================================
    # QUERIES
    # ============================================================

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self._balances.get(to_principal(account), 0)

    def total_supply(self) -> int:
        with self._lock:
            return sum(self._balances.values())

    def accounts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._balances)

    # ============================================================
    # MUTATIONS
    # ============================================================

    def mint(self, account: str, amount: int) -> int:
        """Create funds out of thin air (dev faucet, test setup)."""
        require_amount(amount)
        account = to_principal(account)
        with self._lock:
            self._balances[account] = self._balances.get(account, 0) + amount
            new_balance = self._balances[account]
            self._save()
        logger.info(f"MINTED {amount} wei to {short(account)} | Balance: {new_balance}")
        return new_balance

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        """Move `amount` wei. Returns False if the sender cannot cover it."""
        require_amount(amount)
        sender = to_principal(sender)
        recipient = to_principal(recipient)
        if amount == 0:
            return True

        with self._lock:
            available = self._balances.get(sender, 0)
            if available < amount:
                logger.warning(
                    f"TRANSFER REFUSED: {short(sender)} has {available} wei, "
                    f"needs {amount}"
                )
                return False
            if self._on_receive:
                try:
                    self._on_receive(sender, recipient, amount)
                except Exception as e:
                    logger.warning(f"TRANSFER REVERTED by receiver {short(recipient)}: {e}")
                    return False
            # Re-read: the hook may have moved the sender's funds meanwhile
            available = self._balances.get(sender, 0)
            if available < amount:
                logger.warning(f"TRANSFER REFUSED: {short(sender)} drained during receive hook")
                return False
            self._balances[sender] = available - amount
            self._balances[recipient] = self._balances.get(recipient, 0) + amount
            self._save()

        logger.debug(f"TRANSFER {amount} wei {short(sender)} -> {short(recipient)}")
        return True

    # ============================================================
    # PERSISTENCE
    # ============================================================

    def _load(self):
        if not self.path.exists():
            logger.info("No ledger file found — starting fresh")
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
            self._balances = {
                to_principal(acct): int(bal)
                for acct, bal in data.get("balances", {}).items()
            }
            logger.info(f"Loaded ledger with {len(self._balances)} accounts")
        except (OSError, ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to load ledger {self.path}: {e}")
            raise ValueError(f"ledger file {self.path} is unreadable: {e}") from e

    def _save(self):
        if not self.path:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), suffix=".tmp", prefix="ledger_"
            )
            try:
                with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                    # Balances as strings: wei values overflow JS numbers
                    json.dump(
                        {"balances": {k: str(v) for k, v in self._balances.items()}},
                        f, indent=2,
                    )
                os.replace(tmp_path, str(self.path))
            except Exception:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
        except Exception as e:
            logger.error(f"Failed to save ledger: {e}")
