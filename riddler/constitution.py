"""
Registry Laws - Layer 0 (Immutable)

The fixed rules every riddle registry runs under, and the errors raised
when a caller breaks one of them.

Revert messages match the deployed Riddler contract word for word, so
clients that grew up against the chain version see the same strings.
"""

from dataclasses import dataclass
from typing import Final


# ============================================================
# ERRORS
# ============================================================

class RegistryError(Exception):
    """Base class for every rejected registry operation."""

    message: str = "registry operation rejected"

    def __init__(self, message: str = ""):
        self.message = message or self.message
        super().__init__(self.message)


class Unauthorized(RegistryError):
    """Caller is not the owner where ownership is required."""
    message = "only owner can do this"


class NotFound(RegistryError):
    """Referenced riddle id does not exist."""
    message = "riddle not found"


class AlreadySolved(RegistryError):
    """Guess against a riddle that is already solved."""
    message = "riddle already solved"


class InsufficientDeposit(RegistryError):
    """Attached value is below the registry's minimum deposit."""
    message = "wrong deposit amount"


class TransferFailed(RegistryError):
    """The ledger refused or failed a value transfer."""
    message = "value transfer failed"


class ReentrantCall(RegistryError):
    """A mutating call arrived while another one was still in flight."""
    message = "reentrant call"


# ============================================================
# REGISTRY LAWS
# ============================================================

@dataclass(frozen=True)
class RegistryLaws:
    """Frozen dataclass = truly immutable at runtime."""

    # --- DEPOSITS (wei) ---
    DEFAULT_MIN_DEPOSIT_WEI: Final[int] = 10**15    # 0.001 ether per guess

    # --- EVENTS ---
    MAX_EVENT_HISTORY: Final[int] = 1000            # Recent events kept in memory

    # --- STATE ---
    STATE_FILE_NAME: Final[str] = "registry_state.json"
    LEDGER_FILE_NAME: Final[str] = "ledger.json"


REGISTRY_LAWS = RegistryLaws()


def require_amount(amount, name: str = "amount") -> int:
    """
    Validate a wei amount. Raises ValueError for anything that is not a
    non-negative int (bool included, it is an int subclass).
    """
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise ValueError(f"{name} must be an integer number of wei, got {amount!r}")
    if amount < 0:
        raise ValueError(f"{name} must be non-negative, got {amount}")
    return amount
