"""
Riddle Registry - Commit/Reveal Puzzle Ledger

Manages the registry's state:
- Owner publishes riddles by committing keccak256 of the answer
- Anyone guesses by attaching at least the minimum deposit
- A correct guess marks the riddle solved (once) and emits RiddleSolved
- Deposits are non-refundable, right or wrong
- Only the owner withdraws, and always the full balance

Every operation takes the caller's principal explicitly and runs under one
registry lock, so each call is applied completely before the next starts.
"""

import os
import time
import json
import logging
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional

from eth_utils import keccak, to_checksum_address, to_hex, to_bytes

from .commitment import commit, DIGEST_SIZE
from .constitution import (
    REGISTRY_LAWS,
    AlreadySolved,
    InsufficientDeposit,
    NotFound,
    ReentrantCall,
    TransferFailed,
    Unauthorized,
    require_amount,
)
from .events import EventLog, RiddleSolved
from .identity import Principal, to_principal, short
from .ledger import Ledger

logger = logging.getLogger("riddler.registry")


@dataclass
class Riddle:
    id: int
    question: str
    answer_commitment: bytes
    solved: bool = False
    deposit_collected: int = 0
    solved_by: Optional[str] = None
    created_at: float = 0.0
    solved_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "question": self.question,
            "answer_commitment": to_hex(self.answer_commitment),
            "solved": self.solved,
            "deposit_collected": str(self.deposit_collected),
            "solved_by": self.solved_by,
            "created_at": self.created_at,
            "solved_at": self.solved_at,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Riddle":
        commitment = to_bytes(hexstr=data["answer_commitment"])
        if len(commitment) != DIGEST_SIZE:
            raise ValueError(f"riddle {data.get('id')}: commitment is {len(commitment)} bytes")
        return cls(
            id=int(data["id"]),
            question=data["question"],
            answer_commitment=commitment,
            solved=bool(data.get("solved", False)),
            deposit_collected=int(data.get("deposit_collected", 0)),
            solved_by=data.get("solved_by"),
            created_at=data.get("created_at", 0.0),
            solved_at=data.get("solved_at"),
        )


def registry_address(owner: str) -> Principal:
    """Deterministic ledger account for a registry deployed by `owner`."""
    return to_checksum_address(keccak(text=f"riddler:{to_principal(owner)}")[-20:])


class RiddleRegistry:
    """
    Owner-run riddle registry backed by a Ledger.

    Accounting invariant: self.balance == ledger.balance_of(self.address)
    as long as nothing else moves funds out of the registry account.
    """

    def __init__(
        self,
        owner: str,
        min_deposit_amount: int = REGISTRY_LAWS.DEFAULT_MIN_DEPOSIT_WEI,
        ledger: Optional[Ledger] = None,
        events: Optional[EventLog] = None,
        address: Optional[str] = None,
        state_path: Optional[Path] = None,
    ):
        self.owner: Principal = to_principal(owner)
        self.min_deposit_amount: int = require_amount(min_deposit_amount, "min_deposit_amount")
        self.ledger = ledger if ledger is not None else Ledger()
        self.events = events if events is not None else EventLog()
        self.address: Principal = to_principal(address) if address else registry_address(self.owner)
        self.state_path = Path(state_path) if state_path else None

        self.riddles: list[Riddle] = []
        self.balance: int = 0
        self.total_deposited: int = 0
        self.total_withdrawn: int = 0
        self.created_at: float = time.time()

        # One lock for reads and writes. Reentrant so reads made from inside
        # a withdraw transfer don't deadlock; _busy turns nested writes away.
        self._lock = threading.RLock()
        self._busy = False

        logger.info(
            f"Registry ready: owner={short(self.owner)} address={short(self.address)} "
            f"min_deposit={self.min_deposit_amount} wei"
        )

    @contextmanager
    def _mutation(self, op: str):
        with self._lock:
            if self._busy:
                logger.warning(f"{op.upper()} REJECTED: reentrant call")
                raise ReentrantCall()
            self._busy = True
            try:
                yield
            finally:
                self._busy = False

    def _require_owner(self, caller: Principal, op: str):
        if caller != self.owner:
            logger.warning(f"{op.upper()} REJECTED: {short(caller)} is not the owner")
            raise Unauthorized()

    def _get(self, riddle_id) -> Riddle:
        if isinstance(riddle_id, bool) or not isinstance(riddle_id, int) \
                or not 0 <= riddle_id < len(self.riddles):
            raise NotFound(f"riddle {riddle_id!r} not found")
        return self.riddles[riddle_id]

    def _collect(self, caller: Principal, value: int, op: str):
        """Pull attached value from the caller into the registry account."""
        if value == 0:
            return
        if not self.ledger.transfer(caller, self.address, value):
            logger.warning(f"{op.upper()} REJECTED: could not collect {value} wei from {short(caller)}")
            raise TransferFailed(f"could not collect {value} wei from caller")
        self.balance += value
        self.total_deposited += value

    # ============================================================
    # OPERATIONS
    # ============================================================

    def create_riddle(self, caller: str, question: str, answer: str, value: int = 0) -> int:
        """Publish a riddle. Owner only. Returns the new riddle id."""
        caller = to_principal(caller)
        require_amount(value, "value")
        if not isinstance(question, str):
            raise ValueError("question must be text")
        answer_commitment = commit(answer)

        with self._mutation("create_riddle"):
            self._require_owner(caller, "create_riddle")
            self._collect(caller, value, "create_riddle")

            riddle = Riddle(
                id=len(self.riddles),
                question=question,
                answer_commitment=answer_commitment,
                deposit_collected=value,
                created_at=time.time(),
            )
            self.riddles.append(riddle)
            self._persist()

        logger.info(
            f"RIDDLE #{riddle.id} created: {question[:60]!r} | "
            f"deposit {value} wei | Balance: {self.balance}"
        )
        return riddle.id

    def guess(self, caller: str, riddle_id: int, attempt: str, value: int) -> bool:
        """
        Attempt an answer. Returns True if this call solved the riddle.

        Check order: riddle exists, riddle still open, deposit meets the
        minimum. Only then is value collected and the attempt compared.
        """
        caller = to_principal(caller)
        require_amount(value, "value")
        attempt_commitment = commit(attempt)

        with self._mutation("guess"):
            riddle = self._get(riddle_id)
            if riddle.solved:
                logger.info(f"GUESS REJECTED: riddle #{riddle.id} already solved")
                raise AlreadySolved()
            if value < self.min_deposit_amount:
                logger.warning(
                    f"GUESS REJECTED: {value} wei < minimum {self.min_deposit_amount} "
                    f"from {short(caller)}"
                )
                raise InsufficientDeposit()

            self._collect(caller, value, "guess")

            solved = attempt_commitment == riddle.answer_commitment
            if solved:
                riddle.solved = True
                riddle.solved_by = caller
                riddle.solved_at = time.time()
            self._persist()

            if solved:
                logger.info(f"RIDDLE #{riddle.id} SOLVED by {short(caller)} | Balance: {self.balance}")
                self.events.emit(RiddleSolved(riddle_id=riddle.id, solver=caller))
            else:
                logger.info(f"Wrong guess on riddle #{riddle.id} by {short(caller)} | Balance: {self.balance}")

        return solved

    def withdraw(self, caller: str) -> int:
        """
        Pay the full balance to the owner. Owner only.

        The balance is zeroed before the transfer and restored if the
        transfer fails, all under the registry lock.
        """
        caller = to_principal(caller)

        with self._mutation("withdraw"):
            self._require_owner(caller, "withdraw")
            amount = self.balance
            if amount == 0:
                logger.info("WITHDRAW: balance is empty, nothing to send")
                return 0

            self.balance = 0
            try:
                sent = self.ledger.transfer(self.address, self.owner, amount)
            except Exception as e:
                self.balance = amount
                logger.error(f"WITHDRAW FAILED: transfer raised {e}")
                raise TransferFailed(f"transfer of {amount} wei raised: {e}") from e
            if not sent:
                self.balance = amount
                logger.error(f"WITHDRAW FAILED: ledger refused {amount} wei to {short(self.owner)}")
                raise TransferFailed(f"transfer of {amount} wei refused")

            self.total_withdrawn += amount
            self._persist()

        logger.info(f"WITHDREW {amount} wei to owner {short(self.owner)} | Balance: 0")
        return amount

    # ============================================================
    # READS
    # ============================================================

    def get_riddles(self) -> list[Riddle]:
        """All riddles in creation order, as copies."""
        with self._lock:
            return [replace(r) for r in self.riddles]

    def get_riddle(self, riddle_id: int) -> Riddle:
        with self._lock:
            return replace(self._get(riddle_id))

    def get_min_deposit_amount(self) -> int:
        return self.min_deposit_amount

    def get_status(self) -> dict:
        with self._lock:
            solved = sum(1 for r in self.riddles if r.solved)
            return {
                "owner": self.owner,
                "address": self.address,
                "balance": self.balance,
                "min_deposit_amount": self.min_deposit_amount,
                "riddle_count": len(self.riddles),
                "solved_count": solved,
                "open_count": len(self.riddles) - solved,
                "total_deposited": self.total_deposited,
                "total_withdrawn": self.total_withdrawn,
                "events_emitted": self.events.emitted,
            }

    # ============================================================
    # STATE PERSISTENCE — survive restarts
    # ============================================================

    def _persist(self):
        if self.state_path:
            self.save_state(self.state_path)

    def save_state(self, path: Path) -> bool:
        """Write the full registry state as JSON. Returns False on failure."""
        with self._lock:
            state = {
                "owner": self.owner,
                "address": self.address,
                "min_deposit_amount": str(self.min_deposit_amount),
                "balance": str(self.balance),
                "total_deposited": str(self.total_deposited),
                "total_withdrawn": str(self.total_withdrawn),
                "created_at": self.created_at,
                "riddles": [r.to_dict() for r in self.riddles],
                "saved_at": time.time(),
            }
        try:
            p = Path(path)
            p.parent.mkdir(parents=True, exist_ok=True)
            # ATOMIC WRITE: temp file in the same directory, then rename
            tmp_fd, tmp_path = tempfile.mkstemp(
                dir=str(p.parent), suffix=".tmp", prefix="registry_state_"
            )
            try:
                with os.fdopen(tmp_fd, "w", encoding="utf-8") as f:
                    json.dump(state, f, ensure_ascii=False, indent=2)
                os.replace(tmp_path, str(p))
            except Exception:
                try:
                    os.unlink(tmp_path)
                except OSError:
                    pass
                raise
            logger.debug(f"Registry state saved ({len(state['riddles'])} riddles)")
            return True
        except Exception as e:
            logger.error(f"Failed to save registry state: {e}")
            return False

    def load_state(self, path: Path) -> bool:
        """
        Restore state written by save_state. Returns False if the file does
        not exist. Raises ValueError if it belongs to a different owner or
        the riddle ids are not dense.
        """
        p = Path(path)
        if not p.exists():
            logger.info("No registry state file found — starting fresh")
            return False

        with open(p, "r", encoding="utf-8") as f:
            state = json.load(f)

        stored_owner = to_principal(state["owner"])
        if stored_owner != self.owner:
            raise ValueError(
                f"state file {p} belongs to owner {stored_owner}, not {self.owner}"
            )

        riddles = [Riddle.from_dict(d) for d in state.get("riddles", [])]
        for index, riddle in enumerate(riddles):
            if riddle.id != index:
                raise ValueError(f"state file {p}: riddle at position {index} has id {riddle.id}")

        with self._lock:
            stored_min = int(state.get("min_deposit_amount", self.min_deposit_amount))
            if stored_min != self.min_deposit_amount:
                # Fixed for the registry's lifetime: the stored value wins
                logger.warning(
                    f"Configured min deposit {self.min_deposit_amount} ignored; "
                    f"registry was initialized with {stored_min}"
                )
                self.min_deposit_amount = stored_min
            self.address = to_principal(state.get("address", self.address))
            self.balance = int(state.get("balance", 0))
            self.total_deposited = int(state.get("total_deposited", self.balance))
            self.total_withdrawn = int(state.get("total_withdrawn", 0))
            self.created_at = state.get("created_at", self.created_at)
            self.riddles = riddles

        logger.info(f"Registry state loaded: {len(riddles)} riddles | Balance: {self.balance}")
        return True
