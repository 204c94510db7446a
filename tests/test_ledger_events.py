import pytest

from riddler.events import EventLog, RiddleSolved
from riddler.ledger import Ledger

from conftest import OWNER, PLAYER


def test_transfer_moves_funds():
    ledger = Ledger()
    ledger.mint(PLAYER, 100)

    assert ledger.transfer(PLAYER, OWNER, 40) is True
    assert ledger.balance_of(PLAYER) == 60
    assert ledger.balance_of(OWNER) == 40
    assert ledger.total_supply() == 100


def test_transfer_refuses_overdraft():
    ledger = Ledger()
    ledger.mint(PLAYER, 10)

    assert ledger.transfer(PLAYER, OWNER, 11) is False
    assert ledger.balance_of(PLAYER) == 10
    assert ledger.balance_of(OWNER) == 0


def test_zero_transfer_always_succeeds():
    assert Ledger().transfer(PLAYER, OWNER, 0) is True


def test_receive_hook_can_revert():
    ledger = Ledger()
    ledger.mint(PLAYER, 10)

    def refuse(sender, recipient, amount):
        raise RuntimeError("no thanks")

    ledger.set_receive_hook(refuse)
    assert ledger.transfer(PLAYER, OWNER, 5) is False
    assert ledger.balance_of(PLAYER) == 10

    ledger.set_receive_hook(None)
    assert ledger.transfer(PLAYER, OWNER, 5) is True


def test_lookups_are_case_insensitive():
    ledger = Ledger()
    ledger.mint(PLAYER.lower(), 10)
    assert ledger.balance_of(PLAYER) == 10


@pytest.mark.parametrize("amount", [-1, 2.0, None])
def test_bad_amounts(amount):
    with pytest.raises(ValueError):
        Ledger().mint(PLAYER, amount)


def test_ledger_persists(tmp_path):
    path = tmp_path / "ledger.json"
    ledger = Ledger(path)
    ledger.mint(PLAYER, 10**30)
    ledger.transfer(PLAYER, OWNER, 5)

    reloaded = Ledger(path)
    assert reloaded.balance_of(PLAYER) == 10**30 - 5
    assert reloaded.balance_of(OWNER) == 5


def test_corrupt_ledger_file_is_refused(tmp_path):
    path = tmp_path / "ledger.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ValueError, match="unreadable"):
        Ledger(path)
    assert path.read_text(encoding="utf-8") == "{not json"


@pytest.mark.parametrize("content", [
    "[1, 2]",
    '{"balances": {"not-an-address": "5"}}',
    '{"balances": {"0x' + "cd" * 20 + '": "lots"}}',
])
def test_malformed_ledger_file_is_refused(tmp_path, content):
    path = tmp_path / "ledger.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(ValueError):
        Ledger(path)


# ── events ──

def test_event_log_fans_out_and_keeps_history():
    log = EventLog(max_history=2)
    got = []
    log.subscribe(got.append)

    for i in range(3):
        log.emit(RiddleSolved(riddle_id=i, solver=PLAYER))

    assert [e.riddle_id for e in got] == [0, 1, 2]
    assert [e.riddle_id for e in log.recent()] == [1, 2]
    assert log.recent(0) == []
    assert log.emitted == 3
    assert len(log) == 2


def test_failing_subscriber_does_not_block_others():
    log = EventLog()
    got = []

    def broken(event):
        raise RuntimeError("boom")

    log.subscribe(broken)
    log.subscribe(got.append)
    log.emit(RiddleSolved(riddle_id=0))

    assert len(got) == 1


def test_unsubscribe():
    log = EventLog()
    got = []
    log.subscribe(got.append)
    log.unsubscribe(got.append)
    log.emit(RiddleSolved(riddle_id=0))
    assert got == []


def test_event_dict():
    event = RiddleSolved(riddle_id=3, solver=PLAYER, timestamp=1.0)
    assert event.to_dict() == {"event": "RiddleSolved", "riddle_id": 3, "solver": PLAYER, "timestamp": 1.0}
