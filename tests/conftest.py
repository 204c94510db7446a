import pytest

from riddler.events import EventLog
from riddler.identity import to_principal
from riddler.ledger import Ledger
from riddler.registry import RiddleRegistry

OWNER = to_principal("0x" + "ab" * 20)
PLAYER = to_principal("0x" + "cd" * 20)
STRANGER = to_principal("0x" + "ef" * 20)

MIN_DEPOSIT = 1000
STARTING_FUNDS = 10**18


@pytest.fixture
def ledger():
    ledger = Ledger()
    for account in (OWNER, PLAYER, STRANGER):
        ledger.mint(account, STARTING_FUNDS)
    return ledger


@pytest.fixture
def solved_events():
    received = []
    events = EventLog()
    events.subscribe(received.append)
    return events, received


@pytest.fixture
def registry(ledger, solved_events):
    events, _ = solved_events
    return RiddleRegistry(owner=OWNER, min_deposit_amount=MIN_DEPOSIT, ledger=ledger, events=events)
