"""
Riddler - main entry point

Loads configuration, restores the ledger and registry from the data
directory, and serves the HTTP API.

Usage:
    RIDDLER_OWNER=0x... RIDDLER_AUTH_SECRET=... python main.py
"""

import os
import logging
from dataclasses import dataclass
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

# ============================================================
# BOOTSTRAP
# ============================================================

load_dotenv()

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL, logging.INFO),
    format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger("riddler.main")


# ============================================================
# MODULE IMPORTS
# ============================================================

from riddler.constitution import REGISTRY_LAWS
from riddler.events import EventLog, RiddleSolved
from riddler.ledger import Ledger
from riddler.registry import RiddleRegistry
from api.server import create_app


# ============================================================
# CONFIG
# ============================================================

@dataclass
class Settings:
    owner: str
    min_deposit_wei: int = REGISTRY_LAWS.DEFAULT_MIN_DEPOSIT_WEI
    data_dir: Path = Path("data")
    auth_secret: str = ""
    faucet_wei: int = 0
    allowed_origins: tuple = ("http://localhost:3000",)

    @classmethod
    def from_env(cls) -> "Settings":
        owner = os.getenv("RIDDLER_OWNER", "")
        if not owner:
            raise SystemExit("RIDDLER_OWNER is not set — refusing to start without an owner")
        auth_secret = os.getenv("RIDDLER_AUTH_SECRET", "")
        if not auth_secret:
            raise SystemExit("RIDDLER_AUTH_SECRET is not set — refusing to sign tokens with a default key")
        origins = os.getenv("RIDDLER_ALLOWED_ORIGINS", "http://localhost:3000")
        return cls(
            owner=owner,
            min_deposit_wei=int(os.getenv("RIDDLER_MIN_DEPOSIT_WEI", str(REGISTRY_LAWS.DEFAULT_MIN_DEPOSIT_WEI))),
            data_dir=Path(os.getenv("RIDDLER_DATA_DIR", "data")),
            auth_secret=auth_secret,
            faucet_wei=int(os.getenv("RIDDLER_FAUCET_WEI", "0")),
            allowed_origins=tuple(o.strip() for o in origins.split(",") if o.strip()),
        )


def build_registry(settings: Settings) -> RiddleRegistry:
    """Ledger + event log + registry, restored from settings.data_dir."""
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    state_path = settings.data_dir / REGISTRY_LAWS.STATE_FILE_NAME

    ledger = Ledger(settings.data_dir / REGISTRY_LAWS.LEDGER_FILE_NAME)
    events = EventLog()
    events.subscribe(_log_solved)

    registry = RiddleRegistry(
        owner=settings.owner,
        min_deposit_amount=settings.min_deposit_wei,
        ledger=ledger,
        events=events,
        state_path=state_path,
    )
    registry.load_state(state_path)

    held = ledger.balance_of(registry.address)
    if held != registry.balance:
        logger.critical(
            f"ACCOUNTING MISMATCH: registry balance {registry.balance} wei, "
            f"ledger holds {held} wei at {registry.address}"
        )
    return registry


def _log_solved(event: RiddleSolved):
    logger.info(f"Riddle #{event.riddle_id} solved by {event.solver}")


def build_app():
    settings = Settings.from_env()
    registry = build_registry(settings)
    return create_app(
        registry,
        auth_secret=settings.auth_secret,
        faucet_wei=settings.faucet_wei,
        allowed_origins=list(settings.allowed_origins),
    )


if __name__ == "__main__":
    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))

    logger.info(f"Starting server on {host}:{port}")

    uvicorn.run(
        "main:build_app",
        factory=True,
        host=host,
        port=port,
        log_level=LOG_LEVEL.lower(),
    )
