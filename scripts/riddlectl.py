"""
Riddler admin CLI

Operates directly on a registry data directory (the same one main.py
serves), for bootstrapping and maintenance without the HTTP layer.
The --as address is trusted: this tool is for whoever holds the disk.

Usage:
    python scripts/riddlectl.py commit "juice"
    python scripts/riddlectl.py --as 0xOwner create "crane" "juice" --value 1
    python scripts/riddlectl.py --as 0xPlayer guess 0 "juice" --value 1000000000000000
    python scripts/riddlectl.py list
    python scripts/riddlectl.py --as 0xOwner withdraw
    python scripts/riddlectl.py mint 0xPlayer 1000000000000000000
    python scripts/riddlectl.py balance 0xPlayer

Environment (.env is read): RIDDLER_OWNER, RIDDLER_MIN_DEPOSIT_WEI, RIDDLER_DATA_DIR
"""

import os
import sys
import json
import argparse
import logging
from pathlib import Path

from dotenv import load_dotenv

# Add project root to path
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))

from riddler.commitment import commit_hex
from riddler.constitution import REGISTRY_LAWS, RegistryError
from riddler.ledger import Ledger
from riddler.registry import RiddleRegistry

logger = logging.getLogger("riddler.ctl")


def open_registry(data_dir: Path, owner: str, min_deposit: int) -> RiddleRegistry:
    state_path = data_dir / REGISTRY_LAWS.STATE_FILE_NAME
    registry = RiddleRegistry(
        owner=owner,
        min_deposit_amount=min_deposit,
        ledger=Ledger(data_dir / REGISTRY_LAWS.LEDGER_FILE_NAME),
        state_path=state_path,
    )
    registry.load_state(state_path)
    return registry


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Riddler registry admin tool")
    parser.add_argument("--data-dir", default=os.getenv("RIDDLER_DATA_DIR", "data"),
                        help="Registry data directory (default: data)")
    parser.add_argument("--owner", default=os.getenv("RIDDLER_OWNER", ""),
                        help="Registry owner address (default: $RIDDLER_OWNER)")
    parser.add_argument("--min-deposit", type=int,
                        default=int(os.getenv("RIDDLER_MIN_DEPOSIT_WEI",
                                              str(REGISTRY_LAWS.DEFAULT_MIN_DEPOSIT_WEI))),
                        help="Minimum deposit in wei for a fresh registry")
    parser.add_argument("--as", dest="caller", default="",
                        help="Caller address (default: the owner)")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("commit", help="Print the commitment for an answer")
    p.add_argument("text")

    p = sub.add_parser("create", help="Publish a riddle")
    p.add_argument("question")
    p.add_argument("answer")
    p.add_argument("--value", type=int, default=0, help="Wei attached (default: 0)")

    p = sub.add_parser("guess", help="Guess a riddle's answer")
    p.add_argument("riddle_id", type=int)
    p.add_argument("attempt")
    p.add_argument("--value", type=int, required=True, help="Wei attached")

    sub.add_parser("list", help="List riddles")
    sub.add_parser("withdraw", help="Withdraw the full balance to the owner")
    sub.add_parser("status", help="Registry status")

    p = sub.add_parser("mint", help="Credit an account on the ledger")
    p.add_argument("address")
    p.add_argument("amount", type=int)

    p = sub.add_parser("balance", help="Ledger balance of an account")
    p.add_argument("address")

    return parser


def run(args: argparse.Namespace) -> dict | list | str:
    if args.command == "commit":
        return commit_hex(args.text)

    if not args.owner:
        raise SystemExit("No owner: pass --owner or set RIDDLER_OWNER")
    registry = open_registry(Path(args.data_dir), args.owner, args.min_deposit)
    caller = args.caller or registry.owner

    if args.command == "create":
        riddle_id = registry.create_riddle(caller, args.question, args.answer, args.value)
        return {"riddle_id": riddle_id}
    if args.command == "guess":
        solved = registry.guess(caller, args.riddle_id, args.attempt, args.value)
        return {"riddle_id": args.riddle_id, "solved": solved}
    if args.command == "list":
        return [r.to_dict() for r in registry.get_riddles()]
    if args.command == "withdraw":
        return {"withdrawn": registry.withdraw(caller)}
    if args.command == "status":
        return registry.get_status()
    if args.command == "mint":
        return {"address": args.address, "balance": registry.ledger.mint(args.address, args.amount)}
    if args.command == "balance":
        return {"address": args.address, "balance": registry.ledger.balance_of(args.address)}
    raise SystemExit(f"Unknown command: {args.command}")


def main(argv=None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    args = build_parser().parse_args(argv)
    try:
        result = run(args)
    except RegistryError as e:
        print(f"error: {type(e).__name__}: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    print(json.dumps(result, indent=2) if not isinstance(result, str) else result)
    return 0


if __name__ == "__main__":
    sys.exit(main())
