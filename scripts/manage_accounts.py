#!/usr/bin/env python3
"""
Tracked Accounts Management CLI
===============================

Edit the balances file without touching the JSON by hand.

Commands:
    init        Create an empty balances file
    list        Show tracked accounts in report order
    add         Track a new account (appended to the report)
    remove      Stop tracking an account
"""

import argparse
import sys
from datetime import datetime, timezone
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from treasury_monitor.config import load_settings
from treasury_monitor.errors import StateConflict, StateCorrupt, StateWriteFailed
from treasury_monitor.models import AccountKind
from treasury_monitor.monitor.state import StateStore, add_account, remove_account


def cmd_init(args):
    """Create an empty balances file."""
    store = StateStore(args.state_file)
    try:
        store.initialize()
    except StateWriteFailed as e:
        print(f"Error: {e}")
        return 1
    print(f"Created {store.path}")


def cmd_list(args):
    """Show tracked accounts."""
    state = StateStore(args.state_file).load()
    updated = datetime.fromtimestamp(state.last_updated, tz=timezone.utc)

    print(f"\n=== Tracked Accounts ({len(state.accounts)}) ===")
    print(f"Last updated: {updated.strftime('%Y-%m-%d %H:%M:%S %Z')}\n")
    print(f"{'Name':<24} {'Type':<6} {'Balance':>18} {'Change':>14}  Address")
    print("-" * 110)

    for acc in state.accounts:
        change = acc.balance_change
        change_str = f"{change.direction.value} {change.text}" if change.direction else "-"
        kind_str = acc.type if acc.is_tracked else f"{acc.type}?"
        print(f"{acc.name:<24} {kind_str:<6} {acc.current_balances.text:>18} {change_str:>14}  {acc.address}")


def cmd_add(args):
    """Track a new account."""
    store = StateStore(args.state_file)
    state = store.load()
    kind = AccountKind(args.type)
    try:
        state = add_account(state, args.address, kind, args.name, symbol=args.symbol)
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    store.persist(state)
    print(f"Added: {args.name} ({kind.value}) {args.address}")


def cmd_remove(args):
    """Stop tracking an account."""
    store = StateStore(args.state_file)
    state = store.load()
    try:
        state = remove_account(state, args.address)
    except KeyError:
        print(f"Error: account not tracked: {args.address}")
        return 1
    store.persist(state)
    print(f"Removed: {args.address}")


def main():
    settings = load_settings()

    parser = argparse.ArgumentParser(
        description="Manage tracked treasury accounts",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__
    )
    parser.add_argument(
        "--state-file",
        type=Path,
        default=settings.balances_file,
        help=f"Path to balances file (default: {settings.balances_file})"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("init", help="Create an empty balances file")
    subparsers.add_parser("list", help="Show tracked accounts")

    add_parser = subparsers.add_parser("add", help="Track a new account")
    add_parser.add_argument("address", help="Account address (token account for USDC)")
    add_parser.add_argument("--type", "-t", choices=[k.value for k in AccountKind], required=True)
    add_parser.add_argument("--name", "-n", required=True, help="Display name")
    add_parser.add_argument("--symbol", "-s", help="Display symbol (default: the type)")

    remove_parser = subparsers.add_parser("remove", help="Stop tracking an account")
    remove_parser.add_argument("address", help="Account address")

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    commands = {
        "init": cmd_init,
        "list": cmd_list,
        "add": cmd_add,
        "remove": cmd_remove,
    }

    try:
        return commands[args.command](args) or 0
    except StateConflict as e:
        print(f"Error: {e}")
        print("The file was rewritten meanwhile (monitor cycle?). Run the command again.")
        return 1
    except (StateCorrupt, StateWriteFailed) as e:
        print(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
