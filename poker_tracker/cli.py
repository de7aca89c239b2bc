#!/usr/bin/env python3
"""CLI tool for poker tracker administration."""
import asyncio
import sys

from poker_tracker.admin.standings import format_leaderboard_table, standings
from poker_tracker.db.connection import db
from poker_tracker.db.models import init_db
from poker_tracker.errors import NotFoundError
from poker_tracker.ledger.players import player_registry
from poker_tracker.state.player_store import player_store

CLI_ACTOR = "cli"


async def initialize_database():
    """Create tables, run migrations and seed defaults."""
    await db.connect()
    try:
        await init_db()
        print("Success: database initialized.")
    finally:
        await db.disconnect()


async def list_players():
    """List all players."""
    await db.connect()
    try:
        players = await player_store.list_all()

        if not players:
            print("No players found.")
            return

        print(f"\n{'Computing ID':<15} {'Name':<25} {'Admin':<6} {'Winnings':>10} {'Created'}")
        print("-" * 80)
        for p in players:
            created = p.created_at.strftime('%Y-%m-%d %H:%M') if p.created_at else 'N/A'
            admin = "yes" if p.is_admin else ""
            print(f"{p.computing_id:<15} {p.display_name:<25} {admin:<6} {p.total_winnings:>10} {created}")
        print(f"\nTotal: {len(players)} players")
    finally:
        await db.disconnect()


async def get_player(computing_id: str):
    """Get player details."""
    await db.connect()
    try:
        player = await player_store.get(computing_id)

        if not player:
            print(f"Error: Player '{computing_id}' not found.")
            sys.exit(1)

        print(f"\nPlayer: {player.display_name} ({player.computing_id})")
        print(f"  Level:      {player.level or 'N/A'}")
        print(f"  Experience: {player.years_of_experience if player.years_of_experience is not None else 'N/A'}")
        print(f"  Major:      {player.major or 'N/A'}")
        print(f"  Winnings:   {player.total_winnings}")
        print(f"  Admin:      {player.is_admin}")
        print(f"  Created:    {player.created_at}")
    finally:
        await db.disconnect()


async def set_admin(computing_id: str, is_admin: bool):
    """Promote or demote a player."""
    await db.connect()
    try:
        if not await player_store.set_admin(computing_id, is_admin):
            print(f"Error: Player '{computing_id}' not found.")
            sys.exit(1)
        role = "an admin" if is_admin else "a regular player"
        print(f"Success: '{computing_id}' is now {role}.")
    finally:
        await db.disconnect()


async def show_leaderboard():
    """Print the all-time leaderboard."""
    await db.connect()
    try:
        print(format_leaderboard_table(await standings.rank()))
    finally:
        await db.disconnect()


async def recalculate(computing_id: str = None):
    """Recompute winnings totals for one player, or all of them."""
    await db.connect()
    try:
        if computing_id:
            targets = [computing_id]
        else:
            targets = [p.computing_id for p in await player_store.list_all()]

        for target in targets:
            try:
                result = await player_registry.recalculate(CLI_ACTOR, target)
            except NotFoundError:
                print(f"Error: Player '{target}' not found.")
                sys.exit(1)
            print(f"{target}: {result['old_winnings']:.2f} -> {result['new_winnings']:.2f}")
        print(f"\nRecalculated {len(targets)} players")
    finally:
        await db.disconnect()


def print_usage():
    """Print usage information."""
    print("""
Poker Tracker CLI

Usage:
  python -m poker_tracker.cli <command> [args]

Commands:
  init-db                  Create tables and seed defaults
  list                     List all players
  get <computing_id>       Get player details
  promote <computing_id>   Grant admin rights
  demote <computing_id>    Revoke admin rights
  leaderboard              Print the all-time leaderboard
  recalculate [id]         Recompute winnings totals

Examples:
  python -m poker_tracker.cli init-db
  python -m poker_tracker.cli promote abc1de
  python -m poker_tracker.cli recalculate
""")


def _require_id(command: str) -> str:
    if len(sys.argv) < 3:
        print("Error: Computing ID required.")
        print(f"Usage: python -m poker_tracker.cli {command} <computing_id>")
        sys.exit(1)
    return sys.argv[2]


def main():
    """Main CLI entry point."""
    if len(sys.argv) < 2:
        print_usage()
        sys.exit(1)

    command = sys.argv[1].lower()

    if command == "init-db":
        asyncio.run(initialize_database())

    elif command == "list":
        asyncio.run(list_players())

    elif command == "get":
        asyncio.run(get_player(_require_id(command)))

    elif command == "promote":
        asyncio.run(set_admin(_require_id(command), True))

    elif command == "demote":
        asyncio.run(set_admin(_require_id(command), False))

    elif command == "leaderboard":
        asyncio.run(show_leaderboard())

    elif command == "recalculate":
        asyncio.run(recalculate(sys.argv[2] if len(sys.argv) > 2 else None))

    elif command in ("help", "-h", "--help"):
        print_usage()

    else:
        print(f"Unknown command: {command}")
        print_usage()
        sys.exit(1)


if __name__ == "__main__":
    main()
