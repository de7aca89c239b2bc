"""Persistence module."""
from .redis_client import RedisClient, redis_client
from .player_store import PlayerStore, player_store
from .entry_store import EntryStore, entry_store
from .chip_store import ChipStore, chip_store

__all__ = [
    "RedisClient",
    "redis_client",
    "PlayerStore",
    "player_store",
    "EntryStore",
    "entry_store",
    "ChipStore",
    "chip_store",
]
