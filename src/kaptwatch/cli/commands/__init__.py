"""CLI command modules."""

from . import bids, schedule, selection, sync

__all__ = [
    "bids",
    "schedule",
    "selection",
    "sync",
]
