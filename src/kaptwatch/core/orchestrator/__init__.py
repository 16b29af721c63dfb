"""Orchestrator - single-flight sync coordination."""

from .runner import SyncOrchestrator, SyncStatus, default_assemble

__all__ = [
    "SyncOrchestrator",
    "SyncStatus",
    "default_assemble",
]
