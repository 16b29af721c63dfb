"""
Shared wiring for CLI commands: configuration, logging and storage.
"""

from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional

import typer
from rich.console import Console

from kaptwatch.core.config import AppConfig, ConfigError, load_app_config
from kaptwatch.core.config.loader import DEFAULT_CONFIG_PATH
from kaptwatch.core.logging import setup_logging_from_config
from kaptwatch.persistence.store import (
    BIDS_KEY,
    SELECTED_BIDS_KEY,
    SYNC_LOG_KEY,
    SYNC_STATE_KEY,
    KeyValueStore,
    MemoryKeyValueStore,
    SqlKeyValueStore,
)

err_console = Console(stderr=True)

_config_path: Optional[Path] = None


def set_config_path(path: Optional[Path]) -> None:
    global _config_path
    _config_path = path


def config_path() -> Path:
    """The app.yaml this invocation reads (``--config`` or the default)."""
    return _config_path or DEFAULT_CONFIG_PATH


def load_config(setup_logs: bool = True) -> AppConfig:
    """Load app.yaml (or defaults) and configure logging."""
    try:
        config = load_app_config(_config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        if e.details:
            err_console.print(f"[dim]{e.details}[/dim]")
        raise typer.Exit(1)

    if setup_logs:
        setup_logging_from_config(config.logging)
    return config


def open_store(config: AppConfig) -> SqlKeyValueStore:
    return SqlKeyValueStore(
        config.storage.url,
        backups_to_keep=config.storage.backups_to_keep,
        echo=config.storage.echo,
    )


@contextmanager
def store_scope(config: AppConfig) -> Iterator[SqlKeyValueStore]:
    """The configured store, closed when the block exits."""
    store = open_store(config)
    try:
        yield store
    finally:
        store.close()


def dry_run_store(source: KeyValueStore) -> MemoryKeyValueStore:
    """In-memory copy of the sync state, so a run can be tried without writing."""
    initial = {}
    for key in (BIDS_KEY, SELECTED_BIDS_KEY, SYNC_LOG_KEY, SYNC_STATE_KEY):
        value = source.load(key)
        if value is not None:
            initial[key] = value
    return MemoryKeyValueStore(initial)
