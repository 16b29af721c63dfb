"""
Logging for KaptWatch.

Everything logs under the ``kaptwatch`` logger namespace:
- terminal output goes through Rich (markup-escaped, run id prefix)
- the log file receives one JSON object per line
- ``ContextualLogger`` stamps sync-run context onto every record
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any

import orjson
from rich.markup import escape

if TYPE_CHECKING:
    from rich.console import Console

    from kaptwatch.core.config.models import LoggingConfig


ROOT_LOGGER = "kaptwatch"

# LogRecord attributes copied into JSON lines when present
CONTEXT_FIELDS = ("run_id", "trigger", "page", "url", "bid_id")

LEVEL_STYLES = {
    logging.DEBUG: "dim",
    logging.INFO: "default",
    logging.WARNING: "yellow",
    logging.ERROR: "red",
    logging.CRITICAL: "bold red",
}

PLAIN_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def json_dumps(obj: Any) -> str:
    return orjson.dumps(obj, default=str).decode("utf-8")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with any sync-run context attached."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.utcnow().isoformat() + "Z",
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update({
            key: getattr(record, key)
            for key in CONTEXT_FIELDS
            if hasattr(record, key)
        })
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json_dumps(payload)


class RichConsoleHandler(logging.Handler):
    """Prints records to a Rich console, colored by level."""

    def __init__(self, console: "Console | None" = None, level: int = logging.INFO):
        super().__init__(level)
        if console is None:
            from rich.console import Console
            console = Console(stderr=True)
        self.console = console

    def emit(self, record: logging.LogRecord) -> None:
        try:
            # Notice titles carry "[서울]" style tags; keep them out of markup
            text = escape(self.format(record))
            style = LEVEL_STYLES.get(record.levelno, "default")
            run_id = getattr(record, "run_id", None)
            prefix = f"[cyan]\\[{escape(str(run_id))}][/cyan] " if run_id else ""

            self.console.print(f"{prefix}[{style}]{text}[/{style}]")
            if record.exc_info:
                self.console.print_exception()
        except Exception:
            self.handleError(record)


def _console_handler(rich_console: bool, level: int) -> logging.Handler:
    if rich_console:
        handler: logging.Handler = RichConsoleHandler(level=level)
        handler.setFormatter(logging.Formatter("%(message)s"))
    else:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT))
        handler.setLevel(level)
    return handler


def _file_handler(log_file: Path | str, json_format: bool) -> logging.Handler:
    path = Path(log_file)
    path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(logging.DEBUG)
    if json_format:
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(PLAIN_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    return handler


def setup_logging(
    level: str = "INFO",
    log_file: Path | str | None = None,
    json_format: bool = True,
    rich_console: bool = True,
) -> logging.Logger:
    """Configure the ``kaptwatch`` logger.

    Replaces any handlers from an earlier call. The file handler, when
    a file is given, records every level regardless of ``level``.

    Returns:
        The configured ``kaptwatch`` logger
    """
    numeric_level = getattr(logging, level.upper())

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel(numeric_level)
    root.handlers.clear()

    root.addHandler(_console_handler(rich_console, numeric_level))
    if log_file:
        root.addHandler(_file_handler(log_file, json_format))

    return root


def setup_logging_from_config(config: LoggingConfig) -> logging.Logger:
    """Configure logging from the ``logging`` section of app.yaml."""
    return setup_logging(
        level=config.level,
        log_file=config.file,
        json_format=config.json_format,
        rich_console=config.rich_console,
    )


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger named ``kaptwatch.<name>`` (or the root ``kaptwatch`` logger)."""
    return logging.getLogger(f"{ROOT_LOGGER}.{name}" if name else ROOT_LOGGER)


class ContextualLogger(logging.LoggerAdapter):
    """Adapter that attaches the sync run id and trigger to each record."""

    def __init__(
        self,
        logger: logging.Logger,
        run_id: str | None = None,
        trigger: str | None = None,
    ):
        super().__init__(logger, {})
        self.run_id = run_id
        self.trigger = trigger

    def process(self, msg: str, kwargs: dict[str, Any]) -> tuple[str, dict[str, Any]]:
        context = {"run_id": self.run_id, "trigger": self.trigger}
        extra = dict(kwargs.get("extra") or {})
        extra.update({key: value for key, value in context.items() if value})
        kwargs["extra"] = extra
        return msg, kwargs

    def with_context(
        self,
        run_id: str | None = None,
        trigger: str | None = None,
    ) -> "ContextualLogger":
        """Copy of this adapter with some context replaced."""
        return ContextualLogger(
            self.logger,
            run_id=run_id or self.run_id,
            trigger=trigger or self.trigger,
        )


def get_contextual_logger(
    name: str | None = None,
    run_id: str | None = None,
    trigger: str | None = None,
) -> ContextualLogger:
    return ContextualLogger(get_logger(name), run_id=run_id, trigger=trigger)
