"""Rich-based logging setup shared by every component of the assistant."""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass
from typing import ClassVar

from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

DEFAULT_FORMAT = "[bold cyan]%(name)s[/bold cyan] - %(message)s"


@dataclass
class LoggerConfig:
    """Options forwarded to the RichHandler."""

    show_time: bool = True
    show_path: bool = False
    rich_tracebacks: bool = True
    console: Console | None = None


class AssistantLogger:
    """Logger factory that reuses one RichHandler per console/level/format.

    The listening loop, the bus task and the audio workers all log from
    different threads, so the handler cache is guarded by a lock.
    """

    # AIDEV-NOTE: Level colours double as a quick visual cue while the assistant is talking over the logs
    _THEME = Theme(
        {
            "logging.level.debug": "dim cyan",
            "logging.level.info": "green",
            "logging.level.warning": "yellow",
            "logging.level.error": "red bold",
            "logging.level.critical": "white on red bold",
            "logging.keyword": "bold magenta",
            "repr.path": "magenta",
            "repr.filename": "bright_magenta",
        }
    )

    _handlers: ClassVar[dict[tuple, RichHandler]] = {}
    _formatters: ClassVar[dict[str, logging.Formatter]] = {}
    _consoles: ClassVar[dict[str, Console]] = {}
    _lock: ClassVar[threading.Lock] = threading.Lock()

    @classmethod
    def get_logger(
        cls,
        name: str,
        level: int | None = None,
        config: LoggerConfig | None = None,
        format_string: str = DEFAULT_FORMAT,
    ) -> logging.Logger:
        """Return a logger wired to a cached RichHandler.

        Args:
            name: Logger name, usually ``__name__``
            level: Explicit level; defaults to the LOG_LEVEL environment variable or INFO
            config: Handler options
            format_string: Message format, rich markup allowed

        Environment Variables:
            LOG_LEVEL: DEBUG, INFO, WARNING, ERROR or CRITICAL
            RICH_NO_COLOR: Disable colours when set
        """
        if level is None:
            level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
        config = config or LoggerConfig()

        logger = logging.getLogger(name)
        logger.setLevel(level)
        if not logger.handlers:
            logger.addHandler(cls._handler_for(config, level, format_string))
        return logger

    @classmethod
    def _handler_for(cls, config: LoggerConfig, level: int, format_string: str) -> RichHandler:
        key = (cls._console_key(config), level, format_string, config.show_time, config.show_path, config.rich_tracebacks)
        with cls._lock:
            handler = cls._handlers.get(key)
            if handler is None:
                handler = RichHandler(
                    console=cls._console_for(config),
                    show_time=config.show_time,
                    show_path=config.show_path,
                    rich_tracebacks=config.rich_tracebacks,
                    tracebacks_show_locals=level <= logging.DEBUG,
                    markup=True,
                )
                handler.setFormatter(cls._formatter_for(format_string))
                cls._handlers[key] = handler
            return handler

    @classmethod
    def _console_for(cls, config: LoggerConfig) -> Console:
        # Called with the lock held.
        if config.console is not None:
            return config.console
        key = cls._console_key(config)
        if key not in cls._consoles:
            cls._consoles[key] = cls.create_console()
        return cls._consoles[key]

    @classmethod
    def _formatter_for(cls, format_string: str) -> logging.Formatter:
        # Called with the lock held.
        if format_string not in cls._formatters:
            cls._formatters[format_string] = logging.Formatter(fmt=format_string, datefmt="[%X]")
        return cls._formatters[format_string]

    @staticmethod
    def _console_key(config: LoggerConfig) -> str:
        if config.console is not None:
            return f"custom_{id(config.console)}"
        return f"default_{os.getenv('RICH_NO_COLOR', 'None')}"

    @classmethod
    def create_console(cls, **console_kwargs) -> Console:
        """Build a Console using the assistant theme."""
        return Console(theme=cls._THEME, no_color=os.getenv("RICH_NO_COLOR") is not None, **console_kwargs)

    @classmethod
    def clear_cache(cls) -> None:
        with cls._lock:
            cls._handlers.clear()
            cls._formatters.clear()
            cls._consoles.clear()

    @classmethod
    def get_cache_stats(cls) -> dict[str, int]:
        with cls._lock:
            return {
                "handlers_cached": len(cls._handlers),
                "formatters_cached": len(cls._formatters),
                "consoles_cached": len(cls._consoles),
            }
