"""Tests for the rich logger factory and its handler cache."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from unittest.mock import patch

from rich.console import Console

from dawn_assistant.assistant_logger import AssistantLogger, LoggerConfig


class TestAssistantLoggerCaching:
    """Handlers, formatters and consoles are built once and shared."""

    def setup_method(self):
        AssistantLogger.clear_cache()

    def test_handler_reused_for_same_configuration(self):
        logger1 = AssistantLogger.get_logger("caching.same1")
        logger2 = AssistantLogger.get_logger("caching.same2")

        assert logger1.handlers[0] is logger2.handlers[0]
        cache_stats = AssistantLogger.get_cache_stats()
        assert cache_stats["handlers_cached"] == 1
        assert cache_stats["formatters_cached"] == 1
        assert cache_stats["consoles_cached"] == 1

    def test_formatter_per_format_string(self):
        format1 = "[bold blue]%(name)s[/bold blue] - %(message)s"
        format2 = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

        AssistantLogger.get_logger("caching.format1", format_string=format1)
        AssistantLogger.get_logger("caching.format2", format_string=format1)
        AssistantLogger.get_logger("caching.format3", format_string=format2)

        min_formatters = 2
        assert AssistantLogger.get_cache_stats()["formatters_cached"] == min_formatters

    def test_different_configurations_create_different_handlers(self):
        AssistantLogger.get_logger("caching.config1", config=LoggerConfig(show_time=True, show_path=False))
        AssistantLogger.get_logger("caching.config2", config=LoggerConfig(show_time=False, show_path=True))

        min_handlers = 2
        assert AssistantLogger.get_cache_stats()["handlers_cached"] >= min_handlers

    def test_custom_console_is_used(self):
        custom_console = Console()
        logger = AssistantLogger.get_logger("caching.custom", config=LoggerConfig(console=custom_console))

        assert logger.handlers[0].console is custom_console
        assert AssistantLogger.get_cache_stats()["consoles_cached"] == 0

    def test_thread_safety(self):
        def create_loggers(worker_id: int) -> list[str]:
            return [AssistantLogger.get_logger(f"threads.{worker_id}.{i}").name for i in range(10)]

        with ThreadPoolExecutor(max_workers=5) as executor:
            results = [name for names in executor.map(create_loggers, range(5)) for name in names]

        expected_results = 50
        assert len(results) == expected_results
        assert AssistantLogger.get_cache_stats()["handlers_cached"] == 1

    def test_clear_cache(self):
        AssistantLogger.get_logger("caching.clear")
        AssistantLogger.clear_cache()

        assert AssistantLogger.get_cache_stats() == {
            "handlers_cached": 0,
            "formatters_cached": 0,
            "consoles_cached": 0,
        }


class TestAssistantLoggerBehaviour:
    def setup_method(self):
        AssistantLogger.clear_cache()

    def test_level_from_environment(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "DEBUG"}):
            assert AssistantLogger.get_logger("env.debug").level == logging.DEBUG

        with patch.dict("os.environ", {"LOG_LEVEL": "ERROR"}):
            assert AssistantLogger.get_logger("env.error").level == logging.ERROR

    def test_unknown_level_falls_back_to_info(self):
        with patch.dict("os.environ", {"LOG_LEVEL": "CHATTY"}):
            assert AssistantLogger.get_logger("env.unknown").level == logging.INFO

    def test_handler_added_once(self):
        AssistantLogger.get_logger("behaviour.once")
        logger = AssistantLogger.get_logger("behaviour.once")

        assert len(logger.handlers) == 1
        assert logger.handlers[0].__class__.__name__ == "RichHandler"

    def test_child_records_reach_the_handler(self):
        console = Console(record=True, width=120)
        AssistantLogger.get_logger("behaviour.parent", level=logging.INFO, config=LoggerConfig(console=console))

        logging.getLogger("behaviour.parent.listener").info("Heard: %r", "turn on the map")

        assert "turn on the map" in console.export_text()

    def test_create_console(self):
        assert isinstance(AssistantLogger.create_console(width=80), Console)
        with patch.dict("os.environ", {"RICH_NO_COLOR": "1"}):
            assert AssistantLogger.create_console().no_color
