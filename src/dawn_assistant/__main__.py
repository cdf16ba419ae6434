"""Command line entry point: ``dawn-assistant`` or ``python -m dawn_assistant``."""

from __future__ import annotations

import argparse
import asyncio
import os
import sys

from pydantic import ValidationError

from dawn_assistant.assistant import Assistant
from dawn_assistant.assistant_config import load_assistant_config
from dawn_assistant.assistant_logger import AssistantLogger
from dawn_assistant.errors import AssistantError


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="dawn-assistant", description="Voice assistant with an MQTT command bus.")
    parser.add_argument("-c", "--capture", metavar="DEVICE", help="capture device name or backend identifier")
    parser.add_argument("-d", "--playback", metavar="DEVICE", help="playback device name or backend identifier")
    parser.add_argument(
        "--config",
        metavar="PATH",
        default=os.getenv("DAWN_CONFIG"),
        help="YAML settings file or directory (default: $DAWN_CONFIG, then ./config, then built-in defaults)",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    # Module loggers below this one propagate into its RichHandler
    logger = AssistantLogger.get_logger("dawn_assistant")

    try:
        config = load_assistant_config(args.config)
        assistant = Assistant(config, capture_device=args.capture, playback_device=args.playback)
        asyncio.run(assistant.run())
    except (FileNotFoundError, ValidationError) as err:
        logger.critical("Invalid settings: %s", err)
        return 1
    except AssistantError as err:
        logger.critical("Startup failed: %s", err)
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
