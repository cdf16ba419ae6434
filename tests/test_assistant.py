from datetime import datetime
from pathlib import Path
from unittest.mock import Mock

import pytest
import yaml

from dawn_assistant.__main__ import main, parse_args
from dawn_assistant.assistant import Assistant, greeting_for
from dawn_assistant.assistant_config import AssistantConfig
from dawn_assistant.catalog.compiler import load_catalog

SHIPPED_CATALOG = Path(__file__).parent.parent / "config" / "commands_config.json"


@pytest.mark.parametrize(
    ("hour", "greeting"),
    [
        (2, "Good evening Sir."),
        (3, "Good morning boss."),
        (11, "Good morning boss."),
        (12, "Good day Sir."),
        (17, "Good day Sir."),
        (18, "Good evening Sir."),
    ],
)
def test_greeting_for(hour, greeting):
    assert greeting_for(datetime(2024, 5, 17, hour, 0)) == greeting


def test_shipped_catalog_compiles():
    catalog = load_catalog(SHIPPED_CATALOG)
    assert catalog.commands
    assert {entry.name for entry in catalog.playback_devices} >= {"speakers"}


def test_assistant_wires_the_shipped_catalog():
    config = AssistantConfig(commands_config_path=SHIPPED_CATALOG)
    assistant = Assistant(config, capture_device="microphone", playback_device="hw:2,0")

    assert assistant.registry.active_capture == assistant.registry.find_capture("microphone")
    assert assistant.registry.active_playback == "hw:2,0"
    match = assistant.matcher.match("turn on the map")
    assert match is not None
    assert match.topic == "hud"


def test_bus_message_before_startup_is_dropped():
    assistant = Assistant(AssistantConfig(commands_config_path=SHIPPED_CATALOG))
    assistant.on_bus_message('{"device":"music","action":"stop"}')
    assistant.dispatcher = Mock()
    assistant.on_bus_message('{"device":"music","action":"stop"}')
    assistant.dispatcher.dispatch.assert_called_once_with('{"device":"music","action":"stop"}')


def test_parse_args():
    args = parse_args(["-c", "helmet", "-d", "speakers", "--config", "settings.yaml"])
    assert args.capture == "helmet"
    assert args.playback == "speakers"
    assert args.config == "settings.yaml"


def test_main_rejects_invalid_settings(tmp_path):
    settings = tmp_path / "assistant.yaml"
    settings.write_text(yaml.dump({"mqtt_server_port": "not_an_int"}))
    assert main(["--config", str(settings)]) == 1


def test_main_rejects_missing_catalog(tmp_path):
    settings = tmp_path / "assistant.yaml"
    settings.write_text(yaml.dump({"commands_config_path": str(tmp_path / "missing.json")}))
    assert main(["--config", str(settings)]) == 1
