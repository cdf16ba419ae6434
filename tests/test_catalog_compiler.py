import copy
import json

import pytest

from dawn_assistant.audio.devices import AudioDeviceKind
from dawn_assistant.catalog import compiler
from dawn_assistant.catalog.models import CatalogFile
from dawn_assistant.errors import CatalogConfigError

CATALOG = {
    "types": {
        "boolean": {
            "actions": {
                "enable": {
                    "action_words": ["turn on the %device_name%", "enable the %device_name%"],
                    "action_command": '{"device":"%device_name%","action":"enable"}',
                },
                "disable": {
                    "action_words": ["turn off the %device_name%"],
                    "action_command": '{"device":"%device_name%","action":"disable"}',
                },
            }
        },
        "analog": {
            "actions": {
                "set": {
                    "action_words": ["set the %device_name% to %value%"],
                    "action_command": '{"device":"%device_name%","action":"set","value":"%value%"}',
                }
            }
        },
        "getter": {
            "actions": {
                "get": {
                    "action_words": ["what %device_name% is it"],
                    "action_command": '{"device":"%device_name%","action":"get","datetime":"%datetime%"}',
                }
            }
        },
    },
    "devices": {
        "map": {"type": "boolean", "aliases": ["hud map"], "topic": "hud"},
        "lamp": {"type": "boolean", "topic": "home/lamp", "unit": "on/off"},
        "volume": {"type": "analog", "topic": "dawn"},
        "time": {"type": "getter", "topic": "dawn"},
        "date": {"type": "getter", "topic": "dawn"},
    },
    "audio devices": {
        "speakers": {"type": "audio playback device", "aliases": ["speaker"], "device": "alsa_output.speakers"},
        "microphone": {"type": "audio capture device", "device": "alsa_input.mic"},
    },
}


@pytest.fixture
def catalog_data():
    return copy.deepcopy(CATALOG)


@pytest.fixture
def catalog(catalog_data):
    return compiler.compile_catalog(compiler.parse_catalog(json.dumps(catalog_data)))


def expected_row_count(data: dict) -> int:
    total = 0
    for type_name, type_spec in data["types"].items():
        words = sum(len(action["action_words"]) for action in type_spec["actions"].values())
        names = sum(
            1 + len(device.get("aliases", [])) for device in data["devices"].values() if device["type"] == type_name
        )
        total += words * names
    return total


def test_row_count_matches_expansion(catalog, catalog_data):
    expected_rows = 12
    assert expected_row_count(catalog_data) == expected_rows
    assert len(catalog.commands) == expected_rows


def test_rows_keep_the_device_topic(catalog):
    topics = {row.command_template: row.topic for row in catalog.commands}
    assert topics['{"device":"map","action":"enable"}'] == "hud"
    assert topics['{"device":"lamp","action":"disable"}'] == "home/lamp"
    assert topics['{"device":"volume","action":"set","value":"%value%"}'] == "dawn"


def test_every_row_topic_belongs_to_its_device(catalog):
    for action_type in catalog.action_types:
        for device in action_type.devices:
            rows = [row for row in catalog.commands if f'"device":"{device.name}"' in row.command_template]
            assert rows
            assert all(row.topic == device.topic for row in rows)


def test_expansion_order(catalog):
    first_rows = [row.wildcard_pattern for row in catalog.commands[:6]]
    assert first_rows == [
        "turn on the map",
        "turn on the hud map",
        "turn on the lamp",
        "enable the map",
        "enable the hud map",
        "enable the lamp",
    ]


def test_alias_rows_publish_canonical_name(catalog):
    alias_row = next(row for row in catalog.commands if row.wildcard_pattern == "turn on the hud map")
    assert alias_row.extract_pattern == "turn on the hud map"
    assert alias_row.command_template == '{"device":"map","action":"enable"}'


def test_value_and_datetime_placeholders(catalog):
    volume_row = next(row for row in catalog.commands if "volume" in row.wildcard_pattern)
    assert volume_row.wildcard_pattern == "set the volume to *"
    assert volume_row.extract_pattern == "set the volume to %value%"

    time_row = next(row for row in catalog.commands if row.wildcard_pattern == "what time is it")
    assert "%datetime%" in time_row.command_template


def test_compiling_twice_is_identical(catalog_data):
    document = json.dumps(catalog_data)
    first = compiler.compile_catalog(compiler.parse_catalog(document))
    second = compiler.compile_catalog(compiler.parse_catalog(document))
    assert first.commands == second.commands


def test_audio_devices_split_by_kind(catalog):
    assert [entry.name for entry in catalog.playback_devices] == ["speakers"]
    assert catalog.playback_devices[0].aliases == ("speaker",)
    assert catalog.playback_devices[0].kind is AudioDeviceKind.PLAYBACK
    assert [entry.identifier for entry in catalog.capture_devices] == ["alsa_input.mic"]


def test_devices_attach_to_their_type(catalog):
    by_name = {action_type.name: action_type for action_type in catalog.action_types}
    assert [device.name for device in by_name["getter"].devices] == ["time", "date"]
    assert by_name["boolean"].devices[1].unit == "on/off"


def test_max_commands_truncates(catalog_data):
    limit = 5
    result = compiler.compile_catalog(compiler.parse_catalog(json.dumps(catalog_data)), max_commands=limit)
    assert len(result.commands) == limit


def test_action_command_object_is_serialized(catalog_data):
    catalog_data["types"]["boolean"]["actions"]["enable"]["action_command"] = {
        "device": "%device_name%",
        "action": "enable",
    }
    result = compiler.compile_catalog(compiler.parse_catalog(json.dumps(catalog_data)))
    assert result.commands[0].command_template == '{"device":"map","action":"enable"}'


@pytest.mark.parametrize(
    "breakage",
    [
        lambda data: data.pop("types"),
        lambda data: data.pop("audio devices"),
        lambda data: data["types"]["boolean"].pop("actions"),
        lambda data: data["types"]["boolean"]["actions"]["enable"].pop("action_words"),
        lambda data: data["types"]["boolean"]["actions"]["enable"].pop("action_command"),
        lambda data: data["devices"]["map"].pop("type"),
        lambda data: data["devices"]["map"].pop("topic"),
        lambda data: data["audio devices"]["speakers"].pop("type"),
        lambda data: data["audio devices"]["speakers"].pop("device"),
    ],
)
def test_missing_required_fields_abort(catalog_data, breakage):
    breakage(catalog_data)
    with pytest.raises(CatalogConfigError):
        compiler.parse_catalog(json.dumps(catalog_data))


def test_unknown_audio_device_type_aborts(catalog_data):
    catalog_data["audio devices"]["speakers"]["type"] = "audio thing"
    with pytest.raises(CatalogConfigError):
        compiler.parse_catalog(json.dumps(catalog_data))


def test_device_with_unknown_type_aborts(catalog_data):
    catalog_data["devices"]["map"]["type"] = "toggle"
    with pytest.raises(CatalogConfigError, match="unknown type 'toggle'"):
        compiler.compile_catalog(compiler.parse_catalog(json.dumps(catalog_data)))


def test_invalid_json_aborts():
    with pytest.raises(CatalogConfigError):
        compiler.parse_catalog("{not json")


def test_load_catalog_from_file(tmp_path, catalog_data):
    path = tmp_path / "commands.json"
    path.write_text(json.dumps(catalog_data))
    result = compiler.load_catalog(path)
    assert len(result.commands) == expected_row_count(catalog_data)


def test_load_catalog_missing_file(tmp_path):
    with pytest.raises(CatalogConfigError):
        compiler.load_catalog(tmp_path / "missing.json")


def test_catalog_file_keeps_section_order(catalog_data):
    parsed = CatalogFile.model_validate(catalog_data)
    assert list(parsed.devices) == ["map", "lamp", "volume", "time", "date"]


class TestSubstitute:
    def test_binds_known_placeholders(self):
        assert compiler.substitute("turn on the %device_name%", {"device_name": "map"}) == "turn on the map"

    def test_unbound_placeholders_are_kept(self):
        template = '{"device":"%device_name%","value":"%value%","at":"%datetime%"}'
        result = compiler.substitute(template, {"device_name": "time"})
        assert result == '{"device":"time","value":"%value%","at":"%datetime%"}'

    def test_stray_percent_before_placeholder(self):
        result = compiler.substitute("50% off %device_name%", {"device_name": "lamp"})
        assert result == "50% off lamp"

    def test_trailing_percent(self):
        assert compiler.substitute("set to %value%%", {"value": "10"}) == "set to 10%"

    def test_substituted_text_is_not_rescanned(self):
        result = compiler.substitute("%device_name%", {"device_name": "%value%", "value": "x"})
        assert result == "%value%"

    def test_idempotent_once_no_placeholder_remains(self):
        bindings = {"device_name": "map", "value": "3"}
        once = compiler.substitute("set %device_name% to %value%", bindings)
        assert compiler.substitute(once, bindings) == once
