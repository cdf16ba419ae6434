import json
from datetime import datetime

import pytest

from dawn_assistant.catalog.matching import (
    CommandMatcher,
    extract_value,
    render_command,
    wildcard_to_regex,
)
from dawn_assistant.catalog.models import CompiledCommand

ROWS = [
    CompiledCommand(
        wildcard_pattern="turn on the map",
        extract_pattern="turn on the map",
        command_template='{"device":"map","action":"enable"}',
        topic="hud",
    ),
    CompiledCommand(
        wildcard_pattern="set the volume to *",
        extract_pattern="set the volume to %value%",
        command_template='{"device":"volume","action":"set","value":"%value%"}',
        topic="dawn",
    ),
    CompiledCommand(
        wildcard_pattern="set * as the volume",
        extract_pattern="set %value% as the volume",
        command_template='{"device":"volume","action":"set","value":"%value%"}',
        topic="dawn",
    ),
    CompiledCommand(
        wildcard_pattern="what time is it",
        extract_pattern="what time is it",
        command_template='{"device":"time","action":"get","datetime":"%datetime%"}',
        topic="dawn",
    ),
]


@pytest.fixture
def matcher():
    return CommandMatcher(ROWS)


def test_wildcard_matches_zero_or_more_characters():
    pattern = wildcard_to_regex("play *")
    assert pattern.match("play beethoven")
    assert pattern.match("play ")
    assert not pattern.match("pla")


def test_wildcard_allows_trailing_text_and_ignores_case():
    pattern = wildcard_to_regex("turn on the map")
    assert pattern.match("Turn on the map please")
    assert not pattern.match("please turn on the map")


def test_wildcard_escapes_regex_characters():
    pattern = wildcard_to_regex("what is 2+2?")
    assert pattern.match("what is 2+2?")
    assert not pattern.match("what is 22")


def test_first_matching_row_wins(matcher):
    match = matcher.match("turn on the map")
    assert match is not None
    assert match.topic == "hud"
    assert match.value == ""
    assert match.payload() == '{"device":"map","action":"enable"}'


def test_no_match(matcher):
    assert matcher.match("tell me a joke about silicon") is None


def test_trailing_value_takes_the_remainder(matcher):
    match = matcher.match("set the volume to one point five")
    assert match.value == "one point five"
    assert json.loads(match.payload()) == {"device": "volume", "action": "set", "value": "one point five"}


def test_inner_value_is_a_single_word(matcher):
    match = matcher.match("set loud as the volume")
    assert match.value == "loud"


def test_datetime_resolved_when_rendered(matcher):
    match = matcher.match("what time is it")
    payload = match.payload(datetime(2024, 5, 17, 14, 30, 5))
    assert payload == '{"device":"time","action":"get","datetime":"20240517_143005"}'


def test_extract_value_without_placeholder():
    assert extract_value("turn on the map", "turn on the map") == ""


def test_extract_value_scan_failure_gives_empty():
    assert extract_value("set %value% as the volume", "reset everything") == ""


def test_rendered_value_is_json_escaped():
    payload = render_command('{"value":"%value%"}', 'say "hi"')
    assert json.loads(payload) == {"value": 'say "hi"'}


def test_matcher_length(matcher):
    assert len(matcher) == len(ROWS)
