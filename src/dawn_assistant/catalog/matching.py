"""Match transcripts against the compiled command table and render payloads."""

from __future__ import annotations

import json
import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from dawn_assistant.catalog.compiler import DATETIME, VALUE, VALUE_CAPTURE, WILDCARD, substitute
from dawn_assistant.catalog.models import CompiledCommand

DATETIME_FORMAT = "%Y%m%d_%H%M%S"


def wildcard_to_regex(pattern: str) -> re.Pattern:
    """Convert a glob-style command pattern to a regular expression.

    Args:
        pattern: Pattern where '*' matches zero or more characters

    Returns:
        Case-insensitive pattern anchored at the start. Trailing text after
        the pattern is allowed, so "turn on the map" also matches
        "turn on the map please".

    Examples:
        wildcard_to_regex('set the volume to *') matches 'set the volume to one point five'
    """
    escaped = re.escape(pattern).replace(re.escape(WILDCARD), ".*")
    return re.compile(f"^{escaped}.*$", re.IGNORECASE | re.DOTALL)


def _scan_pattern(extract_pattern: str) -> re.Pattern:
    # Literal text must match from the start; whitespace matches any run of
    # whitespace and the value is one whitespace-delimited word.
    prefix, _, suffix = extract_pattern.partition(VALUE_CAPTURE)

    def literal(text: str) -> str:
        return r"\s*".join(re.escape(part) for part in re.split(r"\s+", text))

    return re.compile(f"^{literal(prefix)}(?P<value>\\S+){literal(suffix)}", re.IGNORECASE)


def extract_value(extract_pattern: str, text: str) -> str:
    """Pull the spoken value out of a transcript that matched the row.

    A pattern ending in the value placeholder takes everything after the
    literal prefix. Otherwise the value is a single word parsed in place.
    Returns an empty string when the pattern has no value or nothing is found.
    """
    if VALUE_CAPTURE not in extract_pattern:
        return ""
    if extract_pattern.endswith(VALUE_CAPTURE):
        prefix = extract_pattern[: -len(VALUE_CAPTURE)]
        index = text.lower().find(prefix.lower())
        if index == -1:
            return ""
        return text[index + len(prefix) :].strip()
    match = _scan_pattern(extract_pattern).match(text)
    return match.group("value") if match else ""


def render_command(command_template: str, value: str, now: datetime | None = None) -> str:
    """Bind the value and the current timestamp into a payload template."""
    now = now or datetime.now()
    # The value lands inside a JSON string literal
    escaped_value = json.dumps(value)[1:-1]
    return substitute(command_template, {VALUE: escaped_value, DATETIME: now.strftime(DATETIME_FORMAT)})


@dataclass(frozen=True)
class CommandMatch:
    command: CompiledCommand
    value: str

    @property
    def topic(self) -> str:
        return self.command.topic

    def payload(self, now: datetime | None = None) -> str:
        return render_command(self.command.command_template, self.value, now)


class CommandMatcher:
    """First-hit search over the command table, in table order."""

    def __init__(self, commands: Iterable[CompiledCommand]):
        self._rows = [(wildcard_to_regex(row.wildcard_pattern), row) for row in commands]

    def __len__(self) -> int:
        return len(self._rows)

    def match(self, text: str) -> CommandMatch | None:
        for pattern, row in self._rows:
            if pattern.match(text):
                return CommandMatch(command=row, value=extract_value(row.extract_pattern, text))
        return None
