"""Expand the declarative catalog into the flat command table.

Templates use three ``%name%`` placeholders, each bound at a different time:

- ``%device_name%`` at compile time, once for the canonical name and once per alias
- ``%value%`` at match time, from the text the speaker said in its place
- ``%datetime%`` at dispatch time, as a ``YYYYMMDD_HHMMSS`` local timestamp

``substitute`` is the single template primitive used for all three.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from dawn_assistant.audio.devices import AudioDeviceEntry, AudioDeviceKind
from dawn_assistant.catalog.models import (
    ActionType,
    CatalogFile,
    CompiledCommand,
    Device,
    SubAction,
)
from dawn_assistant.errors import CatalogConfigError

logger = logging.getLogger(__name__)

DEVICE_NAME = "device_name"
VALUE = "value"
DATETIME = "datetime"

# Left unbound in extract patterns and command templates; filled in at match time
VALUE_CAPTURE = f"%{VALUE}%"
WILDCARD = "*"

DEFAULT_MAX_COMMANDS = 1000


def substitute(template: str, bindings: Mapping[str, str]) -> str:
    """Replace bound ``%name%`` placeholders in one left-to-right scan.

    Placeholders without a binding, and stray ``%`` characters, are copied
    through unchanged. Substituted text is never rescanned.
    """
    out: list[str] = []
    pos = 0
    while True:
        start = template.find("%", pos)
        if start == -1:
            out.append(template[pos:])
            break
        end = template.find("%", start + 1)
        if end == -1:
            out.append(template[pos:])
            break
        name = template[start + 1 : end]
        if name.isidentifier() and name in bindings:
            out.append(template[pos:start])
            out.append(bindings[name])
            pos = end + 1
        else:
            # Keep the '%' and rescan from the next one, it may open a real placeholder
            out.append(template[pos:end])
            pos = end
    return "".join(out)


@dataclass
class CommandCatalog:
    """Everything produced from one catalog file. Immutable once built."""

    action_types: list[ActionType] = field(default_factory=list)
    commands: tuple[CompiledCommand, ...] = ()
    capture_devices: list[AudioDeviceEntry] = field(default_factory=list)
    playback_devices: list[AudioDeviceEntry] = field(default_factory=list)


def build_action_types(catalog_file: CatalogFile) -> list[ActionType]:
    """Attach every device to the action type it declares."""
    action_types = {
        type_name: ActionType(
            name=type_name,
            sub_actions=[
                SubAction(name=name, action_words=tuple(spec.action_words), action_command=spec.action_command)
                for name, spec in type_spec.actions.items()
            ],
        )
        for type_name, type_spec in catalog_file.types.items()
    }
    for device_name, device_spec in catalog_file.devices.items():
        action_type = action_types.get(device_spec.type)
        if action_type is None:
            raise CatalogConfigError(f"Device '{device_name}' declares unknown type '{device_spec.type}'")
        action_type.devices.append(
            Device(name=device_name, aliases=tuple(device_spec.aliases), topic=device_spec.topic, unit=device_spec.unit)
        )
    return list(action_types.values())


def expand_commands(action_types: list[ActionType], max_commands: int = DEFAULT_MAX_COMMANDS) -> list[CompiledCommand]:
    """Flatten sub-action x action word x device x spoken name into rows.

    Alias rows match on the alias but still publish the canonical device
    name. Expansion stops once ``max_commands`` rows exist.
    """
    commands: list[CompiledCommand] = []
    for action_type in action_types:
        for sub_action in action_type.sub_actions:
            command_template_for = {
                device.name: substitute(sub_action.action_command, {DEVICE_NAME: device.name})
                for device in action_type.devices
            }
            for action_word in sub_action.action_words:
                for device in action_type.devices:
                    for spoken_name in device.spoken_names:
                        if len(commands) >= max_commands:
                            logger.error(
                                "Command table is full at %d rows; dropping the rest of type '%s'",
                                max_commands,
                                action_type.name,
                            )
                            return commands
                        commands.append(
                            CompiledCommand(
                                wildcard_pattern=substitute(action_word, {DEVICE_NAME: spoken_name, VALUE: WILDCARD}),
                                extract_pattern=substitute(action_word, {DEVICE_NAME: spoken_name}),
                                command_template=command_template_for[device.name],
                                topic=device.topic,
                            )
                        )
    return commands


def _audio_devices(catalog_file: CatalogFile, kind: AudioDeviceKind) -> list[AudioDeviceEntry]:
    return [
        AudioDeviceEntry(name=name, aliases=tuple(spec.aliases), identifier=spec.device, kind=kind)
        for name, spec in catalog_file.audio_devices.items()
        if spec.type == kind
    ]


def compile_catalog(catalog_file: CatalogFile, max_commands: int = DEFAULT_MAX_COMMANDS) -> CommandCatalog:
    action_types = build_action_types(catalog_file)
    commands = expand_commands(action_types, max_commands)
    catalog = CommandCatalog(
        action_types=action_types,
        commands=tuple(commands),
        capture_devices=_audio_devices(catalog_file, AudioDeviceKind.CAPTURE),
        playback_devices=_audio_devices(catalog_file, AudioDeviceKind.PLAYBACK),
    )
    logger.info(
        "Compiled %d commands from %d action types, %d capture and %d playback devices",
        len(catalog.commands),
        len(action_types),
        len(catalog.capture_devices),
        len(catalog.playback_devices),
    )
    for row in catalog.commands:
        logger.debug("'%s' -> %s on '%s'", row.wildcard_pattern, row.command_template, row.topic)
    return catalog


def parse_catalog(document: str | bytes) -> CatalogFile:
    try:
        return CatalogFile.model_validate_json(document)
    except ValidationError as err:
        raise CatalogConfigError(f"Invalid command catalog: {err}") from err


def load_catalog(path: str | Path, max_commands: int = DEFAULT_MAX_COMMANDS) -> CommandCatalog:
    """Read, validate and compile a catalog file.

    Raises:
        CatalogConfigError: If the file cannot be read, is not valid JSON or lacks required fields.
    """
    path = Path(path)
    try:
        document = path.read_text(encoding="utf-8")
    except OSError as err:
        logger.error("Cannot read command catalog %s: %s", path, err)
        raise CatalogConfigError(f"Cannot read command catalog {path}") from err
    return compile_catalog(parse_catalog(document), max_commands)
