"""Data models for the declarative command catalog.

The catalog file is JSON with three top-level sections:

    {
        "types": {
            "boolean": {
                "actions": {
                    "enable": {
                        "action_words": ["turn on the %device_name%", "enable the %device_name%"],
                        "action_command": "{\"device\": \"%device_name%\", \"action\": \"enable\"}"
                    }
                }
            }
        },
        "devices": {
            "map": {"type": "boolean", "aliases": ["hud map"], "topic": "hud"}
        },
        "audio devices": {
            "speakers": {"type": "audio playback device", "aliases": ["speaker"], "device": "combined"}
        }
    }

CatalogFile validates the raw document; ActionType, Device and
CompiledCommand are the structures produced by the compiler.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dawn_assistant.audio.devices import AudioDeviceKind


class SubActionSpec(BaseModel):
    action_words: list[str] = Field(min_length=1)
    action_command: str

    @field_validator("action_command", mode="before")
    @classmethod
    def _command_as_text(cls, value: Any) -> Any:
        # An inline JSON object is accepted and stored in its compact text form
        if isinstance(value, dict):
            return json.dumps(value, separators=(",", ":"))
        return value


class ActionTypeSpec(BaseModel):
    actions: dict[str, SubActionSpec]


class DeviceSpec(BaseModel):
    type: str
    aliases: list[str] = Field(default_factory=list)
    unit: str | None = None
    topic: str = Field(min_length=1)


class AudioDeviceSpec(BaseModel):
    type: AudioDeviceKind
    aliases: list[str] = Field(default_factory=list)
    device: str


class CatalogFile(BaseModel):
    """Raw catalog document. Section and key order is preserved."""

    model_config = ConfigDict(populate_by_name=True)

    types: dict[str, ActionTypeSpec]
    devices: dict[str, DeviceSpec]
    audio_devices: dict[str, AudioDeviceSpec] = Field(alias="audio devices")


@dataclass(frozen=True)
class SubAction:
    name: str
    action_words: tuple[str, ...]
    action_command: str


@dataclass(frozen=True)
class Device:
    name: str
    aliases: tuple[str, ...]
    topic: str
    unit: str | None = None

    @property
    def spoken_names(self) -> tuple[str, ...]:
        """Canonical name first, then every alias."""
        return (self.name, *self.aliases)


@dataclass
class ActionType:
    """A category of commands together with the devices it applies to."""

    name: str
    sub_actions: list[SubAction] = field(default_factory=list)
    devices: list[Device] = field(default_factory=list)


@dataclass(frozen=True)
class CompiledCommand:
    """One searchable row of the command table.

    Attributes:
        wildcard_pattern: Spoken template with the device bound and the value as ``*``
        extract_pattern: Same template with the value as a capture placeholder
        command_template: Payload with the canonical device bound and the value as a capture placeholder
        topic: Bus topic the rendered payload is published on
    """

    wildcard_pattern: str
    extract_pattern: str
    command_template: str
    topic: str
