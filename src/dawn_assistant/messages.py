"""Message models exchanged on the bus and with the chat completions API."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


# AIDEV-NOTE: Closed vocabulary of "device" tokens understood by the dispatcher
class DeviceType(str, Enum):
    """Device tokens handled locally by the dispatcher."""

    AUDIO_PLAYBACK_DEVICE = "audio playback device"
    AUDIO_CAPTURE_DEVICE = "audio capture device"
    TEXT_TO_SPEECH = "text to speech"
    DATE = "date"
    TIME = "time"
    MUSIC = "music"
    VOICE_AMPLIFIER = "voice amplifier"
    VIEWING = "viewing"
    VOLUME = "volume"


class DeviceCommand(BaseModel):
    """A command payload as published on, and received from, the bus.

    Attributes:
        device: Token selecting the handler (e.g., "music", "time")
        action: Verb for the handler (e.g., "play", "enable", "get")
        value: Optional argument; numbers are accepted and kept as text
    """

    # Getter actions inject extra keys such as "datetime"
    model_config = ConfigDict(extra="allow")

    device: str
    action: str = ""
    value: str | None = None

    @field_validator("value", mode="before")
    @classmethod
    def _value_as_text(cls, value: Any) -> Any:
        if isinstance(value, int | float) and not isinstance(value, bool):
            return str(value)
        return value


class TextPart(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ImageURL(BaseModel):
    url: str


class ImagePart(BaseModel):
    type: Literal["image_url"] = "image_url"
    image_url: ImageURL


class ChatMessage(BaseModel):
    """One entry of the conversation history."""

    role: Literal["system", "user", "assistant"]
    content: str | list[TextPart | ImagePart]


class CompletionMessage(BaseModel):
    content: str


class CompletionChoice(BaseModel):
    message: CompletionMessage
    finish_reason: str | None = None


class CompletionUsage(BaseModel):
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    """The subset of a chat completions response the assistant relies on."""

    choices: list[CompletionChoice] = Field(min_length=1)
    usage: CompletionUsage | None = None
