"""Voice assistant: wake phrase listening, a compiled command catalog and an MQTT dispatcher."""

from .assistant_config import AssistantConfig, LLMConfig, TTSConfig, load_assistant_config, load_config
from .assistant_logger import AssistantLogger, LoggerConfig
from .errors import (
    AssistantError,
    AudioDeviceError,
    BusError,
    CatalogConfigError,
    LLMError,
    LLMResponseError,
    LLMUnavailableError,
    RecognizerError,
)
from .messages import ChatMessage, DeviceCommand, DeviceType

# Single __all__ declaration with all public exports
__all__ = [
    "AssistantConfig",
    "AssistantError",
    "AssistantLogger",
    "AudioDeviceError",
    "BusError",
    "CatalogConfigError",
    "ChatMessage",
    "DeviceCommand",
    "DeviceType",
    "LLMConfig",
    "LLMError",
    "LLMResponseError",
    "LLMUnavailableError",
    "LoggerConfig",
    "RecognizerError",
    "TTSConfig",
    "load_assistant_config",
    "load_config",
]
