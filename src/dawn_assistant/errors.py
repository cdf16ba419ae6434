"""Exception types raised across the assistant.

Initialization errors (configuration, recognizer model, rejected bus
subscription) are fatal and propagate to the command line entry point.
Runtime errors are caught at the component that owns the resource and
turned into log lines or spoken feedback.
"""


class AssistantError(Exception):
    """Base class for every error raised by the assistant."""


class CatalogConfigError(AssistantError):
    """The command catalog configuration is malformed or missing required fields."""


class AudioDeviceError(AssistantError):
    """An audio stream could not be opened, read or written."""


class RecognizerError(AssistantError):
    """The speech recognizer could not be created."""


class LLMError(AssistantError):
    """Base class for language model failures."""


class LLMUnavailableError(LLMError):
    """The API host did not accept a connection or the request failed in transport."""


class LLMResponseError(LLMError):
    """The API answered with an error status or an unexpected JSON shape."""


class BusError(AssistantError):
    """The message bus rejected the subscription."""
