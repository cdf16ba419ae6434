"""Streaming speech recognition on top of vosk."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from dawn_assistant.errors import RecognizerError

logger = logging.getLogger(__name__)


def load_vosk_recognizer(model_path: str | Path, sample_rate: int) -> Any:
    """Create a KaldiRecognizer for the model directory."""
    import vosk

    vosk.SetLogLevel(-1)
    try:
        model = vosk.Model(str(model_path))
    except Exception as err:
        raise RecognizerError(f"Cannot load speech model from {model_path}: {err}") from err
    return vosk.KaldiRecognizer(model, sample_rate)


class SpeechRecognizer:
    """Incremental transcription of one utterance at a time.

    ``final_result`` closes the current utterance; the next ``accept``
    starts a new one. Transcripts that cannot be decoded come back as
    ``None`` and are logged.
    """

    def __init__(self, recognizer: Any) -> None:
        self._recognizer = recognizer

    @classmethod
    def from_model(cls, model_path: str | Path, sample_rate: int) -> SpeechRecognizer:
        return cls(load_vosk_recognizer(model_path, sample_rate))

    def accept(self, audio: bytes) -> bool:
        """Feed audio; True when the engine detected an utterance boundary."""
        return bool(self._recognizer.AcceptWaveform(audio))

    def partial_result(self) -> str | None:
        return self._transcript(self._recognizer.PartialResult(), "partial")

    def final_result(self) -> str | None:
        return self._transcript(self._recognizer.FinalResult(), "text")

    def reset(self) -> None:
        self._recognizer.Reset()

    @staticmethod
    def _transcript(document: str | None, key: str) -> str | None:
        if not document:
            logger.warning("Recognizer returned no result")
            return None
        try:
            text = json.loads(document).get(key)
        except (json.JSONDecodeError, AttributeError) as err:
            logger.warning("Unreadable recognizer result %r: %s", document, err)
            return None
        if text is None:
            logger.warning("Recognizer result has no '%s' field: %s", key, document)
            return None
        return text.strip()
