"""What happens to a finished command: catalog publish, ignore, or ask the LLM."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from enum import Enum

from dawn_assistant.catalog.matching import CommandMatcher
from dawn_assistant.errors import LLMError
from dawn_assistant.llm_client import ConversationHistory, LLMClient
from dawn_assistant.speech.tts import TextToSpeech

logger = logging.getLogger(__name__)

Publisher = Callable[[str, str], Awaitable[bool]]


class RouteOutcome(str, Enum):
    MATCHED = "matched"
    IGNORED = "ignored"
    ANSWERED = "answered"
    UNAVAILABLE = "unavailable"


def normalize_utterance(text: str) -> str:
    """Lowercase, trimmed, without trailing punctuation."""
    return text.strip().lower().rstrip(".!?,").strip()


class CommandRouter:
    """Resolves one command in priority order.

    1. First matching row of the command table: render and publish it.
    2. A phrase from the ignore list: do nothing.
    3. Anything else goes to the LLM and the answer is spoken.
    """

    def __init__(
        self,
        matcher: CommandMatcher,
        publish: Publisher,
        tts: TextToSpeech,
        llm: LLMClient,
        history: ConversationHistory,
        ignore_words: list[str],
        apology: str,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        self.matcher = matcher
        self.tts = tts
        self.llm = llm
        self.history = history
        self.ignore_words = {normalize_utterance(word) for word in ignore_words}
        self.apology = apology
        self._publish = publish
        self._clock = clock

    async def route(self, command: str) -> RouteOutcome:
        match = self.matcher.match(command)
        if match is not None:
            payload = match.payload(self._clock())
            logger.info("Matched '%s' -> %s on %s", command, payload, match.topic)
            await self._publish(match.topic, payload)
            return RouteOutcome.MATCHED

        if normalize_utterance(command) in self.ignore_words:
            logger.info("Ignoring '%s'", command)
            return RouteOutcome.IGNORED

        logger.info("No command matched '%s', asking the LLM", command)
        try:
            answer = await asyncio.to_thread(self.llm.request, self.history, command)
        except LLMError as err:
            logger.error("LLM request failed: %s", err)
            self.tts.speak(self.apology)
            return RouteOutcome.UNAVAILABLE
        self.tts.speak(answer)
        return RouteOutcome.ANSWERED
