"""Chat completions client and the conversation it keeps."""

from __future__ import annotations

import logging
import socket
import threading
import time
from collections.abc import Callable
from urllib.parse import urlsplit

import requests
from pydantic import ValidationError

from dawn_assistant.assistant_config import LLMConfig
from dawn_assistant.errors import LLMResponseError, LLMUnavailableError
from dawn_assistant.messages import ChatCompletion, ChatMessage, ImagePart, ImageURL, TextPart
from dawn_assistant.metrics import MetricsCollector

logger = logging.getLogger(__name__)

DEFAULT_PORTS = {"http": 80, "https": 443}


class ConversationHistory:
    """Append-only chat history seeded with the assistant persona.

    Lives for the whole process; nothing is persisted.
    """

    def __init__(self, persona: str) -> None:
        self._messages: list[ChatMessage] = [ChatMessage(role="system", content=persona)]
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._messages)

    def messages(self) -> list[ChatMessage]:
        with self._lock:
            return list(self._messages)

    def append_exchange(self, user_text: str, assistant_text: str) -> None:
        with self._lock:
            self._messages.append(ChatMessage(role="user", content=user_text))
            self._messages.append(ChatMessage(role="assistant", content=assistant_text))


def build_user_message(text: str, image_base64: str | None = None) -> ChatMessage:
    """A plain text message, or a text part plus an inline JPEG when an image is given."""
    if image_base64 is None:
        return ChatMessage(role="user", content=text)
    return ChatMessage(
        role="user",
        content=[
            TextPart(text=text),
            ImagePart(image_url=ImageURL(url=f"data:image/jpeg;base64,{image_base64}")),
        ],
    )


class LLMClient:
    """Blocking client for an OpenAI-compatible chat completions endpoint.

    Every request starts with a short TCP probe of the API host so an
    offline assistant answers quickly instead of waiting for the HTTP
    timeout.
    """

    def __init__(
        self,
        config: LLMConfig,
        metrics: MetricsCollector | None = None,
        post: Callable[..., requests.Response] = requests.post,
        connect: Callable[..., socket.socket] = socket.create_connection,
    ) -> None:
        self.config = config
        self.metrics = metrics
        self._post = post
        self._connect = connect

    def probe(self) -> bool:
        """True when the API host accepts a TCP connection within the probe timeout."""
        parts = urlsplit(self.config.base_url)
        host = parts.hostname
        if host is None:
            logger.error("LLM base URL has no host: %s", self.config.base_url)
            return False
        port = parts.port or DEFAULT_PORTS.get(parts.scheme, 80)
        try:
            with self._connect((host, port), timeout=self.config.probe_timeout):
                return True
        except OSError as err:
            logger.warning("LLM host %s:%d unreachable: %s", host, port, err)
            return False

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        api_key = self.config.resolved_api_key
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        return headers

    def request(self, history: ConversationHistory, user_text: str, image_base64: str | None = None) -> str:
        """Ask the model and record the exchange in ``history``.

        Args:
            history: Conversation so far; extended only when a valid answer arrives
            user_text: What the user said
            image_base64: Optional JPEG, Base64-encoded

        Returns:
            The assistant's reply text

        Raises:
            LLMUnavailableError: The host is unreachable or the request failed in transport
            LLMResponseError: Error status, or a body without ``choices[0].message.content``
        """
        started = time.perf_counter()
        try:
            content, total_tokens = self._exchange(history, user_text, image_base64)
        except (LLMUnavailableError, LLMResponseError):
            if self.metrics:
                self.metrics.record_llm_request(success=False, duration=time.perf_counter() - started)
            raise
        if self.metrics:
            self.metrics.record_llm_request(
                success=True, duration=time.perf_counter() - started, total_tokens=total_tokens
            )
        # Image bytes are not kept; the history stores the spoken request only
        history.append_exchange(user_text, content)
        return content

    def _exchange(self, history: ConversationHistory, user_text: str, image_base64: str | None) -> tuple[str, int]:
        if not self.probe():
            raise LLMUnavailableError(f"Cannot reach {self.config.base_url}")

        messages = [*history.messages(), build_user_message(user_text, image_base64)]
        body = {
            "model": self.config.model,
            "messages": [message.model_dump(mode="json") for message in messages],
            "max_tokens": self.config.max_tokens,
        }
        try:
            response = self._post(
                self.config.chat_url, headers=self._headers(), json=body, timeout=self.config.request_timeout
            )
        except requests.RequestException as err:
            raise LLMUnavailableError(f"Chat request failed: {err}") from err

        if response.status_code != requests.codes.ok:
            raise LLMResponseError(f"Chat request returned HTTP {response.status_code}: {response.text[:200]}")
        try:
            completion = ChatCompletion.model_validate_json(response.content)
        except ValidationError as err:
            raise LLMResponseError(f"Unexpected chat response: {err}") from err

        choice = completion.choices[0]
        if choice.finish_reason not in (None, "stop"):
            logger.warning("Chat response finished with reason '%s'", choice.finish_reason)
        total_tokens = completion.usage.total_tokens if completion.usage else 0
        logger.info("LLM answered using %d tokens", total_tokens)
        return choice.message.content, total_tokens
