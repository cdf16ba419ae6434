"""Runtime counters for the listening loop, the dispatcher, the bus and the LLM client."""

from __future__ import annotations

import json
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class AssistantMetrics:
    """Raw counters; read through MetricsCollector.get_metrics_summary()."""

    utterances_finalized: int = 0
    commands_matched: int = 0
    commands_ignored: int = 0

    llm_requests: int = 0
    llm_failures: int = 0
    llm_total_tokens: int = 0
    llm_latencies: deque[float] = field(default_factory=lambda: deque(maxlen=200))

    bus_publishes: int = 0
    bus_publish_failures: int = 0
    bus_reconnections: int = 0

    messages_dispatched: int = 0
    messages_rejected: int = 0

    uptime_start: datetime = field(default_factory=datetime.now)


class MetricsCollector:
    """Thread-safe counter updates.

    The main loop, the bus task and the worker threads all report here, so
    every mutation happens under one lock.
    """

    def __init__(self, name: str):
        self.name = name
        self.metrics = AssistantMetrics()
        self._lock = threading.Lock()
        self._logger = logging.getLogger(f"{__name__}.{name}")

    def record_utterance(self, outcome: str) -> None:
        """Record a finalized utterance.

        Args:
            outcome: 'matched', 'ignored' or anything else for plain utterances
        """
        with self._lock:
            self.metrics.utterances_finalized += 1
            if outcome == "matched":
                self.metrics.commands_matched += 1
            elif outcome == "ignored":
                self.metrics.commands_ignored += 1

    def record_llm_request(self, success: bool, duration: float | None = None, total_tokens: int = 0) -> None:
        with self._lock:
            self.metrics.llm_requests += 1
            if not success:
                self.metrics.llm_failures += 1
            self.metrics.llm_total_tokens += total_tokens
            if duration is not None:
                self.metrics.llm_latencies.append(duration)

    def record_bus_event(self, event: str, success: bool = True) -> None:
        """Record bus activity.

        Args:
            event: 'publish' or 'reconnection'
            success: Whether a publish went through
        """
        with self._lock:
            if event == "publish":
                if success:
                    self.metrics.bus_publishes += 1
                else:
                    self.metrics.bus_publish_failures += 1
            elif event == "reconnection":
                self.metrics.bus_reconnections += 1

    def record_dispatch(self, accepted: bool) -> None:
        with self._lock:
            if accepted:
                self.metrics.messages_dispatched += 1
            else:
                self.metrics.messages_rejected += 1

    def get_metrics_summary(self) -> dict[str, Any]:
        with self._lock:
            now = datetime.now()
            latencies = list(self.metrics.llm_latencies)
            avg_latency = sum(latencies) / len(latencies) if latencies else 0
            total_publishes = self.metrics.bus_publishes + self.metrics.bus_publish_failures

            return {
                "name": self.name,
                "timestamp": now.isoformat(),
                "uptime_seconds": (now - self.metrics.uptime_start).total_seconds(),
                "listening": {
                    "utterances": self.metrics.utterances_finalized,
                    "matched": self.metrics.commands_matched,
                    "ignored": self.metrics.commands_ignored,
                },
                "llm": {
                    "requests": self.metrics.llm_requests,
                    "failures": self.metrics.llm_failures,
                    "total_tokens": self.metrics.llm_total_tokens,
                    "avg_latency_ms": avg_latency * 1000,
                },
                "bus": {
                    "publishes": self.metrics.bus_publishes,
                    "publish_failures": self.metrics.bus_publish_failures,
                    "success_rate": self.metrics.bus_publishes / total_publishes if total_publishes else 0,
                    "reconnections": self.metrics.bus_reconnections,
                },
                "dispatcher": {
                    "dispatched": self.metrics.messages_dispatched,
                    "rejected": self.metrics.messages_rejected,
                },
            }

    def export_to_json(self) -> str:
        return json.dumps(self.get_metrics_summary(), indent=2)

    def reset_metrics(self) -> None:
        with self._lock:
            self.metrics = AssistantMetrics()
            self._logger.info("Metrics reset for %s", self.name)
