#!/usr/bin/env python3

"""
Event records and the in-process bus that carries them.

Execution backends publish lifecycle events on ``STREAM_CHANNEL`` and
content events on ``CONTENT_CHANNEL``. Every subscriber of a channel sees
every event; consumers filter by correlation id.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)

STREAM_CHANNEL = "ai-stream"
CONTENT_CHANNEL = "ai-content"

LIFECYCLE_KINDS = ("stdout", "stderr", "complete", "error", "cancelled")
CONTENT_KINDS = ("thinking_start", "thinking_delta", "text_delta", "block_stop")


@dataclass(frozen=True)
class LifecycleEvent:
    correlation_id: str
    kind: str
    text: str = ""


@dataclass(frozen=True)
class ContentEvent:
    correlation_id: str
    kind: str
    text: str = ""


Handler = Callable[[Any], None]


class DispatchError(Exception):
    """Raised by a backend when a command cannot be started."""


class EventBus:
    """Thread-safe fan-out of events to the subscribers of a channel."""

    def __init__(self):
        self._subscribers: Dict[str, List[Handler]] = {}
        self._lock = threading.Lock()

    def subscribe(self, channel: str, handler: Handler) -> Callable[[], None]:
        """
        Registers a handler for a channel.

        Args:
            channel: Channel name
            handler: Called with each event published on the channel

        Returns:
            Callable that removes the handler; calling it again does nothing
        """
        with self._lock:
            self._subscribers.setdefault(channel, []).append(handler)

        def unsubscribe() -> None:
            with self._lock:
                handlers = self._subscribers.get(channel, [])
                if handler in handlers:
                    handlers.remove(handler)

        return unsubscribe

    def publish(self, channel: str, event: Any) -> None:
        with self._lock:
            handlers = list(self._subscribers.get(channel, []))
        logger.debug("Publishing %s on %s to %d subscriber(s)", type(event).__name__, channel, len(handlers))
        for handler in handlers:
            handler(event)

    def subscriber_count(self, channel: str) -> int:
        with self._lock:
            return len(self._subscribers.get(channel, []))


class ExecutionBackend(Protocol):
    """Starts external commands and publishes their output on an EventBus."""

    def start(self, command: str, args: Sequence[str], stdin_input: Optional[str], correlation_id: str) -> str:
        ...

    def cancel(self, correlation_id: str) -> None:
        ...
