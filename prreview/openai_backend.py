#!/usr/bin/env python3

import logging
import threading
from typing import Dict, Optional, Sequence

from prreview.events import (
    CONTENT_CHANNEL,
    STREAM_CHANNEL,
    ContentEvent,
    DispatchError,
    EventBus,
    LifecycleEvent,
)

logger = logging.getLogger(__name__)

SYSTEM_MESSAGE = (
    "You are a Senior Software Engineer and have assigned reviewer for this PR. "
    "Provide specific, actionable feedback that helps improve code quality."
)


class AzureOpenAIBackend:
    """
    Execution backend for Azure OpenAI chat completions.

    ``command`` is the deployment name and the prompt is the piped input.
    Each completion streams on its own worker thread; its deltas are
    published as ``text_delta`` content events, followed by ``block_stop``
    and a ``complete`` lifecycle event.
    """

    def __init__(
        self,
        client,
        bus: EventBus,
        system_message: str = SYSTEM_MESSAGE,
        temperature: float = 0.3,
        max_tokens: int = 4000,
        timeout: float = 120,
    ):
        self.client = client
        self.bus = bus
        self.system_message = system_message
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.timeout = timeout
        self._running: Dict[str, threading.Event] = {}
        self._lock = threading.Lock()

    def start(self, command: str, args: Sequence[str], stdin_input: Optional[str], correlation_id: str) -> str:
        if not stdin_input:
            raise DispatchError(f"No prompt given for deployment {command}")

        cancel_event = threading.Event()
        with self._lock:
            if correlation_id in self._running:
                raise DispatchError(f"Stream {correlation_id} is already running")
            self._running[correlation_id] = cancel_event

        worker = threading.Thread(
            target=self._run,
            args=(command, stdin_input, correlation_id, cancel_event),
            name=f"ai-stream-{correlation_id[:8]}",
            daemon=True,
        )
        worker.start()
        return correlation_id

    def cancel(self, correlation_id: str) -> None:
        with self._lock:
            cancel_event = self._running.pop(correlation_id, None)
        if cancel_event is None:
            return
        cancel_event.set()
        self.bus.publish(STREAM_CHANNEL, LifecycleEvent(correlation_id, "cancelled", "Process cancelled by user"))

    def is_running(self, correlation_id: str) -> bool:
        with self._lock:
            return correlation_id in self._running

    def _run(self, deployment: str, prompt: str, correlation_id: str, cancel_event: threading.Event) -> None:
        messages = [
            {"role": "system", "content": self.system_message},
            {"role": "user", "content": prompt},
        ]

        logger.info("Sending request to Azure OpenAI deployment %s", deployment)
        try:
            stream = self.client.chat.completions.create(
                model=deployment,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                timeout=self.timeout,
                stream=True,
            )
            for chunk in stream:
                if cancel_event.is_set():
                    stream.close()
                    return
                for choice in chunk.choices:
                    text = choice.delta.content if choice.delta else None
                    if text:
                        self.bus.publish(CONTENT_CHANNEL, ContentEvent(correlation_id, "text_delta", text))
        except Exception as e:
            logger.error("Error during Azure OpenAI API call: %s", e)
            if self._release(correlation_id, cancel_event):
                self.bus.publish(STREAM_CHANNEL, LifecycleEvent(correlation_id, "error", f"Azure OpenAI request failed: {e}"))
            return

        if self._release(correlation_id, cancel_event):
            self.bus.publish(CONTENT_CHANNEL, ContentEvent(correlation_id, "block_stop"))
            self.bus.publish(STREAM_CHANNEL, LifecycleEvent(correlation_id, "complete", "Stream finished"))

    def _release(self, correlation_id: str, cancel_event: threading.Event) -> bool:
        # False when the stream was cancelled meanwhile; cancel() already reported it.
        with self._lock:
            if self._running.get(correlation_id) is cancel_event:
                del self._running[correlation_id]
                return True
        return False
