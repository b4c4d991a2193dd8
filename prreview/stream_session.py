#!/usr/bin/env python3

import logging
import threading
import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Sequence

from prreview.events import (
    CONTENT_CHANNEL,
    STREAM_CHANNEL,
    ContentEvent,
    EventBus,
    ExecutionBackend,
    LifecycleEvent,
)
from prreview.models import Invocation

logger = logging.getLogger(__name__)

CANCELLED_MESSAGE = "Review cancelled"


def _ignore(*_args) -> None:
    return None


@dataclass
class StreamCallbacks:
    """Caller hooks; exactly one of on_complete/on_error fires per session."""
    on_thinking_start: Callable[[], None] = _ignore
    on_thinking_delta: Callable[[str], None] = _ignore
    on_text_delta: Callable[[str], None] = _ignore
    on_block_stop: Callable[[], None] = _ignore
    on_complete: Callable[[str], None] = _ignore
    on_error: Callable[[str], None] = _ignore


class SessionState(str, Enum):
    STARTING = "starting"
    OPEN = "open"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class AIStreamSession:
    """
    Consumes the events of one external invocation and resolves it exactly once.

    The session subscribes to both channels before dispatching the command,
    ignores events for other correlation ids, accumulates text and stderr,
    and finalizes on the first terminal signal (complete, error, cancelled
    or a local cancel). Later terminal signals are absorbed.
    """

    def __init__(
        self,
        backend: ExecutionBackend,
        bus: EventBus,
        callbacks: Optional[StreamCallbacks] = None,
        correlation_id: Optional[str] = None,
    ):
        self.backend = backend
        self.bus = bus
        self.callbacks = callbacks or StreamCallbacks()
        self.correlation_id = correlation_id or str(uuid.uuid4())
        self.state = SessionState.STARTING
        self._output: List[str] = []
        self._stderr: List[str] = []
        self._unsubscribers: List[Callable[[], None]] = []
        self._finalized = False
        self._guard = threading.Lock()

    @property
    def output(self) -> str:
        return "".join(self._output)

    @property
    def stderr_output(self) -> str:
        return "".join(self._stderr)

    @property
    def finalized(self) -> bool:
        return self._finalized

    def start(self, command: str, args: Sequence[str], stdin_input: Optional[str] = None) -> bool:
        """
        Subscribes to the event channels and dispatches the command.

        A dispatch failure finalizes the session as failed and reports it
        through on_error before this method returns.

        Args:
            command: External command (or model deployment) name
            args: Command arguments
            stdin_input: Optional text piped to the command

        Returns:
            True if the command was dispatched
        """
        if self.state is not SessionState.STARTING:
            raise RuntimeError(f"Session {self.correlation_id} was already started")

        self._unsubscribers = [
            self.bus.subscribe(STREAM_CHANNEL, self._handle_lifecycle),
            self.bus.subscribe(CONTENT_CHANNEL, self._handle_content),
        ]

        logger.info("Starting %s for session %s", command, self.correlation_id)
        try:
            returned_id = self.backend.start(command, list(args), stdin_input, self.correlation_id)
        except Exception as e:
            logger.error("Failed to start %s: %s", command, e)
            self._finalize(SessionState.FAILED, self.callbacks.on_error, str(e))
            return False

        if returned_id != self.correlation_id:
            logger.warning("Backend returned id %s for session %s", returned_id, self.correlation_id)

        with self._guard:
            if self.state is SessionState.STARTING:
                self.state = SessionState.OPEN
        return True

    def cancel(self) -> None:
        """Asks the backend to stop the command and finalizes the session as cancelled."""
        if self._finalized:
            return
        try:
            self.backend.cancel(self.correlation_id)
        except Exception as e:
            logger.debug("Cancel request for %s failed: %s", self.correlation_id, e)
        self._finalize(SessionState.CANCELLED, self.callbacks.on_error, CANCELLED_MESSAGE)

    def _handle_lifecycle(self, event: LifecycleEvent) -> None:
        if self._finalized or event.correlation_id != self.correlation_id:
            return

        logger.debug("Stream event %s: %s", event.kind, event.text[:200])
        if event.kind == "stdout":
            return
        if event.kind == "stderr":
            logger.warning("stderr: %s", event.text)
            self._stderr.append(event.text + "\n")
        elif event.kind == "complete":
            logger.info("Session %s complete, output length %d", self.correlation_id, len(self.output))
            self._finalize(SessionState.COMPLETED, self.callbacks.on_complete, self.output)
        elif event.kind == "error":
            logger.error("Session %s failed: %s", self.correlation_id, event.text)
            self._finalize(SessionState.FAILED, self.callbacks.on_error, self._error_message(event.text))
        elif event.kind == "cancelled":
            self._finalize(SessionState.CANCELLED, self.callbacks.on_error, CANCELLED_MESSAGE)

    def _handle_content(self, event: ContentEvent) -> None:
        if self._finalized or event.correlation_id != self.correlation_id:
            return

        if event.kind == "thinking_start":
            self.callbacks.on_thinking_start()
        elif event.kind == "thinking_delta":
            self._output.append(event.text)
            self.callbacks.on_thinking_delta(event.text)
        elif event.kind == "text_delta":
            self._output.append(event.text)
            self.callbacks.on_text_delta(event.text)
        elif event.kind == "block_stop":
            logger.debug("Block stopped, output so far %d", len(self.output))
            self.callbacks.on_block_stop()

    def _error_message(self, message: str) -> str:
        stderr = self.stderr_output.strip()
        if stderr:
            return f"{message}\n\nStderr:\n{stderr}"
        output = self.output.strip()
        if output:
            return f"{message}\n\nOutput:\n{output}"
        return message

    def _finalize(self, state: SessionState, callback: Callable[[str], None], payload: str) -> bool:
        with self._guard:
            if self._finalized:
                return False
            self._finalized = True
            self.state = state

        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._output = []
        self._stderr = []

        callback(payload)
        return True


def start_streaming_review(
    invocation: Invocation,
    backend: ExecutionBackend,
    bus: EventBus,
    callbacks: StreamCallbacks,
) -> AIStreamSession:
    """
    Starts a session for a provider invocation.

    Args:
        invocation: Command built by a reviewer
        backend: Backend that runs the command
        bus: Bus the backend publishes on
        callbacks: Caller hooks

    Returns:
        The session; call cancel() on it to stop early
    """
    session = AIStreamSession(backend, bus, callbacks)
    session.start(invocation.command, invocation.args, invocation.stdin_input)
    return session
