import pytest

from prreview.events import (
    CONTENT_CHANNEL,
    STREAM_CHANNEL,
    ContentEvent,
    DispatchError,
    EventBus,
    LifecycleEvent,
)
from prreview.models import Invocation
from prreview.stream_session import (
    CANCELLED_MESSAGE,
    AIStreamSession,
    SessionState,
    StreamCallbacks,
    start_streaming_review,
)


class FakeBackend:
    """Records dispatches; tests publish the backend's events by hand."""

    def __init__(self, bus, fail_start=None, fail_cancel=False, emit_cancelled=False):
        self.bus = bus
        self.fail_start = fail_start
        self.fail_cancel = fail_cancel
        self.emit_cancelled = emit_cancelled
        self.started = []
        self.cancelled = []

    def start(self, command, args, stdin_input, correlation_id):
        if self.fail_start:
            raise self.fail_start
        self.started.append((command, args, stdin_input, correlation_id))
        return correlation_id

    def cancel(self, correlation_id):
        self.cancelled.append(correlation_id)
        if self.fail_cancel:
            raise RuntimeError("process already gone")
        if self.emit_cancelled:
            self.bus.publish(STREAM_CHANNEL, LifecycleEvent(correlation_id, "cancelled", "Process cancelled by user"))


class CountingBus(EventBus):
    def __init__(self):
        super().__init__()
        self.unsubscribe_calls = 0

    def subscribe(self, channel, handler):
        unsubscribe = super().subscribe(channel, handler)

        def counted():
            self.unsubscribe_calls += 1
            unsubscribe()

        return counted


class Recorder:
    def __init__(self):
        self.events = []

    def callbacks(self):
        return StreamCallbacks(
            on_thinking_start=lambda: self.events.append(("thinking_start",)),
            on_thinking_delta=lambda text: self.events.append(("thinking_delta", text)),
            on_text_delta=lambda text: self.events.append(("text_delta", text)),
            on_block_stop=lambda: self.events.append(("block_stop",)),
            on_complete=lambda output: self.events.append(("complete", output)),
            on_error=lambda message: self.events.append(("error", message)),
        )

    @property
    def outcomes(self):
        return [e for e in self.events if e[0] in ("complete", "error")]


@pytest.fixture
def bus():
    return CountingBus()


@pytest.fixture
def recorder():
    return Recorder()


def open_session(bus, recorder, **backend_kwargs):
    backend = FakeBackend(bus, **backend_kwargs)
    session = AIStreamSession(backend, bus, recorder.callbacks(), correlation_id="run-1")
    assert session.start("claude", ["-p", "prompt"], None)
    return session, backend


def content(kind, text="", correlation_id="run-1"):
    return ContentEvent(correlation_id, kind, text)


def lifecycle(kind, text="", correlation_id="run-1"):
    return LifecycleEvent(correlation_id, kind, text)


def test_start_subscribes_then_dispatches(bus, recorder):
    session, backend = open_session(bus, recorder)
    assert session.state is SessionState.OPEN
    assert backend.started == [("claude", ["-p", "prompt"], None, "run-1")]
    assert bus.subscriber_count(STREAM_CHANNEL) == 1
    assert bus.subscriber_count(CONTENT_CHANNEL) == 1


def test_content_is_accumulated_and_forwarded(bus, recorder):
    session, _ = open_session(bus, recorder)
    bus.publish(CONTENT_CHANNEL, content("thinking_start"))
    bus.publish(CONTENT_CHANNEL, content("thinking_delta", "hmm "))
    bus.publish(CONTENT_CHANNEL, content("text_delta", '{"summary": '))
    bus.publish(CONTENT_CHANNEL, content("text_delta", '"ok"}'))
    bus.publish(CONTENT_CHANNEL, content("block_stop"))
    bus.publish(STREAM_CHANNEL, lifecycle("stdout", "ignored"))

    assert session.output == 'hmm {"summary": "ok"}'
    bus.publish(STREAM_CHANNEL, lifecycle("complete", "Process exited with code 0"))

    assert recorder.events == [
        ("thinking_start",),
        ("thinking_delta", "hmm "),
        ("text_delta", '{"summary": '),
        ("text_delta", '"ok"}'),
        ("block_stop",),
        ("complete", 'hmm {"summary": "ok"}'),
    ]
    assert session.state is SessionState.COMPLETED
    assert bus.subscriber_count(STREAM_CHANNEL) == 0
    assert bus.subscriber_count(CONTENT_CHANNEL) == 0


def test_events_for_other_sessions_are_ignored(bus, recorder):
    session, _ = open_session(bus, recorder)
    bus.publish(CONTENT_CHANNEL, content("text_delta", "stray", correlation_id="run-0"))
    bus.publish(STREAM_CHANNEL, lifecycle("stderr", "stray", correlation_id="run-0"))
    bus.publish(STREAM_CHANNEL, lifecycle("complete", correlation_id="run-0"))

    assert recorder.events == []
    assert session.output == ""
    assert session.stderr_output == ""
    assert session.state is SessionState.OPEN


def test_duplicate_terminal_events_finalize_once(bus, recorder):
    session, _ = open_session(bus, recorder)
    bus.publish(CONTENT_CHANNEL, content("text_delta", "done"))
    bus.publish(STREAM_CHANNEL, lifecycle("complete"))
    bus.publish(STREAM_CHANNEL, lifecycle("complete"))
    bus.publish(STREAM_CHANNEL, lifecycle("error", "late"))
    bus.publish(STREAM_CHANNEL, lifecycle("cancelled"))
    session.cancel()

    assert recorder.outcomes == [("complete", "done")]
    assert bus.unsubscribe_calls == 2
    assert session.state is SessionState.COMPLETED


def test_error_message_prefers_stderr(bus, recorder):
    open_session(bus, recorder)
    bus.publish(CONTENT_CHANNEL, content("text_delta", "partial"))
    bus.publish(STREAM_CHANNEL, lifecycle("stderr", "auth failed"))
    bus.publish(STREAM_CHANNEL, lifecycle("stderr", "try login"))
    bus.publish(STREAM_CHANNEL, lifecycle("error", "Process exited with code 1"))

    assert recorder.outcomes == [("error", "Process exited with code 1\n\nStderr:\nauth failed\ntry login")]


def test_error_message_falls_back_to_output(bus, recorder):
    open_session(bus, recorder)
    bus.publish(CONTENT_CHANNEL, content("text_delta", "partial output "))
    bus.publish(STREAM_CHANNEL, lifecycle("error", "Process exited with code 2"))

    assert recorder.outcomes == [("error", "Process exited with code 2\n\nOutput:\npartial output")]


def test_error_message_alone(bus, recorder):
    session, _ = open_session(bus, recorder)
    bus.publish(STREAM_CHANNEL, lifecycle("error", "spawn failed"))

    assert recorder.outcomes == [("error", "spawn failed")]
    assert session.state is SessionState.FAILED


def test_cancelled_event(bus, recorder):
    session, _ = open_session(bus, recorder)
    bus.publish(STREAM_CHANNEL, lifecycle("cancelled", "Process cancelled by user"))

    assert recorder.outcomes == [("error", CANCELLED_MESSAGE)]
    assert session.state is SessionState.CANCELLED


def test_cancel_asks_backend_and_absorbs_its_event(bus, recorder):
    session, backend = open_session(bus, recorder, emit_cancelled=True)
    session.cancel()
    session.cancel()

    assert backend.cancelled == ["run-1"]
    assert recorder.outcomes == [("error", CANCELLED_MESSAGE)]
    assert bus.unsubscribe_calls == 2
    assert session.state is SessionState.CANCELLED


def test_cancel_failure_is_swallowed(bus, recorder):
    session, backend = open_session(bus, recorder, fail_cancel=True)
    session.cancel()

    assert backend.cancelled == ["run-1"]
    assert recorder.outcomes == [("error", CANCELLED_MESSAGE)]
    assert bus.subscriber_count(STREAM_CHANNEL) == 0


def test_dispatch_failure_goes_straight_to_failed(bus, recorder):
    backend = FakeBackend(bus, fail_start=DispatchError("Failed to spawn claude"))
    session = AIStreamSession(backend, bus, recorder.callbacks())

    assert session.start("claude", []) is False
    assert session.state is SessionState.FAILED
    assert recorder.outcomes == [("error", "Failed to spawn claude")]
    assert bus.unsubscribe_calls == 2
    assert bus.subscriber_count(CONTENT_CHANNEL) == 0

    session.cancel()
    assert backend.cancelled == []


def test_session_cannot_be_restarted(bus, recorder):
    session, _ = open_session(bus, recorder)
    with pytest.raises(RuntimeError):
        session.start("claude", [])


def test_terminal_event_during_dispatch_keeps_terminal_state(bus, recorder):
    class InstantBackend(FakeBackend):
        def start(self, command, args, stdin_input, correlation_id):
            self.bus.publish(STREAM_CHANNEL, LifecycleEvent(correlation_id, "complete"))
            return correlation_id

    session = AIStreamSession(InstantBackend(bus), bus, recorder.callbacks())
    assert session.start("codex", ["exec"]) is True
    assert session.state is SessionState.COMPLETED
    assert recorder.outcomes == [("complete", "")]


def test_start_streaming_review_uses_invocation(bus, recorder):
    backend = FakeBackend(bus)
    invocation = Invocation(command="deployment", args=[], stdin_input="prompt")
    session = start_streaming_review(invocation, backend, bus, recorder.callbacks())

    assert backend.started == [("deployment", [], "prompt", session.correlation_id)]
    assert session.state is SessionState.OPEN
