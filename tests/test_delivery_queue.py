import threading

import pytest

from client.chunkscribe.audio.types import RecordingSession, Segment
from client.chunkscribe.errors import AuthError, NetworkTimeout, PermanentError, TransientError
from client.chunkscribe.services.backoff import RetryPolicy
from client.chunkscribe.services.logger import LogBuffer
from client.chunkscribe.services.uploader import DeliveryQueue
from client.chunkscribe.store.auth_store import AuthState
from client.chunkscribe.store.transcript_store import TranscriptStore


class ScriptedClient:
    """Returns ``text<index>`` unless a scripted outcome is queued for that index."""

    def __init__(self, script=None):
        self.script = {index: list(outcomes) for index, outcomes in (script or {}).items()}
        self.calls = []
        self.on_call = None

    def transcribe_segment(self, segment, credential):
        self.calls.append((segment.index, credential))
        if self.on_call:
            self.on_call(segment)
        outcomes = self.script.get(segment.index)
        if outcomes:
            outcome = outcomes.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        return f"text{segment.index}"


def make_queue(client, *, max_attempts=3, sleep=None, on_auth_required=None, transcripts=None):
    transcripts = transcripts if transcripts is not None else TranscriptStore()
    auth = AuthState()
    auth.set("secret")
    delays = []
    queue = DeliveryQueue(
        client,
        transcripts,
        auth,
        LogBuffer(),
        policy=RetryPolicy(base=1.0, cap=60.0, max_attempts=max_attempts, rand=lambda: 0.5),
        sleep=sleep or delays.append,
        on_auth_required=on_auth_required,
    )
    session = RecordingSession()
    queue.reset(session)
    return queue, transcripts, auth, session, delays


def _segment(session, index):
    return Segment(session_id=session.id, index=index, payload=b"RIFF" + bytes([index]) * 64)


def test_transient_overload_retries_in_place_and_keeps_order():
    overloaded = TransientError("500 provider unavailable (503): overloaded")
    client = ScriptedClient({1: [overloaded, overloaded]})
    queue, transcripts, _, session, delays = make_queue(client)
    for index in range(3):
        assert queue.enqueue(_segment(session, index))
    queue.drain()
    assert transcripts.text == "text0 text1 text2"
    assert [call[0] for call in client.calls] == [0, 1, 1, 1, 2]
    assert delays == [1.0, 2.0]
    assert queue.current_status().state == "idle"


def test_auth_failure_halts_and_resumes_from_same_segment():
    stopped = []
    client = ScriptedClient({2: [NetworkTimeout("timed out"), AuthError("Unauthorized")]})
    queue, transcripts, auth, session, _ = make_queue(
        client, on_auth_required=lambda: stopped.append(True)
    )
    for index in range(4):
        queue.enqueue(_segment(session, index))
    queue.drain()

    assert transcripts.text == "text0 text1"
    assert [entry.index for entry in queue.pending()] == [2, 3]
    assert queue.pending()[0].attempt == 1
    assert auth.authenticated is False
    assert stopped == [True]
    status = queue.current_status()
    assert status.state == "auth_required"
    assert status.index == 2
    assert status.pending == 2

    queue.update_credential("renewed")
    queue.drain()
    assert transcripts.text == "text0 text1 text2 text3"
    assert client.calls[-2:] == [(2, "renewed"), (3, "renewed")]


def test_empty_segment_is_skipped_with_placeholder():
    client = ScriptedClient({0: [PermanentError("400 Audio payload is missing or empty")]})
    queue, transcripts, _, session, delays = make_queue(client)
    queue.enqueue(_segment(session, 0))
    queue.enqueue(_segment(session, 1))
    queue.drain()
    fragments = transcripts.fragments()
    assert [fragment.index for fragment in fragments] == [0, 1]
    assert fragments[0].placeholder is True
    assert fragments[0].text.startswith("[segment 0 unavailable:")
    assert fragments[1].text == "text1"
    assert delays == []
    assert [call[0] for call in client.calls] == [0, 1]


def test_retry_ceiling_turns_into_placeholder():
    client = ScriptedClient({0: [TransientError("500 boom") for _ in range(10)]})
    queue, transcripts, _, session, delays = make_queue(client, max_attempts=3)
    queue.enqueue(_segment(session, 0))
    queue.enqueue(_segment(session, 1))
    queue.drain()
    fragments = transcripts.fragments()
    assert fragments[0].placeholder is True
    assert "gave up after 4 attempts" in fragments[0].text
    assert fragments[1].text == "text1"
    assert delays == [1.0, 2.0, 4.0]


def test_rate_limits_retry_without_ceiling():
    limited = [TransientError("Rate limited", rate_limited=True) for _ in range(10)]
    client = ScriptedClient({0: limited})
    queue, transcripts, _, session, delays = make_queue(client, max_attempts=3)
    queue.enqueue(_segment(session, 0))
    queue.drain()
    assert transcripts.text == "text0"
    assert len(delays) == 10
    assert max(delays) == 60.0


def test_stalled_status_names_index_and_error():
    statuses = []
    client = ScriptedClient({1: [TransientError("500 provider overloaded")]})
    holder = {}
    queue, _, _, session, _ = make_queue(
        client, sleep=lambda delay: statuses.append(holder["queue"].current_status())
    )
    holder["queue"] = queue
    queue.enqueue(_segment(session, 0))
    queue.enqueue(_segment(session, 1))
    queue.drain()
    assert len(statuses) == 1
    assert statuses[0].state == "stalled"
    assert statuses[0].index == 1
    assert "Segment 1 stalled" in statuses[0].message
    assert "provider overloaded" in statuses[0].message


def test_stale_segments_are_never_delivered():
    client = ScriptedClient()
    queue, transcripts, _, session, _ = make_queue(client)
    other = RecordingSession()
    assert queue.enqueue(_segment(other, 0)) is False
    queue.enqueue(_segment(session, 0))

    replacement = RecordingSession()
    queue.reset(replacement)
    queue.enqueue(_segment(replacement, 0))
    queue.drain()
    assert client.calls == [(0, "secret")]
    assert transcripts.text == "text0"
    assert len(transcripts) == 1


def test_result_of_superseded_session_is_dropped():
    client = ScriptedClient()
    queue, transcripts, _, session, _ = make_queue(client)
    replacement = RecordingSession()
    client.on_call = lambda segment: queue.reset(replacement) if segment.session_id == session.id else None
    queue.enqueue(_segment(session, 0))
    queue.drain()
    assert len(transcripts) == 0
    assert queue.is_idle()


def test_unauthenticated_queue_waits_without_calling_gateway():
    client = ScriptedClient()
    queue, transcripts, auth, session, _ = make_queue(client)
    auth.clear()
    queue.enqueue(_segment(session, 0))
    queue.drain()
    assert client.calls == []
    assert queue.current_status().state == "auth_required"
    queue.update_credential("secret")
    queue.drain()
    assert transcripts.text == "text0"


def test_fragments_follow_index_order_regardless_of_retry_latency():
    script = {index: [TransientError("busy")] * (index % 3) for index in range(8)}
    client = ScriptedClient(script)
    queue, transcripts, _, session, _ = make_queue(client)
    for index in range(8):
        queue.enqueue(_segment(session, index))
    queue.drain()
    assert [fragment.index for fragment in transcripts.fragments()] == list(range(8))


def test_background_worker_drains_queue():
    client = ScriptedClient({0: [TransientError("busy")]})
    queue, transcripts, _, session, _ = make_queue(client)
    queue.start()
    try:
        for index in range(3):
            queue.enqueue(_segment(session, index))
        assert queue.wait_until_idle(timeout=5) is True
    finally:
        queue.stop()
    assert transcripts.text == "text0 text1 text2"


class SlowTranscriptStore(TranscriptStore):
    """Holds every append until ``release`` is set."""

    def __init__(self):
        super().__init__()
        self.entered = threading.Event()
        self.release = threading.Event()

    def append(self, index, text):
        self.entered.set()
        self.release.wait(5)
        super().append(index, text)

    def append_placeholder(self, index, error):
        self.entered.set()
        self.release.wait(5)
        super().append_placeholder(index, error)


@pytest.mark.parametrize(
    "outcome, expected",
    [
        (None, "text0"),
        (PermanentError("400 Audio payload is missing or empty"), "[segment 0 unavailable:"),
    ],
)
def test_queue_is_not_idle_until_fragment_is_recorded(outcome, expected):
    client = ScriptedClient({0: [outcome]} if outcome else None)
    transcripts = SlowTranscriptStore()
    queue, _, _, session, _ = make_queue(client, transcripts=transcripts)
    queue.enqueue(_segment(session, 0))

    worker = threading.Thread(target=queue.drain)
    worker.start()
    try:
        assert transcripts.entered.wait(5)
        assert queue.is_idle() is False
        assert queue.wait_until_idle(timeout=0.1) is False
        assert transcripts.text == ""
    finally:
        transcripts.release.set()
        worker.join(5)
    assert queue.wait_until_idle(timeout=5) is True
    assert transcripts.text.startswith(expected)
