"""Background worker that drains the segment queue in order."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Optional

from ..audio.types import RecordingSession, Segment
from ..config import CONFIG
from ..errors import ApiError, AuthError, PermanentError, TransientError
from ..store.auth_store import AuthState
from ..store.queue_store import QueueEntry, SegmentQueue, SegmentState
from ..store.transcript_store import TranscriptStore
from .backoff import RetryPolicy
from .logger import LogBuffer
from .network import ApiClient


@dataclass(slots=True)
class DeliveryStatus:
    state: str
    pending: int
    message: str
    index: Optional[int] = None


class DeliveryQueue:
    """Ordered, at-least-once delivery of the active session's segments.

    A single worker handles one segment at a time, so transcript fragments are
    appended in index order no matter how long any one segment spends retrying.
    A segment leaves the queue only when it is transcribed, permanently fails
    (a placeholder is appended instead), or belongs to a superseded session.
    """

    def __init__(
        self,
        client: ApiClient,
        transcripts: TranscriptStore,
        auth: AuthState,
        logger: LogBuffer,
        *,
        policy: RetryPolicy | None = None,
        on_auth_required: Callable[[], None] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.client = client
        self.transcripts = transcripts
        self.auth = auth
        self.logger = logger
        self.policy = policy or RetryPolicy(
            base=CONFIG.backoff_base,
            cap=CONFIG.backoff_cap,
            max_attempts=CONFIG.max_attempts,
        )
        self.on_auth_required = on_auth_required
        self._sleep = sleep or self._interruptible_sleep
        self._queue = SegmentQueue()
        self._active_session_id: Optional[str] = None
        self._status = DeliveryStatus("idle", 0, "Idle")
        self._state_lock = threading.RLock()
        self._changed = threading.Condition()
        self._stop_event = threading.Event()
        self._wake_event = threading.Event()
        self._interrupt = threading.Event()
        self._thread: threading.Thread | None = None

    # lifecycle

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="delivery-queue", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        self._interrupt.set()
        self._wake_event.set()
        if self._thread:
            self._thread.join(timeout=5)

    def wake(self) -> None:
        self._wake_event.set()

    def _run(self) -> None:
        while not self._stop_event.is_set():
            self._wake_event.clear()
            try:
                worked = self.process_next()
            except Exception as exc:
                self.logger.add(f"Delivery worker error: {exc}", logging.ERROR)
                worked = False
            if not worked:
                self._wake_event.wait(timeout=2)

    # public operations

    def reset(self, session: RecordingSession) -> None:
        """Make ``session`` the active one, dropping queued segments and the transcript."""
        with self._state_lock:
            self._active_session_id = session.id
            self._queue.clear()
            self.transcripts.clear()
            self._status = DeliveryStatus("idle", 0, "Idle")
        self._interrupt.set()
        self._notify()
        self.wake()

    def enqueue(self, segment: Segment) -> bool:
        with self._state_lock:
            if segment.session_id != self._active_session_id:
                self.logger.add(f"Ignoring segment {segment.index} from inactive session")
                return False
            self._queue.append(segment)
        self._notify()
        self.wake()
        return True

    def update_credential(self, credential: str) -> None:
        self.auth.set(credential)
        with self._state_lock:
            if self._status.state == "auth_required":
                self._status = DeliveryStatus(
                    "resuming", len(self._queue), "Credential updated", self._status.index
                )
        self.logger.add("Credential updated; resuming delivery")
        self.wake()

    def current_status(self) -> DeliveryStatus:
        with self._state_lock:
            status = self._status
            return DeliveryStatus(status.state, len(self._queue), status.message, status.index)

    def pending(self) -> list[QueueEntry]:
        return self._queue.list()

    def is_idle(self) -> bool:
        return len(self._queue) == 0

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        """Block until the queue is empty or delivery halts for authentication."""
        with self._changed:
            self._changed.wait_for(
                lambda: self.is_idle() or self._status.state == "auth_required",
                timeout,
            )
        return self.is_idle()

    def drain(self) -> None:
        """Process synchronously until the queue is empty or delivery halts."""
        while self.process_next():
            pass

    # processing

    def process_next(self) -> bool:
        """Handle the head entry once. Returns False when there is nothing to do."""
        try:
            return self._step()
        finally:
            self._notify()

    def _step(self) -> bool:
        entry = self._queue.peek()
        if entry is None:
            self._set_status("idle", "All segments delivered")
            return False
        if entry.session_id != self._active_session_id:
            self._queue.remove(entry)
            return True
        credential = self.auth.credential
        if credential is None:
            self._set_status("auth_required", "Authentication required", entry.index)
            return False

        entry.state = SegmentState.in_flight
        self._set_status("delivering", f"Uploading segment {entry.index}", entry.index)
        try:
            text = self.client.transcribe_segment(entry.segment, credential)
        except AuthError as exc:
            return self._halt_for_auth(entry, exc)
        except PermanentError as exc:
            self._fail(entry, str(exc))
            return True
        except TransientError as exc:
            return self._retry_later(entry, str(exc), rate_limited=exc.rate_limited)
        except ApiError as exc:
            return self._retry_later(entry, str(exc), rate_limited=False)
        self._complete(entry, text)
        return True

    def _complete(self, entry: QueueEntry, text: str) -> None:
        # The fragment lands before the entry leaves the queue, so an idle
        # queue always means a complete transcript.
        with self._state_lock:
            if entry.session_id != self._active_session_id:
                self._queue.remove(entry)
                self.logger.add(f"Dropping result for segment {entry.index} of a finished session")
                return
            entry.state = SegmentState.done
            self.transcripts.append(entry.index, text)
            self._queue.remove(entry)
        self.logger.add(f"Segment {entry.index} transcribed")

    def _fail(self, entry: QueueEntry, error: str) -> None:
        with self._state_lock:
            if entry.session_id != self._active_session_id:
                self._queue.remove(entry)
                return
            entry.state = SegmentState.failed
            entry.last_error = error
            self.transcripts.append_placeholder(entry.index, error)
            self._queue.remove(entry)
        self.logger.add(f"Segment {entry.index} skipped: {error}", logging.WARNING)

    def _retry_later(self, entry: QueueEntry, error: str, *, rate_limited: bool) -> bool:
        delay = self.policy.delay(entry.attempt)
        entry.attempt += 1
        entry.last_error = error
        if self.policy.exhausted(entry.attempt, rate_limited=rate_limited):
            self._fail(entry, f"gave up after {entry.attempt} attempts: {error}")
            return True
        entry.state = SegmentState.awaiting_backoff
        message = (
            f"Segment {entry.index} stalled (attempt {entry.attempt}): {error}; "
            f"retrying in {delay:.1f}s"
        )
        self._set_status("stalled", message, entry.index)
        self.logger.add(message, logging.WARNING)
        self._sleep(delay)
        entry.state = SegmentState.pending
        return True

    def _halt_for_auth(self, entry: QueueEntry, exc: AuthError) -> bool:
        self.auth.clear()
        entry.state = SegmentState.pending
        waiting = len(self._queue)
        self._set_status(
            "auth_required",
            f"Authentication required; {waiting} segment(s) waiting from index {entry.index}",
            entry.index,
        )
        self.logger.add(f"Delivery halted: {exc}", logging.WARNING)
        if self.on_auth_required:
            self.on_auth_required()
        return False

    def _set_status(self, state: str, message: str, index: Optional[int] = None) -> None:
        with self._state_lock:
            self._status = DeliveryStatus(state, len(self._queue), message, index)

    def _notify(self) -> None:
        with self._changed:
            self._changed.notify_all()

    def _interruptible_sleep(self, delay: float) -> None:
        self._interrupt.clear()
        self._interrupt.wait(delay)
