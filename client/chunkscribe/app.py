"""Session controller wiring capture, delivery and the transcript together."""

from __future__ import annotations

import threading
from typing import Callable, Optional

from .audio.encoder import AudioSource, SegmentEncoder
from .audio.types import RecordingSession
from .config import CONFIG, ClientConfig
from .errors import ApiError, AuthError
from .services.backoff import RetryPolicy
from .services.logger import LogBuffer
from .services.network import ApiClient
from .services.uploader import DeliveryQueue, DeliveryStatus
from .store.auth_store import AuthState
from .store.transcript_store import TranscriptStore


class ScribeApp:
    def __init__(
        self,
        config: ClientConfig | None = None,
        *,
        api_client: ApiClient | None = None,
        source_factory: Callable[[], AudioSource] | None = None,
        sleep: Callable[[float], None] | None = None,
    ) -> None:
        self.config = config or CONFIG
        self.logger = LogBuffer(self.config.log_history)
        self.api_client = api_client or ApiClient(
            self.config.server_url, timeout=self.config.request_timeout
        )
        self.auth = AuthState()
        self.transcript = TranscriptStore()
        self.session: Optional[RecordingSession] = None
        self._lock = threading.Lock()
        self.queue = DeliveryQueue(
            self.api_client,
            self.transcript,
            self.auth,
            self.logger,
            policy=RetryPolicy(
                base=self.config.backoff_base,
                cap=self.config.backoff_cap,
                max_attempts=self.config.max_attempts,
            ),
            on_auth_required=self._handle_auth_required,
            sleep=sleep,
        )
        self.encoder = SegmentEncoder(
            self.queue.enqueue,
            self.logger,
            source_factory=source_factory,
            segment_seconds=self.config.segment_seconds,
            sample_rate=self.config.sample_rate,
            channels=self.config.channels,
            container=self.config.container,
        )

    @property
    def is_recording(self) -> bool:
        return self.encoder.is_recording

    def authenticate(self, credential: str) -> bool:
        if not self.api_client.authenticate(credential):
            self.logger.add("Credential rejected")
            return False
        self.queue.update_credential(credential)
        return True

    def start_recording(self) -> RecordingSession:
        with self._lock:
            if self.encoder.is_recording:
                raise RuntimeError("A recording is already in progress")
            session = RecordingSession()
            # The previous transcript and queue survive a device failure.
            self.encoder.start(session, on_open=lambda: self.queue.reset(session))
            self.session = session
        self.queue.start()
        return session

    def stop_recording(self) -> None:
        with self._lock:
            session = self.session
        if session is not None:
            self.encoder.stop(session)

    def status(self) -> DeliveryStatus:
        return self.queue.current_status()

    def wait_until_idle(self, timeout: float | None = None) -> bool:
        return self.queue.wait_until_idle(timeout)

    def summarize(self, prompt: str | None = None) -> str:
        if self.is_recording:
            raise ApiError("Stop recording before requesting a summary")
        if not self.queue.is_idle():
            raise ApiError("Segments are still being transcribed")
        credential = self.auth.credential
        if credential is None:
            raise ApiError("Authentication required")
        try:
            return self.api_client.summarize(self.transcript.text, credential, prompt)
        except AuthError:
            self.auth.clear()
            self.logger.add("Summary rejected: credential expired")
            raise

    def close(self) -> None:
        self.stop_recording()
        self.queue.stop()
        self.api_client.close()

    def _handle_auth_required(self) -> None:
        if self.encoder.is_recording:
            self.logger.add("Stopping capture until a new credential is supplied")
            self.stop_recording()
