"""Continuous audio capture sliced into fixed-duration segments."""

from __future__ import annotations

import io
import itertools
import threading
import time
from typing import Callable, Optional, Protocol

import numpy as np
import soundfile as sf

from ..config import CONFIG
from ..errors import DeviceError
from ..services.logger import LogBuffer
from .types import RecordingSession, Segment

CONTAINERS = {
    "WAV": ("PCM_16", "audio/wav"),
    "FLAC": ("PCM_16", "audio/flac"),
    "OGG": ("VORBIS", "audio/ogg"),
}


class AudioSource(Protocol):
    def open(self) -> None: ...

    def drain(self) -> np.ndarray: ...

    def close(self) -> None: ...


class SoundDeviceSource:
    """Microphone input via a ``sounddevice`` callback stream.

    Frames accumulate between drains, so consecutive windows are gapless.
    """

    def __init__(self, sample_rate: int, channels: int) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self._frames: list[np.ndarray] = []
        self._lock = threading.Lock()
        self._stream = None

    def open(self) -> None:
        try:
            import sounddevice as sd  # type: ignore
        except (ImportError, OSError) as exc:
            raise DeviceError(f"Audio input unavailable: {exc}") from exc
        try:
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                callback=self._callback,
            )
            self._stream.start()
        except Exception as exc:
            self._stream = None
            raise DeviceError(f"Could not open audio input: {exc}") from exc

    def _callback(self, indata, frames, time_info, status) -> None:  # noqa: ARG002
        with self._lock:
            self._frames.append(np.array(indata, dtype=np.int16, copy=True))

    def drain(self) -> np.ndarray:
        with self._lock:
            frames, self._frames = self._frames, []
        if not frames:
            return np.zeros((0, self.channels), dtype=np.int16)
        return np.concatenate(frames)

    def close(self) -> None:
        if self._stream is None:
            return
        try:
            self._stream.stop()
        finally:
            self._stream.close()
            self._stream = None


class SegmentEncoder:
    def __init__(
        self,
        on_segment: Callable[[Segment], None],
        logger: LogBuffer,
        *,
        source_factory: Callable[[], AudioSource] | None = None,
        segment_seconds: float | None = None,
        sample_rate: int | None = None,
        channels: int | None = None,
        container: str | None = None,
    ) -> None:
        self.on_segment = on_segment
        self.logger = logger
        self.segment_seconds = segment_seconds or CONFIG.segment_seconds
        self.sample_rate = sample_rate or CONFIG.sample_rate
        self.channels = channels or CONFIG.channels
        self.container = (container or CONFIG.container).upper()
        if self.container not in CONTAINERS:
            raise ValueError(f"Unsupported container {self.container!r}")
        self.subtype, self.encoding = CONTAINERS[self.container]
        self._source_factory = source_factory or (
            lambda: SoundDeviceSource(self.sample_rate, self.channels)
        )
        self._source: Optional[AudioSource] = None
        self._session: Optional[RecordingSession] = None
        self._counter = itertools.count()
        self._thread: threading.Thread | None = None
        self._stop = threading.Event()
        self._lock = threading.Lock()
        self._emit_lock = threading.Lock()

    @property
    def is_recording(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def session(self) -> Optional[RecordingSession]:
        return self._session

    def start(
        self,
        session: RecordingSession,
        *,
        on_open: Callable[[], None] | None = None,
    ) -> None:
        """Open the input and begin capture for ``session``.

        ``on_open`` runs once the device is acquired and before the first window
        can be emitted; a ``DeviceError`` from the input means it never runs.
        """
        with self._lock:
            if self.is_recording:
                return
            source = self._source_factory()
            source.open()
            if on_open is not None:
                try:
                    on_open()
                except Exception:
                    source.close()
                    raise
            self._source = source
            self._session = session
            self._counter = itertools.count()
            self._stop.clear()
            self._thread = threading.Thread(target=self._loop, name="segment-encoder", daemon=True)
            self._thread.start()
        self.logger.add(f"Recording started (session {session.id[:6]})")

    def stop(self, session: RecordingSession | None = None) -> None:
        with self._lock:
            if session is not None and self._session is not None and session.id != self._session.id:
                return
            thread = self._thread
            self._stop.set()
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=10)

    def _loop(self) -> None:
        deadline = time.monotonic() + self.segment_seconds
        try:
            while not self._stop.wait(max(0.0, deadline - time.monotonic())):
                self.emit_window()
                deadline += self.segment_seconds
            # Flush the window in progress once; the tail is never dropped.
            self.emit_window()
        except Exception as exc:
            self.logger.add(f"Capture error: {exc}")
        finally:
            self._release()

    def emit_window(self) -> Optional[Segment]:
        with self._emit_lock:
            session, source = self._session, self._source
            if session is None or source is None:
                return None
            pcm = source.drain()
            if pcm.size == 0:
                self.logger.add("Empty capture window skipped")
                return None
            segment = Segment(
                session_id=session.id,
                index=next(self._counter),
                payload=self._encode(pcm),
                encoding=self.encoding,
                duration_s=len(pcm) / float(self.sample_rate),
            )
        self.logger.add(f"Segment {segment.index} captured ({segment.duration_s:.1f}s)")
        self.on_segment(segment)
        return segment

    def _encode(self, pcm: np.ndarray) -> bytes:
        buffer = io.BytesIO()
        sf.write(
            buffer,
            pcm.astype(np.int16, copy=False),
            self.sample_rate,
            format=self.container,
            subtype=self.subtype,
        )
        return buffer.getvalue()

    def _release(self) -> None:
        with self._emit_lock:
            source, session = self._source, self._session
            self._source = None
        if source is not None:
            try:
                source.close()
            except Exception as exc:
                self.logger.add(f"Audio device release failed: {exc}")
        if session is not None:
            session.active = False
        self.logger.add("Recording stopped")
