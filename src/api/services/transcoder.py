"""ffmpeg wrapper used when the provider cannot decode an upload."""

from __future__ import annotations

import asyncio
import logging
import shutil
import subprocess
from pathlib import Path

from ..errors import DecodeError, TranscoderUnavailable

LOGGER = logging.getLogger("chunkscribe.transcoder")


class AudioTranscoder:
    """Convert any container ffmpeg understands into mono 16-bit PCM WAV."""

    def __init__(self, ffmpeg_path: str = "ffmpeg", sample_rate: int = 16000) -> None:
        self.ffmpeg_path = ffmpeg_path
        self.sample_rate = sample_rate

    def resolve(self) -> str | None:
        return shutil.which(self.ffmpeg_path)

    def available(self) -> bool:
        return self.resolve() is not None

    def command(self, binary: str, source: Path, target: Path) -> list[str]:
        return [
            binary,
            "-hide_banner",
            "-loglevel", "error",
            "-y",
            "-i", str(source),
            "-ac", "1",
            "-ar", str(self.sample_rate),
            "-c:a", "pcm_s16le",
            str(target),
        ]

    async def transcode(self, source: Path) -> Path:
        binary = self.resolve()
        if binary is None:
            raise TranscoderUnavailable(
                f"Audio format not supported by the provider and ffmpeg was not found "
                f"at '{self.ffmpeg_path}'. Install ffmpeg or set FFMPEG_PATH to "
                "enable the transcoding fallback."
            )
        target = source.with_name(f"{source.stem}.transcoded.wav")
        cmd = self.command(binary, source, target)
        LOGGER.info("Transcoding %s -> %s", source.name, target.name)
        try:
            result = await asyncio.to_thread(subprocess.run, cmd, capture_output=True)
        except OSError as exc:
            raise TranscoderUnavailable(f"Unable to run ffmpeg at '{binary}': {exc}") from exc
        if result.returncode != 0 or not target.exists():
            stderr = result.stderr.decode("utf-8", errors="replace").strip()
            raise DecodeError(f"ffmpeg could not transcode the audio: {stderr[-200:]}")
        return target
