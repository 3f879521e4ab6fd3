import subprocess
import logging
import time
from pathlib import Path
from typing import List
from tomp4.config.models import VideoTarget, AudioTarget
from tomp4.domain.errors import EncodeError

STDERR_TAIL_LINES = 5

class FFmpegAdapter:
    """Wrapper around ffmpeg for H.264/AAC transcoding."""

    def __init__(self, binary: str = "ffmpeg", debug: bool = False):
        self.binary = binary
        self.debug = debug
        self.logger = logging.getLogger(__name__)

    def _build_command(self, source: Path, output: Path, video: VideoTarget, audio: AudioTarget) -> List[str]:
        """Constructs the ffmpeg command line arguments."""
        cmd = [
            self.binary,
            "-y",  # A temp file left by an earlier failure is overwritten
            "-nostdin",
            "-i", str(source),
        ]

        # Video encoding settings
        cmd.extend([
            "-c:v", video.encoder,
            "-crf", str(video.crf),
            "-preset", video.preset,
        ])

        # Audio settings (fixed target)
        cmd.extend([
            "-c:a", audio.encoder,
            "-strict", "experimental",
            "-b:a", audio.bitrate,
            "-ac", str(audio.channels),
        ])

        cmd.append(str(output))
        return cmd

    @staticmethod
    def _tail(text: str) -> str:
        lines = [line for line in (text or "").splitlines() if line.strip()]
        return " | ".join(lines[-STDERR_TAIL_LINES:])

    def encode(self, source: Path, output: Path, video: VideoTarget, audio: AudioTarget) -> None:
        """Transcodes source into output. Raises EncodeError on failure.

        The output file is written directly; callers pass a temporary path and
        rename it once this returns.
        """
        filename = source.name
        start_time = time.monotonic()
        cmd = self._build_command(source, output, video, audio)

        if self.debug:
            self.logger.info(f"FFMPEG_START: {filename} (crf={video.crf}, preset={video.preset})")
            self.logger.debug(f"FFMPEG_CMD: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise EncodeError(source, None, f"could not run {self.binary}: {e}") from e

        if self.debug:
            elapsed = time.monotonic() - start_time
            self.logger.info(f"FFMPEG_END: {filename} code={result.returncode} elapsed={elapsed:.2f}s")

        if result.returncode != 0:
            raise EncodeError(source, result.returncode, self._tail(result.stderr))
