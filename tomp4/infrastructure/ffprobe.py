import subprocess
import json
import logging
from pathlib import Path
from typing import Any, Dict
from pydantic import ValidationError
from tomp4.domain.errors import ProbeError
from tomp4.domain.models import MediaInfo, StreamInfo, FormatInfo

class FFprobeAdapter:
    """Wrapper around ffprobe to extract stream and container information."""

    def __init__(self, binary: str = "ffprobe"):
        self.binary = binary
        self.logger = logging.getLogger(__name__)

    def _build_command(self, file_path: Path):
        return [
            self.binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(file_path)
        ]

    @staticmethod
    def _clean(entry: Dict[str, Any]) -> Dict[str, Any]:
        # ffprobe omits or nulls fields for some streams (data tracks, attachments)
        return {k: v for k, v in entry.items() if v is not None}

    def parse(self, file_path: Path, output: str) -> MediaInfo:
        """Parses ffprobe JSON output into a MediaInfo snapshot."""
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise ProbeError(file_path, f"unparsable output: {e}") from e
        if not isinstance(data, dict):
            raise ProbeError(file_path, "unexpected output shape")

        try:
            streams = [
                StreamInfo(**self._clean({
                    "index": s.get("index"),
                    "codec_name": s.get("codec_name"),
                    "codec_long_name": s.get("codec_long_name"),
                    "codec_type": s.get("codec_type"),
                }))
                for s in data.get("streams", []) or []
            ]
            fmt = data.get("format", {}) or {}
            format_info = FormatInfo(**self._clean({
                "filename": fmt.get("filename"),
                "format_name": fmt.get("format_name"),
                "format_long_name": fmt.get("format_long_name"),
            }))
        except (AttributeError, ValidationError) as e:
            raise ProbeError(file_path, f"unexpected output shape: {e}") from e

        return MediaInfo(streams=streams, format=format_info)

    def probe(self, file_path: Path) -> MediaInfo:
        """Executes ffprobe and parses JSON output."""
        cmd = self._build_command(file_path)
        self.logger.debug(f"FFPROBE_CMD: {' '.join(cmd)}")

        try:
            result = subprocess.run(cmd, capture_output=True, text=True, stdin=subprocess.DEVNULL)
        except OSError as e:
            raise ProbeError(file_path, f"could not run {self.binary}: {e}") from e
        if result.returncode != 0:
            raise ProbeError(file_path, f"exit code {result.returncode} {result.stderr.strip()}".strip())

        return self.parse(file_path, result.stdout)
