"""Error taxonomy.

Environment errors (DiscoveryError, WatchError) are fatal and end the process.
Per-job errors (ProbeError, EncodeError) are contained by the worker that hit
them; the job is reported as failed and the worker moves on.
"""

from pathlib import Path
from typing import Optional


class Tomp4Error(Exception):
    """Base class for all tomp4 errors."""


class DiscoveryError(Tomp4Error):
    """A discovery root or one of its entries could not be stat'ed or listed."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Discovery failed for {path}: {reason}")


class WatchError(Tomp4Error):
    """Subscribing to filesystem events failed, or the event stream died."""


class ProbeError(Tomp4Error):
    """ffprobe exited non-zero or produced output that could not be parsed."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"ffprobe failed for {path}: {reason}")


class EncodeError(Tomp4Error):
    """ffmpeg exited non-zero (or could not be started)."""

    def __init__(self, path: Path, returncode: Optional[int], detail: str = ""):
        self.path = path
        self.returncode = returncode
        self.detail = detail
        message = f"ffmpeg exited with code {returncode} for {path}"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class QueueClosedError(Tomp4Error):
    """A job was submitted after the job queue was closed."""
