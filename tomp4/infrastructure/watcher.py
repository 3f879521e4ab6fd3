"""Live ingestion of filesystem create-events into the job queue.

Only the watched root is subscribed. A directory created (or moved) into the
root is expanded recursively on its own thread so that a burst of files never
stalls event delivery; files dropped later into subdirectories that are not
themselves new are not seen.
"""

import logging
import os
import stat
import threading
from enum import Enum
from pathlib import Path
from typing import Callable, List, Optional
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from tomp4.domain.errors import DiscoveryError, QueueClosedError, WatchError
from tomp4.domain.events import JobEnqueued, WatchStarted
from tomp4.domain.models import Job
from tomp4.infrastructure.event_bus import EventBus
from tomp4.infrastructure.file_scanner import FileScanner


class WatchState(str, Enum):
    IDLE = "IDLE"
    WATCHING = "WATCHING"
    DRAINING = "DRAINING"
    STOPPED = "STOPPED"


class _CreatedHandler(FileSystemEventHandler):
    def __init__(self, ingestor: "WatchIngestor"):
        super().__init__()
        self._ingestor = ingestor

    def on_created(self, event: FileSystemEvent) -> None:
        self._ingestor.on_created(Path(os.fsdecode(event.src_path)))


class WatchIngestor:
    """Turns create-events under root into Jobs for the worker pool.

    Args:
        root: Directory to subscribe to.
        scanner: FileScanner used for classification and directory expansion.
        submit: Blocking job sink (WorkerPool.submit).
        stop_event: Set when a fatal error ends the watch, to wake the driver.
        event_bus: Optional EventBus for WatchStarted/JobEnqueued.
        observer_factory: Builds the watchdog observer (replaceable in tests).
    """

    def __init__(
        self,
        root: Path,
        scanner: FileScanner,
        submit: Callable[[Job], None],
        stop_event: threading.Event,
        event_bus: Optional[EventBus] = None,
        observer_factory: Callable[[], Observer] = Observer,
    ):
        self.root = Path(root)
        self.scanner = scanner
        self.submit = submit
        self.stop_event = stop_event
        self.event_bus = event_bus
        self.observer_factory = observer_factory
        self.state = WatchState.IDLE
        self.fatal_error: Optional[BaseException] = None
        self._observer = None
        self._expanders: List[threading.Thread] = []
        self._lock = threading.Lock()
        self.logger = logging.getLogger(__name__)

    def start(self) -> None:
        """Subscribes to root. Raises WatchError when the subscription fails."""
        if self.state != WatchState.IDLE:
            raise RuntimeError(f"Cannot start watch in state {self.state.value}")
        observer = self.observer_factory()
        try:
            observer.schedule(_CreatedHandler(self), str(self.root), recursive=False)
            observer.start()
        except Exception as e:
            self.state = WatchState.STOPPED
            raise WatchError(f"Unable to watch {self.root}: {e}") from e
        self._observer = observer
        self.state = WatchState.WATCHING
        self.logger.info(f"Watching {self.root} for new files")
        if self.event_bus is not None:
            self.event_bus.publish(WatchStarted(root=self.root))

    def on_created(self, path: Path) -> None:
        if self.state != WatchState.WATCHING:
            return
        try:
            is_dir = stat.S_ISDIR(os.stat(path).st_mode)
        except OSError as e:
            self.logger.warning(f"Created path vanished before it could be read: {path} ({e})")
            return

        if is_dir:
            thread = threading.Thread(
                target=self._expand_directory,
                args=(path,),
                name=f"expand-{path.name}",
                daemon=True,
            )
            with self._lock:
                self._expanders = [t for t in self._expanders if t.is_alive()]
                self._expanders.append(thread)
            thread.start()
            return

        if self.scanner.is_media_candidate(path):
            self._enqueue(path)
        else:
            self.logger.debug(f"Ignoring non-media file {path}")

    def _expand_directory(self, directory: Path) -> None:
        try:
            candidates = self.scanner.discover_candidates(directory)
        except DiscoveryError as e:
            self._fail(e)
            return
        self.logger.debug(f"Expanded {directory}: {len(candidates)} media files")
        for path in candidates:
            if not self._enqueue(path):
                break

    def _enqueue(self, path: Path) -> bool:
        job = Job(path=path)
        try:
            self.submit(job)
        except QueueClosedError:
            self.logger.warning(f"Queue closed, not processing {path}")
            return False
        self.logger.debug(f"Enqueued {path}")
        if self.event_bus is not None:
            self.event_bus.publish(JobEnqueued(job=job))
        return True

    def _fail(self, error: BaseException) -> None:
        with self._lock:
            if self.fatal_error is not None:
                return
            self.fatal_error = error
            self.state = WatchState.STOPPED
        self.logger.error(f"Watch failed: {error}")
        self.stop_event.set()

    def check_health(self) -> bool:
        """Detects a dead event stream. Returns False (and fails the watch) if so."""
        if self.state != WatchState.WATCHING or self._observer is None:
            return self.fatal_error is None
        emitters = getattr(self._observer, "emitters", None)
        alive = self._observer.is_alive() and (emitters is None or all(e.is_alive() for e in emitters))
        if not alive:
            self._fail(WatchError(f"Filesystem event stream for {self.root} stopped"))
        return alive

    def begin_drain(self) -> None:
        """WATCHING -> DRAINING: further events are ignored."""
        with self._lock:
            if self.state == WatchState.WATCHING:
                self.state = WatchState.DRAINING

    def stop(self) -> None:
        """Stops the observer thread and waits for it."""
        self.begin_drain()
        if self._observer is not None:
            self._observer.stop()
            self._observer.join()
            self._observer = None

    def mark_stopped(self) -> None:
        with self._lock:
            self.state = WatchState.STOPPED

    @property
    def pending_expansions(self) -> int:
        with self._lock:
            return sum(1 for t in self._expanders if t.is_alive())
