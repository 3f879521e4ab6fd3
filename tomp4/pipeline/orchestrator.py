"""Top-level driver for batch and watch runs.

Batch mode expands every input with the File Discoverer before any worker
starts, so an unreadable input aborts the run without touching a file. It
then hands every path to the worker pool, closes the queue and waits for the
drain.

Watch mode starts the pool, subscribes the WatchIngestor to the root and
blocks until SIGINT/SIGTERM (or a fatal watch error). On a signal it stops
accepting events, closes the queue and waits for in-flight jobs to finish.
"""

import logging
import signal
import threading
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Union
from tomp4.config.models import AppConfig
from tomp4.domain.errors import WatchError
from tomp4.domain.events import (
    DiscoveryStarted,
    DiscoveryFinished,
    ProcessingFinished,
    ShutdownRequested,
)
from tomp4.domain.models import Job
from tomp4.infrastructure.event_bus import EventBus
from tomp4.infrastructure.file_scanner import FileScanner
from tomp4.infrastructure.watcher import WatchIngestor
from tomp4.pipeline.converter import Converter
from tomp4.pipeline.worker_pool import WorkerPool

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class Orchestrator:
    """Wires discovery (or watching), the worker pool and the converter.

    Args:
        config: Frozen AppConfig.
        event_bus: EventBus for discovery/shutdown notices.
        file_scanner: FileScanner for discovery and classification.
        converter: Converter run by every worker.
        ingestor_factory: Builds the WatchIngestor (replaceable in tests).
        health_interval: Seconds between event-stream health checks in watch mode.
    """

    def __init__(
        self,
        config: AppConfig,
        event_bus: EventBus,
        file_scanner: FileScanner,
        converter: Converter,
        ingestor_factory: Callable[..., WatchIngestor] = WatchIngestor,
        health_interval: float = 1.0,
    ):
        self.config = config
        self.event_bus = event_bus
        self.file_scanner = file_scanner
        self.converter = converter
        self.ingestor_factory = ingestor_factory
        self.health_interval = health_interval
        self.logger = logging.getLogger(__name__)
        self._stop_event = threading.Event()
        self._stop_signal: Optional[str] = None

    def _new_pool(self) -> WorkerPool:
        return WorkerPool(self.config.general.workers, self.converter, self.event_bus)

    def discover(self, inputs: Sequence[Union[str, Path]]) -> List[Path]:
        """Expands every input. DiscoveryError propagates (fatal)."""
        files: List[Path] = []
        for input_path in inputs:
            input_path = Path(input_path)
            self.event_bus.publish(DiscoveryStarted(directory=input_path))
            files.extend(self.file_scanner.discover(input_path, self.config.general.recursive))
        self.logger.info(f"Discovery finished: inputs={len(inputs)}, files={len(files)}")
        self.event_bus.publish(DiscoveryFinished(files_found=len(files), inputs_count=len(inputs)))
        return files

    def run_batch(self, inputs: Sequence[Union[str, Path]]) -> None:
        files = self.discover(inputs)
        if not files:
            self.logger.info("No files to process, exiting")
            self.event_bus.publish(ProcessingFinished())
            return

        pool = self._new_pool().start()
        try:
            for path in files:
                pool.submit(Job(path=path))
        finally:
            pool.drain()
        self.logger.info("All files processed, exiting")
        self.event_bus.publish(ProcessingFinished())

    def request_stop(self, signal_name: str = "manual") -> None:
        """Starts the graceful drain of a watch run (signal handlers call this)."""
        if self._stop_event.is_set():
            return
        self._stop_signal = signal_name
        self.logger.info(f"{signal_name} received - draining queued jobs before exit...")
        self.event_bus.publish(ShutdownRequested(signal_name=signal_name))
        self._stop_event.set()

    def _install_signal_handlers(self):
        if threading.current_thread() is not threading.main_thread():
            return {}
        previous = {}

        def _handler(signum, _frame):
            self.request_stop(signal.Signals(signum).name)

        for sig in HANDLED_SIGNALS:
            previous[sig] = signal.signal(sig, _handler)
        return previous

    @staticmethod
    def _restore_signal_handlers(previous) -> None:
        for sig, handler in previous.items():
            signal.signal(sig, handler)

    def run_watch(self, root: Union[str, Path]) -> None:
        """Blocks until a stop signal, then drains. Raises WatchError on a fatal watch error."""
        root = Path(root)
        pool = self._new_pool().start()
        ingestor = self.ingestor_factory(
            root=root,
            scanner=self.file_scanner,
            submit=pool.submit,
            stop_event=self._stop_event,
            event_bus=self.event_bus,
        )

        previous_handlers = self._install_signal_handlers()
        try:
            try:
                ingestor.start()
            except WatchError:
                pool.close()
                raise

            while not self._stop_event.wait(self.health_interval):
                ingestor.check_health()

            if ingestor.fatal_error is not None:
                # Environment error: no drain, the process is going down
                pool.close()
                ingestor.stop()
                error = ingestor.fatal_error
                if isinstance(error, WatchError):
                    raise error
                raise WatchError(str(error)) from error

            ingestor.begin_drain()
            pool.close()
            ingestor.stop()
            pool.join()
            ingestor.mark_stopped()
        finally:
            self._restore_signal_handlers(previous_handlers)

        self.logger.info("Watch stopped, all queued jobs drained")
        self.event_bus.publish(ProcessingFinished())
