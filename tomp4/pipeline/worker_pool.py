"""Fixed-size worker pool draining a single rendezvous queue.

`HandoffQueue` has no buffer: `put` returns only after a worker has taken the
job, so producers (batch discovery, the watch ingestor) are throttled to the
pace of the workers. Closing the queue lets workers finish their current job
and exit once nothing is left to hand off.
"""

import logging
import threading
from typing import Callable, List, Optional, Tuple
from tomp4.config.models import AppConfig
from tomp4.domain.errors import QueueClosedError
from tomp4.domain.events import JobFailed
from tomp4.domain.models import ConversionOutcome, Job, OutcomeStatus
from tomp4.infrastructure.event_bus import EventBus
from tomp4.pipeline.converter import Converter


class HandoffQueue:
    """Unbuffered single-slot handoff between producers and workers.

    Producers blocked in `put` fill the slot in the order they called it.
    """

    def __init__(self):
        self._cond = threading.Condition()
        self._item: Optional[Job] = None
        self._has_item = False
        self._closed = False
        self._next_ticket = 0   # handed to the next caller of put
        self._now_serving = 0   # ticket allowed to fill the slot
        self._take_seq = 0

    @property
    def closed(self) -> bool:
        with self._cond:
            return self._closed

    def put(self, job: Job) -> None:
        """Blocks until a worker has received job. Raises QueueClosedError once closed."""
        with self._cond:
            ticket = self._next_ticket
            self._next_ticket += 1
            while (self._has_item or self._now_serving != ticket) and not self._closed:
                self._cond.wait()
            if self._closed:
                raise QueueClosedError(f"Job queue is closed, dropping {job.path}")
            self._item = job
            self._has_item = True
            self._now_serving += 1
            self._cond.notify_all()
            # A job already in the slot is still delivered after close
            while self._take_seq <= ticket:
                self._cond.wait()

    def get(self) -> Optional[Job]:
        """Blocks for the next job; returns None once closed and empty."""
        with self._cond:
            while not self._has_item and not self._closed:
                self._cond.wait()
            if not self._has_item:
                return None
            job = self._item
            self._item = None
            self._has_item = False
            self._take_seq += 1
            self._cond.notify_all()
            return job

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()


class WorkerPool:
    """N worker threads, each running Converter.process end to end per job.

    Args:
        workers: Fixed worker count for the pool lifetime.
        converter: Converter shared by all workers (it holds no per-job state).
        event_bus: Optional EventBus; receives JobFailed when process() raises.
    """

    def __init__(self, workers: int, converter: Converter, event_bus: Optional[EventBus] = None):
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self.workers = workers
        self.converter = converter
        self.event_bus = event_bus
        self.queue = HandoffQueue()
        self._threads: List[threading.Thread] = []
        self.logger = logging.getLogger(__name__)

    def start(self) -> "WorkerPool":
        if self._threads:
            raise RuntimeError("WorkerPool already started")
        for i in range(self.workers):
            thread = threading.Thread(target=self._worker_loop, name=f"worker-{i + 1}", daemon=True)
            thread.start()
            self._threads.append(thread)
        self.logger.debug(f"Worker pool started: workers={self.workers}")
        return self

    def submit(self, job: Job) -> None:
        """Hands job to a worker, blocking until one is ready to take it."""
        self.queue.put(job)

    def close(self) -> None:
        self.queue.close()

    def join(self, timeout: Optional[float] = None) -> bool:
        """Waits for every worker to observe closure. Returns True when all exited."""
        for thread in self._threads:
            thread.join(timeout)
        return not any(thread.is_alive() for thread in self._threads)

    def drain(self) -> None:
        self.close()
        self.join()

    def _worker_loop(self) -> None:
        while True:
            job = self.queue.get()
            if job is None:
                break
            try:
                self.converter.process(job)
            except Exception as e:
                # Log exception but don't crash the worker
                self.logger.error(f"Exception processing {job.path}: {e}", exc_info=True)
                self._report_failure(job, f"Unexpected error processing {job.path}: {e}")
        self.logger.debug(f"{threading.current_thread().name} exiting")

    def _report_failure(self, job: Job, message: str) -> None:
        if self.event_bus is None:
            return
        outcome = ConversionOutcome(job=job, status=OutcomeStatus.FAILED, error_message=message)
        self.event_bus.publish(JobFailed(outcome=outcome, error_message=message))


def run_pool(
    config: AppConfig,
    converter: Converter,
    event_bus: Optional[EventBus] = None,
) -> Tuple[Callable[[Job], None], Callable[[], None]]:
    """Starts a pool sized from config; returns (submit, await_drain).

    await_drain closes the queue and blocks until every worker has returned.
    """
    pool = WorkerPool(config.general.workers, converter, event_bus).start()
    return pool.submit, pool.drain
