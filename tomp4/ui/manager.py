import logging
from datetime import datetime
from tomp4.infrastructure.event_bus import EventBus
from tomp4.ui.state import RunState
from tomp4.domain.events import (
    DiscoveryStarted, DiscoveryFinished,
    JobStarted, JobCompleted, JobFailed, JobEnqueued,
    WatchStarted, ShutdownRequested, ProcessingFinished,
)

class UIManager:
    """Subscribes to EventBus and updates RunState."""

    def __init__(self, bus: EventBus, state: RunState):
        self.bus = bus
        self.state = state
        self.logger = logging.getLogger(__name__)
        self._setup_subscriptions()

    def _setup_subscriptions(self):
        self.bus.subscribe(DiscoveryStarted, self.on_discovery_started)
        self.bus.subscribe(DiscoveryFinished, self.on_discovery_finished)
        self.bus.subscribe(JobStarted, self.on_job_started)
        self.bus.subscribe(JobCompleted, self.on_job_completed)
        self.bus.subscribe(JobFailed, self.on_job_failed)
        self.bus.subscribe(JobEnqueued, self.on_job_enqueued)
        self.bus.subscribe(WatchStarted, self.on_watch_started)
        self.bus.subscribe(ShutdownRequested, self.on_shutdown_requested)
        self.bus.subscribe(ProcessingFinished, self.on_processing_finished)

    def on_discovery_started(self, event: DiscoveryStarted):
        with self.state._lock:
            self.state.discovery_finished = False

    def on_discovery_finished(self, event: DiscoveryFinished):
        self.logger.debug(f"UI: discovery counters files_found={event.files_found} inputs={event.inputs_count}")
        with self.state._lock:
            self.state.total_files_found = event.files_found
            self.state.inputs_count = event.inputs_count
            self.state.discovery_finished = True

    def on_job_started(self, event: JobStarted):
        self.state.record_started(event.job.path)

    def on_job_completed(self, event: JobCompleted):
        self.state.record_outcome(event.outcome)

    def on_job_failed(self, event: JobFailed):
        self.state.record_outcome(event.outcome)

    def on_job_enqueued(self, event: JobEnqueued):
        with self.state._lock:
            self.state.enqueued_count += 1

    def on_watch_started(self, event: WatchStarted):
        with self.state._lock:
            self.state.watch_root = event.root

    def on_shutdown_requested(self, event: ShutdownRequested):
        with self.state._lock:
            self.state.shutdown_signal = event.signal_name

    def on_processing_finished(self, event: ProcessingFinished):
        with self.state._lock:
            self.state.finished_time = datetime.now()
