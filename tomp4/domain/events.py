"""Domain events for the conversion pipeline.

Events flow through the EventBus and decouple the workers and the watch
ingestor from logging of start/finish notices and the end-of-run summary.

See `infrastructure/event_bus.py` for the pub/sub mechanism.
"""

from pathlib import Path
from pydantic import BaseModel
from .models import Job, ConversionOutcome


class Event(BaseModel):
    """Base class for all domain events."""

    pass


class JobStarted(Event):
    """Emitted when a worker starts transcoding a job."""

    job: Job


class JobCompleted(Event):
    """Emitted when a job ends as transcoded or already compliant."""

    outcome: ConversionOutcome


class JobFailed(Event):
    """Emitted when a job is abandoned after a probe/encode/copy error."""

    outcome: ConversionOutcome
    error_message: str


class DiscoveryStarted(Event):
    directory: Path


class DiscoveryFinished(Event):
    """Emitted once batch discovery has expanded every input."""

    files_found: int
    inputs_count: int = 1


class WatchStarted(Event):
    root: Path


class JobEnqueued(Event):
    """Emitted by the watch ingestor for each path it hands to the pool."""

    job: Job


class ShutdownRequested(Event):
    """Emitted when SIGINT/SIGTERM starts the drain in watch mode."""

    signal_name: str


class ProcessingFinished(Event):
    """Emitted after the pool has drained."""

    pass
