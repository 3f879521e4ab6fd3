import threading
from collections import deque
from datetime import datetime
from pathlib import Path
from typing import Dict, List, Optional, Tuple
from tomp4.domain.models import ConversionOutcome, OutcomeStatus

class RunState:
    """Thread-safe counters for one batch or watch run."""

    def __init__(self, recent_failures_max: int = 10):
        self._lock = threading.RLock()

        # Discovery
        self.total_files_found = 0
        self.inputs_count = 0
        self.discovery_finished = False

        # Watch
        self.watch_root: Optional[Path] = None
        self.enqueued_count = 0
        self.shutdown_signal: Optional[str] = None

        # Outcomes
        self.transcoded_count = 0
        self.compliant_count = 0
        self.failed_count = 0
        self.compliant_actions: Dict[str, int] = {}
        self.recent_failures = deque(maxlen=recent_failures_max)

        # Jobs currently transcoding: path -> start time
        self.active_jobs: Dict[Path, datetime] = {}

        self.start_time = datetime.now()
        self.finished_time: Optional[datetime] = None

    def record_started(self, path: Path) -> None:
        with self._lock:
            self.active_jobs[path] = datetime.now()

    def record_outcome(self, outcome: ConversionOutcome) -> None:
        with self._lock:
            self.active_jobs.pop(outcome.job.path, None)
            if outcome.status == OutcomeStatus.TRANSCODED:
                self.transcoded_count += 1
            elif outcome.status == OutcomeStatus.ALREADY_COMPLIANT:
                self.compliant_count += 1
                if outcome.action is not None:
                    key = outcome.action.value
                    self.compliant_actions[key] = self.compliant_actions.get(key, 0) + 1
            else:
                self.failed_count += 1
                self.recent_failures.append((outcome.job.path, outcome.error_message or "Unknown error"))

    @property
    def processed_count(self) -> int:
        with self._lock:
            return self.transcoded_count + self.compliant_count + self.failed_count

    def failures(self) -> List[Tuple[Path, str]]:
        with self._lock:
            return list(self.recent_failures)
