import threading
import time
import pytest
from pathlib import Path
from unittest.mock import MagicMock
from conftest import make_config
from tomp4.domain.errors import DiscoveryError, WatchError
from tomp4.domain.events import (
    DiscoveryFinished,
    DiscoveryStarted,
    ProcessingFinished,
    ShutdownRequested,
)
from tomp4.infrastructure.event_bus import EventBus
from tomp4.infrastructure.file_scanner import FileScanner
from tomp4.pipeline.orchestrator import Orchestrator


class RecordingConverter:
    def __init__(self, delay: float = 0.0):
        self.delay = delay
        self.processed = []
        self._lock = threading.Lock()

    def process(self, job):
        time.sleep(self.delay)
        with self._lock:
            self.processed.append(job.path)


class FakeIngestor:
    """Stands in for WatchIngestor; captures the constructor arguments."""

    def __init__(self, root, scanner, submit, stop_event, event_bus=None, fail_start=False):
        self.root = root
        self.scanner = scanner
        self.submit = submit
        self.stop_event = stop_event
        self.event_bus = event_bus
        self.fail_start = fail_start
        self.fatal_error = None
        self.calls = []

    def start(self):
        self.calls.append("start")
        if self.fail_start:
            raise WatchError("cannot subscribe")

    def check_health(self):
        return self.fatal_error is None

    def begin_drain(self):
        self.calls.append("begin_drain")

    def stop(self):
        self.calls.append("stop")

    def mark_stopped(self):
        self.calls.append("mark_stopped")


def _orchestrator(converter=None, bus=None, factory=None, **general):
    kwargs = {}
    if factory is not None:
        kwargs["ingestor_factory"] = factory
    return Orchestrator(
        config=make_config(**general),
        event_bus=bus or MagicMock(spec=EventBus),
        file_scanner=FileScanner(),
        converter=converter or RecordingConverter(),
        health_interval=0.01,
        **kwargs,
    )


def _published(bus):
    return [call.args[0] for call in bus.publish.call_args_list]


# Batch

def test_run_batch_processes_directory_contents_unfiltered(tmp_path):
    # Explicit inputs are trusted: no extension filter in batch mode
    for name in ("a.avi", "b.mp4", "notes.txt"):
        (tmp_path / name).write_text("x")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "c.mkv").write_text("x")
    conv = RecordingConverter()
    bus = MagicMock(spec=EventBus)

    _orchestrator(conv, bus).run_batch([tmp_path])

    assert sorted(p.name for p in conv.processed) == ["a.avi", "b.mp4", "notes.txt"]
    types = [type(e) for e in _published(bus)]
    assert types == [DiscoveryStarted, DiscoveryFinished, ProcessingFinished]
    finished = _published(bus)[1]
    assert finished.files_found == 3
    assert finished.inputs_count == 1

def test_run_batch_recursive(tmp_path):
    (tmp_path / "a.avi").write_text("x")
    (tmp_path / "sub" / "deeper").mkdir(parents=True)
    (tmp_path / "sub" / "deeper" / "c.mkv").write_text("x")
    conv = RecordingConverter()

    _orchestrator(conv, recursive=True).run_batch([tmp_path])

    assert sorted(p.name for p in conv.processed) == ["a.avi", "c.mkv"]

def test_run_batch_file_inputs(tmp_path):
    f = tmp_path / "single.avi"
    f.write_text("x")
    conv = RecordingConverter()

    _orchestrator(conv).run_batch([f])

    assert conv.processed == [f]

def test_run_batch_discovery_error_is_fatal_before_any_job(tmp_path):
    (tmp_path / "a.avi").write_text("x")
    conv = RecordingConverter()

    with pytest.raises(DiscoveryError):
        _orchestrator(conv).run_batch([tmp_path, tmp_path / "missing"])

    assert conv.processed == []

def test_run_batch_nothing_to_do(tmp_path):
    bus = MagicMock(spec=EventBus)
    conv = RecordingConverter()

    _orchestrator(conv, bus).run_batch([tmp_path])

    assert conv.processed == []
    assert isinstance(_published(bus)[-1], ProcessingFinished)


# Watch

def _capturing_factory(**extra):
    created = []

    def factory(**kwargs):
        ingestor = FakeIngestor(**kwargs, **extra)
        created.append(ingestor)
        return ingestor

    return factory, created

def _wait_for(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()

def test_run_watch_drains_on_stop(tmp_path):
    factory, created = _capturing_factory()
    conv = RecordingConverter(delay=0.05)
    bus = MagicMock(spec=EventBus)
    orch = _orchestrator(conv, bus, factory, workers=2)

    runner = threading.Thread(target=orch.run_watch, args=(tmp_path,), daemon=True)
    runner.start()
    assert _wait_for(lambda: created and "start" in created[0].calls)

    ingestor = created[0]
    assert ingestor.root == tmp_path
    for i in range(4):
        ingestor.submit(MagicMock(path=tmp_path / f"{i}.avi"))

    orch.request_stop("SIGTERM")
    runner.join(5.0)

    assert not runner.is_alive()
    assert len(conv.processed) == 4
    assert ingestor.calls == ["start", "begin_drain", "stop", "mark_stopped"]
    published = _published(bus)
    assert isinstance(published[0], ShutdownRequested)
    assert published[0].signal_name == "SIGTERM"
    assert isinstance(published[-1], ProcessingFinished)

def test_request_stop_is_idempotent():
    bus = MagicMock(spec=EventBus)
    orch = _orchestrator(bus=bus)

    orch.request_stop("SIGINT")
    orch.request_stop("SIGTERM")

    assert len(_published(bus)) == 1

def test_run_watch_start_failure_propagates(tmp_path):
    factory, created = _capturing_factory(fail_start=True)
    orch = _orchestrator(factory=factory)

    with pytest.raises(WatchError):
        orch.run_watch(tmp_path)

def test_run_watch_fatal_error_skips_drain(tmp_path):
    factory, created = _capturing_factory()
    orch = _orchestrator(factory=factory)
    errors = []

    def run():
        try:
            orch.run_watch(tmp_path)
        except WatchError as e:
            errors.append(e)

    runner = threading.Thread(target=run, daemon=True)
    runner.start()
    assert _wait_for(lambda: created and "start" in created[0].calls)

    ingestor = created[0]
    ingestor.fatal_error = DiscoveryError(tmp_path / "sub", "unable to read dir")
    ingestor.stop_event.set()
    runner.join(5.0)

    assert len(errors) == 1
    assert "unable to read dir" in str(errors[0])
    assert "begin_drain" not in ingestor.calls
    assert "stop" in ingestor.calls
