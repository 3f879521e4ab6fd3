import threading
import pytest
import yaml
from pathlib import Path
from typing import Dict, List, Optional, Union
from tomp4.config.models import AppConfig, GeneralConfig
from tomp4.domain.errors import EncodeError, ProbeError
from tomp4.domain.models import MediaInfo, StreamInfo, FormatInfo
from tomp4.infrastructure.event_bus import EventBus

# ============================================================================
# Fake external tools
# ============================================================================

def make_media_info(audio: Optional[str] = None, video: Optional[str] = None, filename: str = "", format_name: str = "") -> MediaInfo:
    """Builds a MediaInfo with one video and/or one audio stream."""
    streams = []
    if video is not None:
        streams.append(StreamInfo(index=len(streams), codec_name=video, codec_long_name=video.upper(), codec_type="video"))
    if audio is not None:
        streams.append(StreamInfo(index=len(streams), codec_name=audio, codec_long_name=audio.upper(), codec_type="audio"))
    return MediaInfo(streams=streams, format=FormatInfo(filename=filename, format_name=format_name))


class FakeProber:
    """probe() capability backed by a name -> MediaInfo (or Exception) map."""

    def __init__(self, infos: Optional[Dict[str, Union[MediaInfo, Exception]]] = None, default: Optional[MediaInfo] = None):
        self.infos = infos or {}
        self.default = default
        self.calls: List[Path] = []
        self._lock = threading.Lock()

    def probe(self, file_path: Path) -> MediaInfo:
        with self._lock:
            self.calls.append(file_path)
        info = self.infos.get(file_path.name, self.default)
        if isinstance(info, Exception):
            raise info
        if info is None:
            raise ProbeError(file_path, "no fake probe result")
        return info


class FakeEncoder:
    """encode() capability that writes bytes to the output, or fails for chosen names."""

    def __init__(self, fail_names=(), payload: bytes = b"encoded"):
        self.fail_names = set(fail_names)
        self.payload = payload
        self.calls = []
        self._lock = threading.Lock()

    def encode(self, source, output, video, audio):
        with self._lock:
            self.calls.append((source, output))
        if source.name in self.fail_names:
            # ffmpeg usually leaves a partial file behind
            output.write_bytes(b"partial")
            raise EncodeError(source, 1, "simulated failure")
        output.write_bytes(self.payload)


# ============================================================================
# Configuration Fixtures
# ============================================================================

def make_config(**general) -> AppConfig:
    return AppConfig(general=GeneralConfig(**general))

@pytest.fixture
def sample_config():
    """Returns a sample AppConfig object for testing."""
    return make_config(workers=2)

@pytest.fixture
def config_yaml_path(tmp_path):
    """Creates a temporary YAML config file."""
    conf_dir = tmp_path / "conf"
    conf_dir.mkdir()
    conf_file = conf_dir / "tomp4.yaml"

    content = {
        'general': {
            'workers': 3,
            'delete_original': False,
            'recursive': True,
            'extensions': ['mp4', 'mkv'],
        },
        'video': {
            'crf': 23,
            'preset': 'fast',
        },
        'audio': {
            'bitrate': '128k',
        },
    }

    with open(conf_file, 'w') as f:
        yaml.dump(content, f)

    return conf_file

# ============================================================================
# EventBus Fixtures
# ============================================================================

@pytest.fixture
def event_bus():
    """Returns a fresh EventBus instance."""
    return EventBus()

# ============================================================================
# File System Fixtures
# ============================================================================

@pytest.fixture
def test_input_dir(tmp_path):
    """Creates a test input directory."""
    input_dir = tmp_path / "input"
    input_dir.mkdir()
    return input_dir

@pytest.fixture
def test_output_dir(tmp_path):
    """Creates a test output directory."""
    output_dir = tmp_path / "output"
    output_dir.mkdir()
    return output_dir

@pytest.fixture
def dummy_media_files(test_input_dir):
    """Creates dummy media files in test input directory."""
    files = []
    for name in ("a.avi", "b.mp4", "c.mkv"):
        f = test_input_dir / name
        f.write_bytes(b"dummy media content " * 100)
        files.append(f)

    subdir = test_input_dir / "subdir"
    subdir.mkdir()
    f = subdir / "d.avi"
    f.write_bytes(b"dummy media content " * 100)
    files.append(f)

    return files

# ============================================================================
# Markers
# ============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "integration: marks tests as integration tests"
    )
    config.addinivalue_line(
        "markers", "unit: marks tests as unit tests"
    )
