"""Per-file conversion decision and execution.

For one job the Converter probes the source, computes the canonical output
path and either takes the skip path (the file already matches the target
codecs and container) or transcodes through a hidden temporary sibling that
is renamed into place only after ffmpeg succeeds.

Every filesystem path touched here derives from the job alone, so workers
never need to coordinate with each other.
"""

import logging
import shutil
import threading
import time
from pathlib import Path
from typing import Optional, Protocol
from tomp4.config.models import AppConfig, VideoTarget, AudioTarget
from tomp4.domain.errors import EncodeError, ProbeError
from tomp4.domain.events import JobStarted, JobCompleted, JobFailed
from tomp4.domain.models import (
    ComplianceAction,
    ConversionOutcome,
    Job,
    MediaInfo,
    OutcomeStatus,
)
from tomp4.infrastructure.event_bus import EventBus


class Prober(Protocol):
    def probe(self, file_path: Path) -> MediaInfo: ...


class Encoder(Protocol):
    def encode(self, source: Path, output: Path, video: VideoTarget, audio: AudioTarget) -> None: ...


def temp_path_for(source: Path, output_path: Path) -> Path:
    """Hidden sibling of the source, named after the full source name.

    `a.avi` and `a.mkv` in one directory get `.a.avi.mp4` and `.a.mkv.mp4`.
    The output suffix is kept last so ffmpeg picks the right muxer.
    """
    return source.parent / f".{source.name}{output_path.suffix}"


class Converter:
    """Decides whether a file needs transcoding and carries the decision out.

    Args:
        config: Frozen AppConfig shared by all workers.
        prober: Anything with `probe(path) -> MediaInfo` (FFprobeAdapter).
        encoder: Anything with `encode(source, output, video, audio)`
            raising EncodeError on failure (FFmpegAdapter).
        event_bus: Optional EventBus for start/finish notices.
    """

    def __init__(
        self,
        config: AppConfig,
        prober: Prober,
        encoder: Encoder,
        event_bus: Optional[EventBus] = None,
    ):
        self.config = config
        self.prober = prober
        self.encoder = encoder
        self.event_bus = event_bus
        self.logger = logging.getLogger(__name__)

    def output_path_for(self, source: Path) -> Path:
        output_name = source.with_suffix(self.config.general.output_extension).name
        if self.config.general.output_dir:
            return Path(self.config.general.output_dir) / output_name
        return source.parent / output_name

    def is_compliant(self, source: Path, info: MediaInfo) -> bool:
        # Missing streams never match, which forces a transcode
        return (
            info.audio_codec == self.config.audio.codec
            and info.video_codec == self.config.video.codec
            and source.suffix == self.config.general.output_extension
        )

    def process(self, job: Job) -> ConversionOutcome:
        """Runs probe, decision and execution for one job. Never raises for per-job errors."""
        source = job.path
        output_path = self.output_path_for(source)
        start_time = time.monotonic()

        if self.config.general.debug:
            self.logger.info(f"PROCESS_START: {source.name} (thread {threading.get_ident()})")

        try:
            info = self.prober.probe(source)
        except ProbeError as e:
            return self._failed(job, output_path, str(e), start_time)

        if self.config.general.debug:
            self.logger.debug(
                f"PROBE: {source.name} audio={info.audio_codec} video={info.video_codec} "
                f"format={info.format.format_name}"
            )

        if self.is_compliant(source, info):
            return self._take_skip_path(job, output_path, start_time)
        return self._transcode(job, output_path, start_time)

    def _take_skip_path(self, job: Job, output_path: Path, start_time: float) -> ConversionOutcome:
        source = job.path
        self.logger.info(f"Conversion unnecessary for {source}")

        if _same_path(source, output_path):
            action = ComplianceAction.NOOP
        else:
            try:
                if self.config.general.delete_original:
                    source.replace(output_path)
                    action = ComplianceAction.RELOCATED
                else:
                    shutil.copy2(source, output_path)
                    action = ComplianceAction.COPIED
            except OSError as e:
                return self._failed(job, output_path, f"Unable to place {source} at {output_path}: {e}", start_time)

        outcome = ConversionOutcome(
            job=job,
            output_path=output_path,
            status=OutcomeStatus.ALREADY_COMPLIANT,
            action=action,
            duration_seconds=time.monotonic() - start_time,
        )
        self._publish(JobCompleted(outcome=outcome))
        return outcome

    def _transcode(self, job: Job, output_path: Path, start_time: float) -> ConversionOutcome:
        source = job.path
        tmp_path = temp_path_for(source, output_path)

        self.logger.info(f"Converting {source} to {output_path}...")
        self._publish(JobStarted(job=job))

        try:
            self.encoder.encode(source, tmp_path, self.config.video, self.config.audio)
        except EncodeError as e:
            # tmp file stays for diagnosis
            return self._failed(job, output_path, f"Unable to convert file {source}: {e}", start_time)

        try:
            tmp_path.replace(output_path)
        except OSError as e:
            return self._failed(job, output_path, f"Unable to move {tmp_path} to {output_path}: {e}", start_time)

        self.logger.info(f"Finished converting {source} to {output_path}.")

        # The rename replaced the source itself when both paths coincide
        if self.config.general.delete_original and not _same_path(source, output_path):
            self.logger.info(f"Removing original {source}")
            try:
                source.unlink()
            except OSError as e:
                self.logger.warning(f"Failed to remove original {source}: {e}")

        outcome = ConversionOutcome(
            job=job,
            output_path=output_path,
            status=OutcomeStatus.TRANSCODED,
            duration_seconds=time.monotonic() - start_time,
        )
        self._publish(JobCompleted(outcome=outcome))
        return outcome

    def _failed(self, job: Job, output_path: Path, message: str, start_time: float) -> ConversionOutcome:
        self.logger.error(message)
        outcome = ConversionOutcome(
            job=job,
            output_path=output_path,
            status=OutcomeStatus.FAILED,
            error_message=message,
            duration_seconds=time.monotonic() - start_time,
        )
        self._publish(JobFailed(outcome=outcome, error_message=message))
        return outcome

    def _publish(self, event) -> None:
        if self.event_bus is not None:
            self.event_bus.publish(event)


def _same_path(a: Path, b: Path) -> bool:
    return a.resolve() == b.resolve()
