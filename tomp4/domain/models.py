from enum import Enum
from pathlib import Path
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

class StreamType(str, Enum):
    AUDIO = "audio"
    VIDEO = "video"
    OTHER = "other"

class OutcomeStatus(str, Enum):
    ALREADY_COMPLIANT = "ALREADY_COMPLIANT"
    TRANSCODED = "TRANSCODED"
    FAILED = "FAILED"

class ComplianceAction(str, Enum):
    NOOP = "NOOP"            # source already sits at the output path
    RELOCATED = "RELOCATED"  # renamed (delete_original)
    COPIED = "COPIED"

class Job(BaseModel):
    """A single file path handed to exactly one worker."""
    model_config = ConfigDict(frozen=True)

    path: Path

class StreamInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    index: int = 0
    codec_name: str = ""
    codec_long_name: str = ""
    codec_type: StreamType = StreamType.OTHER

    @field_validator("codec_type", mode="before")
    @classmethod
    def classify_codec_type(cls, v):
        # subtitle, data, attachment... all collapse to OTHER
        try:
            return StreamType(v)
        except ValueError:
            return StreamType.OTHER

class FormatInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    filename: str = ""
    format_name: str = ""
    format_long_name: str = ""

class MediaInfo(BaseModel):
    """Probe snapshot for one file. Produced fresh per probe, never cached."""
    model_config = ConfigDict(frozen=True)

    streams: List[StreamInfo] = Field(default_factory=list)
    format: FormatInfo = Field(default_factory=FormatInfo)

    def first_codec(self, stream_type: StreamType) -> Optional[str]:
        """Codec name of the first stream of `stream_type`, in probe order."""
        for stream in self.streams:
            if stream.codec_type == stream_type:
                return stream.codec_name or None
        return None

    @property
    def audio_codec(self) -> Optional[str]:
        return self.first_codec(StreamType.AUDIO)

    @property
    def video_codec(self) -> Optional[str]:
        return self.first_codec(StreamType.VIDEO)

class ConversionOutcome(BaseModel):
    job: Job
    output_path: Optional[Path] = None  # unset when the job failed before a decision
    status: OutcomeStatus
    action: Optional[ComplianceAction] = None
    error_message: Optional[str] = None
    duration_seconds: Optional[float] = None

    @property
    def succeeded(self) -> bool:
        return self.status != OutcomeStatus.FAILED
