from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

X264_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
    "placebo",
)

DEFAULT_EXTENSIONS = [".mp4", ".avi", ".mkv"]


def _normalize_extension(ext: str) -> str:
    return ext if ext.startswith(".") else f".{ext}"


class VideoTarget(BaseModel):
    """Video side of the conversion target.

    `codec` is the family name ffprobe reports for compliant files; `encoder`
    is the ffmpeg encoder used to produce it.
    """
    model_config = ConfigDict(frozen=True)

    codec: str = "h264"
    encoder: str = "libx264"
    crf: int = Field(default=19, ge=0, le=51)
    preset: str = "medium"

    @field_validator("preset")
    @classmethod
    def validate_preset(cls, v: str) -> str:
        if v not in X264_PRESETS:
            raise ValueError(f"Unsupported preset: {v}. Use one of {list(X264_PRESETS)}")
        return v


class AudioTarget(BaseModel):
    model_config = ConfigDict(frozen=True)

    codec: str = "aac"
    encoder: str = "aac"
    bitrate: str = "192k"
    channels: int = Field(default=2, gt=0)

    @field_validator("bitrate")
    @classmethod
    def validate_bitrate(cls, v: str) -> str:
        text = v.strip().lower()
        digits = text[:-1] if text.endswith(("k", "m")) else text
        if not digits.isdigit() or int(digits) <= 0:
            raise ValueError(f"Invalid audio bitrate: {v}")
        return text


class GeneralConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    workers: int = Field(default=4, gt=0)
    delete_original: bool = False
    recursive: bool = False
    output_dir: Optional[str] = None  # None/empty -> next to the source
    extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_EXTENSIONS))
    output_extension: str = ".mp4"
    log_path: Optional[str] = None
    debug: bool = False

    @field_validator("extensions")
    @classmethod
    def validate_extensions(cls, v: List[str]) -> List[str]:
        if not v:
            raise ValueError("extensions must not be empty")
        return [_normalize_extension(ext) for ext in v]

    @field_validator("output_extension")
    @classmethod
    def validate_output_extension(cls, v: str) -> str:
        return _normalize_extension(v)

    @field_validator("output_dir")
    @classmethod
    def validate_output_dir(cls, v: Optional[str]) -> Optional[str]:
        return v or None


class AppConfig(BaseModel):
    """Process-wide configuration. Built once at startup, never mutated."""
    model_config = ConfigDict(frozen=True)

    general: GeneralConfig = Field(default_factory=GeneralConfig)
    video: VideoTarget = Field(default_factory=VideoTarget)
    audio: AudioTarget = Field(default_factory=AudioTarget)


def apply_overrides(config: AppConfig, **overrides) -> AppConfig:
    """Returns a new validated AppConfig with CLI overrides applied.

    Keyword names are `<section>_<field>` (e.g. `general_workers`,
    `video_crf`); `None` values are ignored.
    """
    data = config.model_dump()
    for key, value in overrides.items():
        if value is None:
            continue
        section, _, field = key.partition("_")
        if section not in data or field not in data[section]:
            raise KeyError(f"Unknown config override: {key}")
        data[section][field] = value
    return AppConfig(**data)
