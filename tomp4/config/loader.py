import yaml
from pathlib import Path
from .models import AppConfig

def load_config(config_path: Path) -> AppConfig:
    """Loads YAML config and parses it into AppConfig Pydantic model."""
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path, 'r') as f:
        data = yaml.safe_load(f) or {}

    # Sections may be left empty in YAML (`video:` with no keys)
    for section in ("general", "video", "audio"):
        if section in data and data[section] is None:
            data.pop(section)

    return AppConfig(**data)
