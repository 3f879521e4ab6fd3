import logging
from pathlib import Path
from typing import Optional
from rich.console import Console
from rich.logging import RichHandler

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

def setup_logging(debug: bool = False, log_path: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging configuration for tomp4.

    Console output goes to stderr through rich. When log_path is given the
    same records are also appended to that file.
    Returns configured logger instance.

    Args:
        debug: If True, enable DEBUG level logging with detailed timings
        log_path: Optional path to a log file
    """
    level = logging.DEBUG if debug else logging.INFO

    handlers = [
        RichHandler(
            console=Console(stderr=True),
            show_path=False,
            rich_tracebacks=True,
            markup=False,
        )
    ]
    if log_path:
        log_file = Path(log_path)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handlers.append(file_handler)

    logging.basicConfig(
        level=level,
        format='%(message)s',
        datefmt='[%X]',
        handlers=handlers,
        force=True  # Override any existing configuration
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging initialized: file={log_path or 'none'} (debug={'ON' if debug else 'OFF'})")

    return logger
