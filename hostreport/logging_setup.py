import logging
import sys
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(
    log_file: Optional[Path] = None,
    level: int = logging.INFO,
) -> List[logging.Handler]:
    """
    Configure the root logger for one report run.

    Log lines always go to stderr; if log_file is given they are appended to
    that file as well. The installed handlers are returned so the caller can
    close them once the run is over (see close_logging).
    """
    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)
    handlers: List[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(formatter)
    handlers.append(stream_handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    root = logging.getLogger()
    root.setLevel(level)
    for handler in handlers:
        root.addHandler(handler)

    return handlers


def close_logging(handlers: List[logging.Handler]) -> None:
    """Flush, detach and close handlers installed by configure_logging."""
    root = logging.getLogger()
    for handler in handlers:
        handler.flush()
        root.removeHandler(handler)
        handler.close()
