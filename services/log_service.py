# FILE: services/log_service.py

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def configure_logging(log_path: Path | None = None, level: int | str = logging.INFO) -> Path | None:
    """
    Sends log records to the console and, when possible, to log_path.
    Calling it again only adjusts the level.
    Returns the file actually written to, or None for console only.
    """
    root = logging.getLogger()
    root.setLevel(level)

    if getattr(root, "_debinstaller_configured", False):
        return getattr(root, "_debinstaller_log_path", None)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    root.addHandler(console)

    chosen_path = None
    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path, encoding="utf-8")
        except OSError as e:
            root.warning("Cannot write log file %s (%s); logging to console only", log_path, e)
        else:
            file_handler.setFormatter(formatter)
            root.addHandler(file_handler)
            chosen_path = log_path

    root._debinstaller_configured = True
    root._debinstaller_log_path = chosen_path
    return chosen_path
