"""Logging configuration for PhotoTriage."""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FILENAME = "phototriage.log"


def setup_logging(log_dir: str, console_level: int = logging.INFO) -> None:
    os.makedirs(log_dir, exist_ok=True)
    log_file = os.path.join(log_dir, LOG_FILENAME)

    root_logger = logging.getLogger("phototriage")
    root_logger.setLevel(logging.DEBUG)

    if root_logger.handlers:
        return

    fmt = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")

    fh = RotatingFileHandler(log_file, maxBytes=5 * 1024 * 1024, backupCount=3)
    fh.setLevel(logging.DEBUG)
    fh.setFormatter(fmt)
    root_logger.addHandler(fh)

    ch = logging.StreamHandler()
    ch.setLevel(console_level)
    ch.setFormatter(fmt)
    root_logger.addHandler(ch)
