"""Logging setup shared by the CLI and the API server.

``configure_logging()`` attaches a stderr handler and, when the log directory
is writable, an appending file handler at ``logs/bayesnet.log``. If the root
logger already has handlers (another entry point, pytest, uvicorn), only the
level of this package's loggers is adjusted.
"""

import logging
import os
from typing import Optional

LOG_DIR = "logs"
LOG_FILE = "bayesnet.log"
PACKAGE_LOGGERS = ("src.bayesnet", "src.api")

CONSOLE_FORMAT = "%(levelname)s %(name)s: %(message)s"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(level: int = logging.INFO, log_dir: Optional[str] = LOG_DIR) -> None:
    """Configure logging for an entry point.

    Args:
        level: Level for this package's loggers
        log_dir: Directory for the log file; None disables file output
    """
    for name in PACKAGE_LOGGERS:
        logging.getLogger(name).setLevel(level)

    root = logging.getLogger()
    if root.handlers:
        return

    console = logging.StreamHandler()
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    root.addHandler(console)

    if log_dir is not None:
        try:
            os.makedirs(log_dir, exist_ok=True)
            fh = logging.FileHandler(os.path.join(log_dir, LOG_FILE), mode="a")
        except OSError as e:
            logging.getLogger(__name__).warning(f"File logging disabled: {e}")
        else:
            fh.setFormatter(logging.Formatter(FILE_FORMAT))
            root.addHandler(fh)

    root.setLevel(logging.WARNING)
