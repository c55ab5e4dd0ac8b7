import logging
import logging.handlers
import os
import sys

from core.config import settings

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

_configured = False


def setup_logging(level: str = None, log_file: str = None) -> None:
    """
    Configure the root logger once per process.

    Console output always; a rotating file when LOG_FILE is set.
    Safe to call repeatedly (later calls only adjust the level).
    """
    global _configured

    level = (level or settings.LOG_LEVEL).upper()
    log_file = settings.LOG_FILE if log_file is None else log_file

    root = logging.getLogger()
    root.setLevel(level)

    if _configured:
        return

    formatter = logging.Formatter(LOG_FORMAT)

    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    root.addHandler(console)

    if log_file:
        os.makedirs(os.path.dirname(os.path.abspath(log_file)), exist_ok=True)
        file_handler = logging.handlers.RotatingFileHandler(
            log_file, maxBytes=10 * 1024 * 1024, backupCount=5, encoding="utf-8"
        )
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    # pysnmp/pysmi are very chatty at DEBUG
    for noisy in ("pysmi", "pysnmp"):
        logging.getLogger(noisy).setLevel(max(logging.getLevelName(level), logging.INFO))

    _configured = True
