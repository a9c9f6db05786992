# Logging configuration for the Kasir POS engine
# Rotating file log, console output and an operator alert hook

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Callable, Optional

LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
LOG_FILE = LOG_DIR / "kasir_pos.log"
LOG_MAX_BYTES = 5 * 1024 * 1024  # 5 MB
LOG_BACKUP_COUNT = 5
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


class ErrorAlertHandler(logging.Handler):
    """Forwards ERROR and CRITICAL records to ``callback(message, level)``.

    Used by the till to light its sync/storage warning indicator.
    """

    def __init__(self, callback: Callable[[str, str], None]):
        super().__init__(level=logging.ERROR)
        self.callback = callback

    def emit(self, record: logging.LogRecord):
        try:
            self.callback(self.format(record), record.levelname)
        except Exception:
            self.handleError(record)


def setup_logging(
    log_path: Optional[Path] = None,
    level: int = logging.INFO,
    console: bool = True,
    alert_callback: Optional[Callable[[str, str], None]] = None,
    max_bytes: int = LOG_MAX_BYTES,
    backup_count: int = LOG_BACKUP_COUNT,
) -> logging.Logger:
    """Configure the root logger; safe to call again (handlers are replaced)."""
    log_path = Path(log_path or LOG_FILE)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")

    root = logging.getLogger()
    root.setLevel(level)
    for h in list(root.handlers):
        root.removeHandler(h)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    file_handler.setFormatter(formatter)
    root.addHandler(file_handler)

    if console:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(formatter)
        root.addHandler(console_handler)

    if alert_callback:
        alert_handler = ErrorAlertHandler(alert_callback)
        alert_handler.setFormatter(formatter)
        root.addHandler(alert_handler)

    # requests/urllib3 connection chatter is noise on a till
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    return root
