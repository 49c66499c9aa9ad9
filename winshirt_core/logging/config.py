# =============================================================================
# winshirt_core/logging/config.py
# Logging Configuration for the WinShirt data layer
# =============================================================================

import logging
import sys
import time
from pathlib import Path
from datetime import datetime
from typing import Optional


# Log format
LOG_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Log directory
LOG_DIR = Path("logs")

# Chatty transport libraries used by the Supabase client
NOISY_LOGGERS = (
    "urllib3",
    "httpx",
    "httpcore",
    "hpack",
    "supabase",
    "postgrest",
    "realtime",
    "websockets",
)


def setup_logging(
    level: int = logging.INFO,
    log_to_file: bool = True,
    log_filename: Optional[str] = None,
) -> None:
    """
    Configure application-wide logging.

    Args:
        level: Logging level (default: INFO)
        log_to_file: Whether to also log to a file
        log_filename: Custom log filename (default: winshirt_YYYY-MM-DD.log)
    """
    handlers = [logging.StreamHandler(sys.stdout)]

    if log_to_file:
        LOG_DIR.mkdir(exist_ok=True)
        if log_filename is None:
            log_filename = f"winshirt_{datetime.now().strftime('%Y-%m-%d')}.log"
        handlers.append(logging.FileHandler(LOG_DIR / log_filename, encoding="utf-8"))

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
        handlers=handlers,
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("winshirt_core").info("Logging initialized")


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger instance with the given name.

    Usage:
        from winshirt_core.logging import get_logger
        logger = get_logger(__name__)
        logger.info("Mirror refreshed")
    """
    return logging.getLogger(name)


class LogContext:
    """
    Times one data-layer operation and logs how it ended.

    Failures carrying an error code (every WinShirtError) are expected
    backend outcomes and are logged as warnings; anything else is logged
    with its traceback. Exceptions always propagate.

    Usage:
        with LogContext(logger, "Pulling products", table="products") as op:
            rows = await gateway.select("products")
            op.note(rows=len(rows))
        # DEBUG: "Pulling products [table=products] started"
        # INFO:  "Pulling products [table=products, rows=12] done in 0.18s"
    """

    def __init__(self, logger: logging.Logger, operation: str, **fields):
        self.logger = logger
        self.operation = operation
        self.fields = dict(fields)
        self.elapsed = 0.0
        self._started = 0.0

    def note(self, **fields) -> None:
        """Attach values reported when the operation ends."""
        self.fields.update(fields)

    def _label(self) -> str:
        if not self.fields:
            return self.operation
        extras = ", ".join(f"{key}={value}" for key, value in self.fields.items())
        return f"{self.operation} [{extras}]"

    def __enter__(self) -> "LogContext":
        self._started = time.perf_counter()
        self.logger.debug(f"{self._label()} started")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        self.elapsed = time.perf_counter() - self._started
        if exc_type is None:
            self.logger.info(f"{self._label()} done in {self.elapsed:.2f}s")
        elif getattr(exc_val, "code", None):
            self.logger.warning(f"{self._label()} failed after {self.elapsed:.2f}s: {exc_val}")
        else:
            self.logger.error(
                f"{self._label()} failed after {self.elapsed:.2f}s: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb),
            )
        return False
