"""
Logging for the DAP client.

Command output (auction details, status lines, computed values) is written
to stdout by the CLI, so every log record goes to stderr or to an optional
log file and never mixes with output a script may parse.

Subsystem loggers live under the ``dap`` namespace:

    dap.controller   phase guard, dispatch outcomes, resynchronization
    dap.gateway      ledger reads and submissions
    dap.wallet       account requests and changes
    dap.scheduler    poll ticks and poll failures
    dap.directory    owner lookups and value transfers
    dap.session      status transitions

Secrets and raw commitment preimages are never passed to a logger.
"""

import logging
import sys
from pathlib import Path
from typing import Optional

import colorlog


# Console colours by level. A confirmed transition logs at INFO, a refused
# or unresolved request and a failed poll at WARNING, an unexpected
# polling exception at ERROR.
LEVEL_COLORS = {
    "DEBUG": "thin_white",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "bold_red",
    "CRITICAL": "bold_red,bg_white",
}

CONSOLE_FORMAT = (
    "%(log_color)s%(levelname)-8s%(reset)s "
    "%(blue)s%(name)-15s%(reset)s %(message)s"
)
FILE_FORMAT = "%(asctime)s [%(name)s] %(levelname)-8s %(message)s"
LOG_FILE_NAME = "dap.log"


class DAPLogger:
    """Process-wide logging setup for the client"""

    _initialized = False
    _log_dir: Optional[Path] = None

    @classmethod
    def setup(
        cls,
        level: int = logging.INFO,
        log_dir: Optional[str] = None,
        log_to_file: bool = False,
        force: bool = False,
    ):
        """
        Configure the ``dap`` logger.

        The first get_logger() call runs a default setup; the CLI then calls
        setup_logging() with the configured level and file settings, which
        replaces it.

        Args:
            level: Logging level for console and file
            log_dir: Directory for dap.log. If None, uses ./logs
            log_to_file: Also append records to dap.log
            force: Reconfigure even if a default setup already ran
        """
        if cls._initialized and not force:
            return

        if log_to_file:
            cls._log_dir = Path(log_dir) if log_dir else Path("logs")
            cls._log_dir.mkdir(parents=True, exist_ok=True)

        root_logger = logging.getLogger("dap")
        root_logger.setLevel(level)
        root_logger.handlers.clear()

        console_handler = colorlog.StreamHandler(sys.stderr)
        console_handler.setLevel(level)
        console_handler.setFormatter(
            colorlog.ColoredFormatter(CONSOLE_FORMAT, log_colors=LEVEL_COLORS)
        )
        root_logger.addHandler(console_handler)

        if log_to_file and cls._log_dir:
            file_handler = logging.FileHandler(cls._log_dir / LOG_FILE_NAME)
            file_handler.setLevel(level)
            file_handler.setFormatter(
                logging.Formatter(FILE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
            )
            root_logger.addHandler(file_handler)

        cls._initialized = True

    @classmethod
    def get_logger(cls, name: str) -> logging.Logger:
        """Logger for one subsystem, e.g. 'controller' -> dap.controller"""
        if not cls._initialized:
            cls.setup()

        return logging.getLogger(f"dap.{name}")


def get_logger(name: str) -> logging.Logger:
    return DAPLogger.get_logger(name)


def setup_logging(
    level: int = logging.INFO,
    log_dir: Optional[str] = None,
    log_to_file: bool = False,
):
    """Configure logging from CLI options, replacing any default setup"""
    DAPLogger.setup(level=level, log_dir=log_dir, log_to_file=log_to_file, force=True)
