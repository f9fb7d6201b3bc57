"""
Logging Configuration
Routes the 'oceanrun' loggers (driver progress, writers, checkpoints) to
stdout and, optionally, a run log file.
"""
import logging
import sys
from typing import Optional, Union

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%H:%M:%S'


def setup_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    append: bool = False,
) -> None:
    """
    Configures the logger for the 'oceanrun' namespace.

    Args:
        level: Logging level, as a number or a name ("DEBUG", "INFO", ...).
        log_file: Optional path to save logs to a file.
        append: Append to ``log_file`` instead of truncating it, so a picked-up
            run continues the log of the run it restarts.
    """
    if isinstance(level, str):
        name = level.upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            raise ValueError(f"Unknown logging level '{name}'.")

    logger = logging.getLogger("oceanrun")
    logger.setLevel(level)

    # Handlers from an earlier call (a previous run in the same process) are replaced
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode='a' if append else 'w', encoding='utf-8')
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug(f"Logging initialized at level {logging.getLevelName(level)}.")
