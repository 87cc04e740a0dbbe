"""Logging setup for domain preparation runs."""

import logging
import sys
from typing import Optional

DEFAULT_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"

# Third-party loggers that are noisy below WARNING
QUIET_LOGGERS = ("numba", "trimesh", "PIL")


def setup_logging(
    verbose: bool = False,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
) -> logging.Logger:
    """Route voxel_domain log records to stdout and optionally a file.

    Args:
        verbose: Log at DEBUG instead of INFO (per-detector coverage,
            stage details)
        log_file: Also append records to this file
        format_string: Record format, DEFAULT_FORMAT if None

    Returns:
        The ``voxel_domain`` package logger
    """
    handlers = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=format_string or DEFAULT_FORMAT,
        handlers=handlers,
        force=True
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger("voxel_domain")
