"""Fire-and-forget progress channel.

Long operations report ``(level, message, current, total)`` to an optional
observer callback. Every message is also written to the ``autosocket`` logger.
The core never waits on the observer and an observer failure never aborts the
operation that reported.
"""

import logging
from typing import Callable, Optional

ProgressCallback = Callable[[str, str, Optional[int], Optional[int]], None]

_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}

logger = logging.getLogger("autosocket")


def emit(
    progress: Optional[ProgressCallback],
    level: str,
    message: str,
    current: Optional[int] = None,
    total: Optional[int] = None,
    log: logging.Logger = logger,
) -> None:
    """Log ``message`` and forward it to the observer, if any."""
    log.log(_LEVELS.get(level, logging.INFO), message)
    if progress is None:
        return
    try:
        progress(level, message, current, total)
    except Exception as e:
        log.debug("Progress observer failed: %s", e)
