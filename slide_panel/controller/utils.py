from __future__ import annotations

import logging
import sys
import traceback


def log_exception(logger: logging.Logger, context: str, exc: BaseException) -> None:
    """Log an unexpected exception to the panel log and stderr."""
    logger.error("%s: %s", context, exc, exc_info=(type(exc), exc, exc.__traceback__))
    traceback.print_exception(type(exc), exc, exc.__traceback__, file=sys.stderr)
