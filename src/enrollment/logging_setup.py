"""
Enrollment - Logging setup.

Modules log through `logging.getLogger(__name__)`; this only installs handlers.
"""

import logging

from pydantic import ValidationError
from rich.logging import RichHandler

from enrollment.config import settings


def configure_logging(level: str | None = None, rich_output: bool = False) -> None:
    """
    Configure root logging.

    Args:
        level: Log level name. Falls back to settings.log_level, then INFO.
        rich_output: Use rich's handler (CLI) instead of a plain stream.
    """
    if level is None:
        try:
            level = settings.log_level
        except ValidationError:
            # No .env yet (e.g. `enroll steps`); logging still has to work
            level = "INFO"

    handlers: list[logging.Handler]
    if rich_output:
        handlers = [RichHandler(show_path=False, rich_tracebacks=True)]
        fmt = "%(message)s"
    else:
        handlers = [logging.StreamHandler()]
        fmt = "%(asctime)s %(levelname)s %(name)s: %(message)s"

    logging.basicConfig(level=level, format=fmt, handlers=handlers, force=True)
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
