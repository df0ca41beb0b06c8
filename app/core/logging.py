"""
Logging setup.

Everything goes to stdout; gunicorn / the platform captures it.
Call `configure_logging()` once at application start.
"""
import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    root = logging.getLogger()
    root.setLevel(level.upper())

    # Idempotent: re-importing the app (tests, reloader) must not stack handlers.
    for handler in root.handlers:
        if getattr(handler, "_memoir", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler._memoir = True  # type: ignore[attr-defined]
    root.addHandler(handler)
