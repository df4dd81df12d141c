"""Root logging setup driven by LOG_LEVEL / LOG_FORMAT."""

import logging
import os
import sys

from pythonjsonlogger import jsonlogger

# Loggers that drown out transition events at INFO
_NOISY = ("sqlalchemy.engine", "urllib3", "httpx", "httpcore")


def setup_logging() -> None:
    """Install one stdout handler on the root logger (JSON by default, plain text optional)."""
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    fmt = os.getenv("LOG_FORMAT", "json").lower()

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    if fmt == "json":
        handler.setFormatter(jsonlogger.JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s"))
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)

    for name in _NOISY:
        logging.getLogger(name).setLevel(logging.WARNING)
