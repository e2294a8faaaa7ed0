from __future__ import annotations

import logging
import sys

_FORMAT = "%(asctime)s.%(msecs)03d %(levelname)s %(name)s: %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: str | int = "INFO") -> None:
    """
    Install a single stderr handler on the root logger.

    Safe to call more than once; earlier handlers are replaced so the API
    and worker entry points can both call it.
    """
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(fmt=_FORMAT, datefmt=_DATE_FORMAT))
    root.addHandler(handler)

    # SQL echo and amqp chatter only at WARNING unless explicitly enabled.
    for noisy in ("sqlalchemy.engine", "kombu", "amqp"):
        logging.getLogger(noisy).setLevel(max(level, logging.WARNING))
