from __future__ import annotations

import logging
from copy import copy, deepcopy
from typing import Any
from urllib.parse import unquote, unquote_plus

from uvicorn.config import LOGGING_CONFIG
from uvicorn.logging import AccessFormatter as UvicornAccessFormatter

PACKAGE_LOGGER = "yomu"
_DEBUG_FORMAT = "[yomu debug] %(name)s: %(message)s"


def set_debug_logging(enabled: bool) -> None:
    """Route DEBUG output of the ``yomu`` logger tree to stderr, or silence it."""
    logger = logging.getLogger(PACKAGE_LOGGER)
    handler = next(
        (h for h in logger.handlers if getattr(h, "_yomu_debug", False)),
        None,
    )
    if enabled:
        if handler is None:
            handler = logging.StreamHandler()
            handler.setFormatter(logging.Formatter(_DEBUG_FORMAT))
            handler._yomu_debug = True  # type: ignore[attr-defined]
            logger.addHandler(handler)
        logger.setLevel(logging.DEBUG)
    else:
        if handler is not None:
            logger.removeHandler(handler)
        logger.setLevel(logging.NOTSET)


def _readable_target(target: str) -> str:
    path, sep, query = target.partition("?")
    try:
        path = unquote(path, encoding="utf-8", errors="replace")
        # the page reads ?jump= with URLSearchParams, so "+" in a query means a space
        query = unquote_plus(query, encoding="utf-8", errors="replace")
    except (TypeError, ValueError):
        return target
    return f"{path}{sep}{query}"


class Utf8AccessFormatter(UvicornAccessFormatter):
    """
    Access log lines with book ids, titles and jump terms shown as typed.

    ``GET /api/books/3/rendering?jump=%E8%B1%A1`` is logged as
    ``GET /api/books/3/rendering?jump=象``.
    """

    def formatMessage(self, record):  # type: ignore[override]
        args = record.args
        if not isinstance(args, tuple) or len(args) != 5 or not isinstance(args[2], str):
            return super().formatMessage(record)
        readable = copy(record)
        readable.args = args[:2] + (_readable_target(args[2]),) + args[3:]
        return super().formatMessage(readable)


def build_uvicorn_log_config(debug: bool = False) -> dict[str, Any]:
    """
    uvicorn's logging config with readable access lines and the ``yomu``
    module loggers routed to the same console handler.
    """
    config = deepcopy(LOGGING_CONFIG)
    formatter = config.get("formatters", {}).get("access")
    if isinstance(formatter, dict):
        formatter["()"] = "yomu.logging_utils.Utf8AccessFormatter"
    config.setdefault("loggers", {})[PACKAGE_LOGGER] = {
        "handlers": ["default"],
        "level": "DEBUG" if debug else "INFO",
        "propagate": False,
    }
    return config
