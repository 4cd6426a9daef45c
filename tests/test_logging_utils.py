from __future__ import annotations

import logging

from yomu.logging_utils import Utf8AccessFormatter, build_uvicorn_log_config, set_debug_logging


def test_access_formatter_decodes_utf8_paths() -> None:
    formatter = Utf8AccessFormatter(fmt="%(request_line)s %(status_code)s", use_colors=False)
    record = logging.LogRecord(
        "uvicorn.access",
        logging.INFO,
        __file__,
        1,
        '%s - "%s %s HTTP/%s" %d',
        ("127.0.0.1:5000", "GET", "/api/books/1/rendering?jump=%E8%B1%A1", "1.1", 200),
        None,
    )

    assert "jump=象" in formatter.format(record)


def test_log_config_points_at_utf8_formatter() -> None:
    config = build_uvicorn_log_config()

    assert config["formatters"]["access"]["()"] == "yomu.logging_utils.Utf8AccessFormatter"


def test_debug_logging_toggles_package_logger() -> None:
    logger = logging.getLogger("yomu")
    try:
        set_debug_logging(True)
        set_debug_logging(True)
        assert logger.level == logging.DEBUG
        assert sum(1 for h in logger.handlers if getattr(h, "_yomu_debug", False)) == 1
    finally:
        set_debug_logging(False)
    assert logger.level == logging.NOTSET
    assert not any(getattr(h, "_yomu_debug", False) for h in logger.handlers)


def test_access_formatter_shows_plus_in_query_as_space() -> None:
    formatter = Utf8AccessFormatter(fmt="%(request_line)s", use_colors=False)
    record = logging.LogRecord(
        "uvicorn.access",
        logging.INFO,
        __file__,
        1,
        '%s - "%s %s HTTP/%s" %d',
        ("127.0.0.1:5000", "GET", "/c%2B%2B/notes?book=2&jump=take+off", "1.1", 200),
        None,
    )

    assert formatter.format(record) == "GET /c++/notes?book=2&jump=take off HTTP/1.1"


def test_log_config_routes_package_loggers() -> None:
    quiet = build_uvicorn_log_config()
    verbose = build_uvicorn_log_config(debug=True)

    assert quiet["loggers"]["yomu"]["level"] == "INFO"
    assert verbose["loggers"]["yomu"] == {"handlers": ["default"], "level": "DEBUG", "propagate": False}
