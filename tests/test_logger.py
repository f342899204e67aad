from __future__ import annotations

import logging

import pytest

from bundlepatch import logger as bp_logger
from bundlepatch.logger import configure_logging, logger


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    package = logging.getLogger("bundlepatch")
    saved = (root.level, package.level, logging.getLogger("custom").level)
    yield
    if bp_logger._handler is not None:
        root.removeHandler(bp_logger._handler)
        bp_logger._handler.close()
        bp_logger._handler = None
    logging.captureWarnings(False)
    root.setLevel(saved[0])
    package.setLevel(saved[1])
    logging.getLogger("custom").setLevel(saved[2])


def test_structlog_events_reach_stdlib(caplog) -> None:
    with caplog.at_level(logging.INFO, logger="bundlepatch"):
        logger.info("patch applied", kind="verbose", start=3)

    messages = [r.getMessage() for r in caplog.records]
    assert any("patch applied" in m and "kind=verbose" in m for m in messages)


def test_configure_logging_writes_to_file(tmp_path, restore_logging) -> None:
    log_file = tmp_path / "bp.log"
    configure_logging(logging.INFO, log_file=log_file)
    logging.getLogger("bundlepatch.test").info("to the file")
    bp_logger._handler.flush()
    assert "to the file" in log_file.read_text(encoding="utf-8")


def test_configure_logging_replaces_its_own_handler(tmp_path, restore_logging) -> None:
    root = logging.getLogger()
    configure_logging(logging.INFO, log_file=tmp_path / "a.log")
    first = bp_logger._handler
    configure_logging(logging.WARNING)
    assert first not in root.handlers
    assert bp_logger._handler in root.handlers
    assert logging.getLogger("bundlepatch").level == logging.WARNING


def test_configure_logging_overrides(restore_logging) -> None:
    configure_logging(logging.WARNING, overrides={"custom": logging.DEBUG})
    assert logging.getLogger("custom").level == logging.DEBUG
