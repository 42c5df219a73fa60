from __future__ import annotations

import logging

from rich.logging import RichHandler

from utils import logger as logger_module
from utils.logger import configure_pipeline_logging, get_logger, setup_logger


def test_setup_logger_is_configured_once() -> None:
    first = setup_logger("card_pipeline.test_once", use_rich=False)
    second = setup_logger("card_pipeline.test_once", use_rich=False)

    assert first is second
    assert len(first.handlers) == 1
    assert not isinstance(first.handlers[0], RichHandler)


def test_get_logger_uses_rich_by_default() -> None:
    log = get_logger("card_pipeline.test_rich")
    assert isinstance(log.handlers[0], RichHandler)


def test_file_handler_writes_under_log_dir(tmp_path, monkeypatch) -> None:
    monkeypatch.setattr(logger_module, "LOG_DIR", tmp_path)
    log = setup_logger("card_pipeline.test_file", log_file="pipeline.log", use_rich=False)

    log.info("card created card_id=%s", "card_1")
    for handler in log.handlers:
        handler.flush()

    assert "card created card_id=card_1" in (tmp_path / "pipeline.log").read_text(encoding="utf-8")
    for handler in list(log.handlers):
        handler.close()
        log.removeHandler(handler)


def test_configure_pipeline_logging_sets_package_levels() -> None:
    configure_pipeline_logging("warning", use_rich=False)

    assert logging.getLogger("orchestrator").level == logging.WARNING
    assert logging.getLogger("pipeline").level == logging.WARNING
    assert logging.getLogger("scrapers").level == logging.WARNING
