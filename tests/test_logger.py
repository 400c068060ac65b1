"""Tests for the loguru setup."""

from __future__ import annotations

from loguru import logger

from utils.logger import get_logger, setup_logging


def test_file_handlers_respect_level(tmp_path) -> None:
    log_file = tmp_path / "logs" / "servicecheck.log"
    setup_logging(level="warning", log_file=log_file, colorize=False)

    log = get_logger("Probe")
    log.info("not written")
    log.warning("port closed")
    log.error("broker gone")
    logger.remove()

    text = log_file.read_text(encoding="utf-8")
    assert "not written" not in text
    assert "WARNING  | Probe:" in text
    assert "broker gone" in text

    errors = (tmp_path / "logs" / "servicecheck.errors.log").read_text(encoding="utf-8")
    assert "broker gone" in errors
    assert "port closed" not in errors


def test_unnamed_logger_uses_default_name(tmp_path) -> None:
    log_file = tmp_path / "servicecheck.log"
    setup_logging(level="DEBUG", log_file=log_file, colorize=False)
    get_logger().info("hello")
    logger.remove()

    assert "service-check:" in log_file.read_text(encoding="utf-8")
