"""Tests for logging configuration."""

import json
import logging

import pytest
import structlog

from ratingtracker.config import LoggingConfig
from ratingtracker.logging_config import ALERT_LOGGER, configure_logging


def _installed(logger: logging.Logger) -> list[logging.Handler]:
    return [h for h in logger.handlers if (h.get_name() or "").startswith("ratingtracker.")]


@pytest.fixture
def log_config(tmp_path):
    config = LoggingConfig(
        app_log=str(tmp_path / "logs" / "app.log"),
        alert_log=str(tmp_path / "logs" / "alerts.log"),
    )
    yield config
    for logger in (logging.getLogger(), logging.getLogger(ALERT_LOGGER)):
        for handler in _installed(logger):
            logger.removeHandler(handler)
            handler.close()
    structlog.reset_defaults()


class TestConfigureLogging:
    def test_creates_log_directories(self, log_config, tmp_path):
        configure_logging(log_config)
        assert (tmp_path / "logs").is_dir()

    def test_alerts_written_to_both_logs(self, log_config, tmp_path):
        configure_logging(log_config)

        logging.getLogger(ALERT_LOGGER).warning("Updates for Example Inc. (EXMP)")
        for handler in _installed(logging.getLogger(ALERT_LOGGER)) + _installed(logging.getLogger()):
            handler.flush()

        alert_lines = (tmp_path / "logs" / "alerts.log").read_text(encoding="utf-8").splitlines()
        assert json.loads(alert_lines[-1])["event"] == "Updates for Example Inc. (EXMP)"
        assert "EXMP" in (tmp_path / "logs" / "app.log").read_text(encoding="utf-8")

    def test_reconfiguring_replaces_handlers(self, log_config):
        configure_logging(log_config)
        configure_logging(log_config)

        assert len(_installed(logging.getLogger())) == 2
        assert len(_installed(logging.getLogger(ALERT_LOGGER))) == 1
