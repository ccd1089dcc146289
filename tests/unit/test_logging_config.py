"""
Unit tests for rewards_api/logging_config.py
"""

import structlog

from rewards_api.config import settings
from rewards_api.logging_config import add_service_context, setup_logging


def test_service_context_stamped():
    event = add_service_context(None, "info", {"event": "budget_replicated"})

    assert event["service"] == settings.APP_NAME
    assert event["version"] == settings.APP_VERSION
    assert event["env"] == settings.ENVIRONMENT


def test_service_context_keeps_explicit_values():
    event = add_service_context(None, "info", {"event": "x", "service": "worker"})

    assert event["service"] == "worker"


def test_level_override_filters_below_it(capsys):
    setup_logging("warning")
    try:
        logger = structlog.get_logger()
        logger.info("hidden_event")
        logger.warning("shown_event")
    finally:
        structlog.reset_defaults()

    out = capsys.readouterr().out
    assert "shown_event" in out
    assert "hidden_event" not in out
