"""
Tests for logging configuration and the event logger.
"""

import json
import logging
import pytest

from money_mates.audit import EventLogger, configure_logging
from money_mates.models.events import LedgerEventType


@pytest.fixture(autouse=True)
def restore_logging():
    yield
    configure_logging()


class TestConfigureLogging:
    """Tests for debug mode and the environment field."""

    def test_debug_mode_sets_level(self):
        configure_logging(debug=True)
        assert logging.getLogger("money_mates").level == logging.DEBUG
        configure_logging(debug=False)
        assert logging.getLogger("money_mates").level == logging.INFO

    def test_events_are_json_with_environment(self, caplog):
        configure_logging(environment="staging")
        with caplog.at_level(logging.INFO, logger="money_mates"):
            EventLogger().log_action(
                LedgerEventType.PROFILE_UPDATED,
                "Profile updated",
                entity_id="pea",
                actor="pea",
            )

        (record,) = [r for r in caplog.records if r.name == "money_mates"]
        entry = json.loads(record.getMessage())
        assert entry["environment"] == "staging"
        assert entry["event"] == "ledger_event"
        assert entry["event_type"] == "profile_updated"
