import logging

import pytest

from bandportal.config.logging import _redact_secrets, setup_logging


@pytest.mark.unit
class TestLogging:
    def test_redacts_secret_keys(self) -> None:
        event = {"event": "invite_email_skipped", "token": "abc", "to": "a@example.com"}
        result = _redact_secrets(None, "info", event)
        assert result["token"] == "***"
        assert result["to"] == "a@example.com"

    def test_redacts_invite_links(self) -> None:
        event = {"event": "invite_sent", "invite_link": "https://portal.test/accept?token=t"}
        assert _redact_secrets(None, "info", event)["invite_link"] == "***"

    def test_quiets_http_loggers(self) -> None:
        setup_logging(log_level="DEBUG", json_output=True)
        assert logging.getLogger("httpx").level == logging.WARNING
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
