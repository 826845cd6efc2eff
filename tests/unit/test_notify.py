"""Tests for message delivery and recipient lookup."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from ratingtracker.config import Secrets
from ratingtracker.notify import ConfigRecipientDirectory, MessageKind, SignalNotifier


class TestSignalNotifier:
    @pytest.fixture
    def notifier(self):
        n = SignalNotifier(Secrets(signal_url="http://signal:8080/", signal_sender="+490000000000"))
        n._session = MagicMock()
        return n

    def test_send_posts_deduplicated_recipients(self, notifier):
        notifier.send("Hello", ["+491", "+492", "+491"])

        notifier._session.post.assert_called_once_with(
            "http://signal:8080/v2/send",
            json={"message": "Hello", "number": "+490000000000", "recipients": ["+491", "+492"]},
            timeout=30,
        )

    def test_no_recipients_sends_nothing(self, notifier):
        notifier.send("Hello", [])
        notifier._session.post.assert_not_called()

    def test_disabled_without_url(self):
        n = SignalNotifier(Secrets(signal_url="", signal_sender="+490000000000"))
        n._session = MagicMock()
        assert not n.enabled
        n.send("Hello", ["+491"])
        n._session.post.assert_not_called()

    def test_http_error_is_logged_not_raised(self, notifier):
        response = MagicMock()
        response.raise_for_status.side_effect = requests.exceptions.HTTPError("500 Server Error")
        notifier._session.post.return_value = response

        notifier.send("Hello", ["+491"])

    @patch("tenacity.nap.time.sleep")
    def test_connection_error_retried_then_logged(self, mock_sleep, notifier):
        notifier._session.post.side_effect = requests.exceptions.ConnectionError("refused")

        notifier.send("Hello", ["+491"])

        assert notifier._session.post.call_count == 3


class TestConfigRecipientDirectory:
    def test_fetch_errors_go_to_subscribers(self, test_config):
        directory = ConfigRecipientDirectory(test_config)
        assert directory.read_message_recipients(MessageKind.FETCH_ERROR) == ["+491111111111"]

    def test_stock_update_via_watchlist(self, test_config):
        directory = ConfigRecipientDirectory(test_config)
        assert directory.read_message_recipients(MessageKind.STOCK_UPDATE, "NVDA") == ["+491111111111"]

    def test_stock_update_via_ticker(self, test_config):
        directory = ConfigRecipientDirectory(test_config)
        assert directory.read_message_recipients("stock_update", "AAPL") == ["+492222222222"]

    def test_stock_update_without_subscribers(self, test_config):
        directory = ConfigRecipientDirectory(test_config)
        assert directory.read_message_recipients(MessageKind.STOCK_UPDATE, "TSLA") == []
