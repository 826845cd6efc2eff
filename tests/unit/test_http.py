"""Tests for the extractor HTTP helpers."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from ratingtracker.fetch.base import ExtractionError
from ratingtracker.fetch.http import get_json, get_text


def _response(status=200, text="", json_value=None, json_error=False):
    response = MagicMock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.text = text
    if json_error:
        response.json.side_effect = ValueError("Expecting value")
    else:
        response.json.return_value = json_value
    return response


class TestGetText:
    @patch("ratingtracker.fetch.http._session")
    def test_returns_body(self, mock_session):
        mock_session.get.return_value = _response(text="<html>ok</html>")

        assert get_text("https://example.com/page") == "<html>ok</html>"
        assert mock_session.get.call_args[1]["timeout"] == 60

    @patch("ratingtracker.fetch.http._session")
    def test_error_status_carries_snapshot(self, mock_session):
        mock_session.get.return_value = _response(status=403, text="<html>blocked</html>")

        with pytest.raises(ExtractionError, match="status 403") as exc_info:
            get_text("https://example.com/page")

        assert exc_info.value.snapshots[0].content == "<html>blocked</html>"
        assert exc_info.value.snapshots[0].content_type == "text/html"

    @patch("tenacity.nap.time.sleep")
    @patch("ratingtracker.fetch.http._session")
    def test_timeouts_retried(self, mock_session, mock_sleep):
        mock_session.get.side_effect = [
            requests.exceptions.Timeout("slow"),
            _response(text="finally"),
        ]

        assert get_text("https://example.com/page") == "finally"
        assert mock_session.get.call_count == 2

    @patch("tenacity.nap.time.sleep")
    @patch("ratingtracker.fetch.http._session")
    def test_persistent_connection_error(self, mock_session, mock_sleep):
        mock_session.get.side_effect = requests.exceptions.ConnectionError("refused")

        with pytest.raises(ExtractionError, match="refused"):
            get_text("https://example.com/page")
        assert mock_session.get.call_count == 3


class TestGetJson:
    @patch("ratingtracker.fetch.http._session")
    def test_returns_object(self, mock_session):
        mock_session.get.return_value = _response(json_value={"esgRiskScore": 12.3})

        assert get_json("https://example.com/api") == {"esgRiskScore": 12.3}

    @patch("ratingtracker.fetch.http._session")
    def test_invalid_json(self, mock_session):
        mock_session.get.return_value = _response(text="<html>maintenance</html>", json_error=True)

        with pytest.raises(ExtractionError, match="not valid JSON") as exc_info:
            get_json("https://example.com/api")
        assert exc_info.value.snapshots[0].content == "<html>maintenance</html>"

    @patch("ratingtracker.fetch.http._session")
    def test_non_object_json(self, mock_session):
        mock_session.get.return_value = _response(text="[1, 2]", json_value=[1, 2])

        with pytest.raises(ExtractionError, match="not a JSON object"):
            get_json("https://example.com/api")


class TestPackageSurface:
    def test_helpers_exported_for_extractors(self):
        from ratingtracker import fetch

        assert fetch.get_text is get_text
        assert fetch.get_json is get_json
