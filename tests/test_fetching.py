from unittest.mock import MagicMock

import pytest
import requests

from read_later import fetching
from read_later.exceptions import TransportFailure


def test_fetch_text_returns_body(monkeypatch):
    response = MagicMock()
    response.text = "<rss/>"
    response.content = b"<rss/>"
    get = MagicMock(return_value=response)
    monkeypatch.setattr(fetching.requests, "get", get)

    assert fetching.fetch_text("https://example.com/feed", timeout=2.0) == "<rss/>"

    args, kwargs = get.call_args
    assert args == ("https://example.com/feed",)
    assert kwargs["timeout"] == 2.0
    assert kwargs["headers"]["User-Agent"] == fetching.USER_AGENT
    response.raise_for_status.assert_called_once()


def test_fetch_text_maps_http_errors(monkeypatch):
    response = MagicMock()
    response.status_code = 404
    response.raise_for_status.side_effect = requests.HTTPError(
        "404 Client Error", response=response
    )
    monkeypatch.setattr(fetching.requests, "get", MagicMock(return_value=response))

    with pytest.raises(TransportFailure) as excinfo:
        fetching.fetch_text("https://example.com/missing")

    assert excinfo.value.status_code == 404


def test_fetch_text_maps_connection_errors(monkeypatch):
    monkeypatch.setattr(
        fetching.requests,
        "get",
        MagicMock(side_effect=requests.ConnectionError("refused")),
    )

    with pytest.raises(TransportFailure) as excinfo:
        fetching.fetch_text("https://example.com/down")

    assert excinfo.value.status_code is None
    assert "refused" in str(excinfo.value)


def test_fetch_text_maps_timeouts(monkeypatch):
    monkeypatch.setattr(
        fetching.requests, "get", MagicMock(side_effect=requests.Timeout("slow"))
    )

    with pytest.raises(TransportFailure):
        fetching.fetch_text("https://example.com/slow", timeout=0.1)
