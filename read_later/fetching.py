"""HTTP retrieval of feed and page documents."""

from __future__ import annotations

import logging

import requests

from .exceptions import TransportFailure

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 10.0
USER_AGENT = "read-later/0.1 (+https://github.com/read-later)"


def fetch_text(url: str, timeout: float = DEFAULT_TIMEOUT) -> str:
    """Download a document and return its decoded body."""
    logger.debug("Fetching %s (timeout %.1fs)", url, timeout)
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": USER_AGENT}
        )
        response.raise_for_status()
    except requests.HTTPError as exc:
        status = exc.response.status_code if exc.response is not None else None
        raise TransportFailure(f"HTTP error fetching {url}: {exc}", status) from exc
    except requests.RequestException as exc:
        raise TransportFailure(f"Failed to fetch {url}: {exc}") from exc

    logger.debug("Fetched %d bytes from %s", len(response.content), url)
    return response.text
