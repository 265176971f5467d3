"""Fetcher for calendar feeds."""
import logging
from typing import Optional
from urllib.parse import urlsplit

import requests

logger = logging.getLogger(__name__)


class FeedFetcher:
    """Retrieves the raw text of a calendar feed."""

    def __init__(self, timeout: int = 30):
        """
        Initialize the feed fetcher.

        Args:
            timeout: HTTP request timeout in seconds (default: 30)
        """
        self.timeout = timeout

    def fetch(self, url: str) -> Optional[str]:
        """
        Fetch feed text with a single HTTP GET.

        Args:
            url: Feed URL

        Returns:
            Response body, or None for any non-200 response or network error
        """
        host = feed_host(url)

        try:
            response = requests.get(url, timeout=self.timeout)
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Failed to fetch feed from {host}: {type(e).__name__}")
            return None

        if response.status_code != 200:
            logger.error(f"Failed to fetch feed from {host}: HTTP {response.status_code}")
            return None

        # ICS defaults to UTF-8; requests would otherwise assume ISO-8859-1 for text/*
        if 'charset' not in response.headers.get('Content-Type', '').lower():
            response.encoding = 'utf-8'

        text = response.text
        logger.info(f"Fetched {len(text)} characters from {host}")
        return text


def feed_host(url: str) -> str:
    """Return the host of a feed URL; private feed paths carry secret tokens."""
    try:
        return urlsplit(url).netloc or '<invalid url>'
    except ValueError:
        return '<invalid url>'
