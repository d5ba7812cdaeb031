"""
link_health.py - Checks whether links embedded in content are still alive.

This module:
- Extracts http(s) links from free text
- Probes each link with a single HEAD request
- Decides which status codes count as a broken link
"""

import logging
import re
from typing import Callable, Iterable, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import requests
import urllib3

from config import Config

logger = logging.getLogger(__name__)

config = Config()
DEFAULT_HEADERS = {
    "User-Agent": "CleanupBrokenLinks/1.0 (+link-integrity-sweeper)",
}

URL_PATTERN = re.compile(r"""https?://[^\s"'<>\]]+""")

# Status reported for links that could not be reached at all.
UNREACHABLE_STATUS = 500


def extract_links(text: Optional[str]) -> List[str]:
    """
    Returns every http(s) link in the text, in order of appearance.
    Duplicates are kept and nothing is normalised.
    """
    if text is None:
        return []
    return URL_PATTERN.findall(text)


def _head_target(url: str) -> str:
    """
    Builds the HEAD target: scheme, host and path, without query or fragment.

    An empty path is requested as "/", so a bare host such as
    https://example.com is judged on its real status instead of failing
    before the request is sent and being reported as 500.
    """
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path or "/", "", ""))


def check_link_status(url: str, *, timeout: Optional[float] = None) -> int:
    """
    Checks the HTTP status of a link with a HEAD request.

    Redirects are not followed, so a moved page reports its 3xx code.
    Transport errors (DNS, timeouts, refused connections, TLS failures,
    malformed responses) are reported as 500.
    """
    timeout = config.LINK_CHECK_TIMEOUT if timeout is None else timeout
    target = _head_target(url)
    try:
        response = requests.head(
            target,
            headers=DEFAULT_HEADERS,
            timeout=(timeout, timeout),
            allow_redirects=False,
        )
        return response.status_code
    except (requests.RequestException, urllib3.exceptions.HTTPError, ValueError, OSError) as exc:
        # Some urllib3 errors (e.g. over-long DNS labels) escape requests unwrapped.
        logger.error("[CleanupBrokenLinks] Error checking link: %s (%s)", url, exc)
        return UNREACHABLE_STATUS


def is_broken_status(status: int) -> bool:
    """Only 404 and 500 count as broken; other error codes leave content alone."""
    return status in config.BROKEN_STATUS_CODES


def find_first_broken_link(
    links: Iterable[str],
    checker: Callable[[str], int] = check_link_status,
) -> Optional[Tuple[str, int]]:
    """
    Probes links in order and stops at the first broken one.

    Returns:
        (url, status) for the first broken link, or None when all are alive.
    """
    for link in links:
        status = checker(link)
        logger.info("   - %s → Status: %s", link, status)
        if is_broken_status(status):
            return link, status
    return None
