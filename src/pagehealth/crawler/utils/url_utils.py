# src/pagehealth/crawler/utils/url_utils.py
import logging
import re
from typing import Optional
from urllib.parse import urlparse, urljoin, urlunparse

logger = logging.getLogger(__name__)

# Accepted target URLs: http(s) scheme and at least one dot after it
TARGET_URL_PATTERN = re.compile(r"^https?://.+\..+")


class UrlUtils:
    """A collection of static methods for URL parsing and manipulation."""

    @staticmethod
    def is_valid_target(url: str) -> bool:
        """Checks the caller-side URL pattern (^https?://.+\\..+)."""
        return bool(url) and bool(TARGET_URL_PATTERN.match(url.strip()))

    @staticmethod
    def normalize_url(base_url: str, url: str) -> str:
        """
        Creates a clean, absolute URL from a base URL and a potentially relative URL.
        """
        absolute_url = urljoin(base_url, url)
        parsed_url = urlparse(absolute_url)

        # Ensure there is a path (e.g., '/' for the homepage)
        if not parsed_url.path:
            parsed_url = parsed_url._replace(path='/')

        # Remove fragments, as they are client-side only
        parsed_url = parsed_url._replace(fragment='')

        return urlunparse(parsed_url)

    @staticmethod
    def get_base_url(url: str) -> Optional[str]:
        """
        Extracts and returns the base URL (scheme + netloc) from a given URL.
        """
        if not url.startswith(('http://', 'https://')):
            url = 'http://' + url

        try:
            parsed_url = urlparse(url)
            if not parsed_url.scheme or not parsed_url.netloc:
                logger.debug(f"Invalid URL format: {url}")
                return None
            return f"{parsed_url.scheme}://{parsed_url.netloc}"
        except ValueError:
            logger.debug(f"Could not parse invalid URL: {url}")
            return None

    @staticmethod
    def is_absolute(url: str) -> bool:
        parsed = urlparse(url or "")
        return bool(parsed.scheme and parsed.netloc)

    @staticmethod
    def is_https(url: str) -> bool:
        return urlparse(url or "").scheme.lower() == "https"

    @staticmethod
    def is_internal(base_url: str, href: str) -> bool:
        """
        True when `href` points at the same site as `base_url`.
        Relative paths count as internal; 'www.' and subdomains are folded in.
        """
        if not href:
            return False
        href = href.strip()
        if href.startswith(('#', 'mailto:', 'tel:', 'javascript:', 'data:')):
            return False

        target = urlparse(urljoin(base_url, href))
        if target.scheme not in ('http', 'https'):
            return False

        source_domain = urlparse(base_url).netloc.lower().removeprefix("www.")
        target_domain = target.netloc.lower().removeprefix("www.")
        return (
            target_domain == source_domain or
            target_domain.endswith(f".{source_domain}")
        )
