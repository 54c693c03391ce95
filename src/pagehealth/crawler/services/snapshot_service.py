# src/pagehealth/crawler/services/snapshot_service.py
import abc
import logging
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from pagehealth.crawler.services.http_request_service import HttpRequestService
from pagehealth.crawler.utils.url_utils import UrlUtils
from pagehealth.exceptions import FetchError, InvalidUrlError, QuotaError
from pagehealth.model import Link, PageSnapshot

logger = logging.getLogger(__name__)


class SnapshotProvider(metaclass=abc.ABCMeta):
    """
    Boundary contract of the page-acquisition collaborator.

    Implementations turn one absolute URL into a PageSnapshot or raise an
    AcquisitionError subclass (InvalidUrlError, FetchError, QuotaError).
    """

    @abc.abstractmethod
    async def acquire(self, url: str) -> PageSnapshot:
        raise NotImplementedError("Every snapshot provider must implement 'acquire'.")


class StaticSnapshotProvider(SnapshotProvider):
    """Serves an already captured snapshot (HTML supplied by the caller)."""

    def __init__(self, snapshot: PageSnapshot):
        self.snapshot = snapshot

    async def acquire(self, url: str) -> PageSnapshot:
        return self.snapshot


class HttpSnapshotService(SnapshotProvider):
    """
    Default acquisition client: a plain GET through HttpRequestService followed
    by metadata extraction with BeautifulSoup. No screenshot support.
    """

    def __init__(self, http: HttpRequestService):
        self.http = http

    async def acquire(self, url: str) -> PageSnapshot:
        if not UrlUtils.is_valid_target(url):
            raise InvalidUrlError(url)

        response = await self.http.perform_request(url, "GET")
        status = response.get("status", -99)

        if status < 0:
            raise FetchError(url, f"Network failure: {response.get('error', 'unknown error')}")
        if status == 429:
            raise QuotaError(url, "Rate limited by target (HTTP 429)")
        if status >= 400:
            raise FetchError(url, f"Target returned HTTP {status}", status_code=status)

        content_type = str(response.get("headers", {}).get("Content-Type", "")).lower()
        if content_type and "html" not in content_type:
            raise FetchError(url, f"Non-HTML Content-Type: {content_type}", status_code=status)

        html = response.get("content") or ""
        if not html.strip():
            raise FetchError(url, "No HTML content found to validate", status_code=status)

        final_url = response.get("final_url") or url
        snapshot = build_snapshot(
            final_url,
            html,
            status_code=status,
            response_time=response.get("timers", {}).get("total_elapsed", 0),
        )
        logger.info("Acquired %s (%d bytes, HTTP %s)", final_url, len(html), status)
        return snapshot


def build_snapshot(
        url: str,
        html: str,
        status_code: int = 200,
        response_time: float = 0,
        screenshot: Optional[str] = None
) -> PageSnapshot:
    """
    Builds a PageSnapshot from raw HTML, extracting the metadata the
    acquisition boundary promises (title, description, social preview fields).
    """
    clean_html = html.replace('\ufeff', '')
    soup = BeautifulSoup(clean_html, "html.parser")

    return PageSnapshot(
        source_url=url,
        raw_html=clean_html,
        text_representation=_text_representation(soup),
        metadata=_extract_metadata(soup, status_code, response_time),
        screenshot=screenshot,
        discovered_links=_extract_links(soup),
    )


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    return (tag.get("content") or "").strip() if tag else ""


def _extract_metadata(soup: BeautifulSoup, status_code: int, response_time: float) -> Dict[str, Any]:
    title_tag = soup.find("title")
    return {
        "title": title_tag.get_text(strip=True) if title_tag else "",
        "description": _meta_content(soup, name="description"),
        "keywords": _meta_content(soup, name="keywords"),
        "ogTitle": _meta_content(soup, property="og:title"),
        "ogDescription": _meta_content(soup, property="og:description"),
        "ogImage": _meta_content(soup, property="og:image"),
        "status_code": status_code,
        "response_time": response_time,
    }


def _extract_links(soup: BeautifulSoup) -> List[Link]:
    links = []
    for a in soup.find_all("a", href=True):
        href = (a.get("href") or "").strip()
        if href:
            links.append(Link(text=a.get_text(" ", strip=True)[:100], href=href))
    return links


def _text_representation(soup: BeautifulSoup) -> str:
    """Markdown-ish flattening: headings prefixed with '#', other blocks as paragraphs."""
    root = soup.body or soup
    lines = []
    for el in root.find_all(["h1", "h2", "h3", "h4", "h5", "h6", "p", "li"]):
        text = el.get_text(" ", strip=True)
        if not text:
            continue
        if el.name.startswith("h"):
            lines.append(f"{'#' * int(el.name[1])} {text}")
        elif el.name == "li":
            lines.append(f"- {text}")
        else:
            lines.append(text)
    return "\n\n".join(lines)
