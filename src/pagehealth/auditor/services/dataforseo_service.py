# src/pagehealth/auditor/services/dataforseo_service.py
import logging
from typing import Any, Dict, List, Optional, Tuple

import aiohttp

from pagehealth.auditor.services.service_base import ExternalService
from pagehealth.exceptions import ServiceAuthError, ServiceUnavailableError
from pagehealth.model import Issue, IssueKind

logger = logging.getLogger(__name__)

STATUS_OK = 20000


class DataForSEOService(ExternalService):
    """Client for the DataForSEO On-Page `instant_pages` endpoint (basic auth)."""

    name = "DataForSEO"

    def __init__(self, http, settings: Optional[Dict[str, Any]] = None,
                 login: Optional[str] = None, password: Optional[str] = None):
        super().__init__(http, settings)
        self.login = login
        self.password = password

    def is_configured(self) -> bool:
        return super().is_configured() and bool(self.login and self.password)

    async def instant_page(self, url: str) -> Dict[str, Any]:
        """Returns the first page result (`tasks[0].result[0]`) for `url`."""
        if not (self.login and self.password):
            raise ServiceAuthError(self.name, "Credentials not configured")

        response = await self.http.perform_request(
            self.endpoint,
            "POST",
            json_body=[{
                "url": url,
                "enable_javascript": True,
                "enable_browser_rendering": True,
                "load_resources": True,
            }],
            auth=aiohttp.BasicAuth(self.login, self.password),
            timeout=self.timeout,
            expect_json=True,
        )
        self.ensure_ok(response)
        payload = self.ensure_json(response)

        if not isinstance(payload, dict) or payload.get("status_code") != STATUS_OK:
            message = payload.get("status_message") if isinstance(payload, dict) else "unexpected payload"
            raise ServiceUnavailableError(self.name, f"API error: {message}")

        tasks = payload.get("tasks") or []
        task = tasks[0] if isinstance(tasks, list) and tasks else None
        results = (task.get("result") or []) if isinstance(task, dict) else []
        if not isinstance(results, list) or not results or not isinstance(results[0], dict):
            raise ServiceUnavailableError(self.name, "No results returned")
        return results[0]

    def summarize(self, page_data: Dict[str, Any]) -> Tuple[int, List[Issue]]:
        """Score and issues for one page result. A result of the wrong shape counts as an outage."""
        try:
            score = page_data.get("onpage_score")
            if not isinstance(score, (int, float)) or isinstance(score, bool):
                score = score_from_checks(page_data.get("checks") or {})
            return round(score), extract_issues(page_data)
        except (TypeError, ValueError, AttributeError, OverflowError) as e:
            raise ServiceUnavailableError(self.name, f"Malformed page result: {e}") from e


def extract_issues(page_data: Dict[str, Any]) -> List[Issue]:
    """Maps an on-page result onto SEO issues (priority held in `severity`)."""
    issues: List[Issue] = []
    checks = page_data.get("checks") or {}
    meta = page_data.get("meta") or {}

    title = meta.get("title") or ""
    if not title:
        issues.append(_issue(IssueKind.ERROR, "Missing page title", "high", "meta", "title"))
    elif len(title) < 30:
        issues.append(_issue(IssueKind.WARNING, f"Title too short ({len(title)} chars)", "medium", "meta", "title"))
    elif len(title) > 60:
        issues.append(_issue(IssueKind.WARNING, f"Title too long ({len(title)} chars)", "medium", "meta", "title"))

    if not meta.get("description"):
        issues.append(_issue(IssueKind.ERROR, "Missing meta description", "high", "meta",
                             'meta[name="description"]'))

    h1_count = len(((meta.get("htags") or {}).get("h1")) or [])
    if h1_count == 0:
        issues.append(_issue(IssueKind.ERROR, "Missing H1 heading", "high", "structure", "h1"))
    elif h1_count > 1:
        issues.append(_issue(IssueKind.WARNING, f"Multiple H1 tags found ({h1_count})", "medium", "structure", "h1"))

    no_image_alt = checks.get("no_image_alt")
    if isinstance(no_image_alt, (int, float)) and not isinstance(no_image_alt, bool) and no_image_alt > 0:
        issues.append(_issue(IssueKind.WARNING, f"{int(no_image_alt)} images missing alt text", "high",
                             "content", "img"))
    elif no_image_alt is True:
        issues.append(_issue(IssueKind.WARNING, "Images missing alt text", "high", "content", "img"))

    if not meta.get("canonical"):
        issues.append(_issue(IssueKind.WARNING, "Missing canonical URL", "medium", "meta", 'link[rel="canonical"]'))

    if not meta.get("viewport"):
        issues.append(_issue(IssueKind.ERROR, "Missing viewport meta tag", "high", "mobile",
                             'meta[name="viewport"]'))

    word_count = ((meta.get("content") or {}).get("plain_text_word_count")) or 0
    if word_count < 300:
        issues.append(_issue(IssueKind.WARNING, f"Low word count ({word_count} words)", "low", "content"))

    broken_links = (page_data.get("broken") or {}).get("links") or 0
    if broken_links > 0:
        issues.append(_issue(IssueKind.ERROR, f"{broken_links} broken links found", "high", "structure"))

    return issues


def score_from_checks(checks: Dict[str, Any]) -> int:
    """Deduction table used when the API omits `onpage_score`."""
    deductions = 0
    if checks.get("no_title"):
        deductions += 20
    if checks.get("no_description"):
        deductions += 15
    if checks.get("no_h1"):
        deductions += 15
    no_image_alt = checks.get("no_image_alt")
    if no_image_alt:
        deductions += min(int(no_image_alt), 5) * 2
    if checks.get("duplicate_title"):
        deductions += 10
    if checks.get("duplicate_description"):
        deductions += 10
    if checks.get("no_canonical"):
        deductions += 8
    if checks.get("no_viewport"):
        deductions += 12
    return max(0, min(100, 100 - deductions))


def _issue(kind: IssueKind, message: str, priority: str, category: str, locator: Optional[str] = None) -> Issue:
    return Issue(kind=kind, message=message, severity=priority, category=category, locator=locator)
