# src/pagehealth/auditor/services/w3c_service.py
import logging
import re
from typing import List

from pagehealth.auditor.services.service_base import ExternalService
from pagehealth.model import Issue, IssueKind

logger = logging.getLogger(__name__)

# Nu validator GNU output, e.g. ':12.3-12.40: error: Stray end tag “div”.'
_GNU_LINE_RE = re.compile(
    r'^(?:"[^"]*")?:?'
    r'(?:(?P<line>\d+)(?:\.\d+)?(?:-\d+(?:\.\d+)?)?)?:\s*'
    r'(?P<type>fatal error|error|info warning|warning|info)(?:\s*\([^)]*\))?:\s*'
    r'(?P<message>.+)$',
    re.IGNORECASE,
)

_KIND_BY_TYPE = {
    "fatal error": IssueKind.ERROR,
    "error": IssueKind.ERROR,
    "info warning": IssueKind.WARNING,
    "warning": IssueKind.WARNING,
    "info": IssueKind.INFO,
}


def parse_gnu_output(text: str) -> List[Issue]:
    """Turns the validator's `out=gnu` report into issues, one per message line."""
    issues = []
    for raw_line in (text or "").splitlines():
        line = raw_line.strip()
        if not line:
            continue
        match = _GNU_LINE_RE.match(line)
        if not match:
            logger.debug("Skipping unrecognized validator line: %s", line[:120])
            continue
        line_no = match.group("line")
        issues.append(Issue(
            kind=_KIND_BY_TYPE[match.group("type").lower()],
            message=match.group("message").strip(),
            locator=f"Line {line_no}" if line_no else None,
        ))
    return issues


class W3CValidatorService(ExternalService):
    """Client for the W3C Nu HTML Checker (POST document, text/gnu report)."""

    name = "W3C"

    async def validate(self, html: str) -> List[Issue]:
        response = await self.http.perform_request(
            self.endpoint,
            "POST",
            data=html.encode("utf-8"),
            headers={"Content-Type": "text/html; charset=utf-8"},
            timeout=self.timeout,
        )
        self.ensure_ok(response)
        issues = parse_gnu_output(response.get("content") or "")
        logger.info("W3C validator reported %d messages", len(issues))
        return issues
