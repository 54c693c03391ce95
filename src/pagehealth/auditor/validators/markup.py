# src/pagehealth/auditor/validators/markup.py
import logging
import re
from typing import List, Optional

from pagehealth.auditor.core import (
    MARKUP_POLICY, Analysis, AnalysisStrategy, LocalAnalysisStrategy, ValidatorBase, count_by, run_with_fallback,
)
from pagehealth.auditor.services.w3c_service import W3CValidatorService
from pagehealth.model import Issue, IssueKind, PageSnapshot, ResultStatus

logger = logging.getLogger(__name__)

_VOID_ELEMENTS = "area|base|br|col|embed|hr|img|input|link|meta|param|source|track|wbr"
# Opening tags that need a matching close tag: no doctype/comments, void or self-closed elements
_OPEN_TAG_RE = re.compile(rf"<(?![/!?])(?!(?:{_VOID_ELEMENTS})\b)[^>]*(?<!/)>", re.IGNORECASE)
_CLOSE_TAG_RE = re.compile(r"</[^>]*>")
_IMG_RE = re.compile(r"<img\b[^>]*>", re.IGNORECASE)
# Attribute name only: a bare `alt` counts, `data-alt` does not
_ALT_ATTR_RE = re.compile(r"[\s/]alt(?:\s*=|(?=[\s/>]))", re.IGNORECASE)

UNCLOSED_TOLERANCE = 5


def _has(pattern: str, html: str) -> bool:
    return bool(re.search(pattern, html, re.IGNORECASE))


def check_markup(html: str) -> List[Issue]:
    """Structural checks used when the W3C checker cannot be reached."""
    issues = []

    def error(message: str):
        issues.append(Issue(kind=IssueKind.ERROR, message=message))

    if not _has(r"<!doctype", html):
        error("Missing DOCTYPE declaration")
    if not _has(r"<html[\s>]", html):
        error("Missing html element")
    if not _has(r"<head[\s>]", html):
        error("Missing head element")
    if not _has(r"<body[\s>]", html):
        error("Missing body element")

    open_tags = len(_OPEN_TAG_RE.findall(html))
    close_tags = len(_CLOSE_TAG_RE.findall(html))
    if open_tags - close_tags > UNCLOSED_TOLERANCE:
        issues.append(Issue(kind=IssueKind.WARNING, message="Potentially unclosed HTML elements detected"))

    for img in _IMG_RE.findall(html):
        if not _ALT_ATTR_RE.search(img):
            issues.append(Issue(
                kind=IssueKind.ERROR,
                message="Image element missing alt attribute for accessibility",
                locator=img[:100],
            ))

    if not _has(r"<title[\s>]", html):
        error("Missing title element")

    return issues


class W3CMarkupStrategy(AnalysisStrategy):
    name = "W3C"
    data_source = "W3C Nu Validator"

    def __init__(self, service: W3CValidatorService):
        self.service = service

    def is_available(self) -> bool:
        return self.service.is_configured()

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        issues = await self.service.validate(snapshot.raw_html)
        return Analysis(issues=issues, data_source=self.data_source, policy=MARKUP_POLICY)


class LocalMarkupStrategy(LocalAnalysisStrategy):

    def inspect(self, snapshot: PageSnapshot) -> Analysis:
        return Analysis(issues=check_markup(snapshot.raw_html), data_source=self.data_source, policy=MARKUP_POLICY)


class MarkupValidator(ValidatorBase):
    validator_id = "markup"
    default_max_issues = 20

    def __init__(self, descriptor, config=None, http=None):
        super().__init__(descriptor, config=config, http=http)
        self.w3c: Optional[W3CValidatorService] = (
            W3CValidatorService(http, self.service_config("w3c")) if http is not None else None
        )

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        primary = W3CMarkupStrategy(self.w3c) if self.w3c else None
        return await run_with_fallback(primary, LocalMarkupStrategy(), snapshot)

    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        counts = count_by(analysis.issues, "kind")
        if counts.get("error"):
            return f"Found {counts['error']} markup errors."
        if counts.get("warning"):
            return f"Found {counts['warning']} markup warnings."
        return "HTML markup is valid."

    def recommendations(self, analysis: Analysis) -> List[str]:
        issues = analysis.issues
        messages = [issue.message for issue in issues]
        recommendations = []

        if any("alt" in m for m in messages):
            recommendations.append("Add alt attributes to all img elements for accessibility")
        if any("DOCTYPE" in m for m in messages):
            recommendations.append("Add a valid HTML5 DOCTYPE declaration")
        if any("unclosed" in m.lower() for m in messages):
            recommendations.append("Ensure all HTML elements are properly closed")
        if any("title" in m for m in messages):
            recommendations.append("Include a descriptive title element in the document head")
        if issues:
            recommendations.append("Use semantic HTML5 elements like <header>, <main>, <footer>")
            recommendations.append("Validate HTML regularly during development")
        return recommendations


VALIDATOR = MarkupValidator
