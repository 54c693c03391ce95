# src/pagehealth/auditor/validators/accessibility.py
import logging
from typing import List, Optional

from bs4 import BeautifulSoup, Tag

from pagehealth.auditor.core import (
    ACCESSIBILITY_AXE_POLICY, ACCESSIBILITY_LOCAL_POLICY, Analysis, AnalysisStrategy, LocalAnalysisStrategy,
    ValidatorBase, count_by, run_with_fallback,
)
from pagehealth.auditor.services.axe_service import AxeRule, AxeRunnerService
from pagehealth.model import Issue, IssueKind, PageSnapshot, ResultStatus

logger = logging.getLogger(__name__)

WCAG_NON_TEXT = "WCAG 1.1.1 - Non-text Content"
WCAG_INFO_RELATIONSHIPS = "WCAG 1.3.1 - Info and Relationships"
WCAG_CONTRAST = "WCAG 1.4.3 - Contrast (Minimum)"
WCAG_KEYBOARD = "WCAG 2.1.1 - Keyboard"
WCAG_PAGE_TITLED = "WCAG 2.4.2 - Page Titled"
WCAG_FOCUS_ORDER = "WCAG 2.4.3 - Focus Order"
WCAG_LINK_PURPOSE = "WCAG 2.4.4 - Link Purpose (In Context)"
WCAG_LANGUAGE = "WCAG 3.1.1 - Language of Page"
WCAG_LABELS = "WCAG 3.3.2 - Labels or Instructions"
WCAG_NAME_ROLE_VALUE = "WCAG 4.1.2 - Name, Role, Value"

LANDMARK_ROLES = ("main", "banner", "navigation", "contentinfo")
LANDMARK_TAGS = ("main", "nav", "header", "footer")
LOW_CONTRAST_LITERALS = ("#999", "#666", "color: gray")
VAGUE_LINK_TEXT = ("click here", "read more")
MAX_ALT_LENGTH = 125


def _issue(severity: str, message: str, guideline: str, locator: Optional[str] = None) -> Issue:
    kind = IssueKind.ERROR if severity in ("critical", "serious") else IssueKind.WARNING
    return Issue(kind=kind, message=message, severity=severity, category=guideline, locator=locator)


def _accessible_name(tag: Tag) -> str:
    for attr in ("aria-label", "aria-labelledby", "title"):
        value = (tag.get(attr) or "").strip()
        if value:
            return value
    text = tag.get_text(" ", strip=True)
    if text:
        return text
    img = tag.find("img", alt=True)
    return (img.get("alt") or "").strip() if img else ""


def check_images(soup: BeautifulSoup) -> List[Issue]:
    issues = []
    for img in soup.find_all("img"):
        alt = img.get("alt")
        src = img.get("src") or ""
        if alt is None:
            issues.append(_issue("critical", f"Image missing alt attribute (src: {src[:50] or 'unknown'})",
                                 WCAG_NON_TEXT, "img"))
        elif alt == "":
            # Empty alt is fine for decoration; flag only sources that do not look decorative
            if src and "icon" not in src and "decoration" not in src:
                issues.append(_issue("minor",
                                     f"Image has empty alt attribute - ensure this is decorative (src: {src[:50]})",
                                     WCAG_NON_TEXT, "img"))
        elif len(alt) > MAX_ALT_LENGTH:
            issues.append(_issue("minor", "Alt text is very long - consider shorter, more concise description",
                                 WCAG_NON_TEXT, "img"))
    return issues


def check_forms(soup: BeautifulSoup) -> List[Issue]:
    issues = []
    labelled_ids = {label.get("for") for label in soup.find_all("label") if label.get("for")}

    for control in soup.find_all(["input", "textarea", "select"]):
        if (control.get("type") or "").lower() == "hidden":
            continue

        has_label = (
            (control.get("id") and control.get("id") in labelled_ids)
            or control.find_parent("label") is not None
            or control.get("aria-label")
            or control.get("aria-labelledby")
        )
        if not has_label:
            issues.append(_issue("serious", f"Form {control.name} missing label or aria-label",
                                 WCAG_INFO_RELATIONSHIPS, control.name))

        if control.has_attr("required") and not control.get("aria-required"):
            issues.append(_issue("moderate", 'Required field should have aria-required="true" attribute',
                                 WCAG_LABELS, control.name))
    return issues


def check_headings(soup: BeautifulSoup) -> List[Issue]:
    levels = [int(h.name[1]) for h in soup.find_all(["h1", "h2", "h3", "h4", "h5", "h6"])]
    if not levels:
        return [_issue("moderate", "No heading elements found - page structure may be unclear",
                       WCAG_INFO_RELATIONSHIPS)]

    issues = []
    h1_count = levels.count(1)
    if h1_count == 0:
        issues.append(_issue("serious", "Page missing h1 heading - should have exactly one h1",
                             WCAG_INFO_RELATIONSHIPS, "h1"))
    elif h1_count > 1:
        issues.append(_issue("moderate", f"Page has {h1_count} h1 headings - should have exactly one h1",
                             WCAG_INFO_RELATIONSHIPS, "h1"))

    for previous, current in zip(levels, levels[1:]):
        if current > previous + 1:
            issues.append(_issue("moderate", f"Heading hierarchy skip detected: h{previous} followed by h{current}",
                                 WCAG_INFO_RELATIONSHIPS, f"h{current}"))
    return issues


def check_style_literals(soup: BeautifulSoup) -> List[Issue]:
    css = "\n".join(style.get_text() or "" for style in soup.find_all("style"))
    if any(literal in css for literal in LOW_CONTRAST_LITERALS):
        return [_issue("moderate", "Detected potentially low contrast colors in CSS", WCAG_CONTRAST)]
    return []


def check_aria(soup: BeautifulSoup) -> List[Issue]:
    issues = []
    has_landmark = soup.find(list(LANDMARK_TAGS)) is not None or soup.find(
        attrs={"role": lambda role: role in LANDMARK_ROLES}) is not None
    if not has_landmark:
        issues.append(_issue("moderate", "No ARIA landmarks or semantic HTML5 elements found",
                             WCAG_INFO_RELATIONSHIPS))

    existing_ids = {tag.get("id") for tag in soup.find_all(id=True)}
    for attr in ("aria-labelledby", "aria-describedby"):
        for element in soup.find_all(attrs={attr: True}):
            missing = [ref for ref in (element.get(attr) or "").split() if ref not in existing_ids]
            if missing:
                issues.append(_issue("serious", f"{attr} references non-existent ID: {' '.join(missing)}",
                                     WCAG_INFO_RELATIONSHIPS, element.name))
    return issues


def check_keyboard(soup: BeautifulSoup) -> List[Issue]:
    issues = []
    for element in soup.find_all(["div", "span", "p"], onclick=True):
        if not element.get("tabindex") and element.get("role") != "button":
            issues.append(_issue("serious", f"Interactive {element.name} element not keyboard accessible",
                                 WCAG_KEYBOARD, element.name))

    for element in soup.find_all(tabindex=True):
        try:
            positive = int(element.get("tabindex")) > 0
        except (TypeError, ValueError):
            continue
        if positive:
            issues.append(_issue("moderate", "Avoid positive tabindex values - use logical DOM order instead",
                                 WCAG_FOCUS_ORDER))
            break
    return issues


def check_page_structure(soup: BeautifulSoup) -> List[Issue]:
    issues = []
    html = soup.find("html")
    if html is None or not (html.get("lang") or "").strip():
        issues.append(_issue("serious", "HTML element missing lang attribute", WCAG_LANGUAGE, "html"))

    title = soup.find("title")
    if title is None or not title.get_text(strip=True):
        issues.append(_issue("serious", "Page missing descriptive title", WCAG_PAGE_TITLED, "title"))
    return issues


def check_interactive(soup: BeautifulSoup) -> List[Issue]:
    issues = []
    for link in soup.find_all("a"):
        href = (link.get("href") or "").strip()
        text = link.get_text(" ", strip=True)

        if not href or href == "#":
            issues.append(_issue("moderate", "Link missing href or has empty href", WCAG_KEYBOARD, "a"))
        if not _accessible_name(link):
            issues.append(_issue("serious", "Link has no accessible text content", WCAG_LINK_PURPOSE, "a"))
        if text and any(vague in text.lower() for vague in VAGUE_LINK_TEXT):
            issues.append(_issue("minor", 'Link text is not descriptive - avoid "click here" or "read more"',
                                 WCAG_LINK_PURPOSE, "a"))

    for button in soup.find_all("button"):
        if not _accessible_name(button):
            issues.append(_issue("serious", "Button has no accessible text content", WCAG_NAME_ROLE_VALUE, "button"))
    return issues


CHECKS = (
    check_images,
    check_forms,
    check_headings,
    check_style_literals,
    check_aria,
    check_keyboard,
    check_page_structure,
    check_interactive,
)


def analyze_accessibility(html: str) -> List[Issue]:
    soup = BeautifulSoup(html, "html.parser")
    issues = []
    for check in CHECKS:
        issues.extend(check(soup))
    return issues


def issue_from_violation(rule: AxeRule) -> Issue:
    impact = rule.impact or "moderate"
    node = rule.nodes[0] if rule.nodes else None
    detail = (node.failureSummary if node else None) or rule.description
    message = f"{rule.help} - {detail}"
    if len(rule.nodes) > 1:
        message += f" ({len(rule.nodes)} elements)"

    locator = None
    if node is not None:
        locator = (node.html or " ".join(str(t) for t in node.target))[:100] or None

    return Issue(
        kind=IssueKind.ERROR if impact in ("critical", "serious") else IssueKind.WARNING,
        message=message,
        severity=impact,
        category=", ".join(rule.tags) or None,
        locator=locator,
    )


class AxeAccessibilityStrategy(AnalysisStrategy):
    name = "Axe"
    data_source = "Axe DevTools"

    def __init__(self, service: AxeRunnerService):
        self.service = service

    def is_available(self) -> bool:
        return self.service.is_configured()

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        results = await self.service.run(snapshot.raw_html, snapshot.source_url)
        return Analysis(
            issues=[issue_from_violation(rule) for rule in results.violations],
            data_source=self.data_source,
            policy=ACCESSIBILITY_AXE_POLICY,
            recommendations=[f"Needs review: {rule.help}" for rule in results.incomplete],
            extras={"passes": len(results.passes), "incomplete": len(results.incomplete)},
        )


class LocalAccessibilityStrategy(LocalAnalysisStrategy):

    def inspect(self, snapshot: PageSnapshot) -> Analysis:
        try:
            issues = analyze_accessibility(snapshot.raw_html)
        except Exception as e:
            logger.warning("Accessibility analysis failed for %s: %s", snapshot.source_url, e, exc_info=True)
            issues = [Issue(kind=IssueKind.INFO, message="Accessibility analysis incomplete")]
        return Analysis(issues=issues, data_source=self.data_source, policy=ACCESSIBILITY_LOCAL_POLICY)


class AccessibilityValidator(ValidatorBase):
    validator_id = "accessibility"
    default_max_issues = 20

    def __init__(self, descriptor, config=None, http=None):
        super().__init__(descriptor, config=config, http=http)
        self.axe: Optional[AxeRunnerService] = (
            AxeRunnerService(http, self.service_config("axe")) if http is not None else None
        )

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        primary = AxeAccessibilityStrategy(self.axe) if self.axe else None
        return await run_with_fallback(primary, LocalAccessibilityStrategy(), snapshot)

    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        counts = count_by(analysis.issues, "severity")
        critical, serious = counts.get("critical", 0), counts.get("serious", 0)
        if critical or serious:
            return f"Found {critical} critical and {serious} serious accessibility issues."
        if counts.get("moderate"):
            return f"Found {counts['moderate']} moderate accessibility issues."
        return "No significant accessibility issues found."

    def recommendations(self, analysis: Analysis) -> List[str]:
        messages = [issue.message for issue in analysis.issues]
        recommendations = []

        if any("alt" in m for m in messages):
            recommendations.append("Add descriptive alt attributes to all images for screen readers")
        if any("label" in m for m in messages):
            recommendations.append("Associate all form controls with clear, descriptive labels")
        if any("heading" in m for m in messages):
            recommendations.append("Use proper heading hierarchy (h1, h2, h3, etc.) for page structure")
        if any("keyboard" in m for m in messages):
            recommendations.append("Ensure all interactive elements are keyboard accessible")
        if any("contrast" in m for m in messages):
            recommendations.append("Improve color contrast to meet WCAG standards")
        if any("ARIA" in m or "aria-" in m for m in messages):
            recommendations.append("Use ARIA attributes correctly and reference valid IDs")
        if analysis.issues:
            recommendations.append("Test with screen readers and keyboard-only navigation")
            recommendations.append("Use automated accessibility testing tools in your development workflow")
            recommendations.append("Consider user testing with people who use assistive technologies")
        return recommendations


VALIDATOR = AccessibilityValidator
