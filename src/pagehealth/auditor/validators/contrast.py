# src/pagehealth/auditor/validators/contrast.py
import logging
import re
from typing import List, Optional, Tuple

from bs4 import BeautifulSoup

from pagehealth.auditor.color import (
    contrast_ratio, is_large_text, parse_color, required_ratio, to_hex,
)
from pagehealth.auditor.core import (
    CONTRAST_AXE_POLICY, CONTRAST_POLICY, Analysis, AnalysisStrategy, LocalAnalysisStrategy, ValidatorBase,
    count_by, run_with_fallback,
)
from pagehealth.auditor.dom.style import StyleResolver
from pagehealth.auditor.services.axe_service import CONTRAST_RULES, AxeRunnerService
from pagehealth.model import Issue, IssueKind, PageSnapshot, ResultStatus

logger = logging.getLogger(__name__)

TEXT_ELEMENTS = ["p", "h1", "h2", "h3", "h4", "h5", "h6", "a", "button", "span", "div", "li", "td", "th", "label"]
MIN_TEXT_LENGTH = 3
ERROR_FACTOR = 0.7

HEURISTIC_PATTERNS = [
    (re.compile(r"color:\s*#[89abcdef]{6}", re.IGNORECASE), "Light gray text may have poor contrast"),
    (re.compile(r"color:\s*gray", re.IGNORECASE), "Gray text may not meet contrast requirements"),
    (re.compile(r"color:\s*#666", re.IGNORECASE), "Color #666 often fails contrast requirements on white backgrounds"),
]


def heuristic_issues(html: str) -> List[Issue]:
    """Advisory warnings from raw-markup color literals."""
    return [
        Issue(kind=IssueKind.WARNING, message=message)
        for pattern, message in HEURISTIC_PATTERNS
        if pattern.search(html)
    ]


def analyze_contrast(html: str) -> Tuple[List[Issue], List[float]]:
    """
    Checks every text-bearing element against WCAG AA.

    Returns the issues plus the ratios of the failing elements. Elements with
    under three characters of text or with unparseable colors are skipped.
    When nothing fails, the raw-markup heuristics run instead.
    """
    soup = BeautifulSoup(html, "html.parser")
    resolver = StyleResolver(soup)
    issues: List[Issue] = []
    ratios: List[float] = []

    for element in soup.find_all(TEXT_ELEMENTS):
        if len(element.get_text(strip=True)) < MIN_TEXT_LENGTH:
            continue

        style = resolver.computed(element)
        foreground = parse_color(style.color)
        background = parse_color(style.background)
        if foreground is None or background is None:
            continue

        ratio = contrast_ratio(foreground, background)
        large = is_large_text(style.font_size_px, style.font_weight)
        required = required_ratio(large)
        if ratio >= required:
            continue

        standard = "AA large text" if large else "AA"
        ratios.append(ratio)
        issues.append(Issue(
            kind=IssueKind.ERROR if ratio < required * ERROR_FACTOR else IssueKind.WARNING,
            message=(
                f"{element.name.upper()} text has contrast ratio {ratio:.2f}:1, below {standard} standard "
                f"({required:g}:1) ({to_hex(foreground)} on {to_hex(background)})"
            ),
            locator=f"<{element.name}>",
            category=standard,
        ))

    if not issues:
        issues.extend(heuristic_issues(html))
    return issues, ratios


class AxeContrastStrategy(AnalysisStrategy):
    name = "Axe"
    data_source = "Axe DevTools"

    def __init__(self, service: AxeRunnerService):
        self.service = service

    def is_available(self) -> bool:
        return self.service.is_configured()

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        results = await self.service.run(snapshot.raw_html, snapshot.source_url, rules=CONTRAST_RULES)
        issues = []
        ratios = []
        for rule in results.violations:
            impact = rule.impact or "moderate"
            for node in rule.nodes:
                data = node.contrast_data()
                ratio = data.get("contrastRatio")
                if isinstance(ratio, (int, float)):
                    ratios.append(float(ratio))
                shown = f"{ratio:.2f}" if isinstance(ratio, (int, float)) else "unknown"
                issues.append(Issue(
                    kind=IssueKind.ERROR if impact in ("critical", "serious") else IssueKind.WARNING,
                    message=f"Contrast ratio {shown}:1 is below required {data.get('expectedContrastRatio', '')} "
                            f"- {rule.help}",
                    locator=(node.html or "")[:100] or None,
                    severity=impact,
                    category=", ".join(rule.tags) or None,
                ))
        return Analysis(issues=issues, data_source=self.data_source, policy=CONTRAST_AXE_POLICY,
                        extras={"ratios": ratios})


class LocalContrastStrategy(LocalAnalysisStrategy):

    def inspect(self, snapshot: PageSnapshot) -> Analysis:
        try:
            issues, ratios = analyze_contrast(snapshot.raw_html)
        except Exception as e:
            logger.warning("Contrast analysis failed for %s: %s", snapshot.source_url, e, exc_info=True)
            issues = [Issue(kind=IssueKind.INFO,
                            message="Unable to fully analyze contrast ratios - manual review recommended")]
            ratios = []
        return Analysis(issues=issues, data_source=self.data_source, policy=CONTRAST_POLICY,
                        extras={"ratios": ratios})


class ContrastValidator(ValidatorBase):
    validator_id = "contrast"
    default_max_issues = 15

    def __init__(self, descriptor, config=None, http=None):
        super().__init__(descriptor, config=config, http=http)
        self.axe: Optional[AxeRunnerService] = (
            AxeRunnerService(http, self.service_config("axe")) if http is not None else None
        )

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        primary = AxeContrastStrategy(self.axe) if self.axe else None
        return await run_with_fallback(primary, LocalContrastStrategy(), snapshot)

    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        counts = count_by(analysis.issues, "kind")
        if counts.get("error"):
            return f"Found {counts['error']} contrast errors."
        if counts.get("warning"):
            return f"Found {counts['warning']} contrast warnings."
        return "Contrast is good."

    def recommendations(self, analysis: Analysis) -> List[str]:
        issues = analysis.issues
        recommendations = []

        if any(ratio < 3 for ratio in analysis.extras.get("ratios", [])):
            recommendations.append("Use darker text colors or lighter backgrounds to improve contrast ratios")
        if any("AA" in issue.message for issue in issues):
            recommendations.append(
                "Ensure all text meets WCAG AA standards (4.5:1 for normal text, 3:1 for large text)")
        if any("button" in issue.message.lower() for issue in issues):
            recommendations.append("Make interactive elements like buttons and links easily distinguishable")
        if issues:
            recommendations.append("Use contrast checking tools during design and development")
            recommendations.append("Consider WCAG AAA standards (7:1) for better accessibility")
            recommendations.append("Test your site with users who have visual impairments")
        return recommendations


VALIDATOR = ContrastValidator
