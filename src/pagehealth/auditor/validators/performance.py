# src/pagehealth/auditor/validators/performance.py
import logging
from typing import List, Optional

from pagehealth.auditor.core import Analysis, AnalysisStrategy, ValidatorBase, run_with_fallback
from pagehealth.auditor.services.pagespeed_service import SIMULATED_SCORES, LighthouseScores, PageSpeedService
from pagehealth.core.managers.config_manager import ConfigManager
from pagehealth.model import Issue, IssueKind, PageSnapshot, ResultStatus

logger = logging.getLogger(__name__)

STRATEGIES = ("mobile", "desktop")
SCORE_MODES = ("performance", "average")
RECOMMENDATION_THRESHOLD = 90

METRIC_LABELS = {
    "first-contentful-paint": "First Contentful Paint",
    "largest-contentful-paint": "Largest Contentful Paint",
    "total-blocking-time": "Total Blocking Time",
    "cumulative-layout-shift": "Cumulative Layout Shift",
    "speed-index": "Speed Index",
}


def build_analysis(scores: LighthouseScores, data_source: str, score_mode: str = "performance") -> Analysis:
    """Category scores and lab metrics become info issues; the score follows `score_mode`."""
    issues = [
        Issue(kind=IssueKind.INFO, message=f"Performance: {scores.performance}/100", category="performance"),
        Issue(kind=IssueKind.INFO, message=f"Accessibility: {scores.accessibility}/100", category="accessibility"),
        Issue(kind=IssueKind.INFO, message=f"Best Practices: {scores.best_practices}/100", category="best-practices"),
        Issue(kind=IssueKind.INFO, message=f"SEO: {scores.seo}/100", category="seo"),
    ]
    for metric_id, metric in scores.metrics.items():
        shown = metric.display_value or f"{metric.value:g}"
        issues.append(Issue(
            kind=IssueKind.INFO,
            message=f"{METRIC_LABELS.get(metric_id, metric_id)}: {shown}",
            locator=metric_id,
            category="metrics",
        ))

    score = scores.average() if score_mode == "average" else scores.performance
    return Analysis(issues=issues, data_source=data_source, score=score, extras={"scores": scores})


class PageSpeedStrategy(AnalysisStrategy):
    name = "PageSpeed"
    data_source = "Google PageSpeed Insights"

    def __init__(self, service: PageSpeedService, strategy: str, score_mode: str):
        self.service = service
        self.strategy = strategy
        self.score_mode = score_mode

    def is_available(self) -> bool:
        return self.service.is_configured()

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        scores = await self.service.run(snapshot.source_url, self.strategy)
        return build_analysis(scores, self.data_source, self.score_mode)


class SimulatedStrategy(AnalysisStrategy):
    """Fixed baseline used whenever real Lighthouse data is unavailable."""

    name = "Simulated"
    data_source = "Simulated"

    def __init__(self, score_mode: str = "performance"):
        self.score_mode = score_mode

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        return build_analysis(SIMULATED_SCORES, self.data_source, self.score_mode)


class PerformanceValidator(ValidatorBase):
    validator_id = "performance"

    def __init__(self, descriptor, config=None, http=None):
        super().__init__(descriptor, config=config, http=http)

        self.strategy = self.settings.get("strategy", "desktop")
        if self.strategy not in STRATEGIES:
            logger.warning("Unknown PageSpeed strategy '%s', using 'desktop'", self.strategy)
            self.strategy = "desktop"

        self.score_mode = self.settings.get("score_mode", "performance")
        if self.score_mode not in SCORE_MODES:
            logger.warning("Unknown performance score mode '%s', using 'performance'", self.score_mode)
            self.score_mode = "performance"

        self.pagespeed: Optional[PageSpeedService] = None
        if http is not None:
            service_config = self.service_config("pagespeed")
            self.pagespeed = PageSpeedService(
                http, service_config, api_key=ConfigManager.read_secret(service_config.get("api_key_env"))
            )

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        primary = None
        if self.pagespeed is not None:
            primary = PageSpeedStrategy(self.pagespeed, self.strategy, self.score_mode)
        if primary is None or not primary.is_available():
            logger.warning("PageSpeed API key not configured, using simulated scores")
        return await run_with_fallback(primary, SimulatedStrategy(self.score_mode), snapshot, tag_fallback=False)

    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        scores: LighthouseScores = analysis.extras["scores"]
        return (
            f"Lighthouse Score: {score}/100 (Performance: {scores.performance}, "
            f"Accessibility: {scores.accessibility}, Best Practices: {scores.best_practices}, SEO: {scores.seo})"
        )

    def recommendations(self, analysis: Analysis) -> List[str]:
        scores: LighthouseScores = analysis.extras["scores"]
        recommendations = []

        if scores.performance < RECOMMENDATION_THRESHOLD:
            recommendations.append("Optimize images and reduce file sizes")
            recommendations.append("Minimize JavaScript and CSS")
            recommendations.append("Enable text compression")
        if scores.accessibility < RECOMMENDATION_THRESHOLD:
            recommendations.append("Improve color contrast ratios")
            recommendations.append("Add ARIA labels to interactive elements")
        if scores.best_practices < RECOMMENDATION_THRESHOLD:
            recommendations.append("Use HTTPS for all resources")
            recommendations.append("Avoid deprecated APIs")
        if scores.seo < RECOMMENDATION_THRESHOLD:
            recommendations.append("Add meta descriptions to all pages")
        return recommendations


VALIDATOR = PerformanceValidator
