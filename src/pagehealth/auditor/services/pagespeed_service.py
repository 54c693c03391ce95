# src/pagehealth/auditor/services/pagespeed_service.py
import logging
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from pagehealth.auditor.services.service_base import ExternalService
from pagehealth.exceptions import ServiceAuthError, ServiceUnavailableError

logger = logging.getLogger(__name__)

CATEGORIES = ("performance", "accessibility", "best-practices", "seo")
METRIC_IDS = (
    "first-contentful-paint",
    "largest-contentful-paint",
    "total-blocking-time",
    "cumulative-layout-shift",
    "speed-index",
)


class LighthouseMetric(BaseModel):
    score: float = 0
    value: float = 0
    display_value: str = ""


class LighthouseScores(BaseModel):
    """Category scores on a 0-100 scale plus the lab metrics, when reported."""
    performance: int
    accessibility: int
    best_practices: int
    seo: int
    metrics: Dict[str, LighthouseMetric] = Field(default_factory=dict)

    def average(self) -> int:
        return round((self.performance + self.accessibility + self.best_practices + self.seo) / 4)


SIMULATED_SCORES = LighthouseScores(performance=85, accessibility=90, best_practices=88, seo=92)


class PageSpeedService(ExternalService):
    """Client for the Google PageSpeed Insights v5 `runPagespeed` API."""

    name = "PageSpeed"

    def __init__(self, http, settings: Optional[Dict[str, Any]] = None, api_key: Optional[str] = None):
        super().__init__(http, settings)
        self.api_key = api_key

    def is_configured(self) -> bool:
        return super().is_configured() and bool(self.api_key)

    async def run(self, url: str, strategy: str = "desktop") -> LighthouseScores:
        if not self.api_key:
            raise ServiceAuthError(self.name, "API key not configured")

        params = [("url", url), ("key", self.api_key), ("strategy", strategy)]
        params.extend(("category", category) for category in CATEGORIES)

        logger.info("PageSpeed: requesting %s analysis for %s", strategy, url)
        response = await self.http.perform_request(
            self.endpoint, "GET", params=params, timeout=self.timeout, expect_json=True
        )
        self.ensure_ok(response)
        payload = self.ensure_json(response)

        lighthouse = payload.get("lighthouseResult") if isinstance(payload, dict) else None
        if not isinstance(lighthouse, dict):
            raise ServiceUnavailableError(self.name, "Response has no lighthouseResult")

        try:
            categories = lighthouse.get("categories") or {}
            scores = LighthouseScores(
                performance=_category_score(categories, "performance"),
                accessibility=_category_score(categories, "accessibility"),
                best_practices=_category_score(categories, "best-practices"),
                seo=_category_score(categories, "seo"),
                metrics=_extract_metrics(lighthouse.get("audits") or {}),
            )
        except (TypeError, ValueError, AttributeError, OverflowError) as e:
            # pydantic's ValidationError is a ValueError
            raise ServiceUnavailableError(self.name, f"Malformed lighthouseResult: {e}") from e
        logger.debug("PageSpeed scores for %s: %s", url, scores.model_dump(exclude={"metrics"}))
        return scores


def _category_score(categories: Dict[str, Any], name: str) -> int:
    raw = (categories.get(name) or {}).get("score")
    return round((raw or 0) * 100)


def _extract_metrics(audits: Dict[str, Any]) -> Dict[str, LighthouseMetric]:
    metrics = {}
    for metric_id in METRIC_IDS:
        audit = audits.get(metric_id)
        if audit:
            metrics[metric_id] = LighthouseMetric(
                score=audit.get("score") or 0,
                value=audit.get("numericValue") or 0,
                display_value=audit.get("displayValue") or "",
            )
    return metrics
