# src/pagehealth/auditor/services/axe_service.py
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from pagehealth.auditor.services.service_base import ExternalService
from pagehealth.exceptions import ServiceUnavailableError

logger = logging.getLogger(__name__)

DEFAULT_TAGS = ["wcag2a", "wcag2aa", "wcag21a", "wcag21aa", "best-practice"]
CONTRAST_RULES = ["color-contrast"]


class AxeNode(BaseModel):
    html: Optional[str] = None
    target: List[Any] = Field(default_factory=list)
    failureSummary: Optional[str] = None
    any: List[Dict[str, Any]] = Field(default_factory=list)

    def contrast_data(self) -> Dict[str, Any]:
        for check in self.any:
            data = check.get("data")
            if isinstance(data, dict) and "contrastRatio" in data:
                return data
        return {}


class AxeRule(BaseModel):
    id: str
    impact: Optional[str] = None
    help: str = ""
    description: str = ""
    tags: List[str] = Field(default_factory=list)
    nodes: List[AxeNode] = Field(default_factory=list)


class AxeResults(BaseModel):
    violations: List[AxeRule] = Field(default_factory=list)
    passes: List[Dict[str, Any]] = Field(default_factory=list)
    incomplete: List[AxeRule] = Field(default_factory=list)


class AxeRunnerService(ExternalService):
    """
    Client for an axe-core runner reachable over HTTP.

    The runner receives the page markup and returns the standard axe results
    object ({violations, passes, incomplete}). The service counts as
    available only when `services.axe.endpoint` is set.
    """

    name = "Axe"

    async def run(self, html: str, url: str, rules: Optional[List[str]] = None) -> AxeResults:
        if rules:
            run_only = {"type": "rule", "values": rules}
        else:
            run_only = {"type": "tag", "values": self.settings.get("tags") or DEFAULT_TAGS}

        response = await self.http.perform_request(
            self.endpoint,
            "POST",
            json_body={
                "html": html,
                "url": url,
                "options": {"runOnly": run_only, "resultTypes": ["violations", "passes", "incomplete"]},
            },
            timeout=self.timeout,
            expect_json=True,
        )
        self.ensure_ok(response)
        payload = self.ensure_json(response)

        try:
            results = AxeResults.model_validate(payload)
        except ValidationError as e:
            raise ServiceUnavailableError(self.name, f"Malformed axe results: {e.error_count()} errors") from e

        logger.info("Axe: %d violations, %d passes, %d incomplete",
                    len(results.violations), len(results.passes), len(results.incomplete))
        return results
