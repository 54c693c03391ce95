# src/pagehealth/auditor/core.py
import abc
import asyncio
import logging
import time
import uuid
from typing import Any, Dict, Iterable, List, Literal, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from pagehealth.exceptions import ServiceError
from pagehealth.model import Issue, PageSnapshot, ResultStatus, ValidatorDescriptor, ValidatorResult

logger = logging.getLogger(__name__)

# Significance order used when a result has to drop issues
KIND_RANK = {"error": 0, "warning": 1, "info": 2}
SEVERITY_RANK = {
    "critical": 0, "high": 0,
    "serious": 1, "medium": 1,
    "moderate": 2, "low": 2,
    "minor": 3,
}

SUCCESS_THRESHOLD = 80
WARNING_THRESHOLD = 60


def status_for_score(
        score: int,
        success_threshold: int = SUCCESS_THRESHOLD,
        warning_threshold: int = WARNING_THRESHOLD
) -> ResultStatus:
    """Shared score bands: [80,100] success, [60,80) warning, below 60 error."""
    if score >= success_threshold:
        return ResultStatus.SUCCESS
    if score >= warning_threshold:
        return ResultStatus.WARNING
    return ResultStatus.ERROR


class ScoringPolicy(BaseModel):
    """
    Named, immutable severity-weight table.

    Every issue deducts the weight of its key (its `severity` or its `kind`,
    depending on `keyed_on`) from 100; the total is clamped to
    [floor, ceiling]. Keys missing from `weights` deduct nothing, so adding
    an issue can never raise the score.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    weights: Dict[str, int]
    keyed_on: Literal["severity", "kind"] = "severity"
    floor: int = 0
    ceiling: int = 100
    success_threshold: int = SUCCESS_THRESHOLD
    warning_threshold: int = WARNING_THRESHOLD
    error_on: Tuple[str, ...] = ()

    def key(self, issue: Issue) -> Optional[str]:
        return issue.severity if self.keyed_on == "severity" else issue.kind

    def deduction(self, issue: Issue) -> int:
        key = self.key(issue)
        return self.weights.get(key, 0) if key else 0

    def score(self, issues: Iterable[Issue]) -> int:
        total = 100 - sum(self.deduction(issue) for issue in issues)
        return max(self.floor, min(self.ceiling, total))

    def status(self, score: int, issues: Sequence[Issue] = ()) -> ResultStatus:
        if self.error_on and any(self.key(issue) in self.error_on for issue in issues):
            return ResultStatus.ERROR
        return status_for_score(score, self.success_threshold, self.warning_threshold)


MARKUP_POLICY = ScoringPolicy(name="markup", keyed_on="kind", weights={"error": 8, "warning": 3})
CONTRAST_POLICY = ScoringPolicy(name="contrast", keyed_on="kind", weights={"error": 12, "warning": 5})
CONTRAST_AXE_POLICY = ScoringPolicy(name="contrast-axe", keyed_on="kind", weights={"error": 15, "warning": 5})
ACCESSIBILITY_LOCAL_POLICY = ScoringPolicy(
    name="accessibility-local",
    weights={"critical": 10, "serious": 6, "moderate": 3, "minor": 1},
)
ACCESSIBILITY_AXE_POLICY = ScoringPolicy(
    name="accessibility-axe",
    weights={"critical": 20, "serious": 10, "moderate": 5, "minor": 2},
)
SEO_LOCAL_POLICY = ScoringPolicy(name="seo-local", weights={"high": 12, "medium": 5, "low": 2})
SEO_STRICT_POLICY = ScoringPolicy(
    name="seo-strict",
    weights={"high": 20, "medium": 8, "low": 3},
    error_on=("high",),
)
SECURITY_POLICY = ScoringPolicy(name="security", weights={"high": 15, "medium": 8, "low": 3})

SEO_POLICIES = {"local": SEO_LOCAL_POLICY, "strict": SEO_STRICT_POLICY}


class Analysis(BaseModel):
    """
    Outcome of one analysis strategy: findings plus how to score them.

    `score` is set when the data source scores the page itself (DataForSEO,
    PageSpeed); otherwise the policy scores the issues.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    issues: List[Issue] = Field(default_factory=list)
    data_source: str
    policy: Optional[ScoringPolicy] = None
    score: Optional[int] = None
    recommendations: List[str] = Field(default_factory=list)
    extras: Dict[str, Any] = Field(default_factory=dict)

    def final_score(self) -> Optional[int]:
        if self.score is not None:
            return max(0, min(100, int(round(self.score))))
        if self.policy is not None:
            return self.policy.score(self.issues)
        return None

    def final_status(self, score: Optional[int]) -> ResultStatus:
        if score is None:
            return ResultStatus.ERROR
        if self.policy is not None:
            return self.policy.status(score, self.issues)
        return status_for_score(score)


class AnalysisStrategy(metaclass=abc.ABCMeta):
    """One way of producing an Analysis for a snapshot (remote service or local)."""

    name: str = "Local"
    data_source: str = "Local Analysis"

    def is_available(self) -> bool:
        """Capability probe; remote strategies check endpoints and credentials."""
        return True

    @abc.abstractmethod
    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        raise NotImplementedError("Every analysis strategy must implement 'analyze'.")


class LocalAnalysisStrategy(AnalysisStrategy):
    """
    CPU-bound strategy working only on the snapshot.
    `inspect` runs in a worker thread so parsing never blocks the event loop.
    """

    @abc.abstractmethod
    def inspect(self, snapshot: PageSnapshot) -> Analysis:
        raise NotImplementedError

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        return await asyncio.to_thread(self.inspect, snapshot)


async def run_with_fallback(
        primary: Optional[AnalysisStrategy],
        fallback: AnalysisStrategy,
        snapshot: PageSnapshot,
        tag_fallback: bool = True
) -> Analysis:
    """
    Runs `primary` when its capability probe passes, otherwise `fallback`.

    A ServiceError from the primary switches to the fallback once (no retry).
    The fallback result is then re-tagged "<fallback> (<primary> Fallback)"
    unless `tag_fallback` is False.
    """
    if primary is None or not primary.is_available():
        return await fallback.analyze(snapshot)

    try:
        return await primary.analyze(snapshot)
    except ServiceError as e:
        logger.warning("%s unavailable for %s, falling back to %s: %s",
                       primary.name, snapshot.source_url, fallback.data_source, e)

    analysis = await fallback.analyze(snapshot)
    if not tag_fallback:
        return analysis
    return analysis.model_copy(update={"data_source": f"{fallback.data_source} ({primary.name} Fallback)"})


def _significance(issue: Issue) -> Tuple[int, int]:
    return KIND_RANK.get(issue.kind, 3), SEVERITY_RANK.get(issue.severity or "", 4)


def truncate_issues(issues: List[Issue], max_issues: Optional[int]) -> List[Issue]:
    """Keeps the most significant issues; analyzer order is kept when nothing is dropped."""
    if max_issues is None or len(issues) <= max_issues:
        return list(issues)
    return sorted(issues, key=_significance)[:max_issues]


def new_report_id(validator_id: str) -> str:
    return f"{validator_id}-{uuid.uuid4().hex[:12]}"


def now_ms() -> int:
    return int(time.time() * 1000)


def assemble_result(
        descriptor: ValidatorDescriptor,
        issues: List[Issue],
        score: Optional[int],
        status: ResultStatus,
        message: str,
        recommendations: Optional[List[str]] = None,
        data_source: Optional[str] = None,
        max_issues: Optional[int] = None
) -> ValidatorResult:
    """Builds the immutable ValidatorResult every validator returns."""
    unique_recommendations = list(dict.fromkeys(recommendations or []))
    return ValidatorResult(
        id=descriptor.id,
        label=descriptor.label,
        status=status,
        score=score,
        message=message,
        issues=truncate_issues(issues, max_issues),
        recommendations=unique_recommendations,
        timestamp=now_ms(),
        data_source=data_source,
        report_id=new_report_id(descriptor.id),
    )


def error_result(descriptor: ValidatorDescriptor, message: str) -> ValidatorResult:
    """Result for a validator that could not run (exception, timeout)."""
    return ValidatorResult(
        id=descriptor.id,
        label=descriptor.label,
        status=ResultStatus.ERROR,
        message=message,
        timestamp=now_ms(),
    )


class ValidatorBase(metaclass=abc.ABCMeta):
    """
    Base class of the six validators.

    Subclasses implement `analyze` (usually through `run_with_fallback`),
    `recommendations` and `summarize`; `run` turns the Analysis into a
    ValidatorResult.
    """

    validator_id: str = ""
    default_max_issues: Optional[int] = None

    def __init__(self, descriptor: ValidatorDescriptor, config: Optional[Dict] = None, http=None):
        self.descriptor = descriptor
        self.config = config or {}
        self.http = http

        self.settings: Dict[str, Any] = self.config.get("auditor", {}).get(descriptor.id, {}) or {}
        self.max_issues: Optional[int] = self.settings.get("max_issues", self.default_max_issues)

    def service_config(self, name: str) -> Dict[str, Any]:
        return self.config.get("services", {}).get(name, {}) or {}

    @abc.abstractmethod
    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        raise NotImplementedError("Every validator must implement 'analyze'.")

    def recommendations(self, analysis: Analysis) -> List[str]:
        return []

    @abc.abstractmethod
    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        raise NotImplementedError

    async def run(self, snapshot: PageSnapshot) -> ValidatorResult:
        analysis = await self.analyze(snapshot)
        score = analysis.final_score()
        status = analysis.final_status(score)

        result = assemble_result(
            self.descriptor,
            issues=analysis.issues,
            score=score,
            status=status,
            message=self.summarize(analysis, score, status),
            recommendations=self.recommendations(analysis) + analysis.recommendations,
            data_source=analysis.data_source,
            max_issues=self.max_issues,
        )
        logger.info("%s: %s (score=%s, %d issues, source=%s)",
                    self.descriptor.id, result.status, result.score, len(analysis.issues), result.data_source)
        return result


def count_by(issues: Iterable[Issue], attribute: str) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for issue in issues:
        value = getattr(issue, attribute)
        if value:
            counts[value] = counts.get(value, 0) + 1
    return counts
