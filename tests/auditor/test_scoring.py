# tests/auditor/test_scoring.py
import pytest

from pagehealth.auditor.core import (
    ACCESSIBILITY_LOCAL_POLICY, MARKUP_POLICY, SECURITY_POLICY, SEO_LOCAL_POLICY, SEO_STRICT_POLICY, Analysis,
    AnalysisStrategy, assemble_result, count_by, error_result, run_with_fallback, status_for_score, truncate_issues,
)
from pagehealth.exceptions import ServiceAuthError, ServiceUnavailableError
from pagehealth.model import Issue, IssueKind, ResultStatus, ValidatorDescriptor


def _error(severity=None):
    return Issue(kind=IssueKind.ERROR, message="broken", severity=severity)


def _warning(severity=None):
    return Issue(kind=IssueKind.WARNING, message="meh", severity=severity)


def _info():
    return Issue(kind=IssueKind.INFO, message="fyi")


@pytest.mark.parametrize("score, status", [
    (100, ResultStatus.SUCCESS), (80, ResultStatus.SUCCESS), (79, ResultStatus.WARNING),
    (60, ResultStatus.WARNING), (59, ResultStatus.ERROR), (0, ResultStatus.ERROR),
])
def test_status_bands(score, status):
    assert status_for_score(score) == status


def test_kind_policy_deducts_per_issue():
    assert MARKUP_POLICY.score([]) == 100
    assert MARKUP_POLICY.score([_error(), _error()]) == 84
    assert MARKUP_POLICY.score([_error(), _warning(), _info()]) == 89


def test_score_is_clamped_to_zero():
    assert MARKUP_POLICY.score([_error()] * 20) == 0
    assert SECURITY_POLICY.score([_error("high")] * 10) == 0


def test_adding_an_issue_never_raises_the_score():
    issues = []
    previous = ACCESSIBILITY_LOCAL_POLICY.score(issues)
    for severity in ("minor", "critical", None, "moderate", "serious", "unknown"):
        issues.append(_warning(severity))
        current = ACCESSIBILITY_LOCAL_POLICY.score(issues)
        assert current <= previous
        previous = current


def test_severity_policy_ignores_issues_without_severity():
    assert SEO_LOCAL_POLICY.score([_info(), _error()]) == 100


def test_strict_seo_policy_fails_on_any_high_issue():
    issues = [_error("high")]
    score = SEO_STRICT_POLICY.score(issues)
    assert score == 80
    assert SEO_STRICT_POLICY.status(score, issues) == ResultStatus.ERROR
    assert SEO_LOCAL_POLICY.status(SEO_LOCAL_POLICY.score(issues), issues) == ResultStatus.SUCCESS


def test_analysis_prefers_service_score_over_policy():
    analysis = Analysis(issues=[_error("high")], data_source="DataForSEO", policy=SEO_LOCAL_POLICY, score=92)
    assert analysis.final_score() == 92
    assert analysis.final_status(92) == ResultStatus.SUCCESS


def test_service_score_is_clamped():
    assert Analysis(data_source="DataForSEO", score=130).final_score() == 100


def test_analysis_without_score_or_policy_is_an_error():
    analysis = Analysis(data_source="Local Analysis")
    assert analysis.final_score() is None
    assert analysis.final_status(None) == ResultStatus.ERROR


def test_truncate_keeps_order_when_under_limit():
    issues = [_info(), _warning(), _error()]
    assert truncate_issues(issues, 5) == issues
    assert truncate_issues(issues, None) == issues


def test_truncate_keeps_most_significant_issues():
    issues = [_info()] * 10 + [_warning("low")] * 10 + [_error("high")] * 5
    kept = truncate_issues(issues, 20)
    assert len(kept) == 20
    assert [i.kind for i in kept[:5]] == ["error"] * 5
    assert sum(1 for i in kept if i.kind == "warning") == 10


def test_count_by():
    issues = [_error("high"), _error("high"), _warning("low"), _info()]
    assert count_by(issues, "severity") == {"high": 2, "low": 1}
    assert count_by(issues, "kind") == {"error": 2, "warning": 1, "info": 1}


def test_assemble_result_shape():
    descriptor = ValidatorDescriptor(id="markup", label="W3C Markup Validation")
    result = assemble_result(
        descriptor,
        issues=[_error()],
        score=92,
        status=ResultStatus.SUCCESS,
        message="Found 1 markup errors.",
        recommendations=["Validate often", "Validate often", "Close tags"],
        data_source="Local Analysis",
    )
    assert result.recommendations == ["Validate often", "Close tags"]
    assert result.report_id.startswith("markup-")
    assert result.timestamp > 0

    data = result.to_json_dict()
    assert data["dataSource"] == "Local Analysis"
    assert data["reportId"] == result.report_id
    assert data["status"] == "success"
    assert data["issues"][0]["kind"] == "error"


def test_error_result_omits_score_and_optional_fields():
    descriptor = ValidatorDescriptor(id="seo", label="SEO Analysis")
    data = error_result(descriptor, "boom").to_json_dict()
    assert data["status"] == "error"
    assert data["message"] == "boom"
    assert data["issues"] == []
    for key in ("score", "dataSource", "reportId"):
        assert key not in data


class _Strategy(AnalysisStrategy):
    def __init__(self, name, data_source, available=True, error=None):
        self.name = name
        self.data_source = data_source
        self.available = available
        self.error = error
        self.calls = 0

    def is_available(self):
        return self.available

    async def analyze(self, snapshot):
        self.calls += 1
        if self.error:
            raise self.error
        return Analysis(data_source=self.data_source, policy=MARKUP_POLICY)


async def test_fallback_is_tagged_when_primary_fails(make_snapshot):
    primary = _Strategy("Axe", "Axe DevTools", error=ServiceUnavailableError("Axe", "down"))
    fallback = _Strategy("Local", "Local Analysis")

    analysis = await run_with_fallback(primary, fallback, make_snapshot("<p>x</p>"))

    assert analysis.data_source == "Local Analysis (Axe Fallback)"
    assert primary.calls == 1
    assert fallback.calls == 1


async def test_fallback_tag_can_be_suppressed(make_snapshot):
    primary = _Strategy("PageSpeed", "Google PageSpeed Insights", error=ServiceAuthError("PageSpeed", "no key"))
    fallback = _Strategy("Simulated", "Simulated")

    analysis = await run_with_fallback(primary, fallback, make_snapshot("<p>x</p>"), tag_fallback=False)
    assert analysis.data_source == "Simulated"


async def test_unavailable_primary_is_skipped(make_snapshot):
    primary = _Strategy("W3C", "W3C Nu Validator", available=False)
    fallback = _Strategy("Local", "Local Analysis")

    analysis = await run_with_fallback(primary, fallback, make_snapshot("<p>x</p>"))

    assert analysis.data_source == "Local Analysis"
    assert primary.calls == 0


async def test_primary_success_skips_fallback(make_snapshot):
    primary = _Strategy("W3C", "W3C Nu Validator")
    fallback = _Strategy("Local", "Local Analysis")

    analysis = await run_with_fallback(primary, fallback, make_snapshot("<p>x</p>"))

    assert analysis.data_source == "W3C Nu Validator"
    assert fallback.calls == 0


async def test_non_service_errors_are_not_swallowed(make_snapshot):
    primary = _Strategy("W3C", "W3C Nu Validator", error=ValueError("bug"))
    with pytest.raises(ValueError):
        await run_with_fallback(primary, _Strategy("Local", "Local Analysis"), make_snapshot("<p>x</p>"))
