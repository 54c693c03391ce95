# tests/auditor/test_services.py
import pytest

from pagehealth.auditor.services.axe_service import AxeRunnerService
from pagehealth.auditor.services.dataforseo_service import DataForSEOService, extract_issues, score_from_checks
from pagehealth.auditor.services.pagespeed_service import PageSpeedService
from pagehealth.auditor.services.service_base import ExternalService
from pagehealth.auditor.services.w3c_service import parse_gnu_output
from pagehealth.exceptions import ServiceAuthError, ServiceUnavailableError


def test_parse_gnu_output():
    report = "\n".join([
        '"https://example.com/":12.3-12.40: error: Stray end tag “div”.',
        ":1.1-1.15: info warning: Consider adding a “lang” attribute.",
        ": info: Using the schema for HTML with SVG 1.1.",
        ": fatal error: Cannot recover after last error.",
        "",
        "some unrelated line",
    ])
    issues = parse_gnu_output(report)

    assert [(i.kind, i.locator) for i in issues] == [
        ("error", "Line 12"),
        ("warning", "Line 1"),
        ("info", None),
        ("error", None),
    ]
    assert issues[0].message == "Stray end tag “div”."


def test_empty_report_means_valid_document():
    assert parse_gnu_output("") == []


@pytest.mark.parametrize("response, error", [
    ({"status": -1, "error": "timeout"}, ServiceUnavailableError),
    ({"status": 401}, ServiceAuthError),
    ({"status": 403}, ServiceAuthError),
    ({"status": 503}, ServiceUnavailableError),
])
def test_ensure_ok_translates_failures(mock_http, response, error):
    service = ExternalService(mock_http(), {"endpoint": "https://api.test"})
    with pytest.raises(error):
        service.ensure_ok(response)


def test_ensure_json_requires_payload(mock_http):
    service = ExternalService(mock_http(), {"endpoint": "https://api.test"})
    assert service.ensure_json({"json": {"ok": True}}) == {"ok": True}
    with pytest.raises(ServiceUnavailableError):
        service.ensure_json({"status": 200, "content": "<html>"})


def test_is_configured(mock_http):
    assert not ExternalService(mock_http(), {}).is_configured()
    assert not ExternalService(mock_http(), {"endpoint": "https://api.test", "enabled": False}).is_configured()
    assert ExternalService(mock_http(), {"endpoint": " https://api.test "}).endpoint == "https://api.test"
    assert not PageSpeedService(mock_http(), {"endpoint": "https://api.test"}).is_configured()
    assert not DataForSEOService(mock_http(), {"endpoint": "https://api.test"}, login="u").is_configured()


async def test_malformed_axe_results(mock_http):
    service = AxeRunnerService(mock_http({"status": 200, "json": {"violations": "nope"}}), {"endpoint": "http://axe"})
    with pytest.raises(ServiceUnavailableError):
        await service.run("<p>x</p>", "https://example.com/")


async def test_axe_rule_selection(mock_http):
    http = mock_http({"status": 200, "json": {}})
    service = AxeRunnerService(http, {"endpoint": "http://axe", "tags": ["wcag2a"]})

    results = await service.run("<p>x</p>", "https://example.com/")

    assert results.violations == []
    body = http.perform_request.call_args.kwargs["json_body"]
    assert body["options"]["runOnly"] == {"type": "tag", "values": ["wcag2a"]}
    assert body["html"] == "<p>x</p>"


async def test_pagespeed_without_lighthouse_result(mock_http):
    service = PageSpeedService(mock_http({"status": 200, "json": {"error": {}}}), {"endpoint": "https://psi"},
                               api_key="k")
    with pytest.raises(ServiceUnavailableError):
        await service.run("https://example.com/")


@pytest.mark.parametrize("lighthouse", [
    {"categories": {"performance": {"score": "n/a"}}},
    {"categories": ["performance"]},
    {"categories": {}, "audits": {"speed-index": {"numericValue": "slow"}}},
])
async def test_pagespeed_malformed_lighthouse_result(mock_http, lighthouse):
    service = PageSpeedService(mock_http({"status": 200, "json": {"lighthouseResult": lighthouse}}),
                               {"endpoint": "https://psi"}, api_key="k")
    with pytest.raises(ServiceUnavailableError, match="Malformed lighthouseResult"):
        await service.run("https://example.com/")


async def test_pagespeed_requires_key(mock_http):
    http = mock_http({"status": 200, "json": {}})
    with pytest.raises(ServiceAuthError):
        await PageSpeedService(http, {"endpoint": "https://psi"}).run("https://example.com/")
    http.perform_request.assert_not_called()


async def test_dataforseo_empty_results(mock_http):
    http = mock_http({"status": 200, "json": {"status_code": 20000, "tasks": [{"result": None}]}})
    service = DataForSEOService(http, {"endpoint": "https://seo"}, login="u", password="p")
    with pytest.raises(ServiceUnavailableError):
        await service.instant_page("https://example.com/")


@pytest.mark.parametrize("tasks", [[None], "tasks", [{"result": [None]}], [{"result": {"url": "x"}}]])
async def test_dataforseo_malformed_tasks(mock_http, tasks):
    http = mock_http({"status": 200, "json": {"status_code": 20000, "tasks": tasks}})
    service = DataForSEOService(http, {"endpoint": "https://seo"}, login="u", password="p")
    with pytest.raises(ServiceUnavailableError, match="No results returned"):
        await service.instant_page("https://example.com/")


def test_dataforseo_summarize():
    service = DataForSEOService(None, {"endpoint": "https://seo"}, login="u", password="p")

    score, issues = service.summarize({"onpage_score": 91.4, "checks": {"no_title": True}, "meta": {}})
    assert score == 91
    assert issues[0].message == "Missing page title"

    score, _ = service.summarize({"onpage_score": None, "checks": {"no_title": True}})
    assert score == 80

    with pytest.raises(ServiceUnavailableError, match="Malformed page result"):
        service.summarize({"meta": "oops"})
    with pytest.raises(ServiceUnavailableError, match="Malformed page result"):
        service.summarize({"checks": {"no_image_alt": "many"}})


def test_dataforseo_issue_extraction():
    page = {
        "meta": {"title": "", "htags": {"h1": ["a", "b"]}, "content": {"plain_text_word_count": 120}},
        "checks": {"no_image_alt": True},
        "broken": {"links": 3},
    }
    issues = extract_issues(page)
    assert [(i.message, i.severity) for i in issues] == [
        ("Missing page title", "high"),
        ("Missing meta description", "high"),
        ("Multiple H1 tags found (2)", "medium"),
        ("Images missing alt text", "high"),
        ("Missing canonical URL", "medium"),
        ("Missing viewport meta tag", "high"),
        ("Low word count (120 words)", "low"),
        ("3 broken links found", "high"),
    ]


def test_score_from_checks():
    assert score_from_checks({}) == 100
    assert score_from_checks({"no_title": True, "no_image_alt": 10}) == 70
    assert score_from_checks({
        "no_title": True, "no_description": True, "no_h1": True, "no_image_alt": 5, "duplicate_title": True,
        "duplicate_description": True, "no_canonical": True, "no_viewport": True,
    }) == 0
