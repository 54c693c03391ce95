# tests/auditor/test_performance.py
from pagehealth.auditor.validators.performance import PerformanceValidator

LIGHTHOUSE_PAYLOAD = {
    "lighthouseResult": {
        "categories": {
            "performance": {"score": 0.95},
            "accessibility": {"score": 1.0},
            "best-practices": {"score": 0.96},
            "seo": {"score": 0.9},
        },
        "audits": {
            "largest-contentful-paint": {"score": 0.9, "numericValue": 1830.5, "displayValue": "1.8 s"},
            "cumulative-layout-shift": {"score": 1, "numericValue": 0.01},
        },
    }
}


async def test_simulated_scores_without_api_key(make_snapshot, descriptor, mock_http, config):
    http = mock_http({"status": 200, "json": LIGHTHOUSE_PAYLOAD})
    validator = PerformanceValidator(descriptor("performance", "Lighthouse Audit"), config=config, http=http)

    result = await validator.run(make_snapshot("<p>x</p>"))

    assert result.score == 85
    assert result.status == "success"
    assert result.data_source == "Simulated"
    assert result.message == (
        "Lighthouse Score: 85/100 (Performance: 85, Accessibility: 90, Best Practices: 88, SEO: 92)"
    )
    assert result.recommendations == [
        "Optimize images and reduce file sizes",
        "Minimize JavaScript and CSS",
        "Enable text compression",
        "Use HTTPS for all resources",
        "Avoid deprecated APIs",
    ]
    http.perform_request.assert_not_called()


async def test_average_score_mode(make_snapshot, descriptor, config):
    config["auditor"]["performance"] = {"score_mode": "average"}
    result = await PerformanceValidator(descriptor("performance"), config=config).run(make_snapshot("<p>x</p>"))
    assert result.score == 89


async def test_pagespeed_scores(make_snapshot, descriptor, mock_http, config, monkeypatch):
    monkeypatch.setenv("PAGEHEALTH_TEST_PSI_KEY", "psi-key")
    config["auditor"]["performance"] = {"strategy": "mobile"}
    http = mock_http({"status": 200, "json": LIGHTHOUSE_PAYLOAD})

    result = await PerformanceValidator(descriptor("performance"), config=config, http=http).run(
        make_snapshot("<p>x</p>")
    )

    assert result.data_source == "Google PageSpeed Insights"
    assert result.score == 95
    assert result.recommendations == []
    assert "Largest Contentful Paint: 1.8 s" in [issue.message for issue in result.issues]

    params = http.perform_request.call_args.kwargs["params"]
    assert ("strategy", "mobile") in params
    assert ("key", "psi-key") in params
    assert [value for key, value in params if key == "category"] == [
        "performance", "accessibility", "best-practices", "seo"
    ]


async def test_pagespeed_failure_reports_simulated(make_snapshot, descriptor, mock_http, config, monkeypatch):
    monkeypatch.setenv("PAGEHEALTH_TEST_PSI_KEY", "psi-key")
    http = mock_http({"status": 500, "content": "backend error"})

    result = await PerformanceValidator(descriptor("performance"), config=config, http=http).run(
        make_snapshot("<p>x</p>")
    )

    assert result.data_source == "Simulated"
    assert result.score == 85


async def test_malformed_pagespeed_payload_reports_simulated(make_snapshot, descriptor, mock_http, config,
                                                              monkeypatch):
    monkeypatch.setenv("PAGEHEALTH_TEST_PSI_KEY", "psi-key")
    http = mock_http({"status": 200, "json": {"lighthouseResult": {"categories": {"performance": {"score": "n/a"}}}}})

    result = await PerformanceValidator(descriptor("performance"), config=config, http=http).run(
        make_snapshot("<p>x</p>")
    )

    assert result.data_source == "Simulated"
    assert result.score == 85
    http.perform_request.assert_called_once()


def test_invalid_settings_use_defaults(descriptor, config):
    config["auditor"]["performance"] = {"strategy": "tablet", "score_mode": "median"}
    validator = PerformanceValidator(descriptor("performance"), config=config)
    assert (validator.strategy, validator.score_mode) == ("desktop", "performance")
