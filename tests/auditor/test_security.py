# tests/auditor/test_security.py
import pytest

from pagehealth.auditor.validators.security import (
    SecurityValidator, analyze_headers, check_allowed_methods, check_cookies, check_csp, check_disclosure,
    check_framing, check_referrer_policy, check_transport,
)
from pagehealth.exceptions import ValidatorError

HARDENED_HEADERS = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "Content-Security-Policy": "default-src 'self'; frame-ancestors 'none'",
    "X-Content-Type-Options": "nosniff",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Permissions-Policy": "geolocation=()",
    "Server": "nginx",
}


def test_hardened_headers_have_no_findings():
    assert analyze_headers("https://example.com/", HARDENED_HEADERS) == []


def test_bare_https_response():
    issues = analyze_headers("https://example.com/", {})
    assert [issue.severity for issue in issues] == ["high", "high", "high", "medium", "low", "low"]
    assert [issue.kind for issue in issues[:4]] == ["error", "error", "error", "warning"]


def test_plain_http_reports_transport_first():
    issues = analyze_headers("http://example.com/", {"Strict-Transport-Security": "max-age=1"})
    assert issues[0].category == "transport"
    assert not any(issue.category == "hsts" for issue in issues)


def test_header_names_are_case_insensitive():
    headers = {key.upper(): value for key, value in HARDENED_HEADERS.items()}
    assert analyze_headers("https://example.com/", headers) == []


def test_weak_hsts():
    issues = check_transport("https://example.com/", {"strict-transport-security": "max-age=3600"})
    assert [issue.severity for issue in issues] == ["medium", "low"]


def test_csp_weaknesses():
    messages = [i.message for i in check_csp({"content-security-policy": "script-src * 'unsafe-inline' 'unsafe-eval'"})]
    assert messages == [
        "Content-Security-Policy allows 'unsafe-inline'",
        "Content-Security-Policy allows 'unsafe-eval'",
        "Content-Security-Policy allows wildcard (*) sources",
    ]


@pytest.mark.parametrize("headers, expected", [
    ({}, ["high"]),
    ({"x-frame-options": "ALLOW-FROM https://a.com"}, ["medium"]),
    ({"x-frame-options": "sameorigin"}, []),
    ({"content-security-policy": "frame-ancestors 'self'"}, []),
])
def test_framing(headers, expected):
    assert [issue.severity for issue in check_framing(headers)] == expected


def test_referrer_policy_uses_last_value():
    assert check_referrer_policy({"referrer-policy": "no-referrer, unsafe-url"})[0].severity == "low"
    assert check_referrer_policy({"referrer-policy": "unsafe-url, no-referrer"}) == []


def test_disclosure():
    issues = check_disclosure({"server": "Apache/2.4.41", "x-powered-by": "PHP/8.1"})
    assert len(issues) == 2
    assert check_disclosure({"server": "cloudflare"}) == []


def test_cookie_flags():
    issues = check_cookies(["session=abc; Path=/", "prefs=1; Secure; HttpOnly; SameSite=Lax"])
    assert [issue.message for issue in issues] == [
        "Cookie 'session' is missing the Secure flag",
        "Cookie 'session' is missing the HttpOnly flag",
        "Cookie 'session' is missing the SameSite attribute",
    ]


def test_allowed_methods():
    issues = check_allowed_methods({"allow": "GET, POST, TRACE, DELETE"})
    assert [issue.severity for issue in issues] == ["medium", "low"]


async def test_missing_headers_score(make_snapshot, descriptor, mock_http):
    http = mock_http({"status": 200, "headers": {}, "cookies": [], "final_url": "https://example.com/"})
    validator = SecurityValidator(descriptor("security", "Security Headers"), http=http)

    result = await validator.run(make_snapshot("<p>x</p>", url="http://example.com/"))

    assert result.score == 41
    assert result.status == "error"
    assert len(result.issues) == 6
    assert result.data_source == "Local Analysis"
    assert result.message == "Found 3 high severity security issues."
    assert "Enable HSTS to enforce HTTPS connections" in result.recommendations
    http.perform_request.assert_awaited_once_with("http://example.com/", "HEAD")


async def test_hardened_site_result(make_snapshot, descriptor, mock_http):
    http = mock_http({"status": 200, "headers": HARDENED_HEADERS, "final_url": "https://example.com/"})

    result = await SecurityValidator(descriptor("security"), http=http).run(make_snapshot("<p>x</p>"))

    assert result.score == 100
    assert result.message == "Security headers are well-configured."
    assert result.recommendations == []


async def test_unreachable_headers_raise(make_snapshot, descriptor, mock_http):
    http = mock_http({"status": -1, "error": "Connection refused"})
    with pytest.raises(ValidatorError):
        await SecurityValidator(descriptor("security"), http=http).run(make_snapshot("<p>x</p>"))


async def test_no_http_session_raises(make_snapshot, descriptor):
    with pytest.raises(ValidatorError):
        await SecurityValidator(descriptor("security")).run(make_snapshot("<p>x</p>"))
