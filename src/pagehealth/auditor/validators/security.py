# src/pagehealth/auditor/validators/security.py
import logging
import re
from typing import Dict, List, Optional

from pagehealth.auditor.core import SECURITY_POLICY, Analysis, ValidatorBase, count_by
from pagehealth.crawler.utils.url_utils import UrlUtils
from pagehealth.exceptions import ValidatorError
from pagehealth.model import Issue, IssueKind, PageSnapshot, ResultStatus

logger = logging.getLogger(__name__)

ONE_YEAR_SECONDS = 31536000
VALID_FRAME_OPTIONS = ("DENY", "SAMEORIGIN")
LEAKY_REFERRER_POLICIES = ("unsafe-url", "no-referrer-when-downgrade")
DANGEROUS_METHODS = ("TRACE", "TRACK", "CONNECT")
WRITE_METHODS = ("PUT", "DELETE")

_KIND_BY_SEVERITY = {"high": IssueKind.ERROR, "medium": IssueKind.WARNING, "low": IssueKind.INFO}


def _issue(severity: str, message: str, category: str) -> Issue:
    return Issue(kind=_KIND_BY_SEVERITY[severity], message=message, severity=severity, category=category)


def check_transport(url: str, headers: Dict[str, str]) -> List[Issue]:
    if not UrlUtils.is_https(url):
        return [_issue("high", "Site is not served over HTTPS - traffic can be intercepted", "transport")]

    hsts = headers.get("strict-transport-security")
    if not hsts:
        return [_issue("high", "Missing Strict-Transport-Security header - HTTPS connections not enforced", "hsts")]

    issues = []
    match = re.search(r'max-age\s*=\s*"?(\d+)', hsts, re.IGNORECASE)
    if not match or int(match.group(1)) < ONE_YEAR_SECONDS:
        issues.append(_issue("medium", "Strict-Transport-Security max-age is below one year", "hsts"))
    if "includesubdomains" not in hsts.lower():
        issues.append(_issue("low", "Strict-Transport-Security does not include subdomains", "hsts"))
    return issues


def check_csp(headers: Dict[str, str]) -> List[Issue]:
    csp = headers.get("content-security-policy")
    if not csp:
        return [_issue("high", "Missing Content-Security-Policy header - no XSS protection", "csp")]

    issues = []
    lowered = csp.lower()
    if "'unsafe-inline'" in lowered:
        issues.append(_issue("medium", "Content-Security-Policy allows 'unsafe-inline'", "csp"))
    if "'unsafe-eval'" in lowered:
        issues.append(_issue("medium", "Content-Security-Policy allows 'unsafe-eval'", "csp"))

    for directive in lowered.split(";"):
        sources = directive.split()[1:]
        if "*" in sources:
            issues.append(_issue("medium", "Content-Security-Policy allows wildcard (*) sources", "csp"))
            break
    return issues


def check_framing(headers: Dict[str, str]) -> List[Issue]:
    frame_options = (headers.get("x-frame-options") or "").strip()
    has_frame_ancestors = "frame-ancestors" in (headers.get("content-security-policy") or "").lower()

    if not frame_options:
        if has_frame_ancestors:
            return []
        return [_issue("high", "Missing X-Frame-Options or CSP frame-ancestors - vulnerable to clickjacking",
                       "framing")]
    if frame_options.upper() not in VALID_FRAME_OPTIONS:
        return [_issue("medium", f"Invalid X-Frame-Options value: {frame_options}", "framing")]
    return []


def check_content_type_options(headers: Dict[str, str]) -> List[Issue]:
    value = headers.get("x-content-type-options")
    if not value:
        return [_issue("medium", "Missing X-Content-Type-Options header - vulnerable to MIME sniffing attacks",
                       "mime")]
    if value.strip().lower() != "nosniff":
        return [_issue("medium", f"X-Content-Type-Options should be 'nosniff' (found: {value})", "mime")]
    return []


def check_xss_protection(headers: Dict[str, str]) -> List[Issue]:
    value = (headers.get("x-xss-protection") or "").strip()
    if value and not value.startswith("0"):
        return [_issue("low", "X-XSS-Protection enables the legacy XSS filter - set it to 0 and rely on CSP",
                       "xss")]
    return []


def check_referrer_policy(headers: Dict[str, str]) -> List[Issue]:
    value = headers.get("referrer-policy")
    if not value:
        return [_issue("low", "Missing Referrer-Policy header - may leak sensitive information", "referrer")]
    # Browsers apply the last policy they understand
    effective = value.split(",")[-1].strip().lower()
    if effective in LEAKY_REFERRER_POLICIES:
        return [_issue("low", f"Referrer-Policy '{effective}' leaks full URLs to other origins", "referrer")]
    return []


def check_permissions_policy(headers: Dict[str, str]) -> List[Issue]:
    if not headers.get("permissions-policy"):
        return [_issue("low", "Missing Permissions-Policy header - consider restricting browser features",
                       "permissions")]
    return []


def check_disclosure(headers: Dict[str, str]) -> List[Issue]:
    issues = []
    server = headers.get("server") or ""
    if re.search(r"\d", server):
        issues.append(_issue("low", f"Server header discloses version information: {server}", "disclosure"))
    powered_by = headers.get("x-powered-by")
    if powered_by:
        issues.append(_issue("low", f"X-Powered-By header discloses technology: {powered_by}", "disclosure"))
    return issues


def check_cookies(cookies: List[str]) -> List[Issue]:
    issues = []
    for cookie in cookies:
        name = cookie.split("=", 1)[0].strip() or "cookie"
        attributes = {part.strip().split("=", 1)[0].lower() for part in cookie.split(";")[1:]}
        if "secure" not in attributes:
            issues.append(_issue("medium", f"Cookie '{name}' is missing the Secure flag", "cookies"))
        if "httponly" not in attributes:
            issues.append(_issue("medium", f"Cookie '{name}' is missing the HttpOnly flag", "cookies"))
        if "samesite" not in attributes:
            issues.append(_issue("low", f"Cookie '{name}' is missing the SameSite attribute", "cookies"))
    return issues


def check_allowed_methods(headers: Dict[str, str]) -> List[Issue]:
    allowed = {method.strip().upper() for method in (headers.get("allow") or "").split(",") if method.strip()}
    issues = []
    dangerous = [m for m in DANGEROUS_METHODS if m in allowed]
    if dangerous:
        issues.append(_issue("medium", f"Server allows dangerous HTTP methods: {', '.join(dangerous)}", "methods"))
    writable = [m for m in WRITE_METHODS if m in allowed]
    if writable:
        issues.append(_issue("low", f"Server advertises write HTTP methods: {', '.join(writable)}", "methods"))
    return issues


def analyze_headers(url: str, headers: Dict[str, str], cookies: Optional[List[str]] = None) -> List[Issue]:
    """Runs every header check; the HTTPS finding, when present, comes first."""
    lowered = {str(key).lower(): str(value) for key, value in (headers or {}).items()}
    issues = []
    issues.extend(check_transport(url, lowered))
    issues.extend(check_csp(lowered))
    issues.extend(check_framing(lowered))
    issues.extend(check_content_type_options(lowered))
    issues.extend(check_xss_protection(lowered))
    issues.extend(check_referrer_policy(lowered))
    issues.extend(check_permissions_policy(lowered))
    issues.extend(check_disclosure(lowered))
    issues.extend(check_cookies(cookies or []))
    issues.extend(check_allowed_methods(lowered))
    return issues


class SecurityValidator(ValidatorBase):
    validator_id = "security"
    data_source = "Local Analysis"

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        if self.http is None:
            raise ValidatorError(self.descriptor.id, "No HTTP session available to fetch security headers")

        response = await self.http.perform_request(snapshot.source_url, "HEAD")
        if response.get("status", -99) < 0:
            logger.warning("Header fetch failed for %s: %s", snapshot.source_url, response.get("error"))
            raise ValidatorError(self.descriptor.id, "Unable to fetch security headers - check if URL is accessible")

        final_url = response.get("final_url") or snapshot.source_url
        issues = analyze_headers(final_url, response.get("headers") or {}, response.get("cookies") or [])
        return Analysis(issues=issues, data_source=self.data_source, policy=SECURITY_POLICY)

    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        counts = count_by(analysis.issues, "severity")
        if counts.get("high"):
            return f"Found {counts['high']} high severity security issues."
        if counts.get("medium"):
            return f"Found {counts['medium']} medium severity security issues."
        return "Security headers are well-configured."

    def recommendations(self, analysis: Analysis) -> List[str]:
        issues = analysis.issues
        messages = [issue.message for issue in issues]
        categories = {issue.category for issue in issues}
        recommendations = []

        if "transport" in categories:
            recommendations.append("Serve the site exclusively over HTTPS")
        if any("Strict-Transport-Security" in m for m in messages):
            recommendations.append("Enable HSTS to enforce HTTPS connections")
        if any("Content-Security-Policy" in m for m in messages):
            recommendations.append("Implement a Content Security Policy to prevent XSS attacks")
        if any("X-Frame-Options" in m for m in messages):
            recommendations.append("Add X-Frame-Options or CSP frame-ancestors to prevent clickjacking")
        if "cookies" in categories:
            recommendations.append("Set Secure, HttpOnly and SameSite attributes on all cookies")
        if "disclosure" in categories:
            recommendations.append("Remove version and technology details from response headers")
        if issues:
            recommendations.append("Review and implement all recommended security headers")
            recommendations.append("Regularly audit security configurations")
            recommendations.append("Consider using security scanning tools in your CI/CD pipeline")
        return recommendations


VALIDATOR = SecurityValidator
