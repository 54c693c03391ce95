# src/pagehealth/auditor/validators/seo.py
import logging
import re
from typing import List, Optional

from bs4 import BeautifulSoup

from pagehealth.auditor.core import (
    SEO_LOCAL_POLICY, SEO_POLICIES, Analysis, AnalysisStrategy, LocalAnalysisStrategy, ScoringPolicy,
    ValidatorBase, count_by, run_with_fallback,
)
from pagehealth.auditor.services.dataforseo_service import DataForSEOService
from pagehealth.core.managers.config_manager import ConfigManager
from pagehealth.crawler.utils.url_utils import UrlUtils
from pagehealth.model import Issue, IssueKind, PageSnapshot, ResultStatus

logger = logging.getLogger(__name__)

TITLE_MIN, TITLE_IDEAL_MIN, TITLE_MAX = 30, 50, 60
DESCRIPTION_MIN, DESCRIPTION_IDEAL_MIN, DESCRIPTION_MAX = 120, 150, 160
MIN_WORD_COUNT = 300
MAX_RENDER_BLOCKING = 3
MIN_INTERNAL_LINKS = 3
LINK_COUNT_FLOOR = 5

_ZOOM_LOCK_RE = re.compile(r"user-scalable=(no|0)|maximum-scale=1(\.0*)?(,|;|$)")


def _issue(priority: str, message: str, category: str, locator: Optional[str] = None,
           kind: IssueKind = IssueKind.WARNING) -> Issue:
    return Issue(kind=kind, message=message, severity=priority, category=category, locator=locator)


def _meta(soup: BeautifulSoup, **attrs):
    return soup.find("meta", attrs=attrs)


def check_title(soup: BeautifulSoup, url: str) -> List[Issue]:
    title = soup.find("title")
    text = title.get_text(strip=True) if title else ""
    if not text:
        return [_issue("high", "Missing title tag - critical for SEO", "meta", "title", IssueKind.ERROR)]
    length = len(text)
    if length < TITLE_MIN:
        return [_issue("medium", f"Title too short ({length} chars) - recommended 50-60 characters", "meta", "title")]
    if length < TITLE_IDEAL_MIN:
        return [_issue("low", f"Title shorter than ideal ({length} chars) - recommended 50-60 characters",
                       "meta", "title")]
    if length > TITLE_MAX:
        return [_issue("medium", f"Title too long ({length} chars) - may be truncated in search results",
                       "meta", "title")]
    return []


def check_meta_description(soup: BeautifulSoup, url: str) -> List[Issue]:
    locator = 'meta[name="description"]'
    tag = _meta(soup, name="description")
    description = (tag.get("content") or "").strip() if tag else ""
    if not description:
        return [_issue("high", "Missing meta description - important for search result snippets", "meta",
                       locator, IssueKind.ERROR)]
    length = len(description)
    if length < DESCRIPTION_MIN:
        return [_issue("medium", f"Meta description too short ({length} chars) - recommended 150-160 characters",
                       "meta", locator)]
    if length < DESCRIPTION_IDEAL_MIN:
        return [_issue("low", f"Meta description shorter than ideal ({length} chars) - recommended 150-160 characters",
                       "meta", locator)]
    if length > DESCRIPTION_MAX:
        return [_issue("medium", f"Meta description too long ({length} chars) - may be truncated", "meta", locator)]
    return []


def check_meta_keywords(soup: BeautifulSoup, url: str) -> List[Issue]:
    if _meta(soup, name="keywords"):
        return [_issue("low", "Meta keywords tag is deprecated and ignored by modern search engines", "meta",
                       'meta[name="keywords"]')]
    return []


def check_headings(soup: BeautifulSoup, url: str) -> List[Issue]:
    h1_count = len(soup.find_all("h1"))
    if h1_count == 0:
        return [_issue("high", "Missing H1 heading - important for page topic clarity", "structure", "h1",
                       IssueKind.ERROR)]
    if h1_count > 1:
        return [_issue("medium", f"Multiple H1 tags found ({h1_count}) - use only one per page", "structure", "h1")]
    return []


def check_images(soup: BeautifulSoup, url: str) -> List[Issue]:
    missing = sum(1 for img in soup.find_all("img") if img.get("alt") is None)
    if missing:
        return [_issue("high", f"{missing} images missing alt text - bad for SEO and accessibility", "content",
                       "img", IssueKind.ERROR)]
    return []


def check_internal_links(soup: BeautifulSoup, url: str) -> List[Issue]:
    hrefs = [a.get("href") for a in soup.find_all("a", href=True)]
    internal = sum(1 for href in hrefs if UrlUtils.is_internal(url, href))
    if internal < MIN_INTERNAL_LINKS and len(hrefs) > LINK_COUNT_FLOOR:
        return [_issue("low", "Few internal links found - helps with site navigation and SEO", "structure")]
    return []


def check_open_graph(soup: BeautifulSoup, url: str) -> List[Issue]:
    issues = []
    for prop, message in (
            ("og:title", "Missing Open Graph title - improves social media sharing"),
            ("og:description", "Missing Open Graph description - improves social media sharing"),
            ("og:image", "Missing Open Graph image - important for social media previews"),
    ):
        if not _meta(soup, property=prop):
            issues.append(_issue("medium", message, "meta", f'meta[property="{prop}"]'))
    return issues


def check_twitter_card(soup: BeautifulSoup, url: str) -> List[Issue]:
    if not _meta(soup, name="twitter:card"):
        return [_issue("low", "Missing Twitter Card markup - improves Twitter sharing", "meta",
                       'meta[name="twitter:card"]')]
    return []


def check_structured_data(soup: BeautifulSoup, url: str) -> List[Issue]:
    has_json_ld = soup.find("script", type="application/ld+json") is not None
    has_microdata = soup.find(attrs={"itemscope": True}) is not None
    has_rdfa = soup.find(attrs={"typeof": True}) is not None
    if not (has_json_ld or has_microdata or has_rdfa):
        return [_issue("medium", "No structured data found - helps search engines understand content",
                       "structure")]
    return []


def check_canonical(soup: BeautifulSoup, url: str) -> List[Issue]:
    locator = 'link[rel="canonical"]'
    canonical = soup.find("link", rel="canonical")
    if canonical is None:
        return [_issue("medium", "Missing canonical URL - helps prevent duplicate content issues", "meta", locator)]
    if not UrlUtils.is_absolute(canonical.get("href") or ""):
        return [_issue("low", "Canonical URL should be absolute", "meta", locator)]
    return []


def check_viewport(soup: BeautifulSoup, url: str) -> List[Issue]:
    locator = 'meta[name="viewport"]'
    viewport = _meta(soup, name="viewport")
    if viewport is None:
        return [_issue("high", "Missing viewport meta tag - critical for mobile SEO", "mobile", locator,
                       IssueKind.ERROR)]

    content = re.sub(r"\s+", "", (viewport.get("content") or "").lower())
    issues = []
    if "width=device-width" not in content:
        issues.append(_issue("low", "Viewport should set width=device-width", "mobile", locator))
    if _ZOOM_LOCK_RE.search(content):
        issues.append(_issue("low", "Viewport prevents zooming - allow users to scale the page", "mobile", locator))
    return issues


def check_render_blocking(soup: BeautifulSoup, url: str) -> List[Issue]:
    stylesheets = len(soup.find_all("link", rel="stylesheet"))
    blocking_scripts = 0
    if soup.head:
        for script in soup.head.find_all("script", src=True):
            if script.has_attr("async") or script.has_attr("defer") or script.get("type") == "module":
                continue
            blocking_scripts += 1

    total = stylesheets + blocking_scripts
    if total > MAX_RENDER_BLOCKING:
        return [_issue("medium",
                       f"Multiple render-blocking resources ({stylesheets} stylesheets, {blocking_scripts} "
                       f"scripts) may hurt Core Web Vitals", "performance")]
    return []


def check_word_count(soup: BeautifulSoup, url: str) -> List[Issue]:
    root = soup.body or soup
    # Scripts and styles never count as page copy
    words = [
        text for text in root.find_all(string=True)
        if text.parent is not None and text.parent.name not in ("script", "style", "noscript")
    ]
    word_count = len(" ".join(words).split())
    if word_count < MIN_WORD_COUNT:
        return [_issue("low", f"Low word count ({word_count} words) - consider adding more valuable content",
                       "content")]
    return []


CHECKS = (
    check_title,
    check_meta_description,
    check_meta_keywords,
    check_headings,
    check_images,
    check_internal_links,
    check_open_graph,
    check_twitter_card,
    check_structured_data,
    check_canonical,
    check_viewport,
    check_render_blocking,
    check_word_count,
)


def analyze_seo(html: str, url: str) -> List[Issue]:
    soup = BeautifulSoup(html, "html.parser")
    issues = []
    for check in CHECKS:
        issues.extend(check(soup, url))
    return issues


class DataForSEOStrategy(AnalysisStrategy):
    name = "DataForSEO"
    data_source = "DataForSEO"

    def __init__(self, service: DataForSEOService, policy: ScoringPolicy):
        self.service = service
        self.policy = policy

    def is_available(self) -> bool:
        return self.service.is_configured()

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        page = await self.service.instant_page(snapshot.source_url)
        score, issues = self.service.summarize(page)
        return Analysis(issues=issues, data_source=self.data_source, policy=self.policy, score=score)


class LocalSEOStrategy(LocalAnalysisStrategy):

    def __init__(self, policy: ScoringPolicy):
        self.policy = policy

    def inspect(self, snapshot: PageSnapshot) -> Analysis:
        try:
            issues = analyze_seo(snapshot.raw_html, snapshot.source_url)
        except Exception as e:
            logger.warning("SEO analysis failed for %s: %s", snapshot.source_url, e, exc_info=True)
            issues = [Issue(kind=IssueKind.INFO, message="Unable to complete full SEO analysis")]
        return Analysis(issues=issues, data_source=self.data_source, policy=self.policy)


class SEOValidator(ValidatorBase):
    validator_id = "seo"
    default_max_issues = 15

    def __init__(self, descriptor, config=None, http=None):
        super().__init__(descriptor, config=config, http=http)

        policy_name = self.settings.get("scoring_policy", "local")
        self.policy = SEO_POLICIES.get(policy_name)
        if self.policy is None:
            logger.warning("Unknown SEO scoring policy '%s', using 'local'", policy_name)
            self.policy = SEO_LOCAL_POLICY

        self.dataforseo: Optional[DataForSEOService] = None
        if http is not None:
            service_config = self.service_config("dataforseo")
            self.dataforseo = DataForSEOService(
                http,
                service_config,
                login=ConfigManager.read_secret(service_config.get("login_env")),
                password=ConfigManager.read_secret(service_config.get("password_env")),
            )

    async def analyze(self, snapshot: PageSnapshot) -> Analysis:
        primary = DataForSEOStrategy(self.dataforseo, self.policy) if self.dataforseo else None
        return await run_with_fallback(primary, LocalSEOStrategy(self.policy), snapshot)

    def summarize(self, analysis: Analysis, score: Optional[int], status: ResultStatus) -> str:
        if not analysis.issues:
            return "Excellent SEO optimization - all key factors implemented"
        counts = count_by(analysis.issues, "severity")
        improvements = counts.get("medium", 0) + counts.get("low", 0)
        return f"SEO analysis completed - {counts.get('high', 0)} critical issues, {improvements} improvements needed"

    def recommendations(self, analysis: Analysis) -> List[str]:
        issues = analysis.issues
        categories = {issue.category for issue in issues}
        locators = {issue.locator for issue in issues}
        messages = [issue.message for issue in issues]
        recommendations = []

        if "meta" in categories:
            recommendations.append("Optimize meta tags (title, description) for better search results")
        if "h1" in locators:
            recommendations.append("Use a clear, descriptive H1 heading that matches your target keywords")
        if "img" in locators:
            recommendations.append("Add descriptive alt text to all images for SEO and accessibility")
        if "structure" in categories:
            recommendations.append("Improve content structure with proper headings and internal links")
        if any("Open Graph" in m for m in messages):
            recommendations.append("Add Open Graph tags to improve social media sharing")
        if any("structured data" in m for m in messages):
            recommendations.append("Implement structured data markup for rich search results")
        if "mobile" in categories:
            recommendations.append("Ensure mobile-friendliness with proper viewport and responsive design")
        if "performance" in categories:
            recommendations.append("Optimize page speed and Core Web Vitals for better rankings")
        if "content" in categories:
            recommendations.append("Create high-quality, valuable content with good keyword targeting")
        if issues:
            recommendations.append("Use tools like Google Search Console to monitor SEO performance")
            recommendations.append("Regularly audit and update your SEO strategy")
        return recommendations


VALIDATOR = SEOValidator
