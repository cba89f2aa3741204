"""Web サイト診断（SEO / アクセシビリティ / プライバシー）.

取得戦略:
  1. requests で HTML を取得（JavaScript は実行しない）
  2. BeautifulSoup で DOM を解析して PageSummary を作る
  3. ルールに従って指摘事項 (Finding) を生成
"""

from __future__ import annotations

import logging
import time
from collections import deque
from urllib.parse import urljoin, urlsplit, urlunsplit

import requests
from bs4 import BeautifulSoup

from localrank.config import (
    AUDIT_DEFAULT_MAX_DEPTH,
    AUDIT_DEFAULT_MAX_PAGES,
    AUDIT_MAX_DEPTH_LIMIT,
    AUDIT_MAX_PAGES_LIMIT,
    AUDIT_TIME_LIMIT,
    REQUEST_TIMEOUT,
    USER_AGENT,
)
from localrank.models import Finding, PageResult, PageSummary

logger = logging.getLogger(__name__)

TITLE_MIN_LENGTH = 15
TITLE_MAX_LENGTH = 65
_COOKIE_BANNER_WORDS = ("consent", "accept", "preferences")


class AuditError(Exception):
    """診断を実行できない（URL 不正・取得失敗など）."""


def is_valid_url(value: str) -> bool:
    """http(s) の絶対 URL かどうか."""
    try:
        parts = urlsplit(value)
    except ValueError:
        return False
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def normalize_url(value: str) -> str:
    """フラグメントを除き、ルート以外の末尾スラッシュを落とす."""
    parts = urlsplit(value)
    path = parts.path or "/"
    if path != "/" and path.endswith("/"):
        path = path[:-1]
    return urlunsplit((parts.scheme, parts.netloc, path, parts.query, ""))


def fetch_page(url: str) -> str | None:
    """ページの HTML を取得する. 失敗時は None."""
    headers = {
        "User-Agent": USER_AGENT,
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    }
    try:
        resp = requests.get(url, headers=headers, timeout=REQUEST_TIMEOUT)
        resp.raise_for_status()
        return resp.text
    except requests.RequestException as e:
        logger.error("ページ取得失敗: url=%s, error=%s", url, e)
        return None


def _has_label(soup: BeautifulSoup, field) -> bool:
    field_id = field.get("id")
    if field_id and soup.find("label", attrs={"for": field_id}):
        return True
    if field.find_parent("label"):
        return True
    return bool(field.get("aria-label") or field.get("aria-labelledby"))


def _visible_text(soup: BeautifulSoup) -> str:
    body = soup.body or soup
    texts = body.find_all(string=True)
    return " ".join(t for t in texts if t.parent.name not in ("script", "style", "noscript"))


def _meta_content(soup: BeautifulSoup, **attrs) -> str | None:
    tag = soup.find("meta", attrs=attrs)
    if tag is None:
        return None
    return tag.get("content")


def summarize_page(html: str, url: str) -> PageSummary:
    """HTML から診断に使う情報を抽出する."""
    soup = BeautifulSoup(html, "html.parser")

    title = soup.title.get_text(strip=True) if soup.title else ""
    canonical_tag = soup.find("link", rel="canonical")

    images = soup.find_all("img")
    missing_alt = sum(1 for img in images if not (img.get("alt") or "").strip())

    form_fields = [
        field for field in soup.find_all(["input", "textarea", "select"])
        if not (field.name == "input" and (field.get("type") or "").lower() == "hidden")
    ]
    unlabeled_fields = sum(1 for field in form_fields if not _has_label(soup, field))

    unlabeled_buttons = sum(
        1 for button in soup.find_all("button")
        if not button.get_text(strip=True) and not button.get("aria-label")
    )

    links = [
        f"{a.get('href') or ''} {a.get_text()}".lower() for a in soup.find_all("a")
    ]

    text = _visible_text(soup).lower()
    has_cookie_banner = "cookie" in text and any(w in text for w in _COOKIE_BANNER_WORDS)

    html_tag = soup.find("html")

    return PageSummary(
        url=url,
        title=title or None,
        description=_meta_content(soup, name="description"),
        h1_count=len(soup.find_all("h1")),
        canonical=canonical_tag.get("href") if canonical_tag else None,
        has_robots_meta=bool(_meta_content(soup, name="robots")),
        has_og_title=soup.find("meta", attrs={"property": "og:title"}) is not None,
        has_og_description=soup.find("meta", attrs={"property": "og:description"}) is not None,
        has_og_image=soup.find("meta", attrs={"property": "og:image"}) is not None,
        missing_image_alt_count=missing_alt,
        unlabeled_form_field_count=unlabeled_fields,
        unlabeled_button_count=unlabeled_buttons,
        has_privacy_link=any("privacy" in link for link in links),
        has_cookie_link=any("cookie" in link for link in links),
        has_terms_link=any("terms" in link for link in links),
        has_cookie_banner_signals=has_cookie_banner,
        has_lang_attribute=bool(html_tag and html_tag.get("lang")),
    )


def build_findings(summary: PageSummary) -> list[Finding]:
    """PageSummary から指摘事項を生成する."""
    findings: list[Finding] = []

    def add(category: str, severity: str, issue: str, recommendation: str) -> None:
        findings.append(Finding(category, severity, issue, recommendation))

    # SEO
    if not summary.title:
        add("SEO", "high", "Missing <title> tag.",
            "Add a concise title that includes your primary keyword.")
    elif not TITLE_MIN_LENGTH <= len(summary.title) <= TITLE_MAX_LENGTH:
        add("SEO", "medium",
            f"Title length is outside the recommended range ({TITLE_MIN_LENGTH}-{TITLE_MAX_LENGTH} chars).",
            "Adjust the title length for better SERP visibility.")

    if not summary.description:
        add("SEO", "medium", "Missing meta description.",
            "Add a 150-160 character summary that explains your core offer.")

    if summary.h1_count == 0:
        add("SEO", "high", "No H1 heading found.",
            "Add a single H1 that matches the page intent.")
    elif summary.h1_count > 1:
        add("SEO", "low", "Multiple H1 headings detected.",
            "Keep one primary H1 per page for clarity.")

    if not summary.canonical:
        add("SEO", "low", "Missing canonical link tag.",
            "Add a canonical URL to avoid duplicate content issues.")

    if not (summary.has_og_title and summary.has_og_description and summary.has_og_image):
        add("SEO", "low", "Open Graph tags are incomplete.",
            "Add og:title, og:description, and og:image tags.")

    # Accessibility
    if summary.missing_image_alt_count > 0:
        add("Accessibility", "medium",
            f"{summary.missing_image_alt_count} image(s) missing alt text.",
            "Add descriptive alt text to important images.")

    if summary.unlabeled_form_field_count > 0:
        add("Accessibility", "high",
            f"{summary.unlabeled_form_field_count} form field(s) lack labels.",
            "Ensure inputs have labels or aria-labels for screen readers.")

    if summary.unlabeled_button_count > 0:
        add("Accessibility", "medium",
            f"{summary.unlabeled_button_count} button(s) have no accessible name.",
            "Add visible text or aria-labels to buttons.")

    if not summary.has_lang_attribute:
        add("Accessibility", "low", "Missing lang attribute on <html>.",
            "Add the correct language attribute to the html tag.")

    # GDPR & Privacy
    if not summary.has_privacy_link:
        add("GDPR & Privacy", "high", "No privacy policy link detected.",
            "Add a visible privacy policy link in the footer.")

    if not summary.has_cookie_link:
        add("GDPR & Privacy", "medium", "No cookie policy link detected.",
            "Add a cookie policy page or cookie notice link.")

    if not summary.has_terms_link:
        add("GDPR & Privacy", "low", "No terms link detected.",
            "Add terms of service if you collect user data.")

    if not summary.has_cookie_banner_signals:
        add("GDPR & Privacy", "medium", "No cookie consent banner detected.",
            "Add a consent banner if you use cookies or tracking scripts.")

    return findings


def extract_links(html: str, page_url: str) -> list[str]:
    """ページ内リンクを絶対 URL にして返す."""
    soup = BeautifulSoup(html, "html.parser")
    return [urljoin(page_url, a["href"]) for a in soup.find_all("a", href=True) if a["href"]]


def _origin(url: str) -> tuple[str, str]:
    parts = urlsplit(url)
    return parts.scheme, parts.netloc


def discover_links(
    start_url: str,
    max_pages: int,
    max_depth: int,
    time_limit: float = AUDIT_TIME_LIMIT,
) -> dict:
    """同一オリジン内を幅優先で巡回し、ページ URL を集める.

    /api 配下は対象外。取得に失敗したページは訪問済みとして扱い、リンクは辿らない。

    Returns:
        {"pages_found", "max_depth_found", "urls", "sample_urls", "pages"}
        "pages" は取得できたページの URL → HTML。診断時に再取得しないために使う。
    """
    origin = _origin(start_url)
    queue = deque([(normalize_url(start_url), 0)])
    visited: list[str] = []
    pages: dict[str, str] = {}
    seen: set[str] = set()
    max_depth_found = 0
    started = time.monotonic()

    while queue and len(visited) < max_pages:
        if time.monotonic() - started > time_limit:
            logger.warning("巡回の制限時間に到達: %d ページ", len(visited))
            break
        url, depth = queue.popleft()
        if url in seen or depth > max_depth:
            continue

        seen.add(url)
        visited.append(url)
        max_depth_found = max(max_depth_found, depth)

        html = fetch_page(url)
        if html is None:
            continue
        pages[url] = html

        for link in extract_links(html, url):
            if _origin(link) != origin:
                continue
            if urlsplit(link).path.startswith("/api"):
                continue
            normalized = normalize_url(link)
            if normalized not in seen:
                queue.append((normalized, depth + 1))

    return {
        "pages_found": len(visited),
        "max_depth_found": max_depth_found,
        "urls": visited,
        "sample_urls": visited[:10],
        "pages": pages,
    }


def _diagnose(html: str, url: str) -> PageResult:
    summary = summarize_page(html, url)
    return PageResult(summary=summary, findings=build_findings(summary))


def scan_page(url: str) -> PageResult | None:
    """1 ページを診断する. 取得失敗時は None."""
    html = fetch_page(url)
    if html is None:
        return None
    return _diagnose(html, url)


def _clamp(value: int | None, low: int, high: int, default: int) -> int:
    if value is None:
        return default
    return max(low, min(value, high))


def scan_site(
    url: str,
    mode: str = "single",
    max_pages: int | None = None,
    max_depth: int | None = None,
) -> list[PageResult]:
    """サイトを診断する.

    Args:
        url: 起点 URL
        mode: "single"（起点のみ）or "full"（同一オリジンを巡回）
        max_pages: 巡回ページ数の上限（1〜50, 既定 20）
        max_depth: 巡回の深さ（0〜3, 既定 2）

    Raises:
        AuditError: URL 不正、mode 不正、起点ページの取得失敗。
    """
    url = (url or "").strip()
    if not is_valid_url(url):
        raise AuditError("Please provide a valid http(s) URL.")

    if mode == "single":
        result = scan_page(url)
        if result is None:
            raise AuditError(f"Unable to fetch {url}.")
        return [result]

    if mode != "full":
        raise AuditError(f"Unknown scan mode: {mode}")

    max_pages = _clamp(max_pages, 1, AUDIT_MAX_PAGES_LIMIT, AUDIT_DEFAULT_MAX_PAGES)
    max_depth = _clamp(max_depth, 0, AUDIT_MAX_DEPTH_LIMIT, AUDIT_DEFAULT_MAX_DEPTH)
    discovery = discover_links(url, max_pages, max_depth)
    logger.info("巡回完了: %d ページ, 最大深さ %d",
                discovery["pages_found"], discovery["max_depth_found"])

    # 巡回で取得済みの HTML を使い、同じページを再取得しない
    results = [
        _diagnose(discovery["pages"][page_url], page_url)
        for page_url in discovery["urls"]
        if page_url in discovery["pages"]
    ]
    if not results:
        raise AuditError(f"Unable to fetch {url}.")
    return results
