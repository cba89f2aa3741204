"""audit モジュールのユニットテスト."""

from pathlib import Path
from unittest.mock import patch

import pytest

from localrank.audit import (
    AuditError,
    build_findings,
    discover_links,
    is_valid_url,
    normalize_url,
    scan_site,
    summarize_page,
)

FIXTURES_DIR = Path(__file__).parent / "fixtures"
ROOT = "https://brightsmile.example/"


def _load_fixture(name: str) -> str:
    return (FIXTURES_DIR / name).read_text(encoding="utf-8")


class TestUrlHelpers:
    """URL ヘルパーのテスト."""

    def test_valid_urls(self):
        assert is_valid_url("https://example.com")
        assert is_valid_url("http://example.com/path?q=1")

    def test_invalid_urls(self):
        assert not is_valid_url("ftp://example.com")
        assert not is_valid_url("example.com")
        assert not is_valid_url("")

    def test_normalize(self):
        assert normalize_url("https://example.com") == "https://example.com/"
        assert normalize_url("https://example.com/") == "https://example.com/"
        assert normalize_url("https://example.com/a/#frag") == "https://example.com/a"
        assert normalize_url("https://example.com/a/?x=1") == "https://example.com/a?x=1"


class TestSummarizePage:
    """summarize_page のテスト."""

    def test_good_page(self):
        summary = summarize_page(_load_fixture("site_good.html"), ROOT)

        assert summary.title == "Emergency Dentist in Soho | BrightSmile"
        assert summary.description.startswith("24/7 emergency dental care")
        assert summary.h1_count == 1
        assert summary.canonical == ROOT
        assert summary.has_robots_meta
        assert summary.has_og_title and summary.has_og_description and summary.has_og_image
        assert summary.missing_image_alt_count == 0
        assert summary.unlabeled_form_field_count == 0
        assert summary.unlabeled_button_count == 0
        assert summary.has_privacy_link and summary.has_cookie_link and summary.has_terms_link
        assert summary.has_cookie_banner_signals
        assert summary.has_lang_attribute

    def test_bad_page(self):
        summary = summarize_page(_load_fixture("site_bad.html"), ROOT)

        assert summary.title == "Hi"
        assert summary.description is None
        assert summary.h1_count == 0
        assert summary.canonical is None
        assert not summary.has_robots_meta
        assert summary.missing_image_alt_count == 2
        assert summary.unlabeled_form_field_count == 2
        assert summary.unlabeled_button_count == 1
        assert not summary.has_privacy_link
        assert not summary.has_cookie_banner_signals
        assert not summary.has_lang_attribute

    def test_script_text_not_counted_as_banner(self):
        """script 内の文字列はバナー判定に使わないこと."""
        html = (
            "<html><body><script>var t = 'cookie consent';</script>"
            "<p>Hello</p></body></html>"
        )
        assert not summarize_page(html, ROOT).has_cookie_banner_signals


class TestBuildFindings:
    """build_findings のテスト."""

    def test_good_page_has_no_findings(self):
        summary = summarize_page(_load_fixture("site_good.html"), ROOT)
        assert build_findings(summary) == []

    def test_bad_page_findings(self):
        summary = summarize_page(_load_fixture("site_bad.html"), ROOT)
        findings = build_findings(summary)

        issues = [(f.category, f.severity, f.issue) for f in findings]
        assert len(findings) == 13
        assert ("SEO", "medium", "Missing meta description.") in issues
        assert ("SEO", "high", "No H1 heading found.") in issues
        assert ("Accessibility", "medium", "2 image(s) missing alt text.") in issues
        assert ("Accessibility", "high", "2 form field(s) lack labels.") in issues
        assert ("GDPR & Privacy", "high", "No privacy policy link detected.") in issues
        assert findings[0].issue.startswith("Title length is outside")

    def test_missing_title_and_multiple_h1(self):
        summary = summarize_page(
            "<html lang='en'><body><h1>a</h1><h1>b</h1></body></html>", ROOT
        )
        issues = {f.issue: f.severity for f in build_findings(summary)}
        assert issues["Missing <title> tag."] == "high"
        assert issues["Multiple H1 headings detected."] == "low"


class TestDiscoverLinks:
    """discover_links のテスト."""

    def _fake_fetch(self, url):
        if url == ROOT:
            return _load_fixture("site_good.html")
        if url == ROOT + "services":
            return '<a href="/services/implants">Implants</a>'
        return "<p>leaf</p>"

    def test_same_origin_only(self):
        with patch("localrank.audit.fetch_page", side_effect=self._fake_fetch):
            discovery = discover_links("https://brightsmile.example", 20, 2)

        assert discovery["urls"] == [
            ROOT,
            ROOT + "privacy",
            ROOT + "cookies",
            ROOT + "terms",
            ROOT + "services",
            ROOT + "services/implants",
        ]
        assert discovery["max_depth_found"] == 2
        assert discovery["pages_found"] == 6

    def test_max_pages(self):
        with patch("localrank.audit.fetch_page", side_effect=self._fake_fetch):
            discovery = discover_links(ROOT, 3, 2)
        assert discovery["urls"] == [ROOT, ROOT + "privacy", ROOT + "cookies"]

    def test_max_depth_zero(self):
        with patch("localrank.audit.fetch_page", side_effect=self._fake_fetch):
            discovery = discover_links(ROOT, 20, 0)
        assert discovery["urls"] == [ROOT]

    def test_fetch_failure_skipped(self):
        with patch("localrank.audit.fetch_page", return_value=None):
            discovery = discover_links(ROOT, 20, 2)
        assert discovery["urls"] == [ROOT]
        assert discovery["pages"] == {}

    def test_fetched_html_kept(self):
        """取得できたページの HTML を URL ごとに保持すること."""
        with patch("localrank.audit.fetch_page", side_effect=self._fake_fetch):
            discovery = discover_links(ROOT, 20, 1)

        assert list(discovery["pages"]) == discovery["urls"]
        assert discovery["pages"][ROOT + "privacy"] == "<p>leaf</p>"


class TestScanSite:
    """scan_site のテスト."""

    def test_invalid_url(self):
        with pytest.raises(AuditError):
            scan_site("not a url")

    @patch("localrank.audit.fetch_page", return_value=None)
    def test_fetch_failure(self, mock_fetch):
        with pytest.raises(AuditError):
            scan_site(ROOT)

    @patch("localrank.audit.fetch_page")
    def test_single(self, mock_fetch):
        mock_fetch.return_value = _load_fixture("site_bad.html")

        pages = scan_site(ROOT)

        assert len(pages) == 1
        assert pages[0].summary.url == ROOT
        assert len(pages[0].findings) == 13

    @patch("localrank.audit.discover_links")
    @patch("localrank.audit.fetch_page")
    def test_full_clamps_limits(self, mock_fetch, mock_discover):
        html = _load_fixture("site_good.html")
        mock_discover.return_value = {
            "pages_found": 2, "max_depth_found": 1, "urls": [ROOT, ROOT + "a"], "sample_urls": [],
            "pages": {ROOT: html, ROOT + "a": html},
        }

        pages = scan_site(ROOT, mode="full", max_pages=500, max_depth=-1)

        mock_discover.assert_called_once_with(ROOT, 50, 0)
        assert [p.summary.url for p in pages] == [ROOT, ROOT + "a"]
        mock_fetch.assert_not_called()

    @patch("localrank.audit.fetch_page")
    def test_full_fetches_each_page_once(self, mock_fetch):
        """巡回で取得したページを診断のために再取得しないこと."""
        mock_fetch.side_effect = lambda url: (
            '<a href="/services">Services</a>' if url == ROOT else "<p>leaf</p>"
        )

        pages = scan_site(ROOT, mode="full", max_pages=5, max_depth=1)

        assert [p.summary.url for p in pages] == [ROOT, ROOT + "services"]
        assert [c.args[0] for c in mock_fetch.call_args_list] == [ROOT, ROOT + "services"]
