"""データモデル定義."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class Location:
    """緯度経度."""

    lat: float
    lng: float


@dataclass
class Place:
    """Places API が返す 1 店舗（順位付け前）."""

    place_id: str
    name: str
    location: Location
    rating: float | None = None
    user_ratings_total: int | None = None
    vicinity: str | None = None  # 住所の一部


@dataclass
class SearchResponse:
    """郵便番号検索の結果."""

    center: Location
    places: list[Place]


@dataclass
class RankedPlace:
    """スナップショット内の 1 店舗."""

    place_id: str
    name: str
    rank: int  # 1始まり。検索結果の並び順
    rating: float | None = None
    user_ratings_total: int | None = None
    vicinity: str | None = None
    lat: float | None = None
    lng: float | None = None


@dataclass
class Cohort:
    """追跡対象（郵便番号 + キーワード + 半径 + 自店舗名）."""

    id: str  # uuid
    owner_id: str  # uuid
    name: str
    postcode: str
    keyword: str | None = None
    radius_km: float | None = None
    business_name: str | None = None
    notes: str | None = None


@dataclass
class TrackingSchedule:
    """定期取得スケジュール."""

    id: str  # uuid
    owner_id: str  # uuid
    cohort_id: str  # uuid
    frequency: str  # "daily" or "weekly"
    hour_utc: int  # 0-23
    day_of_week: int | None = None  # 0=日曜 .. 6=土曜。weekly のみ有効
    is_active: bool = True
    last_run_at: datetime | None = None
    cohort: Cohort | None = None


@dataclass
class Snapshot:
    """DB に保存されたスナップショットの見出し."""

    id: str  # uuid
    created_at: datetime


@dataclass
class Alert:
    """スナップショット比較から生成されるアラート."""

    alert_type: str  # "rank_drop" / "new_top_three" / "business_out_of_top"
    severity: str  # "low" / "medium" / "high"
    message: str
    data: dict = field(default_factory=dict)


@dataclass
class RunResult:
    """スケジュール 1 件の実行結果."""

    schedule_id: str
    status: str
    detail: str | None = None


@dataclass
class TrackRunReport:
    """定期取得ジョブ全体の結果."""

    checked: int
    results: list[RunResult]


@dataclass
class ReportData:
    """共有レポートの表示データ."""

    cohort: Cohort
    latest_snapshot: Snapshot | None
    previous_snapshot: Snapshot | None
    items: list[RankedPlace]
    deltas: list[dict]


@dataclass
class PageSummary:
    """サイト診断で 1 ページから抽出した情報."""

    url: str
    title: str | None
    description: str | None
    h1_count: int
    canonical: str | None
    has_robots_meta: bool
    has_og_title: bool
    has_og_description: bool
    has_og_image: bool
    missing_image_alt_count: int
    unlabeled_form_field_count: int
    unlabeled_button_count: int
    has_privacy_link: bool
    has_cookie_link: bool
    has_terms_link: bool
    has_cookie_banner_signals: bool
    has_lang_attribute: bool


@dataclass
class Finding:
    """サイト診断の指摘事項."""

    category: str  # "SEO" / "Accessibility" / "GDPR & Privacy"
    severity: str
    issue: str
    recommendation: str


@dataclass
class PageResult:
    """1 ページ分の診断結果."""

    summary: PageSummary
    findings: list[Finding]
