"""共有レポート（読み取り専用 URL）の作成とデータ取得."""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timedelta, timezone

from localrank.billing import has_active_subscription
from localrank.config import REPORT_DELTA_LIMIT, REPORT_ITEM_LIMIT, REPORT_TTL_DAYS
from localrank.db import (
    get_cohort,
    get_recent_snapshots,
    get_report_by_slug,
    get_snapshot_items,
    insert_report,
)
from localrank.diff import rank_deltas
from localrank.models import ReportData

logger = logging.getLogger(__name__)


class ReportError(Exception):
    """レポートの作成・参照ができない."""


def create_report(owner_id: str, cohort_id: str, now: datetime | None = None) -> dict:
    """コホートの共有レポートを作成する.

    Returns:
        {"slug", "url", "expires_at"}
    """
    cohort_id = (cohort_id or "").strip()
    if not cohort_id:
        raise ReportError("Cohort ID is required.")
    if not has_active_subscription(owner_id):
        raise ReportError("An active subscription is required to create reports.")

    now = now or datetime.now(timezone.utc)
    slug = secrets.token_hex(12)
    expires_at = now + timedelta(days=REPORT_TTL_DAYS)
    insert_report(owner_id, cohort_id, slug, expires_at)
    logger.info("レポート作成: cohort=%s, slug=%s", cohort_id, slug)

    return {"slug": slug, "url": f"/reports/{slug}", "expires_at": expires_at.isoformat()}


def get_report_data(slug: str, now: datetime | None = None) -> ReportData:
    """スラッグからレポート表示用のデータを組み立てる.

    最新スナップショットの上位 20 件と、前回からの変動が大きい 6 件を返す。

    Raises:
        ReportError: レポート・コホートが無い、または期限切れ。
    """
    now = now or datetime.now(timezone.utc)
    report = get_report_by_slug(slug)
    if report is None:
        logger.info("レポートが見つかりません: slug=%s", slug)
        raise ReportError("Report not found.")

    expires_at = report["expires_at"]
    if expires_at is not None and expires_at < now:
        raise ReportError("Report has expired.")

    cohort = get_cohort(report["cohort_id"])
    if cohort is None:
        raise ReportError("Cohort not found.")

    snapshots = get_recent_snapshots(cohort.id, limit=2)
    latest = snapshots[0] if snapshots else None
    previous = snapshots[1] if len(snapshots) > 1 else None

    items = []
    deltas = []
    if latest:
        items = get_snapshot_items(latest.id, limit=REPORT_ITEM_LIMIT)
        if previous:
            previous_items = get_snapshot_items(previous.id)
            deltas = rank_deltas(previous_items, items, limit=REPORT_DELTA_LIMIT)

    return ReportData(
        cohort=cohort,
        latest_snapshot=latest,
        previous_snapshot=previous,
        items=items,
        deltas=deltas,
    )
