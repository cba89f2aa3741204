"""保持期間を過ぎたスナップショット・アラートの削除."""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta, timezone

from localrank.config import (
    ALERT_RETENTION_DAYS_RAW,
    DEFAULT_ALERT_RETENTION_DAYS,
    DEFAULT_RETENTION_DAYS,
    MAX_RETENTION_DAYS,
    MIN_RETENTION_DAYS,
    PRUNE_BATCH_SIZE,
    RETENTION_DAYS_RAW,
)
from localrank.db import ALERTS, SNAPSHOTS, delete_ids, select_ids_older_than

logger = logging.getLogger(__name__)


def retention_days(value: str | None, fallback: float) -> float:
    """環境変数の保持日数を解釈する. 数値でなければ fallback、7〜365 日に収める (小数は保持)."""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(parsed):
        return fallback
    return max(MIN_RETENTION_DAYS, min(parsed, MAX_RETENTION_DAYS))


def _prune_table(table: str, cutoff: datetime) -> int:
    """cutoff より古い行をバッチ単位で無くなるまで削除する."""
    deleted = 0
    while True:
        ids = select_ids_older_than(table, cutoff, PRUNE_BATCH_SIZE)
        if not ids:
            break
        delete_ids(table, ids)
        deleted += len(ids)
    return deleted


def run_prune(now: datetime | None = None) -> dict:
    """保持期間切れのデータを削除し、件数を返す."""
    now = now or datetime.now(timezone.utc)
    snapshot_days = retention_days(RETENTION_DAYS_RAW, DEFAULT_RETENTION_DAYS)
    alert_days = retention_days(ALERT_RETENTION_DAYS_RAW, DEFAULT_ALERT_RETENTION_DAYS)

    deleted_snapshots = _prune_table(SNAPSHOTS, now - timedelta(days=snapshot_days))
    deleted_alerts = _prune_table(ALERTS, now - timedelta(days=alert_days))

    logger.info("削除: snapshots=%d 件 (%g 日), alerts=%d 件 (%g 日)",
                deleted_snapshots, snapshot_days, deleted_alerts, alert_days)
    return {
        "deleted_snapshots": deleted_snapshots,
        "deleted_alerts": deleted_alerts,
        "retention_days": snapshot_days,
        "alert_retention_days": alert_days,
    }
