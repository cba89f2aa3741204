"""Supabase データベース操作モジュール.

テーブルはすべて localseo_ プレフィックス。
所有者 ID は呼び出し側が明示的に渡す。
"""

from __future__ import annotations

import logging
from datetime import datetime

from supabase import Client, create_client

from localrank.config import SUPABASE_SCHEMA, SUPABASE_SECRET_KEY, SUPABASE_URL
from localrank.models import Alert, Cohort, Location, RankedPlace, Snapshot, TrackingSchedule

logger = logging.getLogger(__name__)

SCHEDULES = "localseo_tracking_schedules"
COHORTS = "localseo_postcode_cohorts"
SNAPSHOTS = "localseo_rank_snapshots"
SNAPSHOT_ITEMS = "localseo_rank_snapshot_items"
ALERTS = "localseo_alerts"
REPORTS = "localseo_reports"
SUBSCRIPTIONS = "localseo_subscriptions"

_COHORT_COLUMNS = "id,owner_id,name,postcode,keyword,radius_km,business_name"
_ITEM_COLUMNS = "place_id,name,rank,rating,user_ratings_total,vicinity,lat,lng"

_client: Client | None = None


def _get_client() -> Client:
    """サービスロールキーのクライアントを初回利用時に生成する."""
    global _client
    if _client is None:
        _client = create_client(SUPABASE_URL, SUPABASE_SECRET_KEY)
    return _client


def _table(name: str):
    """設定スキーマのテーブルを参照する."""
    return _get_client().schema(SUPABASE_SCHEMA).table(name)


def _parse_ts(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value)


def _to_cohort(row: dict, owner_id: str | None = None) -> Cohort:
    return Cohort(
        id=row["id"],
        owner_id=row.get("owner_id") or owner_id or "",
        name=row.get("name") or "",
        postcode=row.get("postcode") or "",
        keyword=row.get("keyword"),
        radius_km=row.get("radius_km"),
        business_name=row.get("business_name"),
    )


def _to_ranked_place(row: dict) -> RankedPlace:
    return RankedPlace(
        place_id=row["place_id"],
        name=row.get("name") or "",
        rank=row["rank"],
        rating=row.get("rating"),
        user_ratings_total=row.get("user_ratings_total"),
        vicinity=row.get("vicinity"),
        lat=row.get("lat"),
        lng=row.get("lng"),
    )


# --- スケジュール ---


def get_active_schedules() -> list[TrackingSchedule]:
    """有効なスケジュールを対象コホート付きで取得する."""
    resp = (
        _table(SCHEDULES)
        .select(
            "id, owner_id, cohort_id, frequency, day_of_week, hour_utc, "
            f"is_active, last_run_at, cohort:{COHORTS}({_COHORT_COLUMNS})"
        )
        .eq("is_active", True)
        .execute()
    )

    schedules = []
    for row in resp.data:
        # 埋め込みリレーションは配列で返ることがある
        cohort_row = row.get("cohort")
        if isinstance(cohort_row, list):
            cohort_row = cohort_row[0] if cohort_row else None
        schedules.append(TrackingSchedule(
            id=row["id"],
            owner_id=row["owner_id"],
            cohort_id=row["cohort_id"],
            frequency=row["frequency"],
            hour_utc=row["hour_utc"],
            day_of_week=row.get("day_of_week"),
            is_active=row.get("is_active", True),
            last_run_at=_parse_ts(row.get("last_run_at")),
            cohort=_to_cohort(cohort_row, row["owner_id"]) if cohort_row else None,
        ))

    return schedules


def update_last_run(schedule_id: str, ran_at: datetime) -> None:
    """スケジュールの最終実行時刻を更新する."""
    _table(SCHEDULES).update({"last_run_at": ran_at.isoformat()}).eq("id", schedule_id).execute()


# --- スナップショット ---


def get_latest_snapshot_id(owner_id: str, cohort_id: str) -> str | None:
    """コホートの最新スナップショット ID. 無ければ None."""
    resp = (
        _table(SNAPSHOTS)
        .select("id")
        .eq("owner_id", owner_id)
        .eq("cohort_id", cohort_id)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    if not resp.data:
        return None
    return resp.data[0]["id"]


def get_recent_snapshots(cohort_id: str, limit: int = 2) -> list[Snapshot]:
    """コホートのスナップショットを新しい順に取得する."""
    resp = (
        _table(SNAPSHOTS)
        .select("id, created_at")
        .eq("cohort_id", cohort_id)
        .order("created_at", desc=True)
        .limit(limit)
        .execute()
    )
    return [Snapshot(id=row["id"], created_at=_parse_ts(row["created_at"])) for row in resp.data]


def get_snapshot_items(snapshot_id: str, limit: int | None = None) -> list[RankedPlace]:
    """スナップショットの店舗を順位順に取得する."""
    query = (
        _table(SNAPSHOT_ITEMS)
        .select(_ITEM_COLUMNS)
        .eq("snapshot_id", snapshot_id)
        .order("rank")
    )
    if limit is not None:
        query = query.limit(limit)
    resp = query.execute()
    return [_to_ranked_place(row) for row in resp.data]


def insert_snapshot(owner_id: str, cohort: Cohort, center: Location) -> str:
    """スナップショットの見出し行を挿入し、ID を返す."""
    resp = (
        _table(SNAPSHOTS)
        .insert({
            "owner_id": owner_id,
            "cohort_id": cohort.id,
            "keyword": cohort.keyword,
            "postcode": cohort.postcode,
            "radius_km": cohort.radius_km,
            "center_lat": center.lat,
            "center_lng": center.lng,
        })
        .execute()
    )
    snapshot_id = resp.data[0]["id"]
    logger.info("%s に挿入: id=%s", SNAPSHOTS, snapshot_id)
    return snapshot_id


def insert_snapshot_items(snapshot_id: str, items: list[RankedPlace]) -> None:
    """スナップショットの店舗を一括挿入する."""
    if not items:
        return
    records = [
        {
            "snapshot_id": snapshot_id,
            "place_id": item.place_id,
            "name": item.name,
            "rank": item.rank,
            "rating": item.rating,
            "user_ratings_total": item.user_ratings_total,
            "vicinity": item.vicinity,
            "lat": item.lat,
            "lng": item.lng,
        }
        for item in items
    ]
    _table(SNAPSHOT_ITEMS).insert(records).execute()
    logger.info("%s に %d 件挿入", SNAPSHOT_ITEMS, len(records))


def delete_snapshot(snapshot_id: str) -> None:
    """スナップショットを削除する（店舗は外部キーの cascade で消える）."""
    _table(SNAPSHOTS).delete().eq("id", snapshot_id).execute()


# --- アラート ---


def insert_alert(owner_id: str, cohort_id: str, snapshot_id: str, alert: Alert) -> None:
    """アラートを 1 件挿入する."""
    _table(ALERTS).insert({
        "owner_id": owner_id,
        "cohort_id": cohort_id,
        "snapshot_id": snapshot_id,
        "alert_type": alert.alert_type,
        "severity": alert.severity,
        "message": alert.message,
        "data": alert.data,
    }).execute()


# --- ユーザー・課金 ---


def get_user_email(user_id: str) -> str | None:
    """認証ユーザーのメールアドレス. 取得できなければ None."""
    resp = _get_client().auth.admin.get_user_by_id(user_id)
    user = getattr(resp, "user", None)
    return getattr(user, "email", None) if user else None


def get_subscription_status(owner_id: str) -> str | None:
    """Stripe から同期されたサブスクリプションのステータス."""
    resp = (
        _table(SUBSCRIPTIONS)
        .select("status")
        .eq("owner_id", owner_id)
        .limit(1)
        .execute()
    )
    if not resp.data:
        return None
    return resp.data[0].get("status")


# --- 共有レポート ---


def insert_report(owner_id: str, cohort_id: str, slug: str, expires_at: datetime) -> None:
    _table(REPORTS).insert({
        "owner_id": owner_id,
        "cohort_id": cohort_id,
        "slug": slug,
        "expires_at": expires_at.isoformat(),
    }).execute()


def get_report_by_slug(slug: str) -> dict | None:
    """スラッグからレポート行を取得する.

    Returns:
        {"id", "cohort_id", "expires_at": datetime | None}。無ければ None。
    """
    resp = (
        _table(REPORTS)
        .select("id, cohort_id, expires_at")
        .eq("slug", slug)
        .limit(1)
        .execute()
    )
    if not resp.data:
        return None
    row = resp.data[0]
    return {
        "id": row["id"],
        "cohort_id": row["cohort_id"],
        "expires_at": _parse_ts(row.get("expires_at")),
    }


def get_cohort(cohort_id: str) -> Cohort | None:
    resp = _table(COHORTS).select(_COHORT_COLUMNS).eq("id", cohort_id).limit(1).execute()
    if not resp.data:
        return None
    return _to_cohort(resp.data[0])


# --- 保持期間切れの削除 ---


def select_ids_older_than(table: str, cutoff: datetime, limit: int) -> list[str]:
    """created_at が cutoff より古い行の ID を最大 limit 件取得する."""
    resp = (
        _table(table)
        .select("id")
        .lt("created_at", cutoff.isoformat())
        .limit(limit)
        .execute()
    )
    return [row["id"] for row in resp.data]


def delete_ids(table: str, ids: list[str]) -> None:
    """ID 指定で一括削除する."""
    if not ids:
        return
    _table(table).delete().in_("id", ids).execute()
    logger.info("%s から %d 件削除", table, len(ids))
