"""定期取得ジョブ.

処理フロー:
  1. 有効なスケジュールを取得し、今回実行対象のものに絞る
  2. 各スケジュールについて店舗検索を実行
  3. 前回スナップショットと比較し、変化があれば新しいスナップショットを保存
  4. アラートを生成・保存し、所有者にメール通知
  5. 成功したスケジュールのみ last_run_at を進める
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from postgrest.exceptions import APIError

from localrank.db import (
    delete_snapshot,
    get_active_schedules,
    get_latest_snapshot_id,
    get_snapshot_items,
    get_user_email,
    insert_alert,
    insert_snapshot,
    insert_snapshot_items,
    update_last_run,
)
from localrank.diff import build_alerts, has_changed
from localrank.models import (
    Alert,
    Cohort,
    RankedPlace,
    RunResult,
    TrackingSchedule,
    TrackRunReport,
)
from localrank.notifier import format_alert_email, send_alert_email
from localrank.places import fetch_places_by_postcode, rank_places
from localrank.schedule import advance_last_run, due_schedules

logger = logging.getLogger(__name__)

STATUS_SUCCESS = "success"
STATUS_NO_CHANGES = "no_changes"
STATUS_SKIPPED = "skipped_missing_keyword"
STATUS_SNAPSHOT_FAILED = "snapshot_failed"
STATUS_ERROR = "error"


def _mark_ran(schedule: TrackingSchedule, now: datetime) -> None:
    ran_at = advance_last_run(schedule, now)
    update_last_run(schedule.id, ran_at)
    schedule.last_run_at = ran_at


def _deliver_alerts(
    schedule: TrackingSchedule, cohort: Cohort, snapshot_id: str, alerts: list[Alert]
) -> None:
    """アラートの保存と通知. 失敗してもスナップショットは成功扱い."""
    email = None
    try:
        email = get_user_email(schedule.owner_id)
    except Exception as e:
        logger.warning("メールアドレス取得失敗: owner=%s, error=%s", schedule.owner_id, e)

    for alert in alerts:
        try:
            insert_alert(schedule.owner_id, schedule.cohort_id, snapshot_id, alert)
        except Exception as e:
            logger.warning("アラート保存失敗: type=%s, error=%s", alert.alert_type, e)
            continue

        if email:
            subject, body = format_alert_email(alert, cohort.name)
            send_alert_email(email, subject, body)


def run_schedule(schedule: TrackingSchedule, now: datetime) -> RunResult:
    """スケジュール 1 件を実行する.

    プロバイダ・DB のエラーは呼び出し元に送出する。その場合 last_run_at は進まない。
    """
    cohort = schedule.cohort
    if cohort is None or not cohort.postcode or not cohort.keyword:
        return RunResult(schedule.id, STATUS_SKIPPED)

    response = fetch_places_by_postcode(cohort.postcode, cohort.keyword, cohort.radius_km)
    current_items = rank_places(response.places)

    previous_items: list[RankedPlace] = []
    last_snapshot_id = get_latest_snapshot_id(schedule.owner_id, schedule.cohort_id)
    if last_snapshot_id:
        previous_items = get_snapshot_items(last_snapshot_id)

    if not has_changed(previous_items, current_items):
        _mark_ran(schedule, now)
        return RunResult(schedule.id, STATUS_NO_CHANGES)

    try:
        snapshot_id = insert_snapshot(schedule.owner_id, cohort, response.center)
    except APIError as e:
        logger.error("スナップショット保存失敗: schedule=%s, error=%s", schedule.id, e)
        return RunResult(schedule.id, STATUS_SNAPSHOT_FAILED, str(e))

    try:
        insert_snapshot_items(snapshot_id, current_items)
    except Exception as e:
        # 店舗が揃っていないスナップショットは残さない
        logger.error("スナップショット店舗保存失敗: snapshot=%s, error=%s", snapshot_id, e)
        try:
            delete_snapshot(snapshot_id)
        except Exception as cleanup_error:
            logger.error("不完全なスナップショットの削除失敗: snapshot=%s, error=%s",
                         snapshot_id, cleanup_error)
        return RunResult(schedule.id, STATUS_SNAPSHOT_FAILED, str(e))

    alerts = build_alerts(previous_items, current_items, cohort.business_name)
    if alerts:
        logger.info("アラート %d 件: cohort=%s", len(alerts), cohort.id)
        _deliver_alerts(schedule, cohort, snapshot_id, alerts)

    _mark_ran(schedule, now)
    return RunResult(schedule.id, STATUS_SUCCESS)


def run_tracking(now: datetime | None = None) -> TrackRunReport:
    """実行対象の全スケジュールを順に処理する."""
    now = now or datetime.now(timezone.utc)
    due = due_schedules(get_active_schedules(), now)
    logger.info("実行対象スケジュール: %d 件", len(due))

    results: list[RunResult] = []
    for schedule in due:
        try:
            result = run_schedule(schedule, now)
        except Exception as e:
            # 次回のトリガーで再実行される
            logger.exception("スケジュール実行失敗: schedule=%s", schedule.id)
            result = RunResult(schedule.id, STATUS_ERROR, str(e))
        logger.info("  %s → %s", schedule.id, result.status)
        results.append(result)

    return TrackRunReport(checked=len(due), results=results)
