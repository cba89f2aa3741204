"""スケジュールの実行判定.

定期トリガー（1 時間ごと）から呼ばれ、各スケジュールを今回実行すべきかを判定する。
判定は UTC の「時」が一致する 1 時間の窓でのみ成立するため、
トリガーがその時間帯を飛ばした場合は次の日・週まで実行されない。
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Iterable

from localrank.config import DEFAULT_WEEKLY_DAY
from localrank.models import TrackingSchedule

_WEEKLY_MIN_INTERVAL = timedelta(days=6)


def _as_utc(value: datetime) -> datetime:
    """naive な datetime は UTC とみなす."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _utc_day_of_week(value: datetime) -> int:
    """0=日曜 .. 6=土曜 の曜日番号を返す."""
    return value.isoweekday() % 7


def is_due(schedule: TrackingSchedule, now: datetime) -> bool:
    """スケジュールが今回の実行対象かどうか.

    Args:
        schedule: 判定するスケジュール
        now: 現在時刻

    Returns:
        実行すべきなら True。
    """
    if not schedule.is_active:
        return False

    now = _as_utc(now)
    if now.hour != schedule.hour_utc:
        return False

    last_run = _as_utc(schedule.last_run_at) if schedule.last_run_at else None

    if schedule.frequency == "daily":
        if last_run is None:
            return True
        # 経過時間ではなく日付で比較する
        return last_run.date() != now.date()

    day_of_week = schedule.day_of_week
    if day_of_week is None:
        day_of_week = DEFAULT_WEEKLY_DAY
    if _utc_day_of_week(now) != day_of_week:
        return False
    if last_run is None:
        return True
    return now - last_run > _WEEKLY_MIN_INTERVAL


def due_schedules(
    schedules: Iterable[TrackingSchedule], now: datetime
) -> list[TrackingSchedule]:
    """実行対象のスケジュールだけを元の順序のまま返す."""
    return [s for s in schedules if is_due(s, now)]


def advance_last_run(schedule: TrackingSchedule, ran_at: datetime) -> datetime:
    """実行成功後に記録する last_run_at を返す.

    last_run_at は前にしか進めない。ran_at が既存値以前なら既存値を返す。
    """
    ran_at = _as_utc(ran_at)
    if schedule.last_run_at is None:
        return ran_at
    last_run = _as_utc(schedule.last_run_at)
    return ran_at if ran_at > last_run else last_run
