"""サブスクリプション状態による機能制限.

ステータスは Stripe の Webhook で localseo_subscriptions に同期済みの前提。
"""

from __future__ import annotations

from localrank.config import ACTIVE_SUBSCRIPTION_STATUSES
from localrank.db import get_subscription_status


def is_active_status(status: str | None) -> bool:
    return status in ACTIVE_SUBSCRIPTION_STATUSES


def has_active_subscription(owner_id: str) -> bool:
    """有料機能（レポート作成など）を使えるか."""
    return is_active_status(get_subscription_status(owner_id))
