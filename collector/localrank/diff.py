"""スナップショット比較とアラート判定.

前回と今回のスナップショット（順位付き店舗リスト）を place_id で突き合わせ、
変化の有無とアラートを算出する。I/O を持たない純粋関数のみ。
"""

from __future__ import annotations

from dataclasses import asdict

from localrank.config import (
    BUSINESS_VISIBILITY_TOP_N,
    NEW_ENTRANT_TOP_N,
    RANK_DROP_HIGH_THRESHOLD,
    RANK_DROP_THRESHOLD,
)
from localrank.models import Alert, RankedPlace


def _index_by_place_id(items: list[RankedPlace]) -> dict[str, RankedPlace]:
    return {item.place_id: item for item in items}


def has_changed(
    previous_items: list[RankedPlace] | None, current_items: list[RankedPlace]
) -> bool:
    """前回スナップショットから変化があるか.

    前回が無い（または中身が空）の場合は常に True。初回は必ず保存する。
    """
    if not previous_items:
        return True
    if len(previous_items) != len(current_items):
        return True

    prev_map = _index_by_place_id(previous_items)
    for item in current_items:
        prev = prev_map.get(item.place_id)
        if prev is None:
            return True
        if (
            prev.rank != item.rank
            or prev.rating != item.rating
            or prev.user_ratings_total != item.user_ratings_total
        ):
            return True
    return False


def _find_business(items: list[RankedPlace], business_name: str) -> RankedPlace | None:
    """店名に business_name を含む最初の店舗（大文字小文字は無視）."""
    needle = business_name.lower()
    for item in items:
        if needle in item.name.lower():
            return item
    return None


def build_alerts(
    previous_items: list[RankedPlace],
    current_items: list[RankedPlace],
    business_name: str | None,
) -> list[Alert]:
    """前回と今回の比較からアラートを生成する.

    出力順は rank_drop → new_top_three → business_out_of_top。
    各アラート内の店舗は今回リストの並び順。

    Args:
        previous_items: 前回スナップショットの店舗
        current_items: 今回スナップショットの店舗
        business_name: 自店舗名（未設定なら None）

    Returns:
        アラートのリスト（0〜3 件）。
    """
    alerts: list[Alert] = []
    prev_map = _index_by_place_id(previous_items)

    # 1. 順位下落
    drops = []
    for item in current_items:
        prev = prev_map.get(item.place_id)
        if prev is None:
            continue
        delta = prev.rank - item.rank  # 正 = 上昇, 負 = 下落
        if delta <= -RANK_DROP_THRESHOLD:
            drops.append({
                "place_id": item.place_id,
                "name": item.name,
                "previous_rank": prev.rank,
                "rank": item.rank,
                "delta": delta,
            })

    if drops:
        high = any(d["delta"] <= -RANK_DROP_HIGH_THRESHOLD for d in drops)
        alerts.append(Alert(
            alert_type="rank_drop",
            severity="high" if high else "medium",
            message=f"Detected {len(drops)} rank drops of {RANK_DROP_THRESHOLD}+ positions.",
            data={"drops": drops},
        ))

    # 2. 上位 3 位への新規参入（前回リストに存在しなかった店舗のみ）
    new_top_three = [
        asdict(item)
        for item in current_items
        if item.rank <= NEW_ENTRANT_TOP_N and item.place_id not in prev_map
    ]
    if new_top_three:
        alerts.append(Alert(
            alert_type="new_top_three",
            severity="medium",
            message=f"{len(new_top_three)} new competitors entered the top {NEW_ENTRANT_TOP_N}.",
            data={"new_top_three": new_top_three},
        ))

    # 3. 自店舗が上位 10 位圏外
    if business_name:
        match = _find_business(current_items, business_name)
        if match is None or match.rank > BUSINESS_VISIBILITY_TOP_N:
            alerts.append(Alert(
                alert_type="business_out_of_top",
                severity="high",
                message=(
                    f"{business_name} is not in the top {BUSINESS_VISIBILITY_TOP_N} "
                    "for this snapshot."
                ),
                data={
                    "business_name": business_name,
                    "rank": match.rank if match else None,
                },
            ))

    return alerts


def rank_deltas(
    previous_items: list[RankedPlace],
    current_items: list[RankedPlace],
    limit: int | None = None,
) -> list[dict]:
    """前回から順位が比較できる店舗の変動幅を、変動の大きい順に返す."""
    prev_map = _index_by_place_id(previous_items)
    deltas = [
        {
            "place_id": item.place_id,
            "name": item.name,
            "delta": prev_map[item.place_id].rank - item.rank,
        }
        for item in current_items
        if item.place_id in prev_map
    ]
    deltas.sort(key=lambda d: abs(d["delta"]), reverse=True)
    if limit is not None:
        return deltas[:limit]
    return deltas
