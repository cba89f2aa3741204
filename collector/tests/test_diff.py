"""diff モジュールのユニットテスト."""

from localrank.diff import build_alerts, has_changed, rank_deltas
from localrank.models import RankedPlace


def _items(*entries) -> list[RankedPlace]:
    """(place_id, name) の並びから 1 始まりの順位付きリストを作る."""
    return [
        RankedPlace(place_id=pid, name=name, rank=i, rating=4.5, user_ratings_total=100)
        for i, (pid, name) in enumerate(entries, start=1)
    ]


PREVIOUS = _items(
    ("A", "Alpha Dental"),
    ("B", "Beta Dental"),
    ("C", "Gamma Clinic"),
    ("D", "Delta Smiles"),
    ("E", "Epsilon Care"),
    ("F", "Zeta Teeth"),
)


class TestHasChanged:
    """has_changed のテスト."""

    def test_identical(self):
        previous = [RankedPlace("A", "a", 1), RankedPlace("B", "b", 2)]
        current = [RankedPlace("A", "a", 1), RankedPlace("B", "b", 2)]
        assert has_changed(previous, current) is False

    def test_no_previous_snapshot(self):
        """前回スナップショットが無ければ常に変化ありとすること."""
        assert has_changed(None, []) is True
        assert has_changed([], []) is True
        assert has_changed(None, PREVIOUS) is True

    def test_length_differs(self):
        assert has_changed(PREVIOUS, PREVIOUS[:-1]) is True

    def test_rank_differs(self):
        current = _items(
            ("B", "Beta Dental"), ("A", "Alpha Dental"), ("C", "Gamma Clinic"),
            ("D", "Delta Smiles"), ("E", "Epsilon Care"), ("F", "Zeta Teeth"),
        )
        assert has_changed(PREVIOUS, current) is True

    def test_rating_differs(self):
        current = _items(
            ("A", "Alpha Dental"), ("B", "Beta Dental"), ("C", "Gamma Clinic"),
            ("D", "Delta Smiles"), ("E", "Epsilon Care"), ("F", "Zeta Teeth"),
        )
        current[2].rating = 4.6
        assert has_changed(PREVIOUS, current) is True

    def test_rating_count_differs(self):
        current = _items(
            ("A", "Alpha Dental"), ("B", "Beta Dental"), ("C", "Gamma Clinic"),
            ("D", "Delta Smiles"), ("E", "Epsilon Care"), ("F", "Zeta Teeth"),
        )
        current[5].user_ratings_total = 101
        assert has_changed(PREVIOUS, current) is True

    def test_new_place_same_length(self):
        """件数が同じでも新しい店舗が入れば変化ありとすること."""
        current = _items(
            ("A", "Alpha Dental"), ("B", "Beta Dental"), ("C", "Gamma Clinic"),
            ("D", "Delta Smiles"), ("E", "Epsilon Care"), ("X", "New Place"),
        )
        assert has_changed(PREVIOUS, current) is True

    def test_name_change_is_ignored(self):
        previous = [RankedPlace("A", "Old name", 1)]
        current = [RankedPlace("A", "New name", 1)]
        assert has_changed(previous, current) is False


class TestBuildAlertsRankDrop:
    """rank_drop アラート."""

    def test_drop_of_four_is_medium(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCDEF", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("ACDEFB", start=1)]

        alerts = build_alerts(previous, current, None)

        assert len(alerts) == 1
        alert = alerts[0]
        assert alert.alert_type == "rank_drop"
        assert alert.severity == "medium"
        assert alert.data["drops"] == [
            {"place_id": "B", "name": "B", "previous_rank": 2, "rank": 6, "delta": -4}
        ]
        assert alert.message == "Detected 1 rank drops of 3+ positions."

    def test_drop_of_five_is_high(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCDEF", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("BCDEFA", start=1)]

        alerts = build_alerts(previous, current, None)

        assert [a.alert_type for a in alerts] == ["rank_drop"]
        assert alerts[0].severity == "high"
        assert alerts[0].data["drops"][0]["delta"] == -5

    def test_drop_of_two_is_ignored(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCD", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("BCAD", start=1)]
        assert build_alerts(previous, current, None) == []

    def test_drops_follow_current_order(self):
        """下落幅ではなく今回リストの並び順で列挙すること."""
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCDEFGH", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("CDEFBGHA", start=1)]

        alerts = build_alerts(previous, current, None)

        drops = alerts[0].data["drops"]
        assert [d["place_id"] for d in drops] == ["B", "A"]
        assert [d["delta"] for d in drops] == [-3, -7]
        assert alerts[0].severity == "high"


class TestBuildAlertsNewTopThree:
    """new_top_three アラート."""

    def test_new_entrant(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABC", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("AXB", start=1)]

        alerts = build_alerts(previous, current, None)

        assert [a.alert_type for a in alerts] == ["new_top_three"]
        assert alerts[0].severity == "medium"
        entrants = alerts[0].data["new_top_three"]
        assert [e["place_id"] for e in entrants] == ["X"]
        assert entrants[0]["rank"] == 2
        assert alerts[0].message == "1 new competitors entered the top 3."

    def test_mover_into_top_three_is_not_new(self):
        """前回から存在する店舗の順位上昇は新規参入としないこと."""
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCD", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("ADBC", start=1)]
        assert build_alerts(previous, current, None) == []

    def test_new_entrant_below_top_three(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABC", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCX", start=1)]
        assert build_alerts(previous, current, None) == []


class TestBuildAlertsBusiness:
    """business_out_of_top アラート."""

    def _current(self, business_rank: int | None) -> list[RankedPlace]:
        names = [f"Competitor {i}" for i in range(1, 16)]
        if business_rank is not None:
            names[business_rank - 1] = "BrightSmile Dental"
        return [RankedPlace(f"p{i}", name, i) for i, name in enumerate(names, start=1)]

    def test_business_outside_top_ten(self):
        current = self._current(12)
        alerts = build_alerts(current, current, "BrightSmile")

        assert len(alerts) == 1
        assert alerts[0].alert_type == "business_out_of_top"
        assert alerts[0].severity == "high"
        assert alerts[0].data == {"business_name": "BrightSmile", "rank": 12}
        assert alerts[0].message == "BrightSmile is not in the top 10 for this snapshot."

    def test_business_absent(self):
        current = self._current(None)
        alerts = build_alerts(current, current, "BrightSmile")
        assert alerts[0].data == {"business_name": "BrightSmile", "rank": None}

    def test_business_in_top_ten(self):
        current = self._current(10)
        assert build_alerts(current, current, "BrightSmile") == []

    def test_case_insensitive_substring(self):
        current = self._current(4)
        assert build_alerts(current, current, "brightsmile dent") == []

    def test_no_business_name(self):
        current = self._current(None)
        assert build_alerts(current, current, None) == []
        assert build_alerts(current, current, "") == []


class TestBuildAlertsCombined:
    """複数種別のアラート."""

    def test_order_and_determinism(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCDEF", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("XCDEFA", start=1)]

        first = build_alerts(previous, current, "Missing Business")
        second = build_alerts(previous, current, "Missing Business")

        assert [a.alert_type for a in first] == [
            "rank_drop", "new_top_three", "business_out_of_top",
        ]
        assert first == second


class TestRankDeltas:
    """rank_deltas のテスト."""

    def test_sorted_by_magnitude(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCDE", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("EBCXA", start=1)]

        deltas = rank_deltas(previous, current)

        assert deltas == [
            {"place_id": "E", "name": "E", "delta": 4},
            {"place_id": "A", "name": "A", "delta": -4},
            {"place_id": "B", "name": "B", "delta": 0},
            {"place_id": "C", "name": "C", "delta": 0},
        ]

    def test_limit(self):
        previous = [RankedPlace(pid, pid, i) for i, pid in enumerate("ABCDE", start=1)]
        current = [RankedPlace(pid, pid, i) for i, pid in enumerate("EBCXA", start=1)]
        assert len(rank_deltas(previous, current, limit=2)) == 2
