"""Tests for per-RFQ grouping, competition ranking and CSV export."""

import asyncio
import csv
import io
import random

from schemas.usage import Administrator
from services.ranking import rank, rankings_to_csv, watch_rankings
from services.report_store import InMemoryReportStore
from tests.factories import make_report, stored

# Score lists yielding 90, 90, 70, 70 and 50 percent
SCORES_90 = [1, 1, 1, 1, 0.5]
SCORES_70 = [1, 1, 1, 0.5, 0]
SCORES_50 = [1, 0]


def _ranks(entries):
    return [(entry.report.bid_name, entry.rank) for entry in entries]


class TestRank:
    def test_competition_ranking_with_ties(self):
        reports = [
            stored("RFQ", SCORES_70, 3, bid_name="C"),
            stored("RFQ", SCORES_90, 1, bid_name="A"),
            stored("RFQ", SCORES_50, 5, bid_name="E"),
            stored("RFQ", SCORES_90, 2, bid_name="B"),
            stored("RFQ", SCORES_70, 4, bid_name="D"),
        ]
        entries = rank(reports)["RFQ"]
        assert [e.percentage for e in entries] == [90.0, 90.0, 70.0, 70.0, 50.0]
        assert [e.rank for e in entries] == [1, 1, 3, 3, 5]

    def test_ties_are_ordered_by_earlier_timestamp(self):
        reports = [
            stored("RFQ", [1], 200, bid_name="late"),
            stored("RFQ", [1], 100, bid_name="early"),
        ]
        assert _ranks(rank(reports)["RFQ"]) == [("early", 1), ("late", 1)]

    def test_result_does_not_depend_on_input_order(self):
        reports = [
            stored("RFQ", SCORES_90, 7, report_id="x", bid_name="X"),
            stored("RFQ", SCORES_90, 7, report_id="y", bid_name="Y"),
            stored("RFQ", SCORES_50, 1, bid_name="Z"),
            stored("Other", SCORES_70, 2, bid_name="W"),
        ]
        expected = rank(reports)
        shuffled = list(reports)
        for seed in range(5):
            random.Random(seed).shuffle(shuffled)
            assert rank(shuffled) == expected

    def test_groups_by_exact_rfq_name(self):
        reports = [
            stored("Road Works", [1], 1),
            stored("road works", [1], 2),
            stored("Road Works ", [1], 3),
        ]
        assert sorted(rank(reports)) == ["Road Works", "Road Works ", "road works"]

    def test_groups_are_lexicographic(self):
        reports = [stored(name, [1], i) for i, name in enumerate(["b", "a", "C"])]
        assert list(rank(reports)) == ["C", "a", "b"]

    def test_single_report_ranks_first(self):
        entries = rank([stored("Solo", [0], 1)])["Solo"]
        assert len(entries) == 1
        assert entries[0].rank == 1
        assert entries[0].percentage == 0

    def test_empty_input(self):
        assert rank([]) == {}

    def test_report_without_findings_ranks_last(self):
        reports = [stored("RFQ", [], 1, bid_name="empty"), stored("RFQ", SCORES_50, 2, bid_name="half")]
        assert _ranks(rank(reports)["RFQ"]) == [("half", 1), ("empty", 2)]


def test_watch_rankings_recomputes_on_every_snapshot():
    store = InMemoryReportStore()

    async def scenario():
        stream = watch_rankings(store, Administrator())
        first = await stream.__anext__()
        await store.save("alice", make_report(SCORES_50), rfq_name="RFQ", bid_name="A", timestamp=1)
        second = await stream.__anext__()
        await store.save("bob", make_report(SCORES_90), rfq_name="RFQ", bid_name="B", timestamp=2)
        third = await stream.__anext__()
        await stream.aclose()
        return first, second, third

    first, second, third = asyncio.run(scenario())
    assert first == {}
    assert _ranks(second["RFQ"]) == [("A", 1)]
    assert _ranks(third["RFQ"]) == [("B", 1), ("A", 2)]
    assert store.subscriber_count == 0


def test_rankings_to_csv():
    rankings = rank([
        stored("RFQ", SCORES_90, 1, report_id="r1", bid_name="Acme", owner_id="alice"),
        stored("RFQ", SCORES_50, 2, report_id="r2", bid_name="Beta", owner_id="bob"),
    ])
    rows = list(csv.DictReader(io.StringIO(rankings_to_csv(rankings))))
    assert [row["bid_name"] for row in rows] == ["Acme", "Beta"]
    assert rows[0]["rank"] == "1"
    assert rows[0]["percentage"] == "90.0"
    assert rows[1]["owner_id"] == "bob"
    assert rows[1]["report_id"] == "r2"
