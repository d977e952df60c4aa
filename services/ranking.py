"""
Ranking Aggregator

Groups stored reports by RFQ name and ranks each group by compliance
percentage. Ranking is a pure function of the full report set.
"""

import csv
import io
from itertools import groupby
from typing import AsyncIterator, Iterable

from schemas.report import RankedEntry, StoredReport
from schemas.usage import Actor
from services.report_store import ReportStore
from services.scoring import compute_compliance_percentage


def _rank_group(reports: list[StoredReport]) -> list[RankedEntry]:
    scored = [(compute_compliance_percentage(report), report) for report in reports]
    # Higher percentage first, earlier submission first among equals; id keeps
    # the order independent of input order when timestamps collide too.
    scored.sort(key=lambda item: (-item[0], item[1].timestamp, item[1].id))

    entries = []
    rank = 1
    previous = None
    for index, (percentage, report) in enumerate(scored):
        if previous is not None and percentage < previous:
            rank = index + 1
        previous = percentage
        entries.append(RankedEntry(report=report, percentage=percentage, rank=rank))
    return entries


def rank(reports: Iterable[StoredReport]) -> dict[str, list[RankedEntry]]:
    """
    Rank reports within each RFQ group.

    Groups are keyed by the exact ``rfq_name`` (no case or whitespace
    normalisation) and returned in lexicographic order. Ties share a rank and
    the next distinct percentage skips ahead: 90, 90, 70 ranks 1, 1, 3.
    """
    ordered = sorted(reports, key=lambda report: report.rfq_name)
    return {
        rfq_name: _rank_group(list(group))
        for rfq_name, group in groupby(ordered, key=lambda report: report.rfq_name)
    }


async def watch_rankings(store: ReportStore, actor: Actor) -> AsyncIterator[dict[str, list[RankedEntry]]]:
    """Recompute rankings from scratch for every snapshot the store pushes."""
    async for snapshot in store.subscribe(actor):
        yield rank(snapshot)


def rankings_to_csv(rankings: dict[str, list[RankedEntry]]) -> str:
    """Render rankings as CSV, one row per ranked report."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(["rfq_name", "rank", "bid_name", "percentage", "timestamp", "role", "owner_id", "report_id"])
    for rfq_name, entries in rankings.items():
        for entry in entries:
            writer.writerow([
                rfq_name,
                entry.rank,
                entry.report.bid_name,
                entry.percentage,
                entry.report.timestamp,
                entry.report.role.value,
                entry.report.owner_id,
                entry.report.id,
            ])
    return buffer.getvalue()
