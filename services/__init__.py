"""
Bid Audit - Services Package

Scoring, usage tracking, report storage, ranking and document extraction.
The audit orchestration lives in ``services.audit`` and the analysis client
in ``services.invoker``.
"""

from services.document_processor import (
    DocumentProcessor,
    get_processor,
    extract_text
)
from services.ranking import rank, watch_rankings, rankings_to_csv
from services.report_store import ReportStore, InMemoryReportStore, SqlReportStore
from services.scoring import compute_compliance_percentage, bucketize, effective_flag, summarize
from services.usage import (
    UsageStore,
    InMemoryUsageStore,
    SqlUsageStore,
    UsageCounter,
    SubscriptionPolicy,
    AuditGate,
)

__all__ = [
    "DocumentProcessor",
    "get_processor",
    "extract_text",
    "rank",
    "watch_rankings",
    "rankings_to_csv",
    "ReportStore",
    "InMemoryReportStore",
    "SqlReportStore",
    "compute_compliance_percentage",
    "bucketize",
    "effective_flag",
    "summarize",
    "UsageStore",
    "InMemoryUsageStore",
    "SqlUsageStore",
    "UsageCounter",
    "SubscriptionPolicy",
    "AuditGate",
]
