"""
Bid Audit - Pydantic Schemas

Data models for compliance reports, usage records and actors.
"""

from schemas.report import (
    ComplianceFlag,
    RequirementCategory,
    AuditRole,
    Finding,
    ProcurementVerdict,
    Report,
    StoredReport,
    RankedEntry,
)
from schemas.usage import (
    USAGE_KEYS,
    UsageRecord,
    Tenant,
    Administrator,
    Actor,
)

__all__ = [
    # Report
    "ComplianceFlag",
    "RequirementCategory",
    "AuditRole",
    "Finding",
    "ProcurementVerdict",
    "Report",
    "StoredReport",
    "RankedEntry",
    # Usage
    "USAGE_KEYS",
    "UsageRecord",
    "Tenant",
    "Administrator",
    "Actor",
]
