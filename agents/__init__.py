"""
Bid Audit - Agents Package

Prompt, response schema and payload parsing for the compliance audit.
"""

from agents.base import strip_code_fences, extract_candidate_text, parse_report_payload
from agents.compliance_agent import (
    AuditRequest,
    COMPLIANCE_SYSTEM_PROMPT,
    REPORT_RESPONSE_SCHEMA,
    create_audit_request
)

__all__ = [
    # Base
    "strip_code_fences",
    "extract_candidate_text",
    "parse_report_payload",
    # Compliance
    "AuditRequest",
    "COMPLIANCE_SYSTEM_PROMPT",
    "REPORT_RESPONSE_SCHEMA",
    "create_audit_request",
]
