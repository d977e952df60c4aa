"""
Compliance Scoring

Pure functions deriving aggregate compliance metrics from a report.
Every finding counts equally regardless of category.
"""

import math
from typing import Iterable, Optional

from schemas.report import ComplianceFlag, Finding, Report


VALID_SCORES = {
    1.0: ComplianceFlag.COMPLIANT,
    0.5: ComplianceFlag.PARTIAL,
    0.0: ComplianceFlag.NON_COMPLIANT,
}


def flag_for_score(score: float) -> Optional[ComplianceFlag]:
    """Flag implied by a score, or None for a score outside {0, 0.5, 1}."""
    try:
        return VALID_SCORES.get(float(score))
    except (TypeError, ValueError):
        return None


def effective_flag(finding: Finding) -> ComplianceFlag:
    """
    Flag used for aggregation.

    Unknown flags, scores outside {0, 0.5, 1} and flags that disagree with the
    score all collapse to NON_COMPLIANT.
    """
    flag = finding.flag_value
    if flag is None:
        return ComplianceFlag.NON_COMPLIANT
    if flag_for_score(finding.compliance_score) is not flag:
        return ComplianceFlag.NON_COMPLIANT
    return flag


def _countable_score(score: float) -> float:
    if score is None or not math.isfinite(score) or score < 0 or score > 1:
        return 0.0
    return float(score)


def compute_compliance_percentage(report: Report) -> float:
    """
    Mean compliance score as a percentage rounded to one decimal.

    Returns 0.0 for a report without findings.
    """
    findings = report.findings or []
    if not findings:
        return 0.0
    total = sum(_countable_score(item.compliance_score) for item in findings)
    return round(total / len(findings) * 100, 1)


def bucketize(findings: Iterable[Finding]) -> dict[ComplianceFlag, int]:
    """Count findings per flag; all three flags are always present."""
    counts = {flag: 0 for flag in ComplianceFlag}
    for finding in findings:
        counts[effective_flag(finding)] += 1
    return counts


def summarize(report: Report) -> dict:
    """Percentage, per-flag counts and per-flag shares for display."""
    findings = report.findings or []
    counts = bucketize(findings)
    total = len(findings)
    return {
        "percentage": compute_compliance_percentage(report),
        "total_findings": total,
        "counts": {flag.value: count for flag, count in counts.items()},
        "shares": {
            flag.value: (round(count / total * 100, 1) if total else 0.0)
            for flag, count in counts.items()
        },
        "missing_negotiation_stances": sum(
            1 for item in findings
            if _countable_score(item.compliance_score) < 1 and not item.negotiation_stance
        ),
    }
