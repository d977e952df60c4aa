"""Tests for compliance percentage, flag normalisation and bucketing."""

import pytest

from schemas.report import ComplianceFlag, Finding, Report
from services.scoring import (
    bucketize,
    compute_compliance_percentage,
    effective_flag,
    flag_for_score,
    summarize,
)
from tests.factories import finding, make_report


def _report(*items) -> Report:
    return Report.model_validate({"executiveSummary": "s", "findings": list(items)})


class TestCompliancePercentage:
    def test_empty_findings_is_zero(self):
        percentage = compute_compliance_percentage(make_report([]))
        assert percentage == 0
        assert percentage == percentage  # not NaN

    def test_all_compliant_is_hundred(self):
        assert compute_compliance_percentage(make_report([1, 1, 1, 1])) == 100

    def test_one_partial_of_five(self):
        assert compute_compliance_percentage(make_report([0.5, 1, 1, 1, 1])) == 90.0

    def test_rounds_to_one_decimal(self):
        assert compute_compliance_percentage(make_report([1, 1, 0])) == 66.7
        assert compute_compliance_percentage(make_report([1, 0, 0])) == 33.3

    def test_category_does_not_weight(self):
        legal = _report(finding(1, category="LEGAL"), finding(0, category="LEGAL"))
        mixed = _report(finding(1, category="FINANCIAL"), finding(0, category="OTHER"))
        assert compute_compliance_percentage(legal) == compute_compliance_percentage(mixed) == 50.0

    def test_out_of_range_score_counts_as_zero(self):
        report = _report(finding(1), finding(7, flag="COMPLIANT"), finding(-1, flag="NON-COMPLIANT"))
        assert compute_compliance_percentage(report) == 33.3


class TestFlags:
    @pytest.mark.parametrize("score, flag", [
        (1, ComplianceFlag.COMPLIANT),
        (0.5, ComplianceFlag.PARTIAL),
        (0, ComplianceFlag.NON_COMPLIANT),
        (0.7, None),
        (2, None),
    ])
    def test_flag_for_score(self, score, flag):
        assert flag_for_score(score) is flag

    def test_hyphenated_upstream_flag_is_accepted(self):
        item = Finding.model_validate(finding(0, flag="NON-COMPLIANT"))
        assert item.flag_value is ComplianceFlag.NON_COMPLIANT

    def test_inconsistent_flag_is_non_compliant(self):
        item = Finding.model_validate(finding(0, flag="COMPLIANT"))
        assert effective_flag(item) is ComplianceFlag.NON_COMPLIANT

    def test_unknown_flag_is_kept_but_counted_non_compliant(self):
        item = Finding.model_validate(finding(1, flag="MOSTLY"))
        assert item.flag == "MOSTLY"
        assert effective_flag(item) is ComplianceFlag.NON_COMPLIANT

    def test_unknown_category_becomes_other(self):
        item = Finding.model_validate(finding(1, category="SAFETY"))
        assert item.category.value == "OTHER"


class TestBucketize:
    def test_counts_all_flags(self):
        report = make_report([1, 1, 0.5, 0])
        assert bucketize(report.findings) == {
            ComplianceFlag.COMPLIANT: 2,
            ComplianceFlag.PARTIAL: 1,
            ComplianceFlag.NON_COMPLIANT: 1,
        }

    def test_empty_has_all_keys(self):
        assert bucketize([]) == {flag: 0 for flag in ComplianceFlag}

    def test_is_idempotent_and_normalises_malformed_flags(self):
        report = _report(finding(1, flag="???"), finding(0.5), finding(1, flag="PARTIAL"))
        first = bucketize(report.findings)
        second = bucketize(report.findings)
        assert first == second
        assert first[ComplianceFlag.NON_COMPLIANT] == 2
        assert first[ComplianceFlag.PARTIAL] == 1


def test_summarize_reports_shares_and_missing_stances():
    report = _report(finding(1), finding(0.5, stance="Negotiate"), finding(0))
    summary = summarize(report)
    assert summary["percentage"] == 50.0
    assert summary["counts"] == {"COMPLIANT": 1, "PARTIAL": 1, "NON_COMPLIANT": 1}
    assert summary["shares"]["COMPLIANT"] == 33.3
    assert summary["missing_negotiation_stances"] == 1


def test_summarize_empty_report():
    summary = summarize(make_report([]))
    assert summary["percentage"] == 0
    assert summary["shares"] == {"COMPLIANT": 0.0, "PARTIAL": 0.0, "NON_COMPLIANT": 0.0}
