"""
Report Schemas

Data models for compliance findings, audit reports and their stored form.
Field aliases follow the camelCase wire format of the analysis service.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ComplianceFlag(str, Enum):
    """Categorical compliance outcome of a finding."""
    COMPLIANT = "COMPLIANT"
    PARTIAL = "PARTIAL"
    NON_COMPLIANT = "NON_COMPLIANT"


class RequirementCategory(str, Enum):
    """Category of an RFQ requirement."""
    LEGAL = "LEGAL"
    FINANCIAL = "FINANCIAL"
    TECHNICAL = "TECHNICAL"
    TIMELINE = "TIMELINE"
    REPORTING = "REPORTING"
    ADMINISTRATIVE = "ADMINISTRATIVE"
    OTHER = "OTHER"


class AuditRole(str, Enum):
    """Perspective an audit was run from."""
    BIDDER = "BIDDER"
    INITIATOR = "INITIATOR"

    @property
    def usage_key(self) -> str:
        """Usage counter field charged for this role."""
        return "bidderChecks" if self is AuditRole.BIDDER else "initiatorChecks"


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)


class Finding(_WireModel):
    """One evaluated RFQ requirement."""
    requirement_text: str = Field(
        ...,
        alias="requirementFromRFQ",
        description="Verbatim requirement clause from the RFQ"
    )
    compliance_score: float = Field(
        default=0.0,
        alias="complianceScore",
        description="Expected to be 0, 0.5 or 1"
    )
    response_summary: str = Field(
        default="",
        alias="bidResponseSummary",
        description="How the bid addresses the requirement"
    )
    flag: str = Field(
        default=ComplianceFlag.NON_COMPLIANT.value,
        description="COMPLIANT, PARTIAL or NON_COMPLIANT; other values are kept verbatim"
    )
    category: RequirementCategory = Field(default=RequirementCategory.OTHER)
    negotiation_stance: Optional[str] = Field(
        default=None,
        alias="negotiationStance",
        description="Expected when the requirement is not fully met"
    )

    @field_validator("flag", mode="before")
    @classmethod
    def _normalize_flag(cls, value):
        if value is None:
            return ComplianceFlag.NON_COMPLIANT.value
        if isinstance(value, ComplianceFlag):
            return value.value
        text = str(value).strip().upper()
        # The upstream enum spells it with a hyphen
        if text == "NON-COMPLIANT":
            return ComplianceFlag.NON_COMPLIANT.value
        return text

    @field_validator("category", mode="before")
    @classmethod
    def _tolerate_unknown_category(cls, value):
        if isinstance(value, RequirementCategory):
            return value
        text = str(value or "").strip().upper()
        if text in RequirementCategory.__members__:
            return text
        return RequirementCategory.OTHER

    @property
    def flag_value(self) -> Optional[ComplianceFlag]:
        """The flag as an enum member, or None when it is not a known value."""
        try:
            return ComplianceFlag(self.flag)
        except ValueError:
            return None


class ProcurementVerdict(_WireModel):
    """Strong and weak points of a proposal."""
    winning_factors: list[str] = Field(default_factory=list, alias="winningFactors")
    losing_factors: list[str] = Field(default_factory=list, alias="losingFactors")


class Report(_WireModel):
    """Structured compliance report produced by one audit."""
    executive_summary: str = Field(..., alias="executiveSummary")
    findings: list[Finding] = Field(...)

    # Market intelligence
    project_title: Optional[str] = Field(default=None, alias="projectTitle")
    rfq_scope_summary: Optional[str] = Field(default=None, alias="rfqScopeSummary")
    grand_total_value: Optional[str] = Field(default=None, alias="grandTotalValue")
    industry_tag: Optional[str] = Field(default=None, alias="industryTag")
    primary_risk: Optional[str] = Field(default=None, alias="primaryRisk")
    project_location: Optional[str] = Field(default=None, alias="projectLocation")
    contract_duration: Optional[str] = Field(default=None, alias="contractDuration")
    tech_keywords: Optional[str] = Field(default=None, alias="techKeywords")
    incumbent_system: Optional[str] = Field(default=None, alias="incumbentSystem")
    required_certifications: Optional[str] = Field(default=None, alias="requiredCertifications")

    # Bid coaching
    generated_executive_summary: Optional[str] = Field(
        default=None,
        alias="generatedExecutiveSummary"
    )
    persuasion_score: Optional[float] = Field(default=None, alias="persuasionScore")
    tone_analysis: Optional[str] = Field(default=None, alias="toneAnalysis")
    weak_words: list[str] = Field(default_factory=list, alias="weakWords")
    procurement_verdict: Optional[ProcurementVerdict] = Field(
        default=None,
        alias="procurementVerdict"
    )
    legal_risk_alerts: list[str] = Field(default_factory=list, alias="legalRiskAlerts")
    submission_checklist: list[str] = Field(default_factory=list, alias="submissionChecklist")


class StoredReport(Report):
    """A report enriched with persistence metadata."""
    id: str
    owner_id: str = Field(..., alias="ownerId")
    rfq_name: str = Field(..., alias="rfqName")
    bid_name: str = Field(..., alias="bidName")
    timestamp: int = Field(..., description="Submission time, epoch milliseconds")
    role: AuditRole = Field(default=AuditRole.BIDDER)


class RankedEntry(_WireModel):
    """A stored report's standing within its RFQ group."""
    report: StoredReport
    percentage: float
    rank: int = Field(..., ge=1)
