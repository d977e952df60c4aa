"""
Compliance Agent

Builds the schema-constrained audit request: the fixed instruction prompt,
the enumerated response schema and the generateContent request body.
"""

from dataclasses import dataclass, field

from config.settings import settings
from schemas.report import RequirementCategory


CATEGORY_ENUM = [category.value for category in RequirementCategory]
FLAG_ENUM = ["COMPLIANT", "PARTIAL", "NON-COMPLIANT"]


COMPLIANCE_SYSTEM_PROMPT = """You are a senior procurement compliance auditor. You receive an RFQ
(Request for Quotation) and a Bid written in response to it.

1. Extract every mandatory requirement of the RFQ. Quote the requirement text exactly.
2. For each requirement, find how the Bid addresses it and summarise the response.
3. Score each requirement: 1 if fully met, 0.5 if partially met, 0 if missing or contradicted.
4. Set the flag from the score: 1 -> COMPLIANT, 0.5 -> PARTIAL, 0 -> NON-COMPLIANT.
5. Assign one category: LEGAL, FINANCIAL, TECHNICAL, TIMELINE, REPORTING, ADMINISTRATIVE or OTHER.
6. For every requirement scoring below 1, write a negotiationStance: the position the bidder
   should take to close the gap. Omit negotiationStance for fully compliant requirements.

Also fill the market intelligence and bid coaching fields from the documents. Be conservative:
a requirement that is only implied by the Bid is PARTIAL, not COMPLIANT.

IMPORTANT: Output ONLY valid JSON matching the response schema."""


def _string(description: str) -> dict:
    return {"type": "STRING", "description": description}


def _string_list(description: str) -> dict:
    return {"type": "ARRAY", "items": {"type": "STRING"}, "description": description}


REPORT_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "description": "The complete compliance audit report with market intelligence and bid coaching data.",
    "properties": {
        # Market intelligence
        "projectTitle": _string("Official project title from the RFQ."),
        "rfqScopeSummary": _string("High-level scope summary from the RFQ."),
        "grandTotalValue": _string("Total bid price or cost."),
        "industryTag": _string("Industry sector."),
        "primaryRisk": _string("Biggest deal-breaker risk."),
        "projectLocation": _string("Geographic location."),
        "contractDuration": _string("Proposed timeline."),
        "techKeywords": _string("Top 3 technologies or materials."),
        "incumbentSystem": _string("Legacy system being replaced."),
        "requiredCertifications": _string("Mandatory certifications (ISO, etc.)."),

        # Bid coaching
        "generatedExecutiveSummary": _string(
            "Executive summary that states the RFQ requirement, the vendor's proposed "
            "solution and the vendor's key value proposition."
        ),
        "persuasionScore": {
            "type": "NUMBER",
            "description": "Score from 0-100 based on confidence, active voice and clarity of the Bid."
        },
        "toneAnalysis": _string("One word describing the bid tone."),
        "weakWords": _string_list("Up to 3 weak words found in the Bid."),
        "procurementVerdict": {
            "type": "OBJECT",
            "properties": {
                "winningFactors": _string_list("Top 3 strong points of the proposal."),
                "losingFactors": _string_list("Top 3 weak points or risks of the proposal."),
            }
        },
        "legalRiskAlerts": _string_list("Dangerous legal clauses accepted without pushback."),
        "submissionChecklist": _string_list("Physical artifacts or attachments required by the RFQ."),

        # Core compliance
        "executiveSummary": _string("Audit summary."),
        "findings": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "requirementFromRFQ": _string("Exact text of the requirement."),
                    "complianceScore": {"type": "NUMBER", "description": "1, 0.5 or 0."},
                    "bidResponseSummary": {"type": "STRING"},
                    "flag": {"type": "STRING", "enum": FLAG_ENUM},
                    "category": {"type": "STRING", "enum": CATEGORY_ENUM},
                    "negotiationStance": {"type": "STRING"},
                },
                "required": ["requirementFromRFQ", "complianceScore", "bidResponseSummary", "flag", "category"],
            }
        },
    },
    "required": ["executiveSummary", "findings"],
}


@dataclass(frozen=True)
class AuditRequest:
    """Everything one analysis call needs."""
    rfq_text: str
    bid_text: str
    instruction: str = COMPLIANCE_SYSTEM_PROMPT
    schema: dict = field(default_factory=lambda: REPORT_RESPONSE_SCHEMA)

    def to_body(self, temperature: float = None) -> dict:
        """Render the generateContent request body."""
        if temperature is None:
            temperature = settings.llm_temperature
        return {
            "contents": [{
                "role": "user",
                "parts": [{
                    "text": (
                        f"RFQ DOCUMENT:\n{self.rfq_text}\n\n"
                        f"BID DOCUMENT:\n{self.bid_text}"
                    )
                }]
            }],
            "systemInstruction": {"parts": [{"text": self.instruction}]},
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": self.schema,
                "temperature": temperature,
            },
        }


def create_audit_request(rfq_text: str, bid_text: str) -> AuditRequest:
    """Create the audit request for an RFQ/Bid pair."""
    return AuditRequest(rfq_text=rfq_text, bid_text=bid_text)
