"""
Bid Audit - Agent Output Helpers

Extraction and validation of the structured report returned by the
analysis service.
"""

import json
from typing import Any

from pydantic import ValidationError

from schemas.report import Report
from services.errors import MalformedResponse


def strip_code_fences(output: str) -> str:
    """Remove a markdown code block wrapper if the model added one."""
    if "```json" in output:
        start = output.find("```json") + 7
        end = output.find("```", start)
        return output[start:end if end != -1 else None].strip()
    if "```" in output:
        start = output.find("```") + 3
        end = output.find("```", start)
        return output[start:end if end != -1 else None].strip()
    return output.strip()


def extract_candidate_text(body: Any) -> str:
    """
    Get the text payload of the first candidate of a generateContent response.

    Raises:
        MalformedResponse: If the body does not have the expected shape
    """
    try:
        parts = body["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
    except (KeyError, IndexError, TypeError, AttributeError) as e:
        raise MalformedResponse(f"Response has no candidate text: {e!r}") from e

    if not text.strip():
        raise MalformedResponse("Response candidate text is empty")
    return text


def parse_report_payload(output: str) -> Report:
    """
    Parse and validate the report JSON emitted by the model.

    Raises:
        MalformedResponse: If output is not valid JSON or violates the report schema
    """
    try:
        data = json.loads(strip_code_fences(output))
    except json.JSONDecodeError as e:
        raise MalformedResponse(f"Invalid JSON output: {e}") from e

    if not isinstance(data, dict):
        raise MalformedResponse("Report payload must be a JSON object")

    try:
        return Report.model_validate(data)
    except ValidationError as e:
        raise MalformedResponse(
            f"Report payload does not match schema ({e.error_count()} errors): {e.errors()[0]['msg']}"
        ) from e
