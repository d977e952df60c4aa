"""
Retrying Invoker

Calls the structured-output analysis service with exponential backoff.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import httpx

from agents.base import extract_candidate_text, parse_report_payload
from agents.compliance_agent import AuditRequest
from config.settings import settings
from schemas.report import Report
from services.errors import ConfigurationError, MalformedResponse, UpstreamUnavailable

logger = logging.getLogger("bid_audit.services.invoker")

SleepFn = Callable[[float], Awaitable[None]]


def _describe_failure(error: httpx.HTTPError) -> str:
    """Human-readable reason, preferring the upstream error message."""
    if isinstance(error, httpx.HTTPStatusError):
        status = error.response.status_code
        try:
            message = error.response.json().get("error", {}).get("message")
        except (ValueError, AttributeError):
            message = None
        return f"HTTP {status}: {message or error.response.reason_phrase}"
    return f"{type(error).__name__}: {error}"


class RetryingInvoker:
    """
    Obtains a structured report from the analysis service.

    Each attempt is one blocking round trip. A failed attempt (non-2xx status
    or transport error) is followed by a sleep of ``2**attempt * base_delay``
    seconds; the last failed attempt raises UpstreamUnavailable. Cancelling
    the calling task takes effect during the sleep between attempts.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: SleepFn = asyncio.sleep
    ):
        self.api_key = api_key if api_key is not None else settings.google_api_key
        self.endpoint = endpoint if endpoint is not None else settings.generate_content_url
        self.max_retries = max_retries if max_retries is not None else settings.invoker_max_retries
        self.base_delay = base_delay if base_delay is not None else settings.invoker_base_delay_seconds
        self.timeout = timeout if timeout is not None else settings.invoker_timeout_seconds
        self._transport = transport
        self._sleep = sleep

    def _check_configuration(self) -> None:
        if not self.api_key:
            raise ConfigurationError("Analysis service API key is not configured (GOOGLE_API_KEY)")
        if not self.endpoint:
            raise ConfigurationError("Analysis service endpoint is not configured")
        if self.max_retries < 1:
            raise ConfigurationError(f"Invoker needs at least one attempt, got {self.max_retries}")
        if self.timeout <= 0:
            raise ConfigurationError(f"Invoker timeout must be positive, got {self.timeout}")

    def backoff_delay(self, attempt: int) -> float:
        """Delay after the zero-based failed ``attempt``."""
        return (2 ** attempt) * self.base_delay

    async def invoke(self, request: AuditRequest) -> Report:
        """
        Run the audit request and return the parsed report.

        Raises:
            ConfigurationError: Credential or endpoint missing
            UpstreamUnavailable: Every attempt failed
            MalformedResponse: Success status but the payload is not a valid report
        """
        self._check_configuration()
        body = request.to_body()
        last_error: Optional[httpx.HTTPError] = None

        async with httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout),
            transport=self._transport
        ) as client:
            for attempt in range(self.max_retries):
                try:
                    response = await client.post(
                        self.endpoint,
                        params={"key": self.api_key},
                        json=body
                    )
                    response.raise_for_status()
                except httpx.HTTPError as e:
                    last_error = e
                    logger.warning(
                        f"Analysis attempt {attempt + 1}/{self.max_retries} failed: "
                        f"{_describe_failure(e)}"
                    )
                    if attempt < self.max_retries - 1:
                        await self._sleep(self.backoff_delay(attempt))
                    continue

                logger.info(f"Analysis attempt {attempt + 1} succeeded")
                return self._parse(response)

        raise UpstreamUnavailable(
            f"Analysis service unavailable after {self.max_retries} attempts: "
            f"{_describe_failure(last_error)}",
            attempts=self.max_retries
        ) from last_error

    @staticmethod
    def _parse(response: httpx.Response) -> Report:
        try:
            payload = response.json()
        except ValueError as e:
            raise MalformedResponse(f"Response body is not JSON: {e}") from e
        return parse_report_payload(extract_candidate_text(payload))
