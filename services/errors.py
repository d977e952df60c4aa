"""
Audit Errors

Error taxonomy shared by the audit engine and its collaborators.
"""


class AuditError(Exception):
    """Base error with a human-readable message."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigurationError(AuditError):
    """Missing credential or endpoint. Never retried."""
    pass


class UpstreamUnavailable(AuditError):
    """The analysis service kept failing after all retries."""

    def __init__(self, message: str, attempts: int = 0):
        self.attempts = attempts
        super().__init__(message)


class MalformedResponse(AuditError):
    """The analysis service answered but the payload is not a valid report."""
    pass


class ExtractionError(AuditError):
    """Text could not be extracted from an uploaded document."""
    pass


class UnsupportedFormat(ExtractionError):
    """The uploaded document type is not supported."""
    pass


class StoreError(AuditError):
    """Persistence read or write failure."""
    pass


class NotFound(StoreError):
    """The requested report does not exist for this owner."""
    pass


class UsageLimitExceeded(AuditError):
    """Free audit allowance used up and no subscription on record."""
    pass
