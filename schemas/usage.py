"""
Usage Schemas

Per-user usage record and the actors that read reports.
"""

from dataclasses import dataclass
from typing import Union

from pydantic import BaseModel, ConfigDict, Field


USAGE_KEYS = ("bidderChecks", "initiatorChecks")


class UsageRecord(BaseModel):
    """Per-user audit counters and subscription flag."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    initiator_checks: int = Field(default=0, ge=0, alias="initiatorChecks")
    bidder_checks: int = Field(default=0, ge=0, alias="bidderChecks")
    subscribed: bool = Field(default=False)

    @property
    def total_checks(self) -> int:
        return self.initiator_checks + self.bidder_checks

    def count(self, role_key: str) -> int:
        """Counter value for a wire key such as ``bidderChecks``."""
        return getattr(self, _FIELD_BY_KEY[role_key])

    def incremented(self, role_key: str, subscribed: bool) -> "UsageRecord":
        """Copy with one counter advanced and the subscription flag set."""
        field = _FIELD_BY_KEY[role_key]
        return self.model_copy(update={field: getattr(self, field) + 1, "subscribed": subscribed})

    def decremented(self, role_key: str) -> "UsageRecord":
        """Copy with one counter moved back, never below zero."""
        field = _FIELD_BY_KEY[role_key]
        return self.model_copy(update={field: max(0, getattr(self, field) - 1)})


_FIELD_BY_KEY = {
    "bidderChecks": "bidder_checks",
    "initiatorChecks": "initiator_checks",
}


@dataclass(frozen=True)
class Tenant:
    """A regular user; sees only their own reports."""
    user_id: str


@dataclass(frozen=True)
class Administrator:
    """Administrative actor with read access across tenants."""
    user_id: str = "admin"


Actor = Union[Tenant, Administrator]
