"""
Usage Service

Per-user audit counters, the subscription policy applied on each increment,
and the free-audit gate.
"""

import asyncio
import logging
import random
from abc import ABC, abstractmethod
from collections import defaultdict
from typing import Callable, Optional, Union

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from config.settings import settings
from database.connection import get_db_context
from database.models import UsageRecordRow
from schemas.report import AuditRole
from schemas.usage import USAGE_KEYS, Actor, Administrator, UsageRecord
from services.errors import StoreError, UsageLimitExceeded

logger = logging.getLogger("bid_audit.services.usage")

Mutation = Callable[[Optional[UsageRecord]], UsageRecord]


class UsageStore(ABC):
    """
    Storage of usage records with an atomic read-modify-write primitive.

    ``run_transaction`` reads the current record (None when absent), applies
    ``mutate`` and writes the result as one transaction. Implementations retry
    on write conflict; ``mutate`` may therefore run more than once and must
    be free of side effects.
    """

    @abstractmethod
    async def get(self, user_id: str) -> Optional[UsageRecord]:
        """Current record, or None if the user never ran an audit."""

    @abstractmethod
    async def run_transaction(self, user_id: str, mutate: Mutation) -> UsageRecord:
        """Atomically replace the record with ``mutate(current)``."""

    async def set_subscribed(self, user_id: str, subscribed: bool = True) -> UsageRecord:
        """Flip the subscription flag (called by the payment webhook)."""
        return await self.run_transaction(
            user_id,
            lambda current: (current or UsageRecord()).model_copy(update={"subscribed": subscribed})
        )


class InMemoryUsageStore(UsageStore):
    """Process-local store; transactions on one user are serialised."""

    def __init__(self):
        self._records: dict[str, UsageRecord] = {}
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def get(self, user_id: str) -> Optional[UsageRecord]:
        return self._records.get(user_id)

    async def run_transaction(self, user_id: str, mutate: Mutation) -> UsageRecord:
        async with self._locks[user_id]:
            current = self._records.get(user_id)
            # Yield so concurrent transactions actually interleave
            await asyncio.sleep(0)
            updated = mutate(current)
            self._records[user_id] = updated
            return updated


class _WriteConflict(Exception):
    pass


class SqlUsageStore(UsageStore):
    """
    Usage records in the database with optimistic concurrency.

    Transactions on one user are serialised within this process. Across
    processes a write only succeeds if the row still carries the version that
    was read; a version conflict, a duplicate insert or a lock timeout retries
    the whole transaction after a jittered, growing delay.
    """

    def __init__(
        self,
        session_factory: Optional[async_sessionmaker] = None,
        max_attempts: Optional[int] = None
    ):
        self._session_factory = session_factory
        self.max_attempts = (
            max_attempts if max_attempts is not None else settings.usage_transaction_attempts
        )
        self._locks: defaultdict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    @staticmethod
    def retry_delay(attempt: int) -> float:
        """Jittered delay before retrying after the zero-based ``attempt``."""
        return random.uniform(0, min(0.5, 0.01 * 2 ** attempt))

    @staticmethod
    def _to_record(row: UsageRecordRow) -> UsageRecord:
        return UsageRecord(
            initiator_checks=row.initiator_checks,
            bidder_checks=row.bidder_checks,
            subscribed=row.subscribed
        )

    async def _read(self, db, user_id: str) -> tuple[Optional[UsageRecord], int]:
        """Current record and its version (0 when the row does not exist)."""
        result = await db.execute(
            select(UsageRecordRow).where(UsageRecordRow.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None, 0
        return self._to_record(row), row.version

    async def get(self, user_id: str) -> Optional[UsageRecord]:
        try:
            async with get_db_context(self._session_factory) as db:
                record, _ = await self._read(db, user_id)
                return record
        except SQLAlchemyError as e:
            raise StoreError(f"Could not read usage for {user_id}: {e}") from e

    async def run_transaction(self, user_id: str, mutate: Mutation) -> UsageRecord:
        async with self._locks[user_id]:
            return await self._run_with_retry(user_id, mutate)

    async def _run_with_retry(self, user_id: str, mutate: Mutation) -> UsageRecord:
        for attempt in range(self.max_attempts):
            try:
                async with get_db_context(self._session_factory) as db:
                    current, version = await self._read(db, user_id)
                    updated = mutate(current)

                    if version == 0:
                        db.add(UsageRecordRow(
                            user_id=user_id,
                            initiator_checks=updated.initiator_checks,
                            bidder_checks=updated.bidder_checks,
                            subscribed=updated.subscribed,
                            version=1
                        ))
                        await db.flush()
                    else:
                        result = await db.execute(
                            update(UsageRecordRow)
                            .where(
                                UsageRecordRow.user_id == user_id,
                                UsageRecordRow.version == version
                            )
                            .values(
                                initiator_checks=updated.initiator_checks,
                                bidder_checks=updated.bidder_checks,
                                subscribed=updated.subscribed,
                                version=version + 1
                            )
                        )
                        if result.rowcount != 1:
                            raise _WriteConflict()
                return updated

            except (_WriteConflict, IntegrityError, OperationalError) as e:
                # OperationalError covers "database is locked" and serialization failures
                logger.debug(
                    f"Usage write conflict for {user_id} (attempt {attempt + 1}): "
                    f"{type(e).__name__}"
                )
                await asyncio.sleep(self.retry_delay(attempt))
            except SQLAlchemyError as e:
                raise StoreError(f"Usage transaction failed for {user_id}: {e}") from e

        raise StoreError(
            f"Usage transaction for {user_id} kept conflicting after {self.max_attempts} attempts"
        )


class SubscriptionPolicy:
    """
    Decides the ``subscribed`` value written by a usage increment.

    With ``force_subscribed`` every increment marks the user subscribed, which
    turns the free-audit gate off after the first audit. Without it the flag
    is left for the payment webhook to change.
    """

    def __init__(self, force_subscribed: Optional[bool] = None):
        if force_subscribed is None:
            force_subscribed = settings.force_subscribed_on_increment
        self.force_subscribed = force_subscribed

    def subscribed_after_increment(self, record: UsageRecord) -> bool:
        return True if self.force_subscribed else record.subscribed


class AuditGate:
    """Free-audit allowance; reads the subscription flag, never writes it."""

    def __init__(self, max_free_audits: Optional[int] = None):
        self.max_free_audits = (
            max_free_audits if max_free_audits is not None else settings.max_free_audits
        )

    def remaining(self, actor: Actor, record: Optional[UsageRecord]) -> Optional[int]:
        """Audits left before the gate closes; None means unlimited."""
        record = record or UsageRecord()
        if isinstance(actor, Administrator) or record.subscribed:
            return None
        return max(0, self.max_free_audits - record.total_checks)

    def check(self, actor: Actor, record: Optional[UsageRecord]) -> None:
        """
        Raises:
            UsageLimitExceeded: If the actor has no audits left
        """
        if self.remaining(actor, record) == 0:
            raise UsageLimitExceeded(
                f"Free audit limit reached ({self.max_free_audits}). Upgrade to continue."
            )


class UsageCounter:
    """
    Usage accounting around an audit.

    ``increment_usage`` is best-effort telemetry: a store failure is logged
    and never fails an audit. ``reserve`` claims a free-audit slot and the
    gate check in one transaction, so concurrent audits cannot overrun the
    allowance; ``release`` gives the slot back when the audit fails.
    """

    def __init__(self, store: UsageStore, policy: Optional[SubscriptionPolicy] = None):
        self.store = store
        self.policy = policy or SubscriptionPolicy()

    @staticmethod
    def _key(role_key: Union[str, AuditRole]) -> str:
        key = role_key.usage_key if isinstance(role_key, AuditRole) else role_key
        if key not in USAGE_KEYS:
            raise ValueError(f"Unknown usage counter: {role_key}")
        return key

    async def increment_usage(self, user_id: str, role_key: Union[str, AuditRole]) -> Optional[int]:
        """
        Add one to the user's counter for ``role_key`` in a single transaction.

        Returns:
            The new counter value, or None if the increment failed

        Raises:
            ValueError: If ``role_key`` names no counter. This is a caller
                bug, checked before the store is touched; store failures are
                swallowed.
        """
        key = self._key(role_key)

        def mutate(current: Optional[UsageRecord]) -> UsageRecord:
            record = current or UsageRecord()
            return record.incremented(key, self.policy.subscribed_after_increment(record))

        try:
            record = await self.store.run_transaction(user_id, mutate)
        except Exception:
            logger.exception(f"Failed to increment {key} for user {user_id}")
            return None

        new_count = record.count(key)
        logger.info(f"Usage {key} for user {user_id} is now {new_count}")
        return new_count

    async def reserve(self, actor: Actor, role_key: Union[str, AuditRole], gate: AuditGate) -> Optional[int]:
        """
        Check the gate and count the audit in one transaction.

        The subscription flag is left as it is; ``settle`` applies the policy
        once the audit has succeeded.

        Returns:
            The new counter value, or None if the store failed (the audit then
            falls back to a best-effort increment)

        Raises:
            UsageLimitExceeded: If no free audit is left
        """
        key = self._key(role_key)

        def mutate(current: Optional[UsageRecord]) -> UsageRecord:
            record = current or UsageRecord()
            gate.check(actor, record)
            return record.incremented(key, record.subscribed)

        try:
            record = await self.store.run_transaction(actor.user_id, mutate)
        except UsageLimitExceeded:
            raise
        except Exception:
            logger.exception(f"Failed to reserve {key} for user {actor.user_id}")
            return None

        logger.info(f"Reserved {key} for user {actor.user_id} ({record.count(key)} used)")
        return record.count(key)

    async def release(self, user_id: str, role_key: Union[str, AuditRole]) -> None:
        """Give back a reserved slot after a failed audit."""
        key = self._key(role_key)
        try:
            await self.store.run_transaction(
                user_id, lambda current: (current or UsageRecord()).decremented(key)
            )
        except Exception:
            logger.exception(f"Failed to release {key} for user {user_id}")
            return
        logger.info(f"Released {key} for user {user_id}")

    async def settle(self, user_id: str) -> None:
        """Apply the subscription policy after a reserved audit succeeded."""
        if not self.policy.force_subscribed:
            return

        def mutate(current: Optional[UsageRecord]) -> UsageRecord:
            record = current or UsageRecord()
            return record.model_copy(
                update={"subscribed": self.policy.subscribed_after_increment(record)}
            )

        try:
            await self.store.run_transaction(user_id, mutate)
        except Exception:
            logger.exception(f"Failed to apply subscription policy for user {user_id}")
