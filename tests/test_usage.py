"""Tests for usage counters, the subscription policy and the free-audit gate."""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from schemas.report import AuditRole
from schemas.usage import Administrator, Tenant, UsageRecord
from services.errors import StoreError, UsageLimitExceeded
from services.usage import (
    AuditGate,
    InMemoryUsageStore,
    SqlUsageStore,
    SubscriptionPolicy,
    UsageCounter,
)
from tests.factories import FailingUsageStore


class TestInMemoryCounter:
    def test_first_increment_creates_record(self):
        async def scenario():
            store = InMemoryUsageStore()
            count = await UsageCounter(store).increment_usage("u1", "initiatorChecks")
            return count, await store.get("u1")

        count, record = asyncio.run(scenario())
        assert count == 1
        assert record == UsageRecord(initiator_checks=1, bidder_checks=0, subscribed=True)

    def test_concurrent_increments_lose_no_updates(self):
        async def scenario():
            store = InMemoryUsageStore()
            counter = UsageCounter(store)
            results = await asyncio.gather(*(
                counter.increment_usage("u1", "bidderChecks") for _ in range(25)
            ))
            return results, await store.get("u1")

        results, record = asyncio.run(scenario())
        assert record.bidder_checks == 25
        assert record.initiator_checks == 0
        assert sorted(results) == list(range(1, 26))

    def test_role_enum_selects_counter(self):
        async def scenario():
            store = InMemoryUsageStore()
            counter = UsageCounter(store)
            await counter.increment_usage("u1", AuditRole.INITIATOR)
            await counter.increment_usage("u1", AuditRole.BIDDER)
            await counter.increment_usage("u1", AuditRole.BIDDER)
            return await store.get("u1")

        record = asyncio.run(scenario())
        assert (record.initiator_checks, record.bidder_checks) == (1, 2)

    def test_unknown_counter_is_rejected(self):
        store = InMemoryUsageStore()
        counter = UsageCounter(store)
        with pytest.raises(ValueError):
            asyncio.run(counter.increment_usage("u1", "adminChecks"))
        assert asyncio.run(store.get("u1")) is None

    def test_unknown_counter_is_raised_even_when_the_store_fails(self):
        with pytest.raises(ValueError):
            asyncio.run(UsageCounter(FailingUsageStore()).increment_usage("u1", "adminChecks"))

    def test_store_failure_is_swallowed(self, caplog):
        counter = UsageCounter(FailingUsageStore())
        with caplog.at_level("ERROR", logger="bid_audit.services.usage"):
            assert asyncio.run(counter.increment_usage("u1", "bidderChecks")) is None
        assert "Failed to increment bidderChecks" in caplog.text


class TestSubscriptionPolicy:
    def test_forced_policy_marks_subscribed(self):
        async def scenario():
            store = InMemoryUsageStore()
            await UsageCounter(store, SubscriptionPolicy(force_subscribed=True)).increment_usage("u1", "bidderChecks")
            return await store.get("u1")

        assert asyncio.run(scenario()).subscribed is True

    def test_preserving_policy_leaves_flag_alone(self):
        async def scenario():
            store = InMemoryUsageStore()
            counter = UsageCounter(store, SubscriptionPolicy(force_subscribed=False))
            await counter.increment_usage("u1", "bidderChecks")
            before = await store.get("u1")
            await store.set_subscribed("u1", True)
            await counter.increment_usage("u1", "bidderChecks")
            return before, await store.get("u1")

        before, after = asyncio.run(scenario())
        assert before.subscribed is False
        assert after.subscribed is True
        assert after.bidder_checks == 2

    def test_policy_is_pure(self):
        policy = SubscriptionPolicy(force_subscribed=False)
        assert policy.subscribed_after_increment(UsageRecord(subscribed=True)) is True
        assert policy.subscribed_after_increment(UsageRecord()) is False
        assert SubscriptionPolicy(force_subscribed=True).subscribed_after_increment(UsageRecord()) is True


class TestAuditGate:
    def test_allows_until_limit(self):
        gate = AuditGate(max_free_audits=3)
        tenant = Tenant("u1")
        gate.check(tenant, None)
        gate.check(tenant, UsageRecord(bidder_checks=1, initiator_checks=1))
        assert gate.remaining(tenant, UsageRecord(bidder_checks=2)) == 1

        with pytest.raises(UsageLimitExceeded):
            gate.check(tenant, UsageRecord(bidder_checks=2, initiator_checks=1))

    def test_subscribed_users_are_unlimited(self):
        gate = AuditGate(max_free_audits=3)
        record = UsageRecord(bidder_checks=50, subscribed=True)
        gate.check(Tenant("u1"), record)
        assert gate.remaining(Tenant("u1"), record) is None

    def test_administrators_are_unlimited(self):
        gate = AuditGate(max_free_audits=0)
        gate.check(Administrator("root"), UsageRecord(bidder_checks=10))


class TestSqlUsageStore:
    def test_increments_persist(self, session_factory):
        async def scenario():
            store = SqlUsageStore(session_factory)
            counter = UsageCounter(store)
            counts = [await counter.increment_usage("u1", "bidderChecks") for _ in range(3)]
            await counter.increment_usage("u1", "initiatorChecks")
            return counts, await store.get("u1"), await store.get("nobody")

        counts, record, missing = asyncio.run(scenario())
        assert counts == [1, 2, 3]
        assert record == UsageRecord(bidder_checks=3, initiator_checks=1, subscribed=True)
        assert missing is None

    def test_conflicting_write_is_retried(self, session_factory):
        class InterleavedStore(SqlUsageStore):
            interfered = False

            async def _read(self, db, user_id):
                current, version = await super()._read(db, user_id)
                if not self.interfered:
                    self.interfered = True
                    # Another writer commits between this read and our write
                    await SqlUsageStore(session_factory).run_transaction(
                        user_id, lambda record: (record or UsageRecord()).incremented("bidderChecks", False)
                    )
                return current, version

        async def scenario():
            await UsageCounter(SqlUsageStore(session_factory)).increment_usage("u1", "bidderChecks")
            count = await UsageCounter(InterleavedStore(session_factory)).increment_usage("u1", "bidderChecks")
            return count, await SqlUsageStore(session_factory).get("u1")

        count, record = asyncio.run(scenario())
        assert count == 3
        assert record.bidder_checks == 3

    def test_set_subscribed(self, session_factory):
        async def scenario():
            store = SqlUsageStore(session_factory)
            await store.set_subscribed("u2", True)
            return await store.get("u2")

        assert asyncio.run(scenario()) == UsageRecord(subscribed=True)

    def test_concurrent_increments_lose_no_updates(self, session_factory):
        async def scenario():
            store = SqlUsageStore(session_factory)
            counter = UsageCounter(store)
            results = await asyncio.gather(*(
                counter.increment_usage("u1", "bidderChecks") for _ in range(100)
            ))
            return results, await store.get("u1")

        results, record = asyncio.run(scenario())
        assert sorted(results) == list(range(1, 101))
        assert record.bidder_checks == 100

    def test_concurrent_increments_across_users(self, session_factory):
        users = [f"user-{i}" for i in range(5)]

        async def scenario():
            store = SqlUsageStore(session_factory)
            counter = UsageCounter(store)
            results = await asyncio.gather(*(
                counter.increment_usage(user, "initiatorChecks")
                for _ in range(10) for user in users
            ))
            return results, [await store.get(user) for user in users]

        results, records = asyncio.run(scenario())
        assert None not in results
        assert [record.initiator_checks for record in records] == [10] * 5

    def test_two_stores_on_one_database_lose_no_updates(self, session_factory):
        async def scenario():
            counters = [UsageCounter(SqlUsageStore(session_factory)) for _ in range(2)]
            results = await asyncio.gather(*(
                counters[i % 2].increment_usage("u1", "bidderChecks") for i in range(20)
            ))
            return results, await SqlUsageStore(session_factory).get("u1")

        results, record = asyncio.run(scenario())
        assert None not in results
        assert record.bidder_checks == 20

    def test_locked_database_is_retried(self, session_factory):
        class LockedOnceStore(SqlUsageStore):
            locked = True

            async def _read(self, db, user_id):
                if self.locked:
                    self.locked = False
                    raise OperationalError("SELECT", {}, Exception("database is locked"))
                return await super()._read(db, user_id)

        async def scenario():
            store = LockedOnceStore(session_factory)
            count = await UsageCounter(store).increment_usage("u1", "bidderChecks")
            return count, store.locked

        assert asyncio.run(scenario()) == (1, False)

    def test_exhausted_attempts_raise_store_error(self, session_factory):
        class AlwaysLockedStore(SqlUsageStore):
            async def _read(self, db, user_id):
                raise OperationalError("SELECT", {}, Exception("database is locked"))

        store = AlwaysLockedStore(session_factory, max_attempts=2)
        with pytest.raises(StoreError, match="after 2 attempts"):
            asyncio.run(store.run_transaction("u1", lambda record: UsageRecord()))

    def test_retry_delay_is_capped(self):
        assert all(0 <= SqlUsageStore.retry_delay(attempt) <= 0.5 for attempt in range(30))


class TestReservation:
    def test_reserve_counts_without_touching_subscription(self):
        async def scenario():
            store = InMemoryUsageStore()
            counter = UsageCounter(store, SubscriptionPolicy(force_subscribed=True))
            count = await counter.reserve(Tenant("u1"), "bidderChecks", AuditGate(max_free_audits=3))
            before_settle = await store.get("u1")
            await counter.settle("u1")
            return count, before_settle, await store.get("u1")

        count, before_settle, after_settle = asyncio.run(scenario())
        assert count == 1
        assert before_settle == UsageRecord(bidder_checks=1, subscribed=False)
        assert after_settle == UsageRecord(bidder_checks=1, subscribed=True)

    def test_reserve_refuses_past_the_limit(self):
        async def scenario():
            store = InMemoryUsageStore()
            counter = UsageCounter(store, SubscriptionPolicy(force_subscribed=False))
            gate = AuditGate(max_free_audits=2)
            await counter.reserve(Tenant("u1"), "bidderChecks", gate)
            await counter.reserve(Tenant("u1"), "initiatorChecks", gate)
            with pytest.raises(UsageLimitExceeded):
                await counter.reserve(Tenant("u1"), "bidderChecks", gate)
            return await store.get("u1")

        assert asyncio.run(scenario()).total_checks == 2

    def test_concurrent_reservations_respect_the_limit(self, session_factory):
        async def scenario():
            store = SqlUsageStore(session_factory)
            counter = UsageCounter(store, SubscriptionPolicy(force_subscribed=False))
            gate = AuditGate(max_free_audits=3)
            results = await asyncio.gather(
                *(counter.reserve(Tenant("u1"), "bidderChecks", gate) for _ in range(8)),
                return_exceptions=True
            )
            return results, await store.get("u1")

        results, record = asyncio.run(scenario())
        assert sorted(r for r in results if isinstance(r, int)) == [1, 2, 3]
        assert sum(1 for r in results if isinstance(r, UsageLimitExceeded)) == 5
        assert record.bidder_checks == 3

    def test_release_gives_the_slot_back(self):
        async def scenario():
            store = InMemoryUsageStore()
            counter = UsageCounter(store, SubscriptionPolicy(force_subscribed=False))
            await counter.reserve(Tenant("u1"), AuditRole.INITIATOR, AuditGate(max_free_audits=1))
            await counter.release("u1", AuditRole.INITIATOR)
            await counter.release("u1", AuditRole.INITIATOR)
            return await store.get("u1")

        assert asyncio.run(scenario()) == UsageRecord()

    def test_store_failure_during_reserve_is_swallowed(self):
        counter = UsageCounter(FailingUsageStore())
        result = asyncio.run(counter.reserve(Tenant("u1"), "bidderChecks", AuditGate(max_free_audits=3)))
        assert result is None
