import asyncio
import os
import pathlib
import sys

import pytest

ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

os.environ.setdefault("API_ENV", "test")

from database.connection import create_engine_for, create_session_factory, init_db
from services.audit import ComplianceAuditService
from services.invoker import RetryingInvoker
from services.report_store import InMemoryReportStore
from services.usage import AuditGate, InMemoryUsageStore, SubscriptionPolicy, UsageCounter
from tests.factories import RecordingSleep, ScriptedUpstream, report_payload


@pytest.fixture
def session_factory(tmp_path):
    engine = create_engine_for(f"sqlite+aiosqlite:///{tmp_path / 'audit.db'}")
    asyncio.run(init_db(engine))
    yield create_session_factory(engine)
    asyncio.run(engine.dispose())


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def upstream():
    return ScriptedUpstream(report_payload([1, 0.5, 0]))


@pytest.fixture
def invoker(upstream, sleep):
    return RetryingInvoker(
        api_key="test-key",
        endpoint="https://llm.test/v1beta/models/test-model:generateContent",
        max_retries=3,
        base_delay=1.0,
        transport=upstream.transport(),
        sleep=sleep,
    )


@pytest.fixture
def audit_service(invoker):
    usage_store = InMemoryUsageStore()
    return ComplianceAuditService(
        invoker=invoker,
        usage_store=usage_store,
        report_store=InMemoryReportStore(),
        counter=UsageCounter(usage_store, SubscriptionPolicy(force_subscribed=True)),
        gate=AuditGate(max_free_audits=3),
    )


@pytest.fixture
def client(audit_service):
    from fastapi.testclient import TestClient

    from api.main import app
    from api.middleware.rate_limit import limiter
    from api.state import get_audit_service

    limiter.enabled = False
    app.dependency_overrides[get_audit_service] = lambda: audit_service
    yield TestClient(app)
    app.dependency_overrides.clear()
    limiter.enabled = True

