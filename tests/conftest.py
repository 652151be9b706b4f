"""
Pytest configuration and shared fixtures
"""
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

import pytest

# Settings are read at import time: point the app at a throwaway database first.
_TMP_DIR = Path(tempfile.mkdtemp(prefix="thorbis-tests-"))
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TMP_DIR / 'test.db'}"
os.environ["APP_ENV"] = "test"
os.environ["AUTO_CREATE_TABLES"] = "true"

from fastapi.testclient import TestClient  # noqa: E402

from thorbis.lifecycle import Actor, EntitySnapshot, LifecycleEngine, Role  # noqa: E402
from thorbis.lifecycle.notifications import NotificationDispatcher  # noqa: E402
from thorbis.lifecycle.rate_limit import FixedWindowRateLimiter  # noqa: E402
from thorbis.main import create_app  # noqa: E402

FIXED_NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def engine():
    """Lifecycle engine over the built-in registry with a frozen clock"""
    return LifecycleEngine(clock=lambda: FIXED_NOW)


@pytest.fixture
def viewer():
    return Actor.for_role("user-viewer", Role.VIEWER)


@pytest.fixture
def technician():
    return Actor.for_role("tech-1", Role.TECHNICIAN)


@pytest.fixture
def other_technician():
    return Actor.for_role("tech-2", Role.TECHNICIAN)


@pytest.fixture
def manager():
    return Actor.for_role("mgr-1", Role.MANAGER)


@pytest.fixture
def admin():
    return Actor.for_role("admin-1", Role.ADMIN)


@pytest.fixture
def work_order():
    """Factory for work order snapshots assigned to tech-1"""

    def _make(status="assigned", assignee_id="tech-1", **fields):
        return EntitySnapshot(
            id="wo-001",
            entity_type="workorder",
            status=status,
            assignee_id=assignee_id,
            created_by="mgr-1",
            updated_by="mgr-1",
            version=3,
            fields={"total_cost": 450.0, "priority": "high", **fields},
        )

    return _make


@pytest.fixture
def recorded_events():
    return []


@pytest.fixture
def notifier(recorded_events):
    """Dispatcher that records events instead of writing audit rows"""
    dispatcher = NotificationDispatcher()

    async def record(event):
        recorded_events.append(event)

    dispatcher.subscribe(record)
    return dispatcher


@pytest.fixture
def client(notifier):
    """HTTP client over a fresh app (fresh rate limiter, recording notifier)"""
    app = create_app(
        notifier=notifier,
        rate_limiter=FixedWindowRateLimiter(limit=1000, window_seconds=60),
    )
    with TestClient(app) as c:
        yield c


def auth_headers(actor_id="mgr-1", role="manager"):
    return {"X-Actor-Id": actor_id, "X-Actor-Role": role}
