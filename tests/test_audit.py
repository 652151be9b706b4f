"""
Tests for the audit-trail listener
"""
import uuid

import pytest
from sqlalchemy import select

from thorbis.db.base import async_session_factory, create_tables, engine
from thorbis.domain.audit import AuditTrail
from thorbis.lifecycle.notifications import NotificationDispatcher, TransitionEvent
from thorbis.services.audit import AuditTrailRecorder


@pytest.mark.integration
@pytest.mark.asyncio
async def test_recorder_writes_one_row_per_event():
    await create_tables()
    entity_id = str(uuid.uuid4())
    dispatcher = NotificationDispatcher()
    dispatcher.subscribe(AuditTrailRecorder())
    try:
        for from_status, to_status in ((None, "draft"), ("draft", "sent")):
            failures = await dispatcher.dispatch(
                TransitionEvent(
                    entity_id=entity_id,
                    entity_type="invoice",
                    client_id="default",
                    actor_id="mgr-1",
                    from_status=from_status,
                    to_status=to_status,
                )
            )
            assert failures == 0

        async with async_session_factory() as session:
            rows = (
                await session.execute(
                    select(AuditTrail).where(AuditTrail.entity_id == entity_id).order_by(AuditTrail.occurred_at)
                )
            ).scalars().all()
    finally:
        await engine.dispose()

    assert [row.action for row in rows] == ["created", "status_change_to_sent"]
    assert rows[0].from_status is None
    assert rows[1].from_status == "draft"
    assert rows[1].to_status == "sent"
    assert rows[1].actor_id == "mgr-1"
