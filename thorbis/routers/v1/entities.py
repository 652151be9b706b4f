"""Lifecycle-managed entity router — one set of endpoints for every entity type.

Pattern:
  1. Resolve the actor (gateway headers) and the lifecycle engine via Depends
  2. Instantiate EntityService with (session, client, engine, entity_type,
     reference validator)
  3. Call the service and wrap the result in a response envelope
  4. Schedule post-mutation notifications as background tasks
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from thorbis.core.config import settings
from thorbis.core.dependencies import (
    enforce_write_rate_limit,
    get_engine,
    get_notifier,
    get_reference_validator,
)
from thorbis.core.pagination import PaginationParams
from thorbis.core.response import DataResponse, ListResponse, paginated
from thorbis.core.security import get_current_actor
from thorbis.db.base import get_db
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.lifecycle.notifications import NotificationDispatcher, TransitionEvent
from thorbis.lifecycle.permissions import Actor
from thorbis.schemas.entity import EntityCreate, EntityOut, EntityResult, EntityUpdate, TransitionOut
from thorbis.services.entity import EntityService, MutationResult
from thorbis.services.references import ReferenceValidator

router = APIRouter(prefix="/entities/{entity_type}", tags=["Entities"])


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def _svc(
    session: AsyncSession,
    engine: LifecycleEngine,
    entity_type: str,
    references: Optional[ReferenceValidator] = None,
) -> EntityService:
    return EntityService(session, settings.default_client_id, engine, entity_type, references)


def _result(svc: EntityService, result: MutationResult) -> EntityResult:
    transition = None
    if result.transition is not None:
        transition = TransitionOut(
            from_status=result.transition.from_status,
            to_status=result.transition.to_status,
        )
    return EntityResult(
        data=EntityOut.model_validate(result.entity),
        next_actions=svc.next_actions(result.entity.status),
        transition=transition,
    )


def _notify(
    background: BackgroundTasks,
    notifier: NotificationDispatcher,
    actor: Actor,
    result: MutationResult,
    from_status: Optional[str],
) -> None:
    entity = result.entity
    background.add_task(
        notifier.dispatch,
        TransitionEvent(
            entity_id=entity.id,
            entity_type=entity.entity_type,
            client_id=entity.client_id,
            actor_id=actor.id,
            from_status=from_status,
            to_status=entity.status,
        ),
    )


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("", response_model=ListResponse[EntityOut])
async def list_entities(
    entity_type: str,
    filter_status: Optional[str] = Query(default=None, alias="status", description="Filter by status"),
    assignee_id: Optional[str] = Query(default=None, alias="assigneeId"),
    pagination: PaginationParams = Depends(),
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_engine),
    session: AsyncSession = Depends(get_db),
):
    """List entities of one type (paginated). Filter by ?status= and ?assigneeId=."""
    items, total = await _svc(session, engine, entity_type).list_entities(
        actor, pagination, status=filter_status, assignee_id=assignee_id
    )
    return paginated(
        [EntityOut.model_validate(e) for e in items],
        total, pagination,
    )


@router.post(
    "",
    response_model=EntityResult,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_write_rate_limit)],
)
async def create_entity(
    entity_type: str,
    body: EntityCreate,
    background: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_engine),
    notifier: NotificationDispatcher = Depends(get_notifier),
    references: ReferenceValidator = Depends(get_reference_validator),
    session: AsyncSession = Depends(get_db),
):
    """Create an entity in its type's initial status."""
    svc = _svc(session, engine, entity_type, references)
    result = await svc.create_entity(actor, body)
    await session.commit()  # listeners must only ever see persisted state
    _notify(background, notifier, actor, result, from_status=None)
    return _result(svc, result)


@router.get("/summary", response_model=DataResponse[dict[str, Any]])
async def summarize_entities(
    entity_type: str,
    group_by: Optional[list[str]] = Query(default=None, alias="groupBy"),
    filter_status: Optional[str] = Query(default=None, alias="status"),
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_engine),
    session: AsyncSession = Depends(get_db),
):
    """Totals, per-field breakdowns and duration metrics, recomputed per call."""
    summary = await _svc(session, engine, entity_type).summarize(
        actor, group_by=group_by, status=filter_status
    )
    return {"data": summary.as_dict()}


@router.get("/{entity_id}", response_model=EntityResult)
async def get_entity(
    entity_type: str,
    entity_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_engine),
    session: AsyncSession = Depends(get_db),
):
    svc = _svc(session, engine, entity_type)
    entity = await svc.get_entity(actor, entity_id)
    return _result(svc, MutationResult(entity=entity))


@router.patch(
    "/{entity_id}",
    response_model=EntityResult,
    dependencies=[Depends(enforce_write_rate_limit)],
)
async def update_entity(
    entity_type: str,
    entity_id: str,
    body: EntityUpdate,
    background: BackgroundTasks,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_engine),
    notifier: NotificationDispatcher = Depends(get_notifier),
    references: ReferenceValidator = Depends(get_reference_validator),
    session: AsyncSession = Depends(get_db),
):
    """Apply a status change and/or field edits, guarded by the entity's lifecycle.

    ``version`` must match the stored version; a mismatch returns 409
    VERSION_CONFLICT and the caller should re-fetch and retry.
    """
    svc = _svc(session, engine, entity_type, references)
    result = await svc.update_entity(actor, entity_id, body)
    await session.commit()
    if result.transition is not None:
        _notify(background, notifier, actor, result, from_status=result.transition.from_status)
    return _result(svc, result)


@router.delete(
    "/{entity_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(enforce_write_rate_limit)],
)
async def delete_entity(
    entity_type: str,
    entity_id: str,
    actor: Actor = Depends(get_current_actor),
    engine: LifecycleEngine = Depends(get_engine),
    session: AsyncSession = Depends(get_db),
):
    await _svc(session, engine, entity_type).delete_entity(actor, entity_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
