"""Read-only view of the configured lifecycles, plus a transition dry run."""


from fastapi import APIRouter, Depends, Query

from thorbis.core.dependencies import get_engine
from thorbis.core.exceptions import UnknownEntityTypeError
from thorbis.core.response import DataResponse
from thorbis.lifecycle.definitions import EntityLifecycle, UnknownEntityType
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.schemas.entity import LifecycleOut, TransitionCheckOut

router = APIRouter(prefix="/lifecycles", tags=["Lifecycles"])


def _lifecycle(engine: LifecycleEngine, entity_type: str) -> EntityLifecycle:
    try:
        return engine.lifecycle(entity_type)
    except UnknownEntityType as exc:
        raise UnknownEntityTypeError(entity_type) from exc


@router.get("", response_model=DataResponse[list[LifecycleOut]])
async def list_lifecycles(engine: LifecycleEngine = Depends(get_engine)):
    return {"data": [LifecycleOut.from_lifecycle(lc) for lc in engine.registry]}


@router.get("/{entity_type}", response_model=DataResponse[LifecycleOut])
async def get_lifecycle(entity_type: str, engine: LifecycleEngine = Depends(get_engine)):
    return {"data": LifecycleOut.from_lifecycle(_lifecycle(engine, entity_type))}


@router.get("/{entity_type}/transitions", response_model=DataResponse[TransitionCheckOut])
async def check_transition(
    entity_type: str,
    from_status: str = Query(alias="from"),
    to_status: str = Query(alias="to"),
    engine: LifecycleEngine = Depends(get_engine),
):
    """Would ``from → to`` be accepted? Always 200; the verdict is in the body."""
    _lifecycle(engine, entity_type)
    decision = engine.validate_transition(entity_type, from_status, to_status)
    return {"data": TransitionCheckOut.from_decision(decision)}
