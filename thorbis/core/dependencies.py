"""FastAPI dependencies for the objects the app factory puts on ``app.state``."""


from fastapi import Depends, Request

from thorbis.core.exceptions import RateLimitedError
from thorbis.core.security import get_current_actor
from thorbis.lifecycle.engine import LifecycleEngine
from thorbis.lifecycle.notifications import NotificationDispatcher
from thorbis.lifecycle.permissions import Actor
from thorbis.lifecycle.rate_limit import FixedWindowRateLimiter
from thorbis.services.references import ReferenceValidator


def get_engine(request: Request) -> LifecycleEngine:
    return request.app.state.lifecycle_engine


def get_notifier(request: Request) -> NotificationDispatcher:
    return request.app.state.notifier


def get_rate_limiter(request: Request) -> FixedWindowRateLimiter:
    return request.app.state.rate_limiter


def get_reference_validator(request: Request) -> ReferenceValidator:
    return request.app.state.reference_validator


def enforce_write_rate_limit(
    request: Request,
    actor: Actor = Depends(get_current_actor),
    limiter: FixedWindowRateLimiter = Depends(get_rate_limiter),
) -> None:
    """Throttle writes per (actor, entity type)."""
    resource = request.path_params.get("entity_type") or request.url.path
    decision = limiter.hit(actor.id, f"write:{resource}")
    if not decision.allowed:
        raise RateLimitedError(decision.retry_after, decision.limit)
