"""Read-only aggregates over entity collections.

Summaries are never persisted; they are recomputed from whatever collection
the caller hands in. Entities may be plain mappings or
:class:`~thorbis.lifecycle.entity.EntitySnapshot` instances.
"""

from __future__ import annotations

import math
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, Mapping, Optional, Sequence

from thorbis.lifecycle.entity import EntitySnapshot

UNSPECIFIED = "unspecified"


@dataclass(frozen=True)
class SummaryConfig:
    """What to aggregate for one entity type.

    ``durations`` maps a metric name to a ``(start_field, end_field)`` pair;
    the metric is the average number of hours between the two timestamps.
    """

    value_field: str = "total_cost"
    group_by: tuple[str, ...] = ("status",)
    durations: Mapping[str, tuple[str, str]] = field(default_factory=dict)


@dataclass(frozen=True)
class Summary:
    total_count: int = 0
    total_value: float = 0.0
    average_value: float = 0.0
    breakdowns: Mapping[str, Mapping[str, int]] = field(default_factory=dict)
    metrics: Mapping[str, float] = field(default_factory=dict)

    def as_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "total_count": self.total_count,
            "total_value": self.total_value,
            "average_value": self.average_value,
        }
        for name, counts in self.breakdowns.items():
            out[f"{name}_breakdown"] = dict(counts)
        out.update(self.metrics)
        return out


def _lookup(entity: Any, name: str) -> Any:
    if isinstance(entity, EntitySnapshot):
        return entity.get(name)
    if isinstance(entity, Mapping):
        if name in entity:
            return entity[name]
        nested = entity.get("fields")
        if isinstance(nested, Mapping):
            return nested.get(name)
        return None
    return getattr(entity, name, None)


def _number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (a trailing ``Z`` is accepted); ``None`` if it is not one."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _hours_between(start: Any, end: Any) -> Optional[float]:
    started, ended = parse_timestamp(start), parse_timestamp(end)
    if started is None or ended is None:
        return None
    # Naive and aware timestamps cannot be subtracted.
    if (started.tzinfo is None) != (ended.tzinfo is None):
        return None
    return (ended - started).total_seconds() / 3600.0


def _group_key(value: Any) -> str:
    if value is None or value == "":
        return UNSPECIFIED
    if isinstance(value, Enum):
        return str(value.value)
    return str(value)


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def compute_summary(
    entities: Iterable[Any],
    group_by: Optional[Sequence[str]] = None,
    config: Optional[SummaryConfig] = None,
) -> Summary:
    """Aggregate *entities* into a :class:`Summary`.

    Every entity counts towards ``total_count``; an entity lacking the value
    field, or one of a duration metric's timestamps, is skipped only for that
    metric. Group values that are missing land in the ``unspecified`` bucket
    so each breakdown sums to the total count.
    """
    config = config or SummaryConfig()
    fields = tuple(group_by) if group_by else config.group_by

    items = list(entities)
    values: list[float] = []
    counters: dict[str, Counter] = {name: Counter() for name in fields}
    durations: dict[str, list[float]] = {name: [] for name in config.durations}

    for entity in items:
        value = _number(_lookup(entity, config.value_field))
        if value is not None:
            values.append(value)
        for name in fields:
            counters[name][_group_key(_lookup(entity, name))] += 1
        for metric, (start_field, end_field) in config.durations.items():
            hours = _hours_between(_lookup(entity, start_field), _lookup(entity, end_field))
            if hours is not None:
                durations[metric].append(hours)

    return Summary(
        total_count=len(items),
        total_value=float(sum(values)),
        average_value=_mean(values),
        breakdowns={name: dict(counter) for name, counter in counters.items()},
        metrics={metric: _mean(hours) for metric, hours in durations.items()},
    )
