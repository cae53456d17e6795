"""
Derived pipeline state: where each vehicle sits, how old it is, and how the
fleet is doing against stage SLAs.

Everything here is a pure function of its arguments. `now` is always passed
in by the caller.
"""
import math
from datetime import datetime
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .types import Completion, PENDING, ROLES, MANAGER_ROLE, Stage, StageMetric, Vehicle

SECONDS_PER_DAY = 86400

AGING_BUCKETS = (
    ("0-3", 0, 3),
    ("4-7", 4, 7),
    ("8-14", 8, 14),
    ("15+", 15, None),
)


def ordered(stages: Iterable[Stage]) -> List[Stage]:
    return sorted(stages, key=lambda s: s.order)


def _index_completions(vehicle_id: str, completions: Iterable[Completion]) -> Dict[str, Completion]:
    return {c.stage_id: c for c in completions if c.vehicle_id == vehicle_id}


def current_stage(vehicle: Vehicle, stages: Sequence[Stage], completions: Iterable[Completion]) -> Stage:
    """
    First stage (by order) whose completion is missing or not satisfied.
    When every stage is satisfied, the first terminal stage; PENDING if none is flagged.
    """
    by_stage = _index_completions(vehicle.id, completions)
    stages_sorted = ordered(stages)

    for stage in stages_sorted:
        c = by_stage.get(stage.id)
        if c is None or not c.satisfied:
            return stage

    for stage in stages_sorted:
        if stage.is_terminal:
            return stage
    return PENDING


def age_in_days(vehicle: Vehicle, now: datetime) -> int:
    seconds = (now - vehicle.intake_timestamp).total_seconds()
    return max(0, math.floor(seconds / SECONDS_PER_DAY))


def is_overdue(vehicle: Vehicle, stage: Stage, now: datetime) -> bool:
    # day-granular age against an hour target
    if stage.target_hours is None:
        return False
    return age_in_days(vehicle, now) > stage.target_hours / 24


def _active(vehicles: Iterable[Vehicle]) -> List[Vehicle]:
    return [v for v in vehicles if not v.archived]


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def fleet_sla_compliance(
    vehicles: Iterable[Vehicle],
    stages: Sequence[Stage],
    completions: Iterable[Completion],
    now: datetime,
) -> int:
    """Percentage (0-100) of active vehicles not overdue in their current stage."""
    active = _active(vehicles)
    if not active:
        return 100

    completions = list(completions)
    on_time = 0
    for v in active:
        stage = current_stage(v, stages, completions)
        if not is_overdue(v, stage, now):
            on_time += 1
    return _round_half_up(on_time / len(active) * 100)


def stage_metrics(
    vehicles: Iterable[Vehicle],
    stages: Sequence[Stage],
    completions: Iterable[Completion],
    now: datetime,
) -> List[StageMetric]:
    completions = list(completions)
    buckets: Dict[Optional[str], List[Vehicle]] = {}
    for v in _active(vehicles):
        stage = current_stage(v, stages, completions)
        buckets.setdefault(stage.id, []).append(v)

    out: List[StageMetric] = []
    for stage in ordered(stages):
        members = buckets.get(stage.id, [])
        ages = [age_in_days(v, now) for v in members]
        out.append(StageMetric(
            stage=stage,
            count=len(members),
            avg_age_days=(sum(ages) / len(ages)) if ages else 0,
            overdue_count=sum(1 for v in members if is_overdue(v, stage, now)),
        ))
    return out


def role_queue_counts(
    vehicles: Iterable[Vehicle],
    stages: Sequence[Stage],
    completions: Iterable[Completion],
    roles: Sequence[str] = ROLES,
) -> Dict[str, int]:
    """
    Active vehicles waiting on each role. Manager-owned stages count toward every role;
    vehicles resolved to PENDING belong to no configured stage and count toward none.
    """
    completions = list(completions)
    owners = []
    for v in _active(vehicles):
        stage = current_stage(v, stages, completions)
        if stage is not PENDING:
            owners.append(stage.required_role)
    return {
        role: sum(1 for owner in owners if owner == role or owner == MANAGER_ROLE)
        for role in roles
    }


def aging_buckets(vehicles: Iterable[Vehicle], now: datetime) -> Dict[str, int]:
    counts = {label: 0 for label, _, _ in AGING_BUCKETS}
    for v in _active(vehicles):
        age = age_in_days(v, now)
        for label, low, high in AGING_BUCKETS:
            if age >= low and (high is None or age <= high):
                counts[label] += 1
                break
    return counts


def vehicle_status(
    vehicle: Vehicle,
    stages: Sequence[Stage],
    completions: Iterable[Completion],
    now: datetime,
) -> Mapping[str, object]:
    stage = current_stage(vehicle, stages, completions)
    return {
        "current_stage_id": stage.id,
        "current_stage": stage.name,
        "age_days": age_in_days(vehicle, now),
        "overdue": is_overdue(vehicle, stage, now),
        "is_terminal": stage.is_terminal,
    }
