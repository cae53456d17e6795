from dataclasses import replace
from datetime import datetime
from typing import Iterable, List, Optional

from .types import Completion, MANAGER_ROLE, Stage, Vehicle


def can_access_stage(user_roles: Iterable[str], stage: Stage) -> bool:
    """Managers see every stage; everyone else only the stages their role owns."""
    roles = set(user_roles or ())
    return MANAGER_ROLE in roles or stage.required_role in roles


def accessible_stages(user_roles: Iterable[str], stages: Iterable[Stage]) -> List[Stage]:
    roles = set(user_roles or ())
    return sorted((s for s in stages if can_access_stage(roles, s)), key=lambda s: s.order)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = str(value).strip()
    return value or None


def apply_completion(
    vehicle: Vehicle,
    stage: Stage,
    user: str,
    new_value: Optional[str],
    now: datetime,
    existing: Optional[Completion] = None,
) -> Optional[Completion]:
    """
    Next completion record for (vehicle, stage).

    A non-empty value completes the stage. An empty value clears an existing
    record (value/completed_* nulled, cleared_at stamped) instead of deleting it.
    Returns None when there is nothing to clear (no record, or one already
    cleared). Access is checked by the caller.
    """
    value = _clean(new_value)
    if value is not None:
        return Completion(
            vehicle_id=vehicle.id,
            stage_id=stage.id,
            value=value,
            completed_by=user,
            completed_at=now,
            cleared_at=None,
        )

    # nothing to clear: no row, or the row is already cleared
    if existing is None or not existing.satisfied:
        return None

    return replace(existing, value=None, completed_by=None, completed_at=None, cleared_at=now)
