from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy import text
from sqlalchemy.engine import Connection

from .access import apply_completion
from .catalog import completion_from_row
from .types import Completion, Stage, Vehicle


def fetch_completion(conn: Connection, vehicle_id: str, stage_id: str) -> Optional[Completion]:
    row = conn.execute(
        text("""
            SELECT vehicle_id, stage_id, completion_value, completed_by, completed_at, cleared_at
            FROM stage_completions
            WHERE vehicle_id = :vid AND stage_id = :sid
        """),
        {"vid": vehicle_id, "sid": stage_id},
    ).mappings().one_or_none()
    return completion_from_row(row) if row else None


def upsert_completion(conn: Connection, c: Completion) -> None:
    # one row per (vehicle, stage); clearing overwrites, never deletes
    conn.execute(
        text("""
            INSERT INTO stage_completions
              (vehicle_id, stage_id, completion_value, completed_by, completed_at, cleared_at)
            VALUES (:vid, :sid, :value, :by, :at, :cleared)
            ON CONFLICT (vehicle_id, stage_id)
            DO UPDATE SET completion_value = EXCLUDED.completion_value,
                          completed_by     = EXCLUDED.completed_by,
                          completed_at     = EXCLUDED.completed_at,
                          cleared_at       = EXCLUDED.cleared_at
        """),
        {
            "vid": c.vehicle_id,
            "sid": c.stage_id,
            "value": c.value,
            "by": c.completed_by,
            "at": c.completed_at,
            "cleared": c.cleared_at,
        },
    )


def record_completion(
    conn: Connection,
    vehicle: Vehicle,
    stage: Stage,
    actor: str,
    new_value: Optional[str],
    now: datetime,
) -> Tuple[Optional[Completion], Optional[str]]:
    """
    Apply one completion transition and persist it on `conn`.
    Returns (new_record, old_value); new_record is None when nothing changed.
    The caller owns the transaction.
    """
    existing = fetch_completion(conn, vehicle.id, stage.id)
    old_value = existing.value if existing else None

    record = apply_completion(vehicle, stage, actor, new_value, now, existing=existing)
    if record is None:
        return None, old_value

    upsert_completion(conn, record)
    return record, old_value
