from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from .types import Completion, CompletionKind, ROLES, Stage, Vehicle

STAGE_COLUMNS = """
    id, "order", stage_name, role, completion_field, completion_type,
    list_name, target_hours, stage_color, is_terminal
"""

VEHICLE_COLUMNS = """
    id, row_id, stock_num, year, make, model, vin, in_system_date, notes,
    ro_num, estimate, actual, archived, created_at, updated_at
"""

COMPLETION_COLUMNS = """
    sc.vehicle_id, sc.stage_id, sc.completion_value, sc.completed_by,
    sc.completed_at, sc.cleared_at
"""


# ---------- row mappers ----------

def _aware(ts: Optional[datetime]) -> Optional[datetime]:
    if ts is not None and ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


def stage_from_row(r: Mapping[str, Any]) -> Stage:
    return Stage(
        id=str(r["id"]),
        order=int(r["order"]),
        name=str(r["stage_name"]),
        required_role=str(r["role"]),
        completion_kind=CompletionKind(r.get("completion_type") or "checkbox"),
        target_hours=(int(r["target_hours"]) if r.get("target_hours") is not None else None),
        is_terminal=bool(r.get("is_terminal")),
        completion_field=r.get("completion_field") or "",
        list_name=r.get("list_name"),
        color=r.get("stage_color") or "#6B7280",
    )


def vehicle_from_row(r: Mapping[str, Any]) -> Vehicle:
    return Vehicle(
        id=str(r["id"]),
        intake_timestamp=_aware(r["in_system_date"]),
        archived=bool(r.get("archived")),
        stock_num=r.get("stock_num"),
        year=r.get("year"),
        make=r.get("make"),
        model=r.get("model"),
    )


def completion_from_row(r: Mapping[str, Any]) -> Completion:
    return Completion(
        vehicle_id=str(r["vehicle_id"]),
        stage_id=str(r["stage_id"]),
        value=r.get("completion_value"),
        completed_by=r.get("completed_by"),
        completed_at=_aware(r.get("completed_at")),
        cleared_at=_aware(r.get("cleared_at")),
    )


def stage_to_dict(s: Stage) -> dict:
    return {
        "id": s.id,
        "order": s.order,
        "stage_name": s.name,
        "role": s.required_role,
        "completion_field": s.completion_field,
        "completion_type": s.completion_kind.value,
        "list_name": s.list_name,
        "target_hours": s.target_hours,
        "stage_color": s.color,
        "is_terminal": s.is_terminal,
    }


def completion_to_dict(c: Completion) -> dict:
    return {
        "vehicle_id": c.vehicle_id,
        "stage_id": c.stage_id,
        "value": c.value,
        "completed_by": c.completed_by,
        "completed_at": c.completed_at.isoformat() if c.completed_at else None,
        "cleared_at": c.cleared_at.isoformat() if c.cleared_at else None,
        "satisfied": c.satisfied,
    }


# ---------- loaders ----------

def fetch_stages(conn: Connection, dealership_id: str) -> List[Stage]:
    rows = conn.execute(
        text(f"""
            SELECT {STAGE_COLUMNS}
            FROM pipeline_stages
            WHERE dealership_id = :did
            ORDER BY "order" ASC
        """),
        {"did": dealership_id},
    ).mappings().all()
    return [stage_from_row(r) for r in rows]


def fetch_stage(conn: Connection, dealership_id: str, stage_id: str) -> Optional[Stage]:
    row = conn.execute(
        text(f"""
            SELECT {STAGE_COLUMNS}
            FROM pipeline_stages
            WHERE dealership_id = :did AND id = :sid
        """),
        {"did": dealership_id, "sid": stage_id},
    ).mappings().one_or_none()
    return stage_from_row(row) if row else None


def fetch_vehicle_rows(conn: Connection, dealership_id: str, include_archived: bool = False) -> List[Mapping[str, Any]]:
    sql = f"SELECT {VEHICLE_COLUMNS} FROM vehicles WHERE dealership_id = :did"
    if not include_archived:
        sql += " AND archived = false"
    sql += " ORDER BY in_system_date ASC, row_id ASC"
    return conn.execute(text(sql), {"did": dealership_id}).mappings().all()


def fetch_vehicles(conn: Connection, dealership_id: str, include_archived: bool = False) -> List[Vehicle]:
    return [vehicle_from_row(r) for r in fetch_vehicle_rows(conn, dealership_id, include_archived)]


def fetch_vehicle_row(conn: Connection, dealership_id: str, vehicle_id: str) -> Optional[Mapping[str, Any]]:
    return conn.execute(
        text(f"""
            SELECT {VEHICLE_COLUMNS}
            FROM vehicles
            WHERE dealership_id = :did AND id = :vid
        """),
        {"did": dealership_id, "vid": vehicle_id},
    ).mappings().one_or_none()


def fetch_completions(conn: Connection, dealership_id: str, vehicle_id: Optional[str] = None) -> List[Completion]:
    """Completions for every vehicle of the dealership, or for one vehicle."""
    sql = f"""
        SELECT {COMPLETION_COLUMNS}
        FROM stage_completions AS sc
        JOIN vehicles AS v ON v.id = sc.vehicle_id
        WHERE v.dealership_id = :did
    """
    params = {"did": dealership_id}
    if vehicle_id is not None:
        sql += " AND sc.vehicle_id = :vid"
        params["vid"] = vehicle_id
    rows = conn.execute(text(sql), params).mappings().all()
    return [completion_from_row(r) for r in rows]


def fetch_dropdown_lists(conn: Connection, dealership_id: str) -> List[dict]:
    rows = conn.execute(
        text("""
            SELECT id, list_name, "values"
            FROM dropdown_lists
            WHERE dealership_id = :did
            ORDER BY list_name ASC
        """),
        {"did": dealership_id},
    ).mappings().all()
    return [
        {"id": str(r["id"]), "list_name": r["list_name"], "values": list(r["values"] or [])}
        for r in rows
    ]


# ---------- validation ----------

def validate_stage_catalog(stages: Iterable[Stage]) -> None:
    """
    Raise ValueError(<code>) if the catalog is not a usable pipeline:
    orders must be unique and at most one stage may be terminal.
    """
    seen_orders = set()
    terminal = 0
    for s in stages:
        if s.order in seen_orders:
            raise ValueError("duplicate_order")
        seen_orders.add(s.order)
        if not (s.name or "").strip():
            raise ValueError("invalid_stage_name")
        if s.is_terminal:
            terminal += 1
            if terminal > 1:
                raise ValueError("multiple_terminal")
        if s.target_hours is not None and s.target_hours < 0:
            raise ValueError("invalid_target_hours")
        if s.required_role not in ROLES:
            raise ValueError("invalid_role")
        if not isinstance(s.completion_kind, CompletionKind):
            raise ValueError("invalid_completion_type")
        if s.completion_kind is CompletionKind.dropdown and not s.list_name:
            raise ValueError("missing_list_name")
