# recon/routes/vehicles.py
from __future__ import annotations
from datetime import datetime, timezone
from decimal import Decimal
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import text

from .. import get_conn
from ..auth.guards import require_auth, primary_role
from ..services import catalog
from ..services.access import can_access_stage
from ..services.audit import SqlAuditSink
from ..services.completions import record_completion
from ..services.pipeline import vehicle_status
from ..services.vin import is_valid_vin, normalize_vin

vehicles_bp = Blueprint("vehicles", __name__)

# --- helpers -------------------------------------------------

_NUM_FIELDS = {
    "estimate": float,
    "actual": float,
}

_STR_FIELDS = {
    "stock_num", "year", "make", "model", "vin", "notes", "ro_num",
}

_ALLOWED_PATCH_FIELDS = set(_NUM_FIELDS.keys()) | _STR_FIELDS

def _parse_bool(v: str | None) -> bool:
    return bool(v) and v.strip().lower() in {"1", "true", "t", "yes", "y", "on"}

def _now() -> datetime:
    return datetime.now(timezone.utc)

def _coerce_payload(data: dict) -> dict:
    out = {}
    # strings (trim)
    for k in _STR_FIELDS:
        if k in data and data[k] is not None:
            v = str(data[k]).strip()
            out[k] = v if v != "" else None
    if out.get("vin"):
        out["vin"] = normalize_vin(out["vin"])
    # numbers
    for k, caster in _NUM_FIELDS.items():
        if k in data:
            if data[k] is None or data[k] == "":
                out[k] = None
                continue
            try:
                out[k] = caster(data[k])
            except (TypeError, ValueError):
                raise ValueError(f"invalid_{k}")
    return out

def _row_to_dict(row) -> dict:
    d = dict(row)
    d["id"] = str(d["id"])
    for k in ("in_system_date", "created_at", "updated_at"):
        if isinstance(d.get(k), datetime):
            d[k] = d[k].isoformat()
    for k in _NUM_FIELDS:
        if isinstance(d.get(k), Decimal) or isinstance(d.get(k), int):
            d[k] = float(d[k])
    return d

def _audit() -> SqlAuditSink:
    return SqlAuditSink(get_conn)

def _enrich_from_vin(fields: dict) -> None:
    """Fill missing year/make/model from the VIN; never blocks intake."""
    vin = fields.get("vin")
    if not vin or not is_valid_vin(vin):
        return
    if fields.get("year") and fields.get("make") and fields.get("model"):
        return
    decoder = current_app.extensions.get("vin_decoder")
    if decoder is None:
        return
    try:
        decoded = decoder.decode(vin)
    except Exception:
        current_app.logger.warning("VIN enrichment failed for %s (non-fatal)", vin, exc_info=True)
        return
    for k in ("year", "make", "model"):
        if not fields.get(k) and decoded.get(k):
            fields[k] = decoded[k]

# --- routes --------------------------------------------------

@vehicles_bp.get("/vehicles")
@require_auth()
def list_vehicles():
    """
    GET /vehicles -- vehicles with their derived pipeline status.

    Query:
      - include_archived (bool, optional)
      - stage_id (str, optional) - only vehicles currently in this stage
    """
    include_archived = _parse_bool(request.args.get("include_archived"))
    stage_filter = request.args.get("stage_id")
    now = _now()

    with get_conn() as conn:
        stages = catalog.fetch_stages(conn, g.dealership_id)
        rows = catalog.fetch_vehicle_rows(conn, g.dealership_id, include_archived)
        completions = catalog.fetch_completions(conn, g.dealership_id)

    items = []
    for r in rows:
        status = vehicle_status(catalog.vehicle_from_row(r), stages, completions, now)
        if stage_filter and status["current_stage_id"] != stage_filter:
            continue
        items.append({**_row_to_dict(r), **status})

    return jsonify({"vehicles": items, "count": len(items)}), 200


@vehicles_bp.post("/vehicles")
@require_auth()
def create_vehicle():
    data = request.get_json(silent=True) or {}
    try:
        fields = _coerce_payload(data)
    except ValueError as e:
        return {"error": "bad_request", "message": str(e)}, 400

    _enrich_from_vin(fields)
    fields["dealership_id"] = g.dealership_id
    fields["in_system_date"] = _now()

    cols = ", ".join(fields.keys())
    vals = ", ".join(f":{k}" for k in fields)

    with get_conn() as conn:
        tx = conn.begin()
        try:
            row = conn.execute(
                text(f"""
                    INSERT INTO vehicles ({cols})
                    VALUES ({vals})
                    RETURNING {catalog.VEHICLE_COLUMNS}
                """),
                fields,
            ).mappings().one()
            tx.commit()
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("create_vehicle failed")
            return {"error": "server_error"}, 500

    vehicle = catalog.vehicle_from_row(row)
    _audit().record(
        "create", vehicle.id, None, None, vehicle.description, g.user_name,
        actor_role=primary_role(), dealership_id=g.dealership_id, vehicle_desc=vehicle.description,
    )
    return jsonify({"vehicle": _row_to_dict(row)}), 201


@vehicles_bp.get("/vehicles/<uuid:vehicle_id>")
@require_auth()
def get_vehicle(vehicle_id):
    """Vehicle with every stage, its completion, and whether the caller may edit it."""
    vid = str(vehicle_id)
    now = _now()
    with get_conn() as conn:
        row = catalog.fetch_vehicle_row(conn, g.dealership_id, vid)
        if not row:
            return {"error": "not_found"}, 404
        stages = catalog.fetch_stages(conn, g.dealership_id)
        completions = catalog.fetch_completions(conn, g.dealership_id, vehicle_id=vid)

    vehicle = catalog.vehicle_from_row(row)
    by_stage = {c.stage_id: c for c in completions}
    stage_items = []
    for s in stages:
        c = by_stage.get(s.id)
        stage_items.append({
            **catalog.stage_to_dict(s),
            "can_access": can_access_stage(g.user_roles, s),
            "completion": catalog.completion_to_dict(c) if c else None,
        })

    return jsonify({
        "vehicle": {**_row_to_dict(row), **vehicle_status(vehicle, stages, completions, now)},
        "stages": stage_items,
    }), 200


@vehicles_bp.patch("/vehicles/<uuid:vehicle_id>")
@require_auth()
def patch_vehicle(vehicle_id):
    vid = str(vehicle_id)
    data = request.get_json(silent=True) or {}
    try:
        updates = _coerce_payload(data)
    except ValueError as e:
        return {"error": "bad_request", "message": str(e)}, 400
    updates = {k: v for k, v in updates.items() if k in _ALLOWED_PATCH_FIELDS}
    if not updates:
        return {"error": "bad_request", "message": "no valid fields"}, 400

    sets = ", ".join(f"{k} = :{k}" for k in updates.keys())
    params = {**updates, "vid": vid, "did": g.dealership_id}

    with get_conn() as conn:
        tx = conn.begin()
        try:
            old = catalog.fetch_vehicle_row(conn, g.dealership_id, vid)
            if not old:
                tx.rollback()
                return {"error": "not_found"}, 404

            row = conn.execute(
                text(f"""
                    UPDATE vehicles
                    SET {sets}, updated_at = CURRENT_TIMESTAMP
                    WHERE id = :vid AND dealership_id = :did
                    RETURNING {catalog.VEHICLE_COLUMNS}
                """),
                params,
            ).mappings().one()
            tx.commit()
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("patch_vehicle failed")
            return {"error": "server_error"}, 500

    vehicle = catalog.vehicle_from_row(row)
    sink = _audit()
    for k, new in updates.items():
        before = old.get(k)
        if before is not None and k in _NUM_FIELDS:
            before = float(before)
        if before != new:
            sink.record(
                "update", vid, k, before, new, g.user_name,
                actor_role=primary_role(), dealership_id=g.dealership_id, vehicle_desc=vehicle.description,
            )
    return jsonify({"vehicle": _row_to_dict(row)}), 200


@vehicles_bp.post("/vehicles/<uuid:vehicle_id>/archive")
@require_auth()
def archive_vehicle(vehicle_id):
    """Soft delete; archived vehicles drop out of the pipeline views but keep their history."""
    vid = str(vehicle_id)
    with get_conn() as conn:
        tx = conn.begin()
        try:
            row = catalog.fetch_vehicle_row(conn, g.dealership_id, vid)
            if not row:
                tx.rollback()
                return {"error": "not_found"}, 404
            if row["archived"]:
                tx.rollback()
                return jsonify({"archived": True, "id": vid, "changed": False}), 200

            conn.execute(
                text("""
                    UPDATE vehicles
                    SET archived = true, updated_at = CURRENT_TIMESTAMP
                    WHERE id = :vid AND dealership_id = :did
                """),
                {"vid": vid, "did": g.dealership_id},
            )
            tx.commit()
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("archive_vehicle failed")
            return {"error": "server_error"}, 500

    vehicle = catalog.vehicle_from_row(row)
    _audit().record(
        "archive", vid, "archived", False, True, g.user_name,
        actor_role=primary_role(), dealership_id=g.dealership_id, vehicle_desc=vehicle.description,
    )
    return jsonify({"archived": True, "id": vid, "changed": True}), 200


@vehicles_bp.put("/vehicles/<uuid:vehicle_id>/stages/<uuid:stage_id>")
@require_auth()
def set_stage_completion(vehicle_id, stage_id):
    """
    PUT /vehicles/{vehicle_id}/stages/{stage_id} -- complete or clear one stage.

    Request (JSON):
      - value (str) - non-empty completes the stage, empty clears it

    Responses:
      - 200: {"completion": {...} | null, "status": {...}}
      - 403: {"error":"forbidden"} - caller's roles do not own the stage
      - 404: {"error":"not_found"}
      - 500: {"error":"server_error"}
    """
    vid, sid = str(vehicle_id), str(stage_id)
    data = request.get_json(silent=True) or {}
    value = data.get("value")
    if value is not None and not isinstance(value, (str, int, float, bool)):
        return {"error": "bad_request", "message": "value must be a string"}, 400
    if isinstance(value, bool):
        value = "true" if value else ""
    now = _now()

    with get_conn() as conn:
        tx = conn.begin()
        try:
            row = catalog.fetch_vehicle_row(conn, g.dealership_id, vid)
            stage = catalog.fetch_stage(conn, g.dealership_id, sid)
            if not row or not stage:
                tx.rollback()
                return {"error": "not_found"}, 404
            if not can_access_stage(g.user_roles, stage):
                tx.rollback()
                return {"error": "forbidden", "message": "stage not accessible for your roles"}, 403

            vehicle = catalog.vehicle_from_row(row)
            record, old_value = record_completion(conn, vehicle, stage, g.user_name, value, now)
            tx.commit()
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("set_stage_completion failed")
            return {"error": "server_error"}, 500

        stages = catalog.fetch_stages(conn, g.dealership_id)
        completions = catalog.fetch_completions(conn, g.dealership_id, vehicle_id=vid)

    if record is not None:
        _audit().record(
            "complete" if record.satisfied else "clear",
            vid, stage.completion_field or stage.name, old_value, record.value, g.user_name,
            actor_role=primary_role(), dealership_id=g.dealership_id, vehicle_desc=vehicle.description,
        )

    return jsonify({
        "completion": catalog.completion_to_dict(record) if record else None,
        "status": vehicle_status(vehicle, stages, completions, now),
    }), 200
