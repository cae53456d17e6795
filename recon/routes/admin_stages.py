# recon/routes/admin_stages.py
from __future__ import annotations
from dataclasses import replace
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from .. import get_conn
from ..auth.guards import require_manager
from ..services import catalog
from ..services.types import CompletionKind, Stage

admin_stages_bp = Blueprint("admin_stages", __name__)

_CONFLICT_CODES = {"duplicate_order", "multiple_terminal"}

# request field -> Stage attribute
_FIELD_MAP = {
    "order": "order",
    "stage_name": "name",
    "role": "required_role",
    "completion_field": "completion_field",
    "completion_type": "completion_kind",
    "list_name": "list_name",
    "target_hours": "target_hours",
    "stage_color": "color",
    "is_terminal": "is_terminal",
}

def _coerce(data: dict) -> dict:
    """Request JSON -> Stage attribute overrides. Raises ValueError(<code>)."""
    out = {}
    for key, attr in _FIELD_MAP.items():
        if key not in data:
            continue
        v = data[key]
        if key == "order":
            try:
                v = int(v)
            except (TypeError, ValueError):
                raise ValueError("invalid_order")
        elif key == "target_hours":
            if v is not None and v != "":
                try:
                    v = int(v)
                except (TypeError, ValueError):
                    raise ValueError("invalid_target_hours")
            else:
                v = None
        elif key == "completion_type":
            try:
                v = CompletionKind(str(v or "").strip().lower())
            except ValueError:
                raise ValueError("invalid_completion_type")
        elif key == "is_terminal":
            v = bool(v)
        elif key == "list_name":
            v = (str(v).strip() or None) if v is not None else None
        else:
            v = str(v or "").strip()
        out[attr] = v
    return out

def _params(s: Stage) -> dict:
    return {
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

def _validation_error(code: str):
    status = 409 if code in _CONFLICT_CODES else 400
    return {"error": code}, status

def _is_unique_violation(e: IntegrityError) -> bool:
    orig = getattr(e, "orig", None)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == "23505"

@admin_stages_bp.post("/admin/stages")
@require_manager
def create_stage():
    data = request.get_json(silent=True) or {}
    try:
        fields = _coerce(data)
    except ValueError as e:
        return _validation_error(str(e))
    if not fields.get("name") or "order" not in fields or not fields.get("required_role"):
        return {"error": "bad_request", "message": "stage_name, order and role are required"}, 400

    candidate = Stage(id=None, **fields)

    with get_conn() as conn:
        tx = conn.begin()
        try:
            existing = catalog.fetch_stages(conn, g.dealership_id)
            try:
                catalog.validate_stage_catalog(existing + [candidate])
            except ValueError as e:
                tx.rollback()
                return _validation_error(str(e))

            row = conn.execute(
                text(f"""
                    INSERT INTO pipeline_stages
                      (dealership_id, "order", stage_name, role, completion_field, completion_type,
                       list_name, target_hours, stage_color, is_terminal)
                    VALUES
                      (:did, :order, :stage_name, :role, :completion_field, :completion_type,
                       :list_name, :target_hours, :stage_color, :is_terminal)
                    RETURNING {catalog.STAGE_COLUMNS}
                """),
                {"did": g.dealership_id, **_params(candidate)},
            ).mappings().one()
            tx.commit()
            return jsonify({"stage": catalog.stage_to_dict(catalog.stage_from_row(row))}), 201

        except IntegrityError as e:
            if tx.is_active:
                tx.rollback()
            if _is_unique_violation(e):
                return {"error": "duplicate_order"}, 409
            current_app.logger.exception("create_stage failed (integrity)")
            return {"error": "server_error"}, 500
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("create_stage failed")
            return {"error": "server_error"}, 500

@admin_stages_bp.patch("/admin/stages/<uuid:stage_id>")
@require_manager
def update_stage(stage_id):
    sid = str(stage_id)
    data = request.get_json(silent=True) or {}
    try:
        fields = _coerce(data)
    except ValueError as e:
        return _validation_error(str(e))
    if not fields:
        return {"error": "bad_request", "message": "no valid fields"}, 400

    with get_conn() as conn:
        tx = conn.begin()
        try:
            existing = catalog.fetch_stages(conn, g.dealership_id)
            current = next((s for s in existing if s.id == sid), None)
            if current is None:
                tx.rollback()
                return {"error": "not_found"}, 404

            updated = replace(current, **fields)
            try:
                catalog.validate_stage_catalog([updated if s.id == sid else s for s in existing])
            except ValueError as e:
                tx.rollback()
                return _validation_error(str(e))

            row = conn.execute(
                text(f"""
                    UPDATE pipeline_stages
                    SET "order" = :order, stage_name = :stage_name, role = :role,
                        completion_field = :completion_field, completion_type = :completion_type,
                        list_name = :list_name, target_hours = :target_hours,
                        stage_color = :stage_color, is_terminal = :is_terminal
                    WHERE id = :sid AND dealership_id = :did
                    RETURNING {catalog.STAGE_COLUMNS}
                """),
                {"sid": sid, "did": g.dealership_id, **_params(updated)},
            ).mappings().one()
            tx.commit()
            return jsonify({"stage": catalog.stage_to_dict(catalog.stage_from_row(row))}), 200

        except IntegrityError as e:
            if tx.is_active:
                tx.rollback()
            if _is_unique_violation(e):
                return {"error": "duplicate_order"}, 409
            current_app.logger.exception("update_stage failed (integrity)")
            return {"error": "server_error"}, 500
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("update_stage failed")
            return {"error": "server_error"}, 500

@admin_stages_bp.delete("/admin/stages/<uuid:stage_id>")
@require_manager
def delete_stage(stage_id):
    """Deleting a stage cascades to its completions."""
    sid = str(stage_id)
    with get_conn() as conn:
        tx = conn.begin()
        try:
            row = conn.execute(
                text("DELETE FROM pipeline_stages WHERE id = :sid AND dealership_id = :did RETURNING id"),
                {"sid": sid, "did": g.dealership_id},
            ).mappings().one_or_none()
            if not row:
                tx.rollback()
                return {"error": "not_found"}, 404
            tx.commit()
            return jsonify({"deleted": True, "id": str(row["id"])}), 200
        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("delete_stage failed")
            return {"error": "server_error"}, 500
