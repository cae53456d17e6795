# recon/routes/admin_users.py
from datetime import datetime
from flask import Blueprint, request, jsonify, current_app, g
from sqlalchemy import text

from .. import get_conn
from ..auth.guards import require_manager
from ..services.types import ROLES
from .auth import pwd_ctx, _verify_pin

admin_users_bp = Blueprint("admin_users", __name__)

ALLOWED_ROLES = set(ROLES)

def _norm_role(v: str | None) -> str:
    v = (v or "").strip()
    return (v[:1].upper() + v[1:].lower()) if v else ""

def _norm_roles(v) -> list[str] | None:
    if not isinstance(v, list):
        return None
    roles = []
    for r in v:
        r = _norm_role(str(r))
        if r not in ALLOWED_ROLES:
            return None
        if r not in roles:
            roles.append(r)
    return roles or None

def _user_to_dict(row) -> dict:
    d = dict(row)
    d.pop("pin_hash", None)
    d["id"] = str(d["id"])
    d["roles"] = list(d.get("roles") or [])
    if isinstance(d.get("created_at"), datetime):
        d["created_at"] = d["created_at"].isoformat()
    return d

def _pin_in_use(conn, dealership_id: str, pin: str, exclude_id: str | None = None) -> bool:
    rows = conn.execute(
        text("SELECT id, pin_hash FROM users WHERE dealership_id = :did"),
        {"did": dealership_id},
    ).mappings().all()
    return any(str(r["id"]) != exclude_id and _verify_pin(pin, r["pin_hash"]) for r in rows)

@admin_users_bp.get("/admin/users")
@require_manager
def list_users():
    with get_conn() as conn:
        rows = conn.execute(
            text("""
                SELECT id, name, roles, active, created_at
                FROM users
                WHERE dealership_id = :did
                ORDER BY created_at DESC
            """),
            {"did": g.dealership_id},
        ).mappings().all()
    return jsonify({"users": [_user_to_dict(r) for r in rows]}), 200

@admin_users_bp.post("/admin/users")
@require_manager
def create_user():
    """
    POST /admin/users -- create a user.
    Body: { name, pin, roles: [..] }
    Returns:
      201 { user }
      400 { error: bad_request }
      401 { error: unauthorized }
      403 { error: insufficient_role }
      409 { error: pin_exists }
      500 { error: server_error }
    """
    data = request.get_json(silent=True) or {}

    name = (data.get("name") or "").strip()
    pin = str(data.get("pin") or "").strip()
    roles = _norm_roles(data.get("roles"))

    # Required fields & allowed values
    if not name or not pin or roles is None:
        return jsonify({
            "error": "bad_request",
            "hint": {
                "required": ["name", "pin", "roles"],
                "roles_allowed": sorted(ALLOWED_ROLES),
            },
        }), 400

    with get_conn() as conn:
        tx = conn.begin()
        try:
            if _pin_in_use(conn, g.dealership_id, pin):
                tx.rollback()
                return jsonify({"error": "pin_exists"}), 409

            row = conn.execute(
                text("""
                    INSERT INTO users (dealership_id, name, pin_hash, roles, active)
                    VALUES (:did, :name, :hash, :roles, true)
                    RETURNING id, name, roles, active, created_at
                """),
                {"did": g.dealership_id, "name": name, "hash": pwd_ctx.hash(pin), "roles": roles},
            ).mappings().one()
            tx.commit()
            return jsonify({"user": _user_to_dict(row)}), 201

        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("create_user failed")
            return jsonify({"error": "server_error"}), 500

@admin_users_bp.patch("/admin/users/<uuid:user_id>")
@require_manager
def update_user(user_id):
    """PATCH /admin/users/{id} -- any of name, pin, roles, active."""
    uid = str(user_id)
    data = request.get_json(silent=True) or {}

    sets, params = [], {"uid": uid, "did": g.dealership_id}
    if "name" in data:
        name = (data.get("name") or "").strip()
        if not name:
            return {"error": "bad_request", "message": "name cannot be empty"}, 400
        sets.append("name = :name")
        params["name"] = name
    if "roles" in data:
        roles = _norm_roles(data.get("roles"))
        if roles is None:
            return {"error": "bad_request", "message": "invalid roles"}, 400
        sets.append("roles = :roles")
        params["roles"] = roles
    if "active" in data:
        if not isinstance(data["active"], bool):
            return {"error": "bad_request", "message": "active must be a boolean"}, 400
        sets.append("active = :active")
        params["active"] = data["active"]
    pin = str(data.get("pin") or "").strip() if "pin" in data else None
    if pin is not None:
        if not pin:
            return {"error": "bad_request", "message": "pin cannot be empty"}, 400
        sets.append("pin_hash = :hash")
        params["hash"] = pwd_ctx.hash(pin)
    if not sets:
        return {"error": "bad_request", "message": "no valid fields"}, 400

    with get_conn() as conn:
        tx = conn.begin()
        try:
            if pin and _pin_in_use(conn, g.dealership_id, pin, exclude_id=uid):
                tx.rollback()
                return jsonify({"error": "pin_exists"}), 409

            row = conn.execute(
                text(f"""
                    UPDATE users
                    SET {", ".join(sets)}
                    WHERE id = :uid AND dealership_id = :did
                    RETURNING id, name, roles, active, created_at
                """),
                params,
            ).mappings().one_or_none()
            if not row:
                tx.rollback()
                return {"error": "not_found"}, 404
            tx.commit()
            return jsonify({"user": _user_to_dict(row)}), 200

        except Exception:
            if tx.is_active:
                tx.rollback()
            current_app.logger.exception("update_user failed")
            return jsonify({"error": "server_error"}), 500
