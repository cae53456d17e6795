# recon/routes/auth.py
import uuid
from datetime import datetime, timedelta, timezone
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy import text
from passlib.context import CryptContext
import jwt

from .. import get_conn

auth_bp = Blueprint("auth", __name__)
pwd_ctx = CryptContext(schemes=["bcrypt"], deprecated="auto")

def _jwt_encode(payload: dict) -> str:
    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET not configured")
    return jwt.encode(payload, secret, algorithm="HS256")

def _verify_pin(pin: str, stored_hash: str) -> bool:
    if not stored_hash:
        return False
    try:
        return pwd_ctx.verify(pin, stored_hash)
    except (ValueError, TypeError):
        return False

@auth_bp.post("/auth/login")
def login():
    """
    POST /api/auth/login
    Body: { "pin": str, "dealership_id"?: str }
    Returns: 200 { "access_token": <jwt>, "user": { id, name, roles, dealership_id } }
             400 on missing pin or malformed dealership_id, 401 on unknown pin
    """
    data = request.get_json(silent=True) or {}
    pin = str(data.get("pin") or "").strip()
    if not pin:
        return {"error": "bad_request", "message": "pin required"}, 400
    dealership_id = str(data.get("dealership_id") or current_app.config.get("DEFAULT_DEALERSHIP_ID") or "")
    try:
        dealership_id = str(uuid.UUID(dealership_id))
    except ValueError:
        return {"error": "bad_request", "message": "dealership_id must be a uuid"}, 400

    # PINs are salted hashes, so candidates are checked one by one
    with get_conn() as conn:
        rows = conn.execute(
            text("""
                SELECT id, dealership_id, name, roles, pin_hash
                FROM users
                WHERE dealership_id = :did AND active = true
            """),
            {"did": dealership_id},
        ).mappings().all()

    row = next((r for r in rows if _verify_pin(pin, r["pin_hash"])), None)
    if row is None:
        current_app.logger.warning("failed PIN login for dealership %s", dealership_id)
        return {"error": "invalid_credentials"}, 401

    now = datetime.now(timezone.utc)
    exp = now + timedelta(hours=int(current_app.config.get("JWT_EXPIRES_HOURS", 12)))

    user = {
        "id": str(row["id"]),
        "name": row["name"],
        "roles": list(row["roles"] or []),
        "dealership_id": str(row["dealership_id"]),
    }
    token = _jwt_encode({
        "sub": user["id"],
        "name": user["name"],
        "roles": user["roles"],
        "dealership_id": user["dealership_id"],
        "iat": int(now.timestamp()),
        "exp": int(exp.timestamp()),
    })
    return jsonify({"access_token": token, "user": user}), 200
