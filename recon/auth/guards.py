# recon/auth/guards.py
from __future__ import annotations
from functools import wraps
from typing import Iterable, Optional
from flask import request, jsonify, current_app, g
import jwt

from ..services.types import MANAGER_ROLE

# ---------- helpers ----------
def _json(status: int, payload: dict):
    return jsonify(payload), status

def _unauth(msg="unauthorized"):
    return _json(401, {"error": msg})

def _forbid(msg="forbidden"):
    return _json(403, {"error": msg})

def _decode_jwt_from_auth_header() -> Optional[dict]:
    auth = request.headers.get("Authorization", "")
    if not auth.lower().startswith("bearer "):
        return None
    token = auth.split(None, 1)[1]
    secret = current_app.config.get("JWT_SECRET")
    if not secret:
        # no secret configured
        return None
    try:
        return jwt.decode(token, secret, algorithms=["HS256"])
    except (jwt.ExpiredSignatureError, jwt.InvalidTokenError):
        return None

# ---------- top-level auth ----------
def require_auth(roles: Optional[Iterable[str]] = None):
    """Require a valid JWT; optional role filter (any one of `roles`)."""
    roles = set(roles or [])
    def deco(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            payload = _decode_jwt_from_auth_header()
            if not payload:
                return _unauth()
            g.user_id = payload.get("sub")
            g.user_name = payload.get("name")
            g.user_roles = list(payload.get("roles") or [])
            g.dealership_id = payload.get("dealership_id")
            if not g.user_id or not g.dealership_id:
                return _unauth()
            if roles and not roles.intersection(g.user_roles):
                return _forbid("insufficient_role")
            return fn(*args, **kwargs)
        return wrapper
    return deco

def require_manager(fn):
    return require_auth(roles={MANAGER_ROLE})(fn)

def primary_role() -> Optional[str]:
    """Role recorded on audit entries: Manager if held, else the first role."""
    user_roles = getattr(g, "user_roles", None) or []
    if MANAGER_ROLE in user_roles:
        return MANAGER_ROLE
    return user_roles[0] if user_roles else None
