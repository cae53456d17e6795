# recon/routes/audit.py
from __future__ import annotations
import uuid
from flask import Blueprint, request, jsonify, g

from .. import get_conn
from ..auth.guards import require_manager
from ..services.audit import fetch_audit_log

audit_bp = Blueprint("audit", __name__)

MAX_LIMIT = 500

@audit_bp.get("/audit-log")
@require_manager
def list_audit_log():
    """
    GET /audit-log -- newest first.

    Query:
      - limit (int, optional, default 100, max 500)
      - vehicle_id (uuid, optional)
    """
    try:
        limit = int(request.args.get("limit", 100))
    except ValueError:
        return {"error": "bad_request", "message": "limit must be an integer"}, 400
    limit = max(1, min(limit, MAX_LIMIT))

    vehicle_id = request.args.get("vehicle_id")
    if vehicle_id:
        try:
            vehicle_id = str(uuid.UUID(vehicle_id))
        except ValueError:
            return {"error": "bad_request", "message": "vehicle_id must be a uuid"}, 400

    with get_conn() as conn:
        entries = fetch_audit_log(conn, g.dealership_id, limit=limit, vehicle_id=vehicle_id or None)
    return jsonify({"entries": entries, "count": len(entries)}), 200
