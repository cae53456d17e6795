# recon/routes/stages.py
from __future__ import annotations
from flask import Blueprint, jsonify, g

from .. import get_conn
from ..auth.guards import require_auth
from ..services import catalog
from ..services.access import can_access_stage

stages_bp = Blueprint("stages", __name__)

@stages_bp.get("/stages")
@require_auth()
def list_stages():
    """Pipeline stages in order, flagged with whether the caller may complete them."""
    with get_conn() as conn:
        stages = catalog.fetch_stages(conn, g.dealership_id)
    items = [
        {**catalog.stage_to_dict(s), "can_access": can_access_stage(g.user_roles, s)}
        for s in stages
    ]
    return jsonify({"stages": items}), 200

@stages_bp.get("/dropdown-lists")
@require_auth()
def list_dropdowns():
    with get_conn() as conn:
        lists = catalog.fetch_dropdown_lists(conn, g.dealership_id)
    return jsonify({"dropdown_lists": lists}), 200
