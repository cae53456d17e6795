# recon/routes/vin.py
from __future__ import annotations
from flask import Blueprint, request, jsonify, current_app

from ..auth.guards import require_auth
from ..services.vin import is_valid_vin

vin_bp = Blueprint("vin", __name__)

@vin_bp.get("/vin/<vin>")
@require_auth()
def decode_vin(vin: str):
    """
    GET /vin/{vin} -- best-effort decode; falls back to offline decoding when vPIC is unreachable.

    Responses:
      - 200: {"vin", "year", "make", "model", "decoded_offline"}
      - 400: {"error":"invalid_vin"}
    """
    if not is_valid_vin(vin):
        return {"error": "invalid_vin"}, 400
    decoder = current_app.extensions["vin_decoder"]
    return jsonify(decoder.decode(vin)), 200

@vin_bp.get("/vin-models")
@require_auth()
def list_models():
    """GET /vin-models?make=&year= -- model names for a make and model year (cached per year)."""
    make = (request.args.get("make") or "").strip()
    try:
        year = int(request.args.get("year", ""))
    except ValueError:
        return {"error": "bad_request", "message": "year must be an integer"}, 400
    if not make:
        return {"error": "bad_request", "message": "make is required"}, 400

    decoder = current_app.extensions["vin_decoder"]
    return jsonify({"make": make, "year": year, "models": decoder.models_for(make, year)}), 200
