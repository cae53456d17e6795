# recon/__init__.py
import os
from flask import Flask, g, jsonify
from dotenv import load_dotenv
from sqlalchemy import create_engine
from flask_cors import CORS
from flask import current_app

from .services.vin import ModelYearCache, VinDecoder

DEFAULT_DEALERSHIP_ID = "00000000-0000-0000-0000-000000000001"


def create_app():
    load_dotenv()
    app = Flask(__name__)

    # ---- Config ----
    dsn = os.environ.get("DATABASE_URL")
    if not dsn:
        raise RuntimeError("DATABASE_URL is not set. Put it in your .env")
    app.config["PG_ENGINE"] = create_engine(dsn, pool_pre_ping=True)

    CORS(app, resources={r"/api/*": {"origins": os.environ.get("CORS_ORIGINS", "*")}})

    # Auth config (used by /auth/login)
    app.config["JWT_SECRET"] = os.environ.get("JWT_SECRET", "dev-secret-change-me")
    app.config["JWT_EXPIRES_HOURS"] = int(os.environ.get("JWT_EXPIRES_HOURS", "12"))
    app.config["DEFAULT_DEALERSHIP_ID"] = os.environ.get("DEFAULT_DEALERSHIP_ID", DEFAULT_DEALERSHIP_ID)

    # VIN lookups share one model-year cache for the lifetime of the app
    app.extensions["vin_decoder"] = VinDecoder(
        base_url=os.environ.get("VIN_DECODER_URL", "https://vpic.nhtsa.dot.gov/api/vehicles"),
        timeout=float(os.environ.get("VIN_DECODER_TIMEOUT", "8")),
        cache=ModelYearCache(),
    )

    # ---- Per-request connection management ----
    @app.teardown_appcontext
    def _close_request_conn(exc):
        conn = g.pop("_pg_conn", None)
        if conn is not None:
            conn.close()

    @app.get("/api/healthz")
    def health():
        return jsonify(ok=True)

    # ---- Blueprints ----
    from recon.routes.auth import auth_bp
    from recon.routes.vehicles import vehicles_bp
    from recon.routes.stages import stages_bp
    from recon.routes.dashboard import dashboard_bp
    from recon.routes.admin_users import admin_users_bp
    from recon.routes.admin_stages import admin_stages_bp
    from recon.routes.audit import audit_bp
    from recon.routes.vin import vin_bp

    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(vehicles_bp, url_prefix="/api")
    app.register_blueprint(stages_bp, url_prefix="/api")
    app.register_blueprint(dashboard_bp, url_prefix="/api")
    app.register_blueprint(admin_users_bp, url_prefix="/api")
    app.register_blueprint(admin_stages_bp, url_prefix="/api")
    app.register_blueprint(audit_bp, url_prefix="/api")
    app.register_blueprint(vin_bp, url_prefix="/api")

    return app


def get_conn():
    engine = current_app.config["PG_ENGINE"]
    conn = engine.connect()

    if conn.in_transaction():
        conn.rollback()

    return conn
