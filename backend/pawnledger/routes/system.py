"""
System health and version endpoints.
"""

import sys
import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import User, SessionToken, PersonType, DocumentType, ImageType
from pawnledger.time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    start_time = time.time()
    try:
        user_count = db.session.query(User).count()
        active_sessions = db.session.query(SessionToken).filter_by(is_revoked=False).count()
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "users": user_count,
                "active_sessions": active_sessions,
            }
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


def check_reference_data_health() -> dict:
    """Person, document and image types are seeded by `flask system seed-types`."""
    try:
        missing = [
            name for name, model in (
                ("person_types", PersonType),
                ("document_types", DocumentType),
                ("image_types", ImageType),
            )
            if db.session.query(model).count() == 0
        ]
    except Exception:
        current_app.logger.exception("Reference data health check failed")
        return {"status": "unhealthy", "error": "Reference data error"}

    if missing:
        return {"status": "degraded", "warning": f"Not seeded: {', '.join(missing)}"}
    return {"status": "healthy"}


def check_providers() -> dict:
    return {
        "stripe_configured": bool(current_app.config.get("STRIPE_SECRET_KEY")),
        "storage_configured": bool(current_app.config.get("CLOUDINARY_URL")),
    }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: healthy or degraded
    - 503: database unreachable
    """
    start_time = time.time()

    database_health = check_database_health()
    reference_health = check_reference_data_health()

    statuses = {database_health["status"], reference_health["status"]}
    if "unhealthy" in statuses:
        overall_status, http_status = "unhealthy", 503
    elif "degraded" in statuses:
        overall_status, http_status = "degraded", 200
    else:
        overall_status, http_status = "healthy", 200

    return {
        "status": overall_status,
        "timestamp": to_utc_z(utcnow()),
        "total_latency_ms": round((time.time() - start_time) * 1000, 2),
        "checks": {
            "database": database_health,
            "reference_data": reference_health,
            "providers": check_providers(),
        }
    }, http_status


@system_bp.get("/version")
def version():
    env = "production" if not current_app.debug else "development"
    return {
        "api_version": "1.0.0",
        "environment": env,
        "python_version": sys.version.split()[0],
        "server_time": to_utc_z(utcnow()),
    }
