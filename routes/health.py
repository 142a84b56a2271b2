from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from models import db

health_bp = Blueprint("health", __name__)


@health_bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
    except OperationalError:
        return jsonify(status="degraded", database="unreachable"), 503
    return jsonify(status="ok"), 200
