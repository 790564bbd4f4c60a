# app/api/health.py
# (Service and database status, probed by scripts/health_check.py.)

from flask import Blueprint, jsonify, current_app
from sqlalchemy import text
from app import db

bp = Blueprint('health', __name__)

@bp.route('/health', methods=['GET'])
def health_route():
    try:
        db.session.execute(text('SELECT 1'))
        database = {"status": "connected"}
        status_code = 200
    except Exception as e:
        current_app.logger.error(f"Health check database error: {e}")
        database = {"status": "disconnected", "error": str(e)}
        status_code = 503

    return jsonify({
        "success": status_code == 200,
        "service": "comisiones-agencias",
        "database": database,
    }), status_code
