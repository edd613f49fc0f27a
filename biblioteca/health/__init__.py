from flask import Blueprint, jsonify

from biblioteca.extensions import limiter
from biblioteca.health.checks import run_health_checks

bp = Blueprint("health", __name__)


@bp.route("/health", methods=["GET"])
@limiter.exempt
def health():
    report = run_health_checks()
    status_code = 200 if report["checks"]["database"]["status"] == "ok" else 503
    return jsonify(report), status_code
