from flask import Blueprint, current_app, jsonify
from flask_jwt_extended import get_jwt_identity, jwt_required

from biblioteca.domain.billing import PaymentOrigin
from biblioteca.extensions import limiter
from biblioteca.routes.payload import json_object
from biblioteca.services.charge_service import create_pix_charge
from biblioteca.services.restore_service import restore_access
from biblioteca.services.status_service import poll_charge_status

bp = Blueprint("payments", __name__, url_prefix="/api/v1/payments")


def _charge_limit():
    return current_app.config["CHARGE_RATE_LIMIT"]


def _payer_from_request():
    data = json_object()
    # Accept either {"payer": {...}} or the fields at the top level
    payer = data.get("payer") if isinstance(data.get("payer"), dict) else data
    return {
        "name": payer.get("name"),
        "email": payer.get("email"),
        "tax_id": payer.get("tax_id") or payer.get("cpf"),
        "phone": payer.get("phone"),
    }


@bp.route("/pix", methods=["POST"])
@jwt_required()
@limiter.limit(_charge_limit)
def create_pix():
    """Create a PIX charge for the lifetime plan"""
    result = create_pix_charge(get_jwt_identity(), _payer_from_request(), PaymentOrigin.PIX_DIRECT)
    return jsonify(result), 201


@bp.route("/legacy", methods=["POST"])
@jwt_required()
@limiter.limit(_charge_limit)
def create_legacy():
    """Create a PIX charge through the legacy checkout flow"""
    result = create_pix_charge(get_jwt_identity(), _payer_from_request(), PaymentOrigin.LEGACY_MP)
    return jsonify(result), 201


@bp.route("/status", methods=["POST"])
@jwt_required(optional=True)
def payment_status():
    data = json_object()
    charge_id = data.get("payment_id") or data.get("paymentId")
    result = poll_charge_status(
        charge_id=str(charge_id) if charge_id else None,
        user_id=get_jwt_identity(),
    )
    return jsonify(result), 200


@bp.route("/restore", methods=["POST"])
@jwt_required()
def restore():
    """Restore access from an existing paid charge"""
    return jsonify(restore_access(get_jwt_identity())), 200
