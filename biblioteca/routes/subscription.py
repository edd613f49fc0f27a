from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt_identity, jwt_required

from biblioteca.services.entitlement_service import (
    clear_entitlement,
    get_entitlement,
    refresh_entitlement,
)

bp = Blueprint("subscription", __name__, url_prefix="/api/v1/subscription")


@bp.route("", methods=["GET"])
@jwt_required()
def current_entitlement():
    return jsonify(get_entitlement(get_jwt_identity())), 200


@bp.route("/refresh", methods=["POST"])
@jwt_required()
def refresh():
    return jsonify(refresh_entitlement(get_jwt_identity())), 200


@bp.route("/cache", methods=["DELETE"])
@jwt_required()
def sign_out():
    """Drop the cached entitlement when the user signs out"""
    return jsonify(clear_entitlement(get_jwt_identity())), 200
