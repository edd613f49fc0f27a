from flask import Blueprint, jsonify
from flask_jwt_extended import get_jwt_identity

from biblioteca.errors.domain import ValidationError
from biblioteca.middleware.admin_guard import admin_required
from biblioteca.routes.payload import json_object
from biblioteca.services.admin_service import grant_manual_access, list_paid_users
from biblioteca.services.bulk_activation_service import activate_paid_users
from biblioteca.services.reconciliation_service import reconcile_pending_payments

bp = Blueprint("admin", __name__, url_prefix="/api/v1/admin")


def _batch_size(value):
    if value in (None, ""):
        return None
    try:
        size = int(value)
    except (TypeError, ValueError):
        raise ValidationError("batch_size must be a positive integer")
    if size < 1:
        raise ValidationError("batch_size must be a positive integer")
    return size


@bp.route("/payments/reconcile", methods=["POST"])
@admin_required
def reconcile():
    data = json_object()
    report = reconcile_pending_payments(_batch_size(data.get("batch_size")))
    return jsonify(report), 200


@bp.route("/payments/activate-paid", methods=["POST"])
@admin_required
def activate_paid():
    return jsonify(activate_paid_users(get_jwt_identity())), 200


@bp.route("/paid-users", methods=["GET"])
@admin_required
def paid_users():
    return jsonify(list_paid_users(get_jwt_identity())), 200


@bp.route("/subscriptions/<user_id>/activate", methods=["POST"])
@admin_required
def manual_activate(user_id):
    data = json_object()
    result = grant_manual_access(get_jwt_identity(), user_id, note=data.get("note"))
    return jsonify(result), 201
