from flask import Blueprint, jsonify, request

from biblioteca.domain.billing import PaymentOrigin
from biblioteca.extensions import limiter
from biblioteca.services.webhook_service import handle_notification

bp = Blueprint("webhooks", __name__, url_prefix="/webhooks")


def _handle(origin):
    result = handle_notification(
        request.get_json(silent=True),
        request.args,
        request.headers,
        origin=origin,
    )
    return jsonify(result), 200


@bp.route("/pix", methods=["POST"])
@limiter.exempt
def pix_notification():
    return _handle(PaymentOrigin.PIX_DIRECT)


@bp.route("/mercadopago", methods=["POST"])
@limiter.exempt
def legacy_notification():
    return _handle(PaymentOrigin.LEGACY_MP)
