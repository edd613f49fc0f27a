import hashlib
import hmac
from unittest.mock import patch

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from biblioteca.extensions import cache
from biblioteca.models import PaymentRequest, SubscriptionRecord

pytestmark = pytest.mark.payment


def _notify(client, charge_id, path="/webhooks/pix", **kwargs):
    return client.post(path, json={"type": "payment", "data": {"id": charge_id}}, **kwargs)


def test_non_payment_notification_is_ignored(client, gateway):
    response = client.post("/webhooks/pix", json={"type": "merchant_order", "data": {"id": "1"}})

    assert response.status_code == 200
    assert response.get_json()["status"] == "ignored"
    assert gateway.get_calls == []


def test_payment_notification_without_id_is_bad_request(client):
    response = client.post("/webhooks/pix", json={"type": "payment", "data": {}})

    assert response.status_code == 400


def test_approved_notification_activates_owner(client, gateway, user_id, seed_charge):
    seed_charge("8001", user_id)
    gateway.add_charge("8001", status="approved", user_id=user_id)

    response = _notify(client, "8001")

    assert response.status_code == 200
    assert response.get_json()["status"] == "activated"
    record = SubscriptionRecord.query.filter_by(user_id=user_id).one()
    assert record.is_active
    assert record.origin == "pix_direct"
    assert PaymentRequest.query.filter_by(charge_id="8001").one().status == "paid"


def test_duplicate_notification_is_a_no_op(client, gateway, user_id, seed_charge):
    seed_charge("8002", user_id)
    gateway.add_charge("8002", status="approved", user_id=user_id)

    first = _notify(client, "8002")
    updated_at = SubscriptionRecord.query.filter_by(user_id=user_id).one().updated_at
    second = _notify(client, "8002")

    assert first.get_json()["status"] == "activated"
    assert second.status_code == 200
    assert second.get_json()["status"] == "already_processed"
    assert gateway.get_calls == ["8002"]
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().updated_at == updated_at
    assert PaymentRequest.query.count() == 1


def test_unapproved_notification_records_gateway_status(client, gateway, user_id, seed_charge):
    seed_charge("8003", user_id)
    gateway.add_charge("8003", status="rejected", user_id=user_id)

    response = _notify(client, "8003")

    assert response.status_code == 200
    assert response.get_json()["status"] == "recorded"
    row = PaymentRequest.query.filter_by(charge_id="8003").one()
    assert row.status == "pending"
    assert row.gateway_status == "rejected"
    assert SubscriptionRecord.query.count() == 0


def test_unknown_charge_gets_ledger_row_with_mount_origin(client, gateway, user_id):
    gateway.add_charge("8004", status="approved", user_id=user_id)

    response = _notify(client, "8004", path="/webhooks/mercadopago")

    assert response.status_code == 200
    row = PaymentRequest.query.filter_by(charge_id="8004").one()
    assert row.origin == "legacy_mp"
    assert row.status == "paid"
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().origin == "legacy_mp"


def test_query_string_notification_is_supported(client, gateway, user_id):
    gateway.add_charge("8005", status="approved", user_id=user_id)

    response = client.post("/webhooks/mercadopago?topic=payment&id=8005")

    assert response.status_code == 200
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().is_active


def test_approved_charge_without_owner_is_unprocessable(client, gateway):
    gateway.add_charge("8006", status="approved", user_id=None)

    response = _notify(client, "8006")

    assert response.status_code == 422
    assert PaymentRequest.query.count() == 0
    assert SubscriptionRecord.query.count() == 0


def test_gateway_failure_returns_502_for_retry(client, gateway, user_id, seed_charge):
    seed_charge("8007", user_id)
    gateway.fail("8007")

    response = _notify(client, "8007")

    assert response.status_code == 502
    assert PaymentRequest.query.filter_by(charge_id="8007").one().status == "pending"


def _signature(secret, data_id, request_id, ts="1700000000"):
    manifest = f"id:{data_id};request-id:{request_id};ts:{ts};"
    digest = hmac.new(secret.encode(), manifest.encode(), hashlib.sha256).hexdigest()
    return f"ts={ts},v1={digest}"


def test_signature_is_enforced_when_secret_configured(app, client, gateway, user_id):
    app.config["MERCADO_PAGO_WEBHOOK_SECRET"] = "whsec"
    gateway.add_charge("8008", status="approved", user_id=user_id)

    bad = _notify(client, "8008", headers={"x-signature": "ts=1,v1=deadbeef", "x-request-id": "r1"})
    assert bad.status_code == 401
    assert SubscriptionRecord.query.count() == 0

    good = _notify(
        client,
        "8008",
        headers={"x-signature": _signature("whsec", "8008", "r1"), "x-request-id": "r1"},
    )
    assert good.status_code == 200
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().is_active


def test_end_to_end_checkout_then_webhook(client, gateway, auth_headers, user_id, payer):
    created = client.post("/api/v1/payments/pix", json={"payer": payer}, headers=auth_headers(user_id))
    payment_id = created.get_json()["payment_id"]

    gateway.approve(payment_id)
    response = _notify(client, payment_id)

    assert response.status_code == 200
    record = SubscriptionRecord.query.filter_by(user_id=user_id).one()
    assert record.is_active
    assert record.source_charge_id == payment_id

    restored = client.post("/api/v1/payments/restore", headers=auth_headers(user_id))
    assert restored.status_code == 200
    assert restored.get_json()["message"] == "Access already active"


def test_cache_outage_after_commit_still_acknowledges(client, gateway, user_id, seed_charge):
    seed_charge("8010", user_id)
    gateway.add_charge("8010", status="approved", user_id=user_id)

    with patch.object(cache, "delete", side_effect=RedisConnectionError("redis down")):
        response = _notify(client, "8010")

    assert response.status_code == 200
    assert response.get_json()["status"] == "activated"
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().is_active
