import pytest

from biblioteca.models import PaymentRequest, SubscriptionRecord

pytestmark = pytest.mark.payment


def test_approved_charge_activates_owner(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("7001", user_id)
    gateway.add_charge("7001", status="approved", user_id=user_id)

    response = client.post("/api/v1/payments/status", json={"payment_id": "7001"}, headers=auth_headers(user_id))

    assert response.status_code == 200
    data = response.get_json()
    assert data["isPaid"] is True
    assert data["plan"] == "lifetime"
    assert data["status"] == "approved"
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().is_active
    assert PaymentRequest.query.filter_by(charge_id="7001").one().status == "paid"


def test_pending_charge_reports_free_plan_without_writes(client, gateway, user_id, seed_charge):
    seed_charge("7002", user_id)
    gateway.add_charge("7002", status="pending", user_id=user_id)

    response = client.post("/api/v1/payments/status", json={"payment_id": "7002"})

    data = response.get_json()
    assert response.status_code == 200
    assert data["isPaid"] is False
    assert data["plan"] == "free"
    assert data["status"] == "pending"
    assert SubscriptionRecord.query.count() == 0
    assert PaymentRequest.query.filter_by(charge_id="7002").one().status == "pending"


def test_uses_callers_latest_charge_when_no_id_given(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("7003", user_id)
    gateway.add_charge("7003", status="accredited", user_id=user_id)

    response = client.post("/api/v1/payments/status", json={}, headers=auth_headers(user_id))

    assert response.status_code == 200
    assert response.get_json()["payment_id"] == "7003"
    assert response.get_json()["isPaid"] is True


def test_no_charge_for_user_is_not_found(client, gateway, auth_headers, user_id):
    response = client.post("/api/v1/payments/status", json={}, headers=auth_headers(user_id))

    assert response.status_code == 404
    assert gateway.get_calls == []


def test_no_identifier_at_all_is_bad_request(client, gateway):
    response = client.post("/api/v1/payments/status", json={})

    assert response.status_code == 400
    assert gateway.get_calls == []


def test_gateway_error_propagates_without_mutation(client, gateway, user_id, seed_charge):
    seed_charge("7004", user_id)
    gateway.fail("7004")

    response = client.post("/api/v1/payments/status", json={"payment_id": "7004"})

    assert response.status_code == 502
    assert PaymentRequest.query.filter_by(charge_id="7004").one().status == "pending"
    assert SubscriptionRecord.query.count() == 0


def test_approved_charge_without_owner_is_rejected(client, gateway):
    gateway.add_charge("7005", status="approved", user_id=None)

    response = client.post("/api/v1/payments/status", json={"payment_id": "7005"})

    assert response.status_code == 422
    assert response.get_json()["error"] == "unattributed_charge"
    assert PaymentRequest.query.count() == 0
    assert SubscriptionRecord.query.count() == 0


def test_activation_goes_to_charge_owner_not_caller(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("7006", user_id)
    gateway.add_charge("7006", status="approved", user_id=user_id)

    response = client.post(
        "/api/v1/payments/status",
        json={"payment_id": "7006"},
        headers=auth_headers("someone-else"),
    )

    assert response.status_code == 200
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().is_active
    assert SubscriptionRecord.query.filter_by(user_id="someone-else").first() is None


def test_non_object_body_is_rejected(client, gateway):
    response = client.post("/api/v1/payments/status", json=["x"])

    assert response.status_code == 400
    assert gateway.get_calls == []


def test_charge_details_are_only_shown_to_owner(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("7007", user_id)
    gateway.add_charge("7007", status="pending", user_id=user_id, amount=9.0)

    anonymous = client.post("/api/v1/payments/status", json={"payment_id": "7007"}).get_json()
    stranger = client.post(
        "/api/v1/payments/status", json={"payment_id": "7007"}, headers=auth_headers("someone-else")
    ).get_json()
    owner = client.post(
        "/api/v1/payments/status", json={"payment_id": "7007"}, headers=auth_headers(user_id)
    ).get_json()

    for data in (anonymous, stranger):
        assert data["status"] == "pending"
        assert data["isPaid"] is False
        assert "transaction_amount" not in data
        assert "date_created" not in data
    assert owner["transaction_amount"] == 9.0
    assert owner["currency"] == "BRL"
    assert owner["date_created"]
