import pytest

from biblioteca.billing.cache import entitlement_key
from biblioteca.billing.state_machine import activate_charge
from biblioteca.extensions import cache
from biblioteca.models import SubscriptionRecord

pytestmark = pytest.mark.payment


def test_free_user_entitlement_is_cached(client, auth_headers, user_id):
    first = client.get("/api/v1/subscription", headers=auth_headers(user_id)).get_json()
    second = client.get("/api/v1/subscription", headers=auth_headers(user_id)).get_json()

    assert first["isPaid"] is False
    assert first["plan"] == "free"
    assert first["cached"] is False
    assert first["checked_at"] < first["stale_after"]
    assert second["cached"] is True


def test_activation_invalidates_cached_entitlement(client, auth_headers, user_id, seed_charge):
    client.get("/api/v1/subscription", headers=auth_headers(user_id))
    seed_charge("E100", user_id)

    activate_charge("E100", user_id, "pix_direct")
    data = client.get("/api/v1/subscription", headers=auth_headers(user_id)).get_json()

    assert data["isPaid"] is True
    assert data["plan"] == "lifetime"
    assert data["cached"] is False


def test_sign_out_drops_cache(client, auth_headers, user_id):
    client.get("/api/v1/subscription", headers=auth_headers(user_id))
    assert cache.get(entitlement_key(user_id)) is not None

    response = client.delete("/api/v1/subscription/cache", headers=auth_headers(user_id))

    assert response.status_code == 200
    assert cache.get(entitlement_key(user_id)) is None


def test_refresh_activates_approved_pending_charge(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("E101", user_id)
    gateway.add_charge("E101", status="approved", user_id=user_id)

    data = client.post("/api/v1/subscription/refresh", headers=auth_headers(user_id)).get_json()

    assert data["isPaid"] is True
    assert data["activated_charges"] == ["E101"]
    assert data["verification_error"] is None


def test_refresh_backfills_from_paid_row(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("E102", user_id, status="paid")

    data = client.post("/api/v1/subscription/refresh", headers=auth_headers(user_id)).get_json()

    assert data["isPaid"] is True
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().origin == "restored"
    assert gateway.get_calls == []


def test_refresh_gateway_error_never_downgrades(client, gateway, auth_headers, user_id,
                                                seed_charge, seed_subscription):
    seed_subscription(user_id, charge_id="E103")
    seed_charge("E104", user_id)
    gateway.fail("E104")

    response = client.post("/api/v1/subscription/refresh", headers=auth_headers(user_id))

    assert response.status_code == 200
    data = response.get_json()
    assert data["isPaid"] is True
    assert data["verification_error"]
    assert SubscriptionRecord.query.filter_by(user_id=user_id).one().is_active


def test_refresh_for_free_user_stays_free(client, gateway, auth_headers, user_id, seed_charge):
    seed_charge("E105", user_id)
    gateway.add_charge("E105", status="pending", user_id=user_id)

    data = client.post("/api/v1/subscription/refresh", headers=auth_headers(user_id)).get_json()

    assert data["isPaid"] is False
    assert data["plan"] == "free"
    assert SubscriptionRecord.query.count() == 0


@pytest.mark.auth
def test_entitlement_requires_authentication(client):
    assert client.get("/api/v1/subscription").status_code == 401
