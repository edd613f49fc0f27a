import pytest
from datetime import timedelta
from faker import Faker
from flask_jwt_extended import create_access_token

from biblioteca import create_app
from biblioteca.billing.mercado_pago import GatewayCharge, PixCharge
from biblioteca.domain.billing import PaymentStatus, lifetime_expiry, utcnow
from biblioteca.errors.domain import GatewayError
from biblioteca.extensions import cache, db
from biblioteca.models import AdminUser, PaymentRequest, SubscriptionRecord

# Initialize Faker for generating test data
fake = Faker("pt_BR")


def pytest_configure(config):
    config.addinivalue_line("markers", "db: mark test as database-intensive")
    config.addinivalue_line("markers", "auth: mark test as authentication-related")
    config.addinivalue_line("markers", "payment: mark test as payment-related")


class FakeGateway:
    """In-memory stand-in for the Mercado Pago client."""

    def __init__(self):
        self.charges = {}
        self.failures = {}
        self.create_failure = None
        self.created = []
        self.get_calls = []
        self._next_id = 1000

    def add_charge(self, charge_id, status="pending", user_id=None, amount=9.0):
        charge_id = str(charge_id)
        self.charges[charge_id] = {
            "id": charge_id,
            "status": status,
            "status_detail": "accredited" if status == "approved" else "pending_waiting_transfer",
            "transaction_amount": amount,
            "currency_id": "BRL",
            "external_reference": user_id,
            "metadata": {"user_id": user_id, "plan": "lifetime"},
            "date_created": utcnow().isoformat(),
            "date_approved": utcnow().isoformat() if status == "approved" else None,
        }
        return self.charges[charge_id]

    def approve(self, charge_id):
        self.charges[str(charge_id)]["status"] = "approved"
        self.charges[str(charge_id)]["date_approved"] = utcnow().isoformat()

    def fail(self, charge_id, message="gateway unavailable"):
        self.failures[str(charge_id)] = GatewayError(message, status=503)

    def create_pix_charge(self, *, amount, description, payer, user_id,
                          notification_url=None, source="pix_direct"):
        if self.create_failure is not None:
            raise self.create_failure
        self._next_id += 1
        charge_id = str(self._next_id)
        payload = self.add_charge(charge_id, user_id=user_id, amount=amount)
        self.created.append({
            "charge_id": charge_id,
            "amount": amount,
            "description": description,
            "payer": payer,
            "user_id": user_id,
            "notification_url": notification_url,
            "source": source,
        })
        return PixCharge(
            charge_id=charge_id,
            status="pending",
            qr_code=f"00020126580014br.gov.bcb.pix{charge_id}",
            qr_code_base64="iVBORw0KGgo=",
            ticket_url=f"https://www.mercadopago.com.br/payments/{charge_id}/ticket",
            expires_at=(utcnow() + timedelta(minutes=30)).isoformat(),
            amount=amount,
            currency="BRL",
            raw=payload,
        )

    def get_charge(self, charge_id):
        charge_id = str(charge_id)
        self.get_calls.append(charge_id)
        if charge_id in self.failures:
            raise self.failures[charge_id]
        if charge_id not in self.charges:
            raise GatewayError(f"Payment {charge_id} not found", status=404)
        return GatewayCharge.from_payload(dict(self.charges[charge_id]))


@pytest.fixture()
def app():
    """Create application for testing with a fresh in-memory database"""
    app = create_app("testing")
    app.config.update(JWT_ACCESS_TOKEN_EXPIRES=timedelta(hours=1))

    with app.app_context():
        db.create_all()
        app.extensions["payment_gateway"] = FakeGateway()

        yield app

        cache.clear()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def gateway(app):
    return app.extensions["payment_gateway"]


@pytest.fixture()
def user_id():
    return fake.uuid4()


@pytest.fixture()
def auth_headers(app):
    """Factory returning Authorization headers for a given user id"""

    def _headers(uid):
        token = create_access_token(identity=str(uid))
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture()
def admin_id(app):
    uid = fake.uuid4()
    db.session.add(AdminUser(user_id=uid, email=fake.email()))
    db.session.commit()
    return uid


@pytest.fixture()
def payer():
    return {
        "name": fake.name(),
        "email": fake.email(),
        "tax_id": fake.cpf(),
        "phone": fake.phone_number(),
    }


@pytest.fixture()
def seed_charge(app):
    """Insert a ledger row directly"""

    def _seed(charge_id, user_id, status=PaymentStatus.PENDING.value,
              origin="pix_direct", amount=9.0, paid_at=None):
        row = PaymentRequest(
            charge_id=str(charge_id),
            user_id=user_id,
            amount=amount,
            currency="BRL",
            origin=origin,
            status=status,
            paid_at=paid_at or (utcnow() if status == PaymentStatus.PAID.value else None),
        )
        db.session.add(row)
        db.session.commit()
        return row

    return _seed


@pytest.fixture()
def seed_subscription(app):
    """Insert an active subscription record directly"""

    def _seed(user_id, charge_id="seed", origin="pix_direct", status="active"):
        record = SubscriptionRecord(
            user_id=user_id,
            status=status,
            origin=origin,
            source_charge_id=charge_id,
            current_period_end=lifetime_expiry(),
        )
        db.session.add(record)
        db.session.commit()
        return record

    return _seed
