from biblioteca.domain.billing import PaymentStatus, utcnow
from biblioteca.extensions import db


class PaymentRequest(db.Model):
    """One row per gateway charge, from creation until it is paid."""

    __tablename__ = "payment_requests"

    id = db.Column(db.Integer, primary_key=True)
    charge_id = db.Column(db.String(64), unique=True, nullable=False)
    legacy_charge_id = db.Column(db.String(64), nullable=True, index=True)
    user_id = db.Column(db.String(64), nullable=True, index=True)
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False, default=0)
    currency = db.Column(db.String(3), nullable=False, default="BRL")
    origin = db.Column(db.String(20), nullable=False)
    status = db.Column(db.String(30), nullable=False, default=PaymentStatus.PENDING.value, index=True)
    gateway_status = db.Column(db.String(30), nullable=True)
    raw = db.Column(db.JSON(none_as_null=True), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    paid_at = db.Column(db.DateTime, nullable=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    __table_args__ = (
        db.Index("ix_payment_requests_status_updated", "status", "updated_at"),
    )

    @property
    def is_paid(self):
        return self.status == PaymentStatus.PAID.value

    def to_dict(self):
        return {
            "id": self.id,
            "charge_id": self.charge_id,
            "user_id": self.user_id,
            "amount": self.amount,
            "currency": self.currency,
            "origin": self.origin,
            "status": self.status,
            "gateway_status": self.gateway_status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<PaymentRequest {self.charge_id} {self.status}>"
