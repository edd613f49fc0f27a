from biblioteca.domain.billing import (
    LIFETIME_PLAN,
    SubscriptionStatus,
    utcnow,
)
from biblioteca.extensions import db


class SubscriptionRecord(db.Model):
    __tablename__ = "user_subscriptions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), unique=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=SubscriptionStatus.INACTIVE.value)
    plan = db.Column(db.String(20), nullable=False, default=LIFETIME_PLAN)
    origin = db.Column(db.String(20), nullable=True)
    source_charge_id = db.Column(db.String(64), nullable=True)
    current_period_end = db.Column(db.DateTime, nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, default=False, nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    @property
    def is_active(self):
        if self.status != SubscriptionStatus.ACTIVE.value:
            return False
        return self.current_period_end is None or self.current_period_end > utcnow()

    @property
    def is_lifetime(self):
        return self.is_active and self.plan == LIFETIME_PLAN

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "status": self.status,
            "plan": self.plan,
            "origin": self.origin,
            "source_charge_id": self.source_charge_id,
            "current_period_end": self.current_period_end.isoformat() if self.current_period_end else None,
            "cancel_at_period_end": self.cancel_at_period_end,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f"<SubscriptionRecord {self.user_id} {self.status}>"
