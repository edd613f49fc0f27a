from biblioteca.domain.billing import utcnow
from biblioteca.extensions import db


class AdminUser(db.Model):
    """Administrator allow-list, keyed by the auth provider's user id."""

    __tablename__ = "admin_users"

    user_id = db.Column(db.String(64), primary_key=True)
    email = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "email": self.email,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
