from biblioteca.models.admin_user import AdminUser
from biblioteca.models.payment import PaymentRequest
from biblioteca.models.subscription import SubscriptionRecord

__all__ = ["AdminUser", "PaymentRequest", "SubscriptionRecord"]
