from biblioteca.errors.domain import (
    AttributionError,
    AuthorizationError,
    ConflictError,
    DomainError,
    GatewayError,
    NotFoundError,
    ValidationError,
    WebhookSignatureError,
)

__all__ = [
    "AttributionError",
    "AuthorizationError",
    "ConflictError",
    "DomainError",
    "GatewayError",
    "NotFoundError",
    "ValidationError",
    "WebhookSignatureError",
]
