class DomainError(Exception):
    """Base class for errors raised by the payments domain."""

    status_code = 500
    code = "domain_error"

    def __init__(self, message=None, **details):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details

    def to_dict(self):
        body = {"success": False, "error": self.code, "message": self.message}
        body.update(self.details)
        return body


class ValidationError(DomainError):
    status_code = 400
    code = "validation_error"


class WebhookSignatureError(DomainError):
    status_code = 401
    code = "invalid_signature"


class AuthorizationError(DomainError):
    status_code = 403
    code = "forbidden"


class NotFoundError(DomainError):
    status_code = 404
    code = "not_found"


class ConflictError(DomainError):
    status_code = 409
    code = "conflict"


class AttributionError(DomainError):
    """An approved charge could not be tied to a user."""

    status_code = 422
    code = "unattributed_charge"


class GatewayError(DomainError):
    status_code = 502
    code = "gateway_error"

    def __init__(self, message=None, status=None, **details):
        super().__init__(message, **details)
        self.status = status
