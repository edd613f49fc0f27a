"""
Mercado Pago REST client.

Only the two calls the payment flows need are wrapped: creating a PIX
charge and reading a charge back by id. Every failure is surfaced as a
``GatewayError`` so callers never have to know about ``requests``.
"""

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

import requests

from biblioteca.domain.billing import is_approved
from biblioteca.errors.domain import GatewayError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.mercadopago.com"


@dataclass
class PixCharge:
    """Result of creating a PIX charge."""

    charge_id: str
    status: str
    qr_code: str
    qr_code_base64: Optional[str]
    ticket_url: Optional[str]
    expires_at: Optional[str]
    amount: float
    currency: str
    raw: dict = field(default_factory=dict, repr=False)


@dataclass
class GatewayCharge:
    """Authoritative view of a charge as reported by the gateway."""

    charge_id: str
    status: str
    status_detail: Optional[str] = None
    transaction_amount: Optional[float] = None
    currency: Optional[str] = None
    external_reference: Optional[str] = None
    metadata: dict = field(default_factory=dict)
    date_created: Optional[str] = None
    date_approved: Optional[str] = None
    raw: dict = field(default_factory=dict, repr=False)

    @property
    def is_approved(self) -> bool:
        return is_approved(self.status)

    @property
    def owner_id(self) -> Optional[str]:
        # external_reference is the only attribution field we trust
        ref = (self.external_reference or "").strip()
        return ref or None

    @classmethod
    def from_payload(cls, payload: dict) -> "GatewayCharge":
        if not payload.get("id"):
            raise GatewayError("Gateway response has no charge id")
        return cls(
            charge_id=str(payload["id"]),
            status=str(payload.get("status") or "unknown"),
            status_detail=payload.get("status_detail"),
            transaction_amount=payload.get("transaction_amount"),
            currency=payload.get("currency_id"),
            external_reference=payload.get("external_reference"),
            metadata=payload.get("metadata") or {},
            date_created=payload.get("date_created"),
            date_approved=payload.get("date_approved"),
            raw=payload,
        )


class MercadoPagoClient:
    def __init__(self, access_token: str, base_url: str = DEFAULT_BASE_URL,
                 timeout: int = 15, session: Optional[requests.Session] = None):
        self.access_token = access_token
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    @classmethod
    def from_config(cls, config) -> "MercadoPagoClient":
        return cls(
            access_token=config.get("MERCADO_PAGO_ACCESS_TOKEN") or "",
            base_url=config.get("MERCADO_PAGO_API_URL", DEFAULT_BASE_URL),
            timeout=config.get("MERCADO_PAGO_TIMEOUT", 15),
        )

    def _headers(self, idempotency_key: Optional[str] = None) -> dict:
        if not self.access_token:
            raise GatewayError("Mercado Pago access token is not configured")
        headers = {
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        }
        if idempotency_key:
            headers["X-Idempotency-Key"] = idempotency_key
        return headers

    def _handle(self, response: requests.Response, action: str) -> dict:
        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if not response.ok:
            message = payload.get("message") if isinstance(payload, dict) else None
            logger.error(
                f"Mercado Pago {action} failed",
                extra={"status_code": response.status_code, "gateway_message": message},
            )
            raise GatewayError(
                message or f"Mercado Pago {action} failed with HTTP {response.status_code}",
                status=response.status_code,
            )
        if not isinstance(payload, dict):
            raise GatewayError(f"Mercado Pago {action} returned a malformed body")
        return payload

    def create_pix_charge(self, *, amount: float, description: str, payer: dict,
                          user_id: str, notification_url: Optional[str] = None,
                          source: str = "pix_direct") -> PixCharge:
        """
        Create a PIX charge attributed to ``user_id``.

        The user id goes into ``external_reference``; ``metadata.user_id`` is
        informational only.
        """
        first_name, _, last_name = payer["name"].strip().partition(" ")
        body: dict[str, Any] = {
            "transaction_amount": round(float(amount), 2),
            "description": description,
            "payment_method_id": "pix",
            "external_reference": user_id,
            "metadata": {
                "user_id": user_id,
                "plan": "lifetime",
                "source": source,
            },
            "payer": {
                "email": payer["email"],
                "first_name": first_name,
                "last_name": last_name or first_name,
                "identification": {"type": "CPF", "number": payer["tax_id"]},
            },
        }
        if notification_url:
            body["notification_url"] = notification_url

        try:
            response = self.session.post(
                f"{self.base_url}/v1/payments",
                json=body,
                headers=self._headers(idempotency_key=str(uuid.uuid4())),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Mercado Pago is unreachable: {exc}") from exc

        payload = self._handle(response, "create charge")
        transaction_data = (payload.get("point_of_interaction") or {}).get("transaction_data") or {}
        if not payload.get("id") or not transaction_data.get("qr_code"):
            raise GatewayError("Mercado Pago did not return PIX data for the charge")

        return PixCharge(
            charge_id=str(payload["id"]),
            status=payload.get("status", "pending"),
            qr_code=transaction_data["qr_code"],
            qr_code_base64=transaction_data.get("qr_code_base64"),
            ticket_url=transaction_data.get("ticket_url"),
            expires_at=payload.get("date_of_expiration"),
            amount=payload.get("transaction_amount", body["transaction_amount"]),
            currency=payload.get("currency_id") or "BRL",
            raw=payload,
        )

    def get_charge(self, charge_id: str) -> GatewayCharge:
        try:
            response = self.session.get(
                f"{self.base_url}/v1/payments/{charge_id}",
                headers=self._headers(),
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise GatewayError(f"Mercado Pago is unreachable: {exc}") from exc

        return GatewayCharge.from_payload(self._handle(response, "get charge"))


def parse_signature_header(header: str) -> dict:
    parts = {}
    for item in (header or "").split(","):
        key, sep, value = item.strip().partition("=")
        if sep:
            parts[key.strip()] = value.strip()
    return parts


def verify_webhook_signature(signature_header, request_id, data_id, secret) -> bool:
    """
    Check Mercado Pago's ``x-signature`` header.

    The signed manifest is ``id:<data.id>;request-id:<x-request-id>;ts:<ts>;``
    hashed with HMAC-SHA256 using the webhook secret.
    """
    parts = parse_signature_header(signature_header)
    ts, received = parts.get("ts"), parts.get("v1")
    if not ts or not received or not data_id:
        return False

    manifest = f"id:{str(data_id).lower()};"
    if request_id:
        manifest += f"request-id:{request_id};"
    manifest += f"ts:{ts};"

    computed = hmac.new(
        secret.encode(),
        manifest.encode(),
        hashlib.sha256,
    ).hexdigest()
    return hmac.compare_digest(computed, received)
