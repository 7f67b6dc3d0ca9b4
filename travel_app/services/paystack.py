"""
Paystack client.

Only the four calls the payment flow needs: initialize a transaction, verify
it, refund it and check webhook signatures. Every HTTP call has a bounded
timeout; transport errors, non-2xx answers and malformed payloads all surface
as ``ExternalServiceError`` so callers never see ``requests`` exceptions.
"""

import hashlib
import hmac
import os
from dataclasses import dataclass, field

import requests
from dotenv import load_dotenv

from travel_app.core.errors import ExternalServiceError
from travel_app.core.logging_config import payment_logger
from travel_app.models.enums import PaymentMethod
from travel_app.utils.pricing import from_minor_units, to_minor_units

load_dotenv()

PAYSTACK_SECRET_KEY = os.getenv("PAYSTACK_SECRET_KEY", "")
PAYSTACK_BASE_URL = os.getenv("PAYSTACK_BASE_URL", "https://api.paystack.co")
PAYSTACK_CALLBACK_URL = os.getenv("PAYSTACK_CALLBACK_URL")
PAYMENT_CURRENCY = os.getenv("PAYMENT_CURRENCY", "GHS")
PAYMENT_GATEWAY_TIMEOUT = float(os.getenv("PAYMENT_GATEWAY_TIMEOUT", 10))

CHANNELS = {
    PaymentMethod.CREDIT_CARD: ["card"],
    PaymentMethod.DEBIT_CARD: ["card"],
    PaymentMethod.MOBILE_MONEY: ["mobile_money"],
    PaymentMethod.BANK_TRANSFER: ["bank", "bank_transfer"],
}

# Gateway statuses folded into the three outcomes the payment flow cares about
SUCCESS = "success"
FAILED = "failed"
PENDING = "pending"
_FAILED_STATUSES = {"failed", "abandoned", "reversed"}


@dataclass
class GatewayInit:
    authorization_url: str
    reference: str
    access_code: str | None = None


@dataclass
class GatewayVerification:
    status: str
    amount: float
    reference: str
    currency: str | None = None
    metadata: dict = field(default_factory=dict)
    raw_status: str | None = None

    @property
    def succeeded(self):
        return self.status == SUCCESS

    @property
    def failed(self):
        return self.status == FAILED


def channels_for(method: PaymentMethod) -> list[str]:
    return CHANNELS[PaymentMethod(method)]


class PaystackGateway:
    def __init__(
        self,
        secret_key: str = PAYSTACK_SECRET_KEY,
        base_url: str = PAYSTACK_BASE_URL,
        timeout: float = PAYMENT_GATEWAY_TIMEOUT,
        session: requests.Session | None = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    # ---------- HTTP ----------
    def _request(self, method: str, path: str, **kwargs) -> dict:
        headers = {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }
        url = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
            response.raise_for_status()
            body = response.json()
        except requests.Timeout:
            payment_logger.error(f"Paystack timeout | {method} {path}")
            raise ExternalServiceError("Payment gateway timed out, please retry")
        except requests.RequestException as e:
            payment_logger.error(f"Paystack request failed | {method} {path} | {e}")
            raise ExternalServiceError("Payment gateway request failed")
        except ValueError:
            payment_logger.error(f"Paystack returned a non-JSON body | {method} {path}")
            raise ExternalServiceError("Payment gateway returned an invalid response")

        if not isinstance(body, dict) or not body.get("status") or not isinstance(body.get("data"), dict):
            message = body.get("message") if isinstance(body, dict) else None
            payment_logger.error(f"Paystack rejected request | {method} {path} | {message}")
            raise ExternalServiceError(message or "Payment gateway rejected the request")

        return body["data"]

    # ---------- INITIALIZE ----------
    def initialize(
        self,
        email: str,
        amount: float,
        reference: str,
        currency: str = PAYMENT_CURRENCY,
        channels: list[str] | None = None,
        callback_url: str | None = PAYSTACK_CALLBACK_URL,
        metadata: dict | None = None,
    ) -> GatewayInit:
        payload = {
            "email": email,
            "amount": to_minor_units(amount),
            "currency": currency,
            "reference": reference,
            "metadata": metadata or {},
        }
        if channels:
            payload["channels"] = channels
        if callback_url:
            payload["callback_url"] = callback_url

        data = self._request("POST", "/transaction/initialize", json=payload)
        if not data.get("authorization_url"):
            raise ExternalServiceError("Payment gateway did not return an authorization URL")

        return GatewayInit(
            authorization_url=data["authorization_url"],
            reference=data.get("reference", reference),
            access_code=data.get("access_code"),
        )

    # ---------- VERIFY ----------
    def verify(self, reference: str) -> GatewayVerification:
        data = self._request("GET", f"/transaction/verify/{reference}")
        raw_status = (data.get("status") or "").lower()

        if raw_status == "success":
            status = SUCCESS
        elif raw_status in _FAILED_STATUSES:
            status = FAILED
        else:
            status = PENDING

        try:
            amount = from_minor_units(int(data.get("amount") or 0))
        except (TypeError, ValueError):
            raise ExternalServiceError("Payment gateway returned an invalid amount")

        return GatewayVerification(
            status=status,
            amount=amount,
            reference=data.get("reference", reference),
            currency=data.get("currency"),
            metadata=data.get("metadata") or {},
            raw_status=raw_status,
        )

    # ---------- REFUND ----------
    def refund(self, reference: str, amount: float | None = None, reason: str | None = None) -> dict:
        payload = {"transaction": reference}
        if amount is not None:
            payload["amount"] = to_minor_units(amount)
        if reason:
            payload["merchant_note"] = reason
        return self._request("POST", "/refund", json=payload)

    # ---------- WEBHOOK ----------
    def verify_signature(self, body: bytes, signature: str | None) -> bool:
        if not signature or not self.secret_key:
            return False
        computed = hmac.new(self.secret_key.encode(), body, hashlib.sha512).hexdigest()
        return hmac.compare_digest(computed, signature)


_gateway = None


def get_payment_gateway() -> PaystackGateway:
    global _gateway
    if _gateway is None:
        _gateway = PaystackGateway()
    return _gateway
