"""Razorpay REST client and signature checks."""

import hashlib
import hmac
import logging
import time
from typing import Any, Dict, Optional

import httpx

from config import (
    PAYMENT_TIMEOUT_SECONDS,
    RAZORPAY_API_URL,
    RAZORPAY_KEY_ID,
    RAZORPAY_KEY_SECRET,
    RAZORPAY_WEBHOOK_SECRET,
)
from core.exceptions import UpstreamFailureError

logger = logging.getLogger(__name__)


def _hmac_sha256(secret: str, message: bytes) -> str:
    return hmac.new(secret.encode("utf-8"), message, hashlib.sha256).hexdigest()


def _signature_matches(expected: str, signature: str) -> bool:
    # compare_digest only accepts ASCII str
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


class RazorpayService:
    """Creates orders and QR codes and verifies Razorpay signatures."""

    def __init__(
        self,
        key_id: Optional[str] = RAZORPAY_KEY_ID,
        key_secret: Optional[str] = RAZORPAY_KEY_SECRET,
        webhook_secret: Optional[str] = RAZORPAY_WEBHOOK_SECRET,
        timeout: float = PAYMENT_TIMEOUT_SECONDS,
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.webhook_secret = webhook_secret
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.key_id and self.key_secret)

    def _post(self, path: str, payload: Dict[str, Any]) -> Dict[str, Any]:
        if not self.enabled:
            raise UpstreamFailureError("Payment gateway is not configured")
        url = f"{RAZORPAY_API_URL}{path}"
        try:
            with httpx.Client(
                timeout=self.timeout, auth=(self.key_id, self.key_secret)
            ) as client:
                response = client.post(url, json=payload)
                response.raise_for_status()
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Razorpay %s failed: %s %s", path, e.response.status_code, e.response.text
            )
            raise UpstreamFailureError("Payment gateway rejected the request") from e
        except (httpx.HTTPError, ValueError) as e:
            logger.error("Razorpay %s request failed: %s", path, e)
            raise UpstreamFailureError("Payment gateway request failed") from e

    def create_order(
        self, amount: int, currency: str, receipt: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create an order for ``amount`` in the smallest currency unit."""
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt or f"receipt_{int(time.time() * 1000)}",
        }
        order = self._post("/orders", payload)
        logger.info("Created Razorpay order %s", order.get("id"))
        return order

    def create_qr_code(self, amount: int, description: Optional[str] = None) -> Dict[str, Any]:
        """Create a single-use UPI QR code for a fixed amount."""
        payload = {
            "type": "upi_qr",
            "name": "Aithor",
            "usage": "single_use",
            "fixed_amount": True,
            "payment_amount": amount,
            "description": description or "Aithor payment",
        }
        qr = self._post("/payments/qr_codes", payload)
        logger.info("Created Razorpay QR code %s", qr.get("id"))
        return qr

    def verify_payment_signature(
        self, order_id: str, payment_id: str, signature: str
    ) -> bool:
        """Check the checkout signature over ``order_id|payment_id``."""
        if not self.key_secret:
            return False
        expected = _hmac_sha256(self.key_secret, f"{order_id}|{payment_id}".encode("utf-8"))
        return _signature_matches(expected, signature)

    def verify_webhook_signature(self, body: bytes, signature: Optional[str]) -> bool:
        """Check the ``X-Razorpay-Signature`` header over the raw body."""
        if not self.webhook_secret or not signature:
            return False
        return _signature_matches(_hmac_sha256(self.webhook_secret, body), signature)
