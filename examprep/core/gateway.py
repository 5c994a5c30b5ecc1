import hashlib
import hmac
import logging

import httpx

from examprep.core.config import settings
from examprep.core.exceptions import GatewayUnavailable, Internal

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def compute_signature(order_id: str, payment_id: str, secret: str) -> str:
    return hmac.new(
        secret.encode("utf-8"),
        f"{order_id}|{payment_id}".encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


class RazorpayGateway:
    """Razorpay orders API client. Callback signatures are checked locally."""

    def __init__(self, key_id: str = None, key_secret: str = None, api_url: str = None, timeout: float = None):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.api_url = (api_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS

    def create_order(self, amount_minor_units: int, currency: str, receipt: str, notes: dict) -> dict:
        """
        Create an order on the gateway.

        Raises:
            GatewayUnavailable on timeout, transport error or a 5xx answer.
            Creation is never retried here, a retry could open a second order.
        """
        if not self.key_id or not self.key_secret:
            raise GatewayUnavailable("Payment gateway is not configured")

        try:
            response = httpx.post(
                f"{self.api_url}/orders",
                json={
                    "amount": amount_minor_units,
                    "currency": currency,
                    "receipt": receipt,
                    "notes": notes,
                },
                auth=(self.key_id, self.key_secret),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            logger.error("Razorpay order timeout for receipt %s", receipt)
            raise GatewayUnavailable() from e
        except httpx.HTTPError as e:
            logger.error("Razorpay order error for receipt %s: %s", receipt, str(e))
            raise GatewayUnavailable() from e

        if response.status_code >= 500:
            logger.error("Razorpay order failed [%s]: %s", response.status_code, response.text)
            raise GatewayUnavailable()
        if response.status_code >= 400:
            logger.error("Razorpay rejected order [%s]: %s", response.status_code, response.text)
            raise Internal("Failed to create payment order")

        order = response.json()
        logger.info("Razorpay order %s created for receipt %s", order.get("id"), receipt)
        return {
            "orderId": order["id"],
            "amount": order.get("amount", amount_minor_units),
            "currency": order.get("currency", currency),
        }

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        if not self.key_secret or not signature:
            return False
        expected = compute_signature(order_id, payment_id, self.key_secret)
        return hmac.compare_digest(expected, signature)


def get_gateway() -> RazorpayGateway:
    """Dependency to get the payment gateway client"""
    return RazorpayGateway()
