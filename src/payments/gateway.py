from abc import ABC, abstractmethod
from typing import Dict, Optional
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from pydantic import BaseModel
import hashlib
import hmac
import secrets
import httpx

from src.config import settings
from src.exceptions import UpstreamError
from src.logger_config import logger

class GatewayOrder(BaseModel):
    """Charge intent created on the payment gateway"""
    id: str
    amount: int
    currency: str
    receipt: str
    status: str = "created"

def to_minor_units(amount: Decimal) -> int:
    """Rupees to paise"""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))

def generate_receipt_id(user_id: int, now: datetime) -> str:
    return f"rcpt_{user_id}_{int(now.timestamp() * 1000)}"

def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 hex digest over 'order_id|payment_id'"""
    return hmac.new(
        secret.encode(),
        f"{order_id}|{payment_id}".encode(),
        hashlib.sha256
    ).hexdigest()

class PaymentGateway(ABC):
    key_id: str = ""
    test_mode: bool = False

    @abstractmethod
    def create_order(self, amount_minor: int, receipt_id: str, notes: Optional[Dict[str, str]] = None) -> GatewayOrder:
        pass

    @abstractmethod
    def sign(self, order_id: str, payment_id: str) -> str:
        pass

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = self.sign(order_id, payment_id)
        return hmac.compare_digest(expected, signature or "")

class RazorpayGateway(PaymentGateway):
    """Razorpay Orders API client.

    In test mode orders are minted locally (order_test_*) and no HTTP call is made;
    signatures are still real HMACs so the verification path is unchanged.
    """

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        test_mode: Optional[bool] = None,
        currency: Optional[str] = None,
        transport: Optional[httpx.BaseTransport] = None
    ):
        self.key_id = key_id if key_id is not None else settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret if key_secret is not None else settings.RAZORPAY_KEY_SECRET
        self.api_url = (api_url or settings.RAZORPAY_API_URL).rstrip("/")
        self.timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS
        self.test_mode = settings.PAYMENT_TEST_MODE if test_mode is None else test_mode
        self.currency = currency or settings.CURRENCY
        self.transport = transport

    def sign(self, order_id: str, payment_id: str) -> str:
        return compute_signature(self.key_secret, order_id, payment_id)

    def create_order(self, amount_minor: int, receipt_id: str, notes: Optional[Dict[str, str]] = None) -> GatewayOrder:
        if self.test_mode:
            order = GatewayOrder(
                id=f"order_test_{secrets.token_hex(7)}",
                amount=amount_minor,
                currency=self.currency,
                receipt=receipt_id
            )
            logger.info(f"Created offline test order {order.id} for receipt {receipt_id}")
            return order

        if not self.key_id or not self.key_secret:
            raise UpstreamError("Payment gateway is not configured")

        payload = {
            "amount": amount_minor,
            "currency": self.currency,
            "receipt": receipt_id,
            "notes": notes or {}
        }

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(
                    f"{self.api_url}/orders",
                    json=payload,
                    auth=(self.key_id, self.key_secret)
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            message = _gateway_error_message(e.response)
            logger.error(f"Gateway rejected order for receipt {receipt_id}: {message}")
            raise UpstreamError(f"Payment gateway error: {message}")
        except httpx.HTTPError as e:
            logger.error(f"Gateway request failed for receipt {receipt_id}: {e}")
            raise UpstreamError("Payment gateway unavailable")

        logger.info(f"Created gateway order {data['id']} for receipt {receipt_id}")
        return GatewayOrder(
            id=data["id"],
            amount=data.get("amount", amount_minor),
            currency=data.get("currency", self.currency),
            receipt=data.get("receipt", receipt_id),
            status=data.get("status", "created")
        )

def _gateway_error_message(response: httpx.Response) -> str:
    try:
        return response.json()["error"]["description"]
    except (ValueError, KeyError, TypeError):
        return f"HTTP {response.status_code}"

def get_payment_gateway() -> PaymentGateway:
    """FastAPI dependency for the configured gateway"""
    return RazorpayGateway()
