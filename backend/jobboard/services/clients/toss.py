import base64
import logging
import httpx
from jobboard.services.clients.base import BasePaymentGateway, GatewayConfirmation
from jobboard.errors import ExternalServiceError, PaymentDeclined
from jobboard.config import get_settings

logger = logging.getLogger(__name__)


class TossPaymentsClient(BasePaymentGateway):
    name = "toss"

    def __init__(self, secret_key: str | None = None, base_url: str | None = None, timeout: float | None = None):
        settings = get_settings()
        self.secret_key = secret_key if secret_key is not None else settings.toss_secret_key
        self.base_url = base_url or settings.toss_api_url
        self.timeout = timeout or settings.gateway_timeout_seconds

    def _auth_header(self) -> str:
        token = base64.b64encode(f"{self.secret_key}:".encode()).decode()
        return f"Basic {token}"

    async def confirm(self, payment_key: str, order_id: str, amount: int) -> GatewayConfirmation:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            try:
                response = await client.post(
                    f"{self.base_url}/payments/confirm",
                    headers={"Authorization": self._auth_header()},
                    json={"paymentKey": payment_key, "orderId": order_id, "amount": amount},
                )
            except httpx.HTTPError as e:
                logger.error(f"Toss confirm transport error for {order_id}: {e}")
                raise ExternalServiceError("Payment gateway unavailable, try again later", service=self.name)

        if response.status_code >= 500:
            logger.error(f"Toss confirm failed for {order_id}: HTTP {response.status_code}")
            raise ExternalServiceError("Payment gateway unavailable, try again later", service=self.name)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if response.status_code >= 400:
            raise PaymentDeclined(data.get("message") or "Payment was declined", gateway_code=data.get("code"))

        return self._parse(data)

    def _parse(self, data: dict) -> GatewayConfirmation:
        card = data.get("card") or {}
        easy_pay = data.get("easyPay") or {}
        receipt = data.get("receipt") or {}
        return GatewayConfirmation(
            payment_key=data["paymentKey"],
            order_id=data["orderId"],
            status=data.get("status", ""),
            total_amount=int(data.get("totalAmount", 0)),
            method=data.get("method", ""),
            provider=card.get("company") or easy_pay.get("provider"),
            receipt_url=receipt.get("url") or card.get("receiptUrl"),
        )
