from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class GatewayConfirmation:
    payment_key: str
    order_id: str
    status: str
    total_amount: int
    method: str
    provider: Optional[str] = None
    receipt_url: Optional[str] = None


class BasePaymentGateway(ABC):
    """Base class for card/wallet payment gateways"""

    name: str = "unknown"

    @abstractmethod
    async def confirm(self, payment_key: str, order_id: str, amount: int) -> GatewayConfirmation:
        """Confirm an authorised payment; raises PaymentDeclined or ExternalServiceError"""
        pass
