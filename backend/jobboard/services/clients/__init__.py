from jobboard.services.clients.base import BasePaymentGateway, GatewayConfirmation
from jobboard.services.clients.toss import TossPaymentsClient
from jobboard.services.clients.registry import BusinessRegistryClient, RegistryResult, RegistryStatus

__all__ = [
    "BasePaymentGateway",
    "GatewayConfirmation",
    "TossPaymentsClient",
    "BusinessRegistryClient",
    "RegistryResult",
    "RegistryStatus",
]
