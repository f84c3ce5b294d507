"""
Business logic services.
Contains service layer implementations for core business operations.
"""

from .addon_service import AddonService
from .idempotency import IdempotencyGuard
from .notification_service import NotificationService
from .order_client import HttpOrderClient, LocalOrderClient, OrderClient
from .payment_service import PaymentService
from .pricing_service import PricingService
from .quote_service import QuoteService

__all__ = [
    "AddonService",
    "HttpOrderClient",
    "IdempotencyGuard",
    "LocalOrderClient",
    "NotificationService",
    "OrderClient",
    "PaymentService",
    "PricingService",
    "QuoteService",
]
