from .analytics_service import AnalyticsService
from .barion_client import BarionClient, PaymentGatewayError
from .billing_service import BillingService
from .catalog_service import CatalogService
from .checkout_service import CheckoutRequest, CheckoutService
from .delivery_service import DeliveryService, DeliverySettingsService
from .order_service import OrderService, SubscriptionOrderState
from .payment_service import PaymentService
from .shop_settings_service import ShopSettingsService
from .stripe_service import StripeService

__all__ = [
    "AnalyticsService",
    "BarionClient",
    "BillingService",
    "CatalogService",
    "CheckoutRequest",
    "CheckoutService",
    "DeliveryService",
    "DeliverySettingsService",
    "OrderService",
    "PaymentGatewayError",
    "PaymentService",
    "ShopSettingsService",
    "StripeService",
    "SubscriptionOrderState",
]
