from marketplace import config
from marketplace.providers.base import Checkout, Customer, PaymentProvider


def get_provider(name: str = None) -> PaymentProvider:
    """Build the provider selected by ``PAYMENT_PROVIDER``."""
    name = (name or config.PAYMENT_PROVIDER).lower()
    if name == "yookassa":
        from marketplace.providers.yookassa_provider import YooKassaProvider

        return YooKassaProvider()
    if name == "wise":
        from marketplace.providers.wise import WiseProvider

        return WiseProvider()
    raise ValueError(f"Unknown payment provider: {name}")


__all__ = ["Checkout", "Customer", "PaymentProvider", "get_provider"]
