"""Capability interface every payment-collection provider implements."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional


@dataclass
class Checkout:
    id: str
    url: Optional[str]


@dataclass
class Customer:
    email: Optional[str] = None
    name: Optional[str] = None


class PaymentProvider(ABC):
    name = "provider"

    @abstractmethod
    async def create_checkout(
        self,
        amount: float,
        currency: str,
        reference: str,
        redirect_url: str,
        customer: Customer,
    ) -> Checkout:
        """Create a hosted checkout; raise ``ProviderUnavailable`` on any failure."""

    @abstractmethod
    async def get_status(self, provider_payment_id: str) -> str:
        """Return the provider's own status string for the checkout."""
