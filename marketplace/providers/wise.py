"""Wise pay-in links over the public REST API."""

import logging
from typing import Optional

import httpx

from marketplace import config
from marketplace.errors import ProviderUnavailable
from marketplace.providers.base import Checkout, Customer, PaymentProvider

SANDBOX_BASE = "https://api.sandbox.transferwise.tech"
LIVE_BASE = "https://api.transferwise.com"


class WiseProvider(PaymentProvider):
    name = "wise"

    def __init__(
        self,
        api_key: Optional[str] = None,
        profile_id: Optional[str] = None,
        sandbox: Optional[bool] = None,
        timeout: float = 15.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else config.WISE_API_KEY
        self.profile_id = profile_id if profile_id is not None else config.WISE_PROFILE_ID
        sandbox = config.WISE_SANDBOX if sandbox is None else sandbox
        self.base_url = SANDBOX_BASE if sandbox else LIVE_BASE
        self.timeout = timeout
        self.transport = transport

    def _require_credentials(self):
        if not self.api_key or not self.profile_id:
            raise ProviderUnavailable(
                "Wise credentials are not configured (set WISE_API_KEY and WISE_PROFILE_ID)."
            )

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            timeout=self.timeout,
            transport=self.transport,
        )

    async def create_checkout(self, amount, currency, reference, redirect_url, customer: Customer):
        self._require_credentials()
        body = {
            "amount": {"value": amount, "currency": currency},
            "reference": reference,
            "redirectUrl": redirect_url,
            "customer": {"email": customer.email, "name": customer.name},
        }
        try:
            async with self._client() as client:
                response = await client.post(f"/v3/profiles/{self.profile_id}/pay-in-links", json=body)
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logging.exception("Wise pay-in link creation failed for %s", reference)
            raise ProviderUnavailable(f"Wise error: {exc}") from exc

        return Checkout(id=str(data.get("id")), url=data.get("url"))

    async def get_status(self, provider_payment_id):
        self._require_credentials()
        try:
            async with self._client() as client:
                response = await client.get(
                    f"/v3/profiles/{self.profile_id}/pay-in-links/{provider_payment_id}"
                )
                response.raise_for_status()
                data = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logging.exception("Wise status lookup failed for %s", provider_payment_id)
            raise ProviderUnavailable(f"Wise error: {exc}") from exc

        return str(data.get("status") or "")
