"""YooKassa redirect payments through the official SDK."""

import logging
from typing import Any, Dict, Optional

from fastapi.concurrency import run_in_threadpool
from yookassa import Configuration
from yookassa import Payment as YooKassaPayment

from marketplace import config
from marketplace.errors import ProviderUnavailable
from marketplace.providers.base import Checkout, Customer, PaymentProvider


class YooKassaProvider(PaymentProvider):
    name = "yookassa"

    def __init__(self, shop_id: Optional[str] = None, secret_key: Optional[str] = None):
        self.shop_id = shop_id if shop_id is not None else config.YOOKASSA_SHOP_ID
        self.secret_key = secret_key if secret_key is not None else config.YOOKASSA_SECRET_KEY

    def _configure_yookassa_or_raise(self):
        if not self.shop_id or not self.secret_key:
            raise ProviderUnavailable(
                "YOOKASSA credentials are not configured "
                "(set YOOKASSA_SHOP_ID and YOOKASSA_SECRET_KEY)."
            )
        Configuration.account_id = self.shop_id
        Configuration.secret_key = self.secret_key

    async def create_checkout(self, amount, currency, reference, redirect_url, customer: Customer):
        self._configure_yookassa_or_raise()

        receipt_customer: Dict[str, Any] = {}
        if customer.email:
            receipt_customer["email"] = customer.email

        request = {
            "amount": {"value": f"{amount:.2f}", "currency": currency},
            "confirmation": {"type": "redirect", "return_url": redirect_url},
            "capture": True,
            "description": f"Assignment payment {reference}",
            "metadata": {"transaction_reference": reference},
        }
        if receipt_customer:
            request["receipt"] = {
                "customer": receipt_customer,
                "items": [
                    {
                        "description": "Assignment support",
                        "quantity": "1.00",
                        "amount": {"value": f"{amount:.2f}", "currency": currency},
                        "vat_code": 1,  # без НДС
                    }
                ],
            }

        try:
            # Референс служит ключом идемпотентности
            payment = await run_in_threadpool(YooKassaPayment.create, request, reference)
        except Exception as exc:
            logging.exception("YooKassa Payment.create failed for %s", reference)
            raise ProviderUnavailable(f"YooKassa error: {exc}") from exc

        return Checkout(id=payment.id, url=payment.confirmation.confirmation_url)

    async def get_status(self, provider_payment_id):
        self._configure_yookassa_or_raise()
        try:
            payment = await run_in_threadpool(YooKassaPayment.find_one, provider_payment_id)
        except Exception as exc:
            logging.exception("YooKassa Payment.find_one failed for %s", provider_payment_id)
            raise ProviderUnavailable(f"YooKassa error: {exc}") from exc
        return payment.status
