"""Bridges local :class:`Payment` rows and the external payment provider.

``initiate`` always leaves an auditable ``pending`` row, even when the provider
is down. ``verify`` reconciles one payment with the provider; completing a
payment, advancing its assignment and writing the audit entry happen in a
single commit.
"""

import logging
import secrets
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Awaitable, Callable, Optional

from marketplace import config
from marketplace.constants import ActivityType, AssignmentStatus, PaymentStatus, money
from marketplace.errors import (
    Forbidden,
    InvalidTransition,
    NotFound,
    ProviderUnavailable,
    ValidationError,
)
from marketplace.models import Assignment, Payment
from marketplace.providers.base import Customer, PaymentProvider
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import PersistenceGateway
from marketplace.services.lifecycle import AssignmentLifecycle

# Wise: COMPLETED / FAILED / EXPIRED; YooKassa: succeeded / canceled.
PROVIDER_STATUS_MAP = {
    "completed": PaymentStatus.COMPLETED,
    "succeeded": PaymentStatus.COMPLETED,
    "paid": PaymentStatus.COMPLETED,
    "failed": PaymentStatus.FAILED,
    "expired": PaymentStatus.FAILED,
    "canceled": PaymentStatus.FAILED,
    "cancelled": PaymentStatus.FAILED,
    "rejected": PaymentStatus.FAILED,
}

AMOUNT_TOLERANCE = 0.005


def map_provider_status(raw: Optional[str]) -> PaymentStatus:
    """Collapse provider vocabulary onto pending / completed / failed."""
    return PROVIDER_STATUS_MAP.get((raw or "").strip().lower(), PaymentStatus.PENDING)


@dataclass
class InitiateResult:
    payment_id: str
    transaction_reference: str
    checkout_url: Optional[str]

    @property
    def provider_available(self) -> bool:
        return self.checkout_url is not None


@dataclass
class VerifyResult:
    status: str
    payment_id: str
    transaction_reference: str
    assignment_id: str

    @property
    def success(self) -> bool:
        return self.status == PaymentStatus.COMPLETED.value

    @property
    def settled(self) -> bool:
        return self.status in (PaymentStatus.COMPLETED.value, PaymentStatus.FAILED.value)


PaymentCompletedHook = Callable[[Assignment, Payment], Awaitable[None]]


class PaymentOrchestrator:
    def __init__(
        self,
        gateway: PersistenceGateway,
        provider: Optional[PaymentProvider],
        lifecycle: Optional[AssignmentLifecycle] = None,
        activity: Optional[ActivityLogService] = None,
        on_completed: Optional[PaymentCompletedHook] = None,
    ):
        self.gateway = gateway
        self.provider = provider
        self.activity = activity or ActivityLogService(gateway)
        self.lifecycle = lifecycle or AssignmentLifecycle(gateway, self.activity)
        self.on_completed = on_completed

    @staticmethod
    def generate_reference(user_id: str, assignment_id: str) -> str:
        """``APE-<user>-<assignment>-<epoch ms>-<random>``; unique per call."""
        return "-".join(
            [
                config.PAYMENT_REFERENCE_PREFIX,
                str(user_id)[:8],
                str(assignment_id)[:8],
                str(int(time.time() * 1000)),
                secrets.token_hex(3),
            ]
        )

    def _result(self, payment: Payment, status: Optional[str] = None) -> VerifyResult:
        return VerifyResult(
            status=status or payment.status,
            payment_id=payment.id,
            transaction_reference=payment.transaction_reference,
            assignment_id=payment.assignment_id,
        )

    async def initiate(
        self,
        assignment_id: str,
        amount: Optional[float] = None,
        currency: Optional[str] = None,
        user_id: Optional[str] = None,
        redirect_origin: Optional[str] = None,
    ) -> InitiateResult:
        assignment = await self.gateway.get_assignment(assignment_id)
        if assignment is None or (user_id is not None and assignment.user_id != user_id):
            raise NotFound("Assignment not found")
        if assignment.status != AssignmentStatus.ANALYZED.value:
            raise InvalidTransition(
                f"Assignment {assignment_id} is {assignment.status}; only analyzed assignments can be paid",
                current=assignment.status,
            )
        if assignment.payment_amount is None:
            raise ValidationError(f"Assignment {assignment_id} has no quoted price")
        if amount is not None and abs(float(amount) - assignment.payment_amount) > AMOUNT_TOLERANCE:
            raise ValidationError(
                f"Amount {amount} does not match the quoted price {assignment.payment_amount}"
            )

        amount = assignment.payment_amount
        currency = currency or assignment.payment_currency or config.DEFAULT_CURRENCY
        reference = self.generate_reference(assignment.user_id, assignment.id)

        payment = Payment(
            assignment_id=assignment.id,
            user_id=assignment.user_id,
            amount=amount,
            currency=currency,
            provider=self.provider.name if self.provider else config.PAYMENT_PROVIDER,
            transaction_reference=reference,
            status=PaymentStatus.PENDING.value,
            details={"checkout_url": None},
            created_at=datetime.utcnow(),
        )
        await self.gateway.add_payment(payment)
        # Локальная запись фиксируется до обращения к провайдеру
        await self.gateway.commit()

        checkout = None
        error = None
        if self.provider is None:
            error = "No payment provider configured"
        else:
            owner = await self.gateway.get_user(assignment.user_id)
            customer = Customer(
                email=(owner.email if owner else None) or assignment.user_email,
                name=(owner.name if owner else None) or assignment.user_name,
            )
            redirect_url = f"{redirect_origin or config.PAYMENT_RETURN_URL}?tx_ref={reference}"
            try:
                checkout = await self.provider.create_checkout(
                    amount, currency, reference, redirect_url, customer
                )
            except ProviderUnavailable as exc:
                error = exc.message

        if checkout is not None:
            await self.gateway.update_payment(
                payment.id,
                provider_payment_id=checkout.id,
                details={"checkout_url": checkout.url},
            )
            await self.activity.record(
                ActivityType.PAYMENT_INITIATED,
                f"Payment initiated. {money(amount, currency)}. "
                f"{payment.provider}: {checkout.id}",
                user_id=assignment.user_id,
                assignment_id=assignment.id,
                payment_id=payment.id,
                metadata={"transaction_reference": reference},
            )
            logging.info("Payment %s initiated for assignment %s", reference, assignment.id)
        else:
            await self.activity.record(
                ActivityType.PAYMENT_PROVIDER_UNAVAILABLE,
                f"Payment initiated without checkout. {money(amount, currency)}. {error}",
                user_id=assignment.user_id,
                assignment_id=assignment.id,
                payment_id=payment.id,
                metadata={"transaction_reference": reference},
            )
            logging.warning("Checkout unavailable for %s: %s", reference, error)
        await self.gateway.commit()

        return InitiateResult(
            payment_id=payment.id,
            transaction_reference=reference,
            checkout_url=checkout.url if checkout else None,
        )

    async def verify(self, reference: str, user_id: Optional[str] = None) -> VerifyResult:
        payment = await self.gateway.get_payment_by_reference(reference)
        if payment is None:
            raise NotFound("Payment not found")
        if user_id is not None and payment.user_id != user_id:
            raise Forbidden("Forbidden")

        # Final states are never re-queried.
        if payment.status != PaymentStatus.PENDING.value:
            return self._result(payment)

        if self.provider is None or not payment.provider_payment_id:
            return self._result(payment)

        try:
            raw_status = await self.provider.get_status(payment.provider_payment_id)
        except ProviderUnavailable as exc:
            logging.warning("Could not verify %s: %s", reference, exc.message)
            return self._result(payment)

        new_status = map_provider_status(raw_status)
        if new_status == PaymentStatus.COMPLETED:
            return await self._complete(payment, raw_status)
        if new_status == PaymentStatus.FAILED:
            return await self._fail(payment, raw_status)
        return self._result(payment)

    async def _complete(self, payment: Payment, raw_status: str) -> VerifyResult:
        payment_id = payment.id
        try:
            applied = await self.gateway.transition_payment(
                payment.id,
                PaymentStatus.PENDING.value,
                PaymentStatus.COMPLETED.value,
                completed_at=datetime.utcnow(),
                provider_transaction_id=payment.provider_payment_id,
                details={**(payment.details or {}), "provider_status": raw_status},
            )
            if not applied:
                # A concurrent verify settled it first.
                await self.gateway.rollback()
                payment = await self.gateway.get_payment(payment_id)
                return self._result(payment)

            try:
                assignment = await self.lifecycle.confirm_payment(
                    payment.assignment_id, payment.id, commit=False
                )
            except InvalidTransition as exc:
                # Money arrived but the assignment moved on (duplicate intent,
                # admin override): keep the payment and flag it for review.
                logging.warning(
                    "Payment %s completed but assignment %s not advanced: %s",
                    payment.transaction_reference,
                    payment.assignment_id,
                    exc.message,
                )
                assignment = await self.gateway.get_assignment(payment.assignment_id)
                await self.activity.record(
                    ActivityType.PAYMENT_COMPLETED,
                    f"Payment verified. {money(payment.amount, payment.currency)}. "
                    f"Assignment {payment.assignment_id} left {assignment.status}; needs review",
                    user_id=payment.user_id,
                    assignment_id=payment.assignment_id,
                    payment_id=payment.id,
                    metadata={
                        "transaction_reference": payment.transaction_reference,
                        "needs_review": True,
                    },
                )
            await self.gateway.commit()
        except Exception:
            await self.gateway.rollback()
            raise

        logging.info("Payment %s completed", payment.transaction_reference)
        payment = await self.gateway.get_payment(payment.id)
        if self.on_completed is not None:
            try:
                await self.on_completed(assignment, payment)
            except Exception:
                logging.exception("Post-payment notification failed for %s", payment.transaction_reference)
        return self._result(payment)

    async def _fail(self, payment: Payment, raw_status: str) -> VerifyResult:
        payment_id = payment.id
        applied = await self.gateway.transition_payment(
            payment.id,
            PaymentStatus.PENDING.value,
            PaymentStatus.FAILED.value,
            details={**(payment.details or {}), "provider_status": raw_status},
        )
        if not applied:
            await self.gateway.rollback()
            payment = await self.gateway.get_payment(payment_id)
            return self._result(payment)

        await self.activity.record(
            ActivityType.PAYMENT_FAILED,
            f"Payment {payment.transaction_reference} {raw_status.lower()} at provider",
            user_id=payment.user_id,
            assignment_id=payment.assignment_id,
            payment_id=payment.id,
        )
        await self.gateway.commit()
        logging.info("Payment %s failed (%s)", payment.transaction_reference, raw_status)
        return self._result(payment, PaymentStatus.FAILED.value)

    async def handle_callback(self, payload: dict) -> VerifyResult:
        """Provider webhook: find the reference and re-check the provider."""
        obj = payload.get("object") or payload.get("data") or {}
        metadata = obj.get("metadata") or {}
        reference = (
            payload.get("reference")
            or payload.get("transaction_reference")
            or obj.get("reference")
            or metadata.get("transaction_reference")
        )
        if not reference:
            raise ValidationError("No transaction reference in callback payload")
        return await self.verify(reference)

    async def record_verification_timeout(
        self, reference: str, attempts: int, user_id: Optional[str] = None
    ) -> None:
        payment = await self.gateway.get_payment_by_reference(reference)
        if payment is None:
            raise NotFound("Payment not found")
        if user_id is not None and payment.user_id != user_id:
            raise Forbidden("Forbidden")
        await self.activity.record(
            ActivityType.PAYMENT_VERIFICATION_TIMEOUT,
            f"Verification of {reference} timed out after {attempts} checks; "
            f"payment left {payment.status}",
            user_id=payment.user_id,
            assignment_id=payment.assignment_id,
            payment_id=payment.id,
            metadata={"transaction_reference": reference, "attempts": attempts},
        )
        await self.gateway.commit()
