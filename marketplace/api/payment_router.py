# marketplace/api/payment_router.py

import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from marketplace import config
from marketplace.api.deps import get_current_user, get_gateway, get_orchestrator
from marketplace.errors import Forbidden, NotFound, ValidationError
from marketplace.models import User
from marketplace.schemas import (
    PaymentInitiate,
    PaymentInitiateOut,
    PaymentOut,
    PaymentVerify,
    PaymentVerifyOut,
    VerificationTimeoutReport,
)
from marketplace.services.gateway import SqlGateway
from marketplace.services.payment_service import PaymentOrchestrator

router = APIRouter()


# ---------- СОЗДАНИЕ ПЛАТЕЖА ----------
@router.post("/payments/initiate", response_model=PaymentInitiateOut, status_code=201)
async def initiate_payment(
    data: PaymentInitiate,
    user: User = Depends(get_current_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """
    Creates a pending payment and, when the provider answers, a checkout URL.
    With ``checkout_url`` null the client should send the student to support.
    """
    result = await orchestrator.initiate(
        data.assignment_id,
        amount=data.amount,
        currency=data.currency,
        user_id=user.id,
        redirect_origin=data.redirect_origin,
    )
    return {
        "payment_id": result.payment_id,
        "transaction_reference": result.transaction_reference,
        "checkout_url": result.checkout_url,
        "provider_available": result.provider_available,
    }


# ---------- ПРОВЕРКА СТАТУСА (поллинг клиента) ----------
@router.post("/payments/verify", response_model=PaymentVerifyOut)
async def verify_payment(
    data: PaymentVerify,
    user: User = Depends(get_current_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    result = await orchestrator.verify(data.transaction_reference, user_id=user.id)
    return {
        "success": result.success,
        "status": result.status,
        "payment_id": result.payment_id,
        "transaction_reference": result.transaction_reference,
    }


@router.post("/payments/verification-timeout")
async def report_verification_timeout(
    data: VerificationTimeoutReport,
    user: User = Depends(get_current_user),
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """Called by a client whose poller hit its attempt cap."""
    await orchestrator.record_verification_timeout(
        data.transaction_reference, data.attempts, user_id=user.id
    )
    support = config.SUPPORT_EMAIL
    if config.SUPPORT_WHATSAPP:
        support += f" or WhatsApp {config.SUPPORT_WHATSAPP}"
    return {
        "status": "recorded",
        "message": (
            f"Verification timed out. Contact support at {support} "
            f"with reference {data.transaction_reference}."
        ),
    }


@router.get("/payments/{reference}", response_model=PaymentOut)
async def get_payment(
    reference: str,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    payment = await gateway.get_payment_by_reference(reference)
    if payment is None:
        raise NotFound("Payment not found")
    if payment.user_id != user.id and not user.is_admin:
        raise Forbidden("Forbidden")
    return payment


# ---------- ВЕБХУК ПРОВАЙДЕРА ----------
@router.post("/payments/webhook")
async def payment_webhook(
    payload: Dict[str, Any],
    orchestrator: PaymentOrchestrator = Depends(get_orchestrator),
):
    """
    The payload only tells us which reference to re-check; the status itself
    always comes from the provider API.
    """
    logging.info("[WEBHOOK] event=%s", payload.get("event") or payload.get("type"))
    try:
        result = await orchestrator.handle_callback(payload)
    except (ValidationError, NotFound) as exc:
        # 200, чтобы провайдер не ретраил бесконечно
        logging.warning("Webhook ignored: %s", exc.message)
        return {"status": f"ignored: {exc.message}"}
    return {"status": result.status}
