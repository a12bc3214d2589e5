"""Shared FastAPI dependencies: session, gateway, caller identity, payments."""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.db.session import SessionLocal
from marketplace.errors import Forbidden
from marketplace.models import User
from marketplace.providers import PaymentProvider, get_provider
from marketplace.services.contact_service import notify_payment_completed
from marketplace.services.gateway import SqlGateway
from marketplace.services.payment_service import PaymentOrchestrator


async def get_db():
    async with SessionLocal() as db:
        yield db


async def get_gateway(db: AsyncSession = Depends(get_db)) -> SqlGateway:
    return SqlGateway(db)


def get_identity(x_user_id: Optional[str] = Header(default=None)) -> str:
    """User id forwarded by the identity provider in front of the API."""
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return x_user_id


async def get_current_user(
    user_id: str = Depends(get_identity), gateway: SqlGateway = Depends(get_gateway)
) -> User:
    user = await gateway.get_user(user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unauthorized")
    return user


async def require_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise Forbidden("Forbidden: admin only")
    return user


def get_payment_provider() -> Optional[PaymentProvider]:
    try:
        return get_provider()
    except ValueError:
        logging.exception("Payment provider misconfigured")
        return None


async def get_orchestrator(
    gateway: SqlGateway = Depends(get_gateway),
    provider: Optional[PaymentProvider] = Depends(get_payment_provider),
) -> PaymentOrchestrator:
    return PaymentOrchestrator(gateway, provider, on_completed=notify_payment_completed)
