# marketplace/models/payment.py
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, Numeric, String, UniqueConstraint

from marketplace.db.base_class import Base
from marketplace.models.user import _uuid


class Payment(Base):
    __tablename__ = "payments"

    id = Column(String(36), primary_key=True, default=_uuid)
    assignment_id = Column(String(36), ForeignKey("assignments.id"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)

    amount = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    currency = Column(String(8), nullable=False)

    # 'wise' | 'yookassa'
    provider = Column(String(32), nullable=False)

    # Наш собственный референс — ключ для сверки при возврате с чекаута
    transaction_reference = Column(String(128), nullable=False, unique=True, index=True)
    # Идентификатор платёжной ссылки у провайдера (pay-in link id / payment id)
    provider_payment_id = Column(String(128), nullable=True)
    provider_transaction_id = Column(String(128), nullable=True)

    # pending | processing | completed | failed | refunded
    status = Column(String(16), nullable=False, default="pending", index=True)

    # checkout_url, последний сырой статус провайдера и т.п.
    # "metadata" is reserved on declarative classes, hence the attribute name.
    details = Column("metadata", JSON, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    __table_args__ = (
        UniqueConstraint("transaction_reference", name="uq_payments_transaction_reference"),
        Index("ix_payments_assignment_status", "assignment_id", "status"),
    )

    @property
    def checkout_url(self):
        return (self.details or {}).get("checkout_url")
