from datetime import datetime

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from marketplace.db.base_class import Base
from marketplace.models.user import _uuid


class Assignment(Base):
    __tablename__ = "assignments"

    id = Column(String(36), primary_key=True, default=_uuid)
    user_id = Column(String(64), ForeignKey("profiles.id"), nullable=False, index=True)
    # Денормализованные данные студента для поиска в админке
    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)

    assignment_type = Column(String(64), nullable=False)
    course_name = Column(String(255), nullable=False)
    class_name = Column(String(255), nullable=False)
    teacher_name = Column(String(255), nullable=False)
    due_date = Column(Date, nullable=True)
    platform = Column(String(32), nullable=False)
    platform_contact = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    # [{name, size, type, url, public_id, upload_error}]
    files = Column(JSON, nullable=False, default=list)

    status = Column(String(16), nullable=False, default="pending", index=True)

    # Заполняется только движком ценообразования (или админом)
    payment_amount = Column(Numeric(10, 2, asdecimal=False), nullable=True)
    payment_currency = Column(String(8), nullable=True)
    complexity = Column(String(8), nullable=True)
    estimated_hours = Column(Integer, nullable=True)
    urgency = Column(String(8), nullable=True)
    requirements = Column(JSON, nullable=True)
    in_scope = Column(Boolean, nullable=True)
    rejection_reason = Column(Text, nullable=True)

    payment_id = Column(String(36), nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, nullable=True)

    user = relationship("User", back_populates="assignments")

    __table_args__ = (Index("ix_assignments_user_status", "user_id", "status"),)
