from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, Numeric, String, UniqueConstraint

from marketplace.db.base_class import Base


class PricingRule(Base):
    """Hourly rate for a (complexity, assignment type) pair; type may be ``default``."""

    __tablename__ = "pricing_rules"

    id = Column(Integer, primary_key=True, index=True)
    complexity = Column(String(8), nullable=False)
    assignment_type = Column(String(64), nullable=False, default="default")
    hourly_rate = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("complexity", "assignment_type", name="uq_pricing_rules_complexity_type"),
    )
