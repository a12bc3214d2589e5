from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, Index, Integer, String, Text

from marketplace.db.base_class import Base


class ActivityLog(Base):
    """Append-only audit fact. Rows are never updated or deleted."""

    __tablename__ = "activity_logs"

    # Autoincrement id doubles as insertion order for timestamp ties.
    id = Column(Integer, primary_key=True, autoincrement=True)
    type = Column(String(48), nullable=False, index=True)
    user_id = Column(String(64), nullable=True, index=True)
    user_name = Column(String(255), nullable=True)
    user_email = Column(String(255), nullable=True)
    assignment_id = Column(String(36), nullable=True, index=True)
    payment_id = Column(String(36), nullable=True)
    description = Column(Text, nullable=False)
    details = Column("metadata", JSON, nullable=True)
    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (Index("ix_activity_logs_timestamp_id", "timestamp", "id"),)
