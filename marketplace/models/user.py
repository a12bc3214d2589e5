import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship

from marketplace.db.base_class import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    """Student or staff profile; ``id`` is issued by the identity provider."""

    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True, default=_uuid)
    name = Column(String(255), nullable=True)
    email = Column(String(255), nullable=True, index=True)
    role = Column(String(16), nullable=False, default="user")
    region = Column(String(64), nullable=True)
    country = Column(String(64), nullable=True)
    school_level = Column(String(32), nullable=True)
    department = Column(String(128), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)

    assignments = relationship("Assignment", back_populates="user")

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
