"""Append-only activity log shared by the lifecycle, payment and admin flows."""

from datetime import datetime
from typing import List, Optional

from marketplace.constants import ActivityType
from marketplace.errors import ValidationError
from marketplace.models import ActivityLog
from marketplace.services.gateway import PersistenceGateway

DEFAULT_LIMIT = 100


class ActivityLogService:
    def __init__(self, gateway: PersistenceGateway):
        self.gateway = gateway

    async def record(
        self,
        type: ActivityType,
        description: str,
        user_id: Optional[str] = None,
        user_name: Optional[str] = None,
        user_email: Optional[str] = None,
        assignment_id: Optional[str] = None,
        payment_id: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> ActivityLog:
        """Stage one entry in the gateway's unit of work; the caller commits."""
        try:
            type = ActivityType(type)
        except ValueError:
            raise ValidationError(f"Unknown activity type: {type}")

        entry = ActivityLog(
            type=type.value,
            user_id=user_id,
            user_name=user_name,
            user_email=user_email,
            assignment_id=assignment_id,
            payment_id=payment_id,
            description=description,
            details=metadata,
            timestamp=datetime.utcnow(),
        )
        return await self.gateway.add_log(entry)

    async def list_recent(
        self,
        limit: Optional[int] = DEFAULT_LIMIT,
        type: Optional[str] = None,
        user_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
    ) -> List[ActivityLog]:
        """Newest first; entries sharing a timestamp come back in reverse insertion order."""
        return await self.gateway.list_logs(
            limit=limit, type=type, user_id=user_id, assignment_id=assignment_id
        )
