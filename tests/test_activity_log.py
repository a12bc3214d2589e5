import asyncio
from datetime import datetime

import pytest

from marketplace.constants import ActivityType
from marketplace.errors import ValidationError
from marketplace.models import ActivityLog
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import SqlGateway


def test_newest_first_with_insertion_order_tiebreak(session_factory):
    async def scenario():
        async with session_factory() as db:
            gateway = SqlGateway(db)
            same_moment = datetime(2026, 5, 1, 9, 30)
            for n in range(3):
                await gateway.add_log(
                    ActivityLog(type="admin_action", description=f"entry {n}", timestamp=same_moment)
                )
            service = ActivityLogService(gateway)
            await service.record(ActivityType.USER_LOGIN, "latest", user_id="u1")
            await gateway.commit()
            return await service.list_recent()

    logs = asyncio.run(scenario())
    assert [log.description for log in logs] == ["latest", "entry 2", "entry 1", "entry 0"]


def test_filters_and_limit(session_factory):
    async def scenario():
        async with session_factory() as db:
            gateway = SqlGateway(db)
            service = ActivityLogService(gateway)
            for n in range(5):
                await service.record(ActivityType.PAYMENT_FAILED, f"failed {n}", user_id="u1", assignment_id="a1")
            await service.record("user_registered", "joined", user_id="u2", metadata={"source": "web"})
            await gateway.commit()
            return (
                await service.list_recent(limit=2),
                await service.list_recent(type="user_registered"),
                await service.list_recent(user_id="u1"),
                await service.list_recent(assignment_id="a1", limit=None),
            )

    limited, registered, by_user, by_assignment = asyncio.run(scenario())
    assert len(limited) == 2
    assert [log.details for log in registered] == [{"source": "web"}]
    assert len(by_user) == 5
    assert len(by_assignment) == 5


def test_unknown_type_is_refused(session_factory):
    async def scenario():
        async with session_factory() as db:
            await ActivityLogService(SqlGateway(db)).record("assignment_teleported", "nope")

    with pytest.raises(ValidationError):
        asyncio.run(scenario())
