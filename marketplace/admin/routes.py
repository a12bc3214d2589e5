from typing import List, Optional

from fastapi import APIRouter, Depends

from marketplace.api.deps import get_gateway, require_admin
from marketplace.errors import NotFound
from marketplace.models import User
from marketplace.schemas import (
    ActivityLogOut,
    AdminMessage,
    AdminStatusUpdate,
    AssignmentOut,
    AssignmentPage,
    ContactOut,
    DashboardStats,
    PaymentOut,
    UserOut,
)
from marketplace.services import contact_service, stats_service
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import SqlGateway
from marketplace.services.lifecycle import AssignmentLifecycle

admin_router = APIRouter(prefix="/admin")


@admin_router.get("/stats", response_model=DashboardStats)
async def admin_stats(admin: User = Depends(require_admin), gateway: SqlGateway = Depends(get_gateway)):
    return await stats_service.get_dashboard_stats(gateway)


@admin_router.get("/assignments", response_model=AssignmentPage)
async def admin_assignments(
    status: str = "",
    q: str = "",
    limit: int = 20,
    offset: int = 0,
    admin: User = Depends(require_admin),
    gateway: SqlGateway = Depends(get_gateway),
):
    # --- ФИЛЬТР ПО СТАТУСУ и ПОИСК ---
    data, count = await gateway.list_assignments(
        status=status or None, search=q or None, limit=limit, offset=offset
    )
    return {"data": data, "count": count}


@admin_router.get("/assignments/{assignment_id}", response_model=AssignmentOut)
async def admin_assignment(
    assignment_id: str,
    admin: User = Depends(require_admin),
    gateway: SqlGateway = Depends(get_gateway),
):
    assignment = await gateway.get_assignment(assignment_id)
    if assignment is None:
        raise NotFound("Assignment not found")
    return assignment


@admin_router.post("/assignments/{assignment_id}/status", response_model=AssignmentOut)
async def admin_update_status(
    assignment_id: str,
    data: AdminStatusUpdate,
    admin: User = Depends(require_admin),
    gateway: SqlGateway = Depends(get_gateway),
):
    """Mark complete, mark rejected or override the price."""
    return await AssignmentLifecycle(gateway).admin_set_status(
        assignment_id,
        data.status,
        actor=admin,
        payment_amount=data.payment_amount,
        note=data.notes,
    )


@admin_router.post("/assignments/{assignment_id}/message", response_model=ContactOut)
async def admin_message_student(
    assignment_id: str,
    data: AdminMessage,
    admin: User = Depends(require_admin),
    gateway: SqlGateway = Depends(get_gateway),
):
    return await contact_service.message_student(gateway, assignment_id, admin, data.text)


@admin_router.get("/users", response_model=List[UserOut])
async def admin_users(admin: User = Depends(require_admin), gateway: SqlGateway = Depends(get_gateway)):
    return await gateway.list_users()


@admin_router.get("/payments", response_model=List[PaymentOut])
async def admin_payments(
    status: Optional[str] = None,
    limit: int = 100,
    admin: User = Depends(require_admin),
    gateway: SqlGateway = Depends(get_gateway),
):
    return await gateway.list_payments(status=status, limit=limit)


@admin_router.get("/logs", response_model=List[ActivityLogOut])
async def admin_logs(
    type: Optional[str] = None,
    limit: int = 100,
    admin: User = Depends(require_admin),
    gateway: SqlGateway = Depends(get_gateway),
):
    return await ActivityLogService(gateway).list_recent(limit=limit, type=type)
