"""Aggregate numbers for the admin overview."""

from datetime import datetime

from marketplace.constants import AssignmentStatus, PaymentStatus
from marketplace.services.gateway import PersistenceGateway


async def get_dashboard_stats(gateway: PersistenceGateway, now: datetime = None) -> dict:
    now = now or datetime.utcnow()
    today = now.replace(hour=0, minute=0, second=0, microsecond=0)

    by_status = await gateway.count_assignments_by_status()
    completed = PaymentStatus.COMPLETED.value

    return {
        "total_users": await gateway.count_users(),
        "total_assignments": sum(by_status.values()),
        "total_revenue": await gateway.sum_payments(completed),
        "pending_assignments": by_status.get(AssignmentStatus.PENDING.value, 0),
        "analyzing_assignments": by_status.get(AssignmentStatus.ANALYZING.value, 0),
        "completed_assignments": by_status.get(AssignmentStatus.COMPLETED.value, 0),
        "failed_payments": await gateway.count_payments(PaymentStatus.FAILED.value),
        "new_users_today": await gateway.count_users(since=today),
        "assignments_today": await gateway.count_assignments(since=today),
        "revenue_today": await gateway.sum_payments(completed, since=today),
        "assignments_by_status": by_status,
    }
