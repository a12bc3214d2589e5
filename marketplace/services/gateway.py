"""Narrow persistence interface used by the lifecycle, payment and log services.

:class:`PersistenceGateway` is what the services depend on; :class:`SqlGateway`
implements it on top of one ``AsyncSession``. A gateway instance is a unit of
work: nothing is visible to other sessions until :meth:`commit`.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from marketplace.models import ActivityLog, Assignment, Payment, PricingRule, User


class PersistenceGateway(ABC):
    # ---------- users ----------
    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[User]: ...

    @abstractmethod
    async def add_user(self, user: User) -> User: ...

    @abstractmethod
    async def list_users(self, limit: Optional[int] = None) -> List[User]: ...

    # ---------- assignments ----------
    @abstractmethod
    async def add_assignment(self, assignment: Assignment) -> Assignment: ...

    @abstractmethod
    async def get_assignment(self, assignment_id: str) -> Optional[Assignment]: ...

    @abstractmethod
    async def list_assignments(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        user_id: Optional[str] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> Tuple[List[Assignment], int]: ...

    @abstractmethod
    async def transition_assignment(
        self, assignment_id: str, expected_status: str, new_status: str, **fields
    ) -> bool:
        """Set ``status`` only if it currently equals ``expected_status``."""

    @abstractmethod
    async def update_assignment(self, assignment_id: str, **fields) -> None: ...

    # ---------- payments ----------
    @abstractmethod
    async def add_payment(self, payment: Payment) -> Payment: ...

    @abstractmethod
    async def get_payment(self, payment_id: str) -> Optional[Payment]: ...

    @abstractmethod
    async def get_payment_by_reference(self, reference: str) -> Optional[Payment]: ...

    @abstractmethod
    async def transition_payment(
        self, payment_id: str, expected_status: str, new_status: str, **fields
    ) -> bool: ...

    @abstractmethod
    async def update_payment(self, payment_id: str, **fields) -> None: ...

    @abstractmethod
    async def list_payments(
        self,
        status: Optional[str] = None,
        assignment_id: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Payment]: ...

    # ---------- activity log ----------
    @abstractmethod
    async def add_log(self, entry: ActivityLog) -> ActivityLog: ...

    @abstractmethod
    async def list_logs(
        self,
        limit: Optional[int] = None,
        type: Optional[str] = None,
        user_id: Optional[str] = None,
        assignment_id: Optional[str] = None,
    ) -> List[ActivityLog]: ...

    # ---------- pricing rules ----------
    @abstractmethod
    async def list_pricing_rules(self) -> List[PricingRule]: ...

    # ---------- aggregates ----------
    @abstractmethod
    async def count_users(self, since: Optional[datetime] = None) -> int: ...

    @abstractmethod
    async def count_assignments_by_status(self) -> Dict[str, int]: ...

    @abstractmethod
    async def count_assignments(self, since: Optional[datetime] = None) -> int: ...

    @abstractmethod
    async def count_payments(self, status: str) -> int: ...

    @abstractmethod
    async def sum_payments(self, status: str, since: Optional[datetime] = None) -> float: ...

    # ---------- unit of work ----------
    @abstractmethod
    async def commit(self) -> None: ...

    @abstractmethod
    async def rollback(self) -> None: ...


class SqlGateway(PersistenceGateway):
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get(self, model, pk):
        # populate_existing: a conditional UPDATE may have changed the row
        # behind the identity map.
        result = await self.db.execute(
            select(model).filter_by(id=pk).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _add(self, obj):
        self.db.add(obj)
        await self.db.flush()
        return obj

    async def _conditional_update(self, model, pk, expected_status, new_status, fields) -> bool:
        result = await self.db.execute(
            update(model)
            .where(model.id == pk, model.status == expected_status)
            .values(status=new_status, **fields)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ---------- users ----------
    async def get_user(self, user_id):
        return await self._get(User, user_id)

    async def add_user(self, user):
        return await self._add(user)

    async def list_users(self, limit=None):
        query = select(User).order_by(User.created_at.desc())
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ---------- assignments ----------
    async def add_assignment(self, assignment):
        return await self._add(assignment)

    async def get_assignment(self, assignment_id):
        return await self._get(Assignment, assignment_id)

    async def list_assignments(self, status=None, search=None, user_id=None, limit=None, offset=None):
        conditions = []
        if status:
            conditions.append(Assignment.status == status)
        if user_id:
            conditions.append(Assignment.user_id == user_id)
        if search:
            pattern = f"%{search}%"
            conditions.append(
                or_(
                    Assignment.course_name.ilike(pattern),
                    Assignment.user_name.ilike(pattern),
                    Assignment.user_email.ilike(pattern),
                )
            )

        total = await self.db.scalar(select(func.count(Assignment.id)).where(*conditions))

        query = (
            select(Assignment)
            .where(*conditions)
            .order_by(Assignment.created_at.desc())
            .execution_options(populate_existing=True)
        )
        if offset:
            query = query.offset(offset)
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all()), total or 0

    async def transition_assignment(self, assignment_id, expected_status, new_status, **fields):
        fields.setdefault("updated_at", datetime.utcnow())
        return await self._conditional_update(
            Assignment, assignment_id, expected_status, new_status, fields
        )

    async def update_assignment(self, assignment_id, **fields):
        fields.setdefault("updated_at", datetime.utcnow())
        await self.db.execute(
            update(Assignment)
            .where(Assignment.id == assignment_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )

    # ---------- payments ----------
    async def add_payment(self, payment):
        return await self._add(payment)

    async def get_payment(self, payment_id):
        return await self._get(Payment, payment_id)

    async def get_payment_by_reference(self, reference):
        result = await self.db.execute(
            select(Payment)
            .filter_by(transaction_reference=reference)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def transition_payment(self, payment_id, expected_status, new_status, **fields):
        return await self._conditional_update(Payment, payment_id, expected_status, new_status, fields)

    async def update_payment(self, payment_id, **fields):
        await self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )

    async def list_payments(self, status=None, assignment_id=None, limit=None):
        query = select(Payment).order_by(Payment.created_at.desc())
        if status:
            query = query.filter(Payment.status == status)
        if assignment_id:
            query = query.filter(Payment.assignment_id == assignment_id)
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ---------- activity log ----------
    async def add_log(self, entry):
        return await self._add(entry)

    async def list_logs(self, limit=None, type=None, user_id=None, assignment_id=None):
        query = select(ActivityLog).order_by(ActivityLog.timestamp.desc(), ActivityLog.id.desc())
        if type:
            query = query.filter(ActivityLog.type == type)
        if user_id:
            query = query.filter(ActivityLog.user_id == user_id)
        if assignment_id:
            query = query.filter(ActivityLog.assignment_id == assignment_id)
        if limit:
            query = query.limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    # ---------- pricing rules ----------
    async def list_pricing_rules(self):
        result = await self.db.execute(select(PricingRule).order_by(PricingRule.created_at.desc()))
        return list(result.scalars().all())

    # ---------- aggregates ----------
    async def count_users(self, since=None):
        query = select(func.count(User.id))
        if since is not None:
            query = query.where(User.created_at >= since)
        return await self.db.scalar(query) or 0

    async def count_assignments_by_status(self):
        result = await self.db.execute(
            select(Assignment.status, func.count(Assignment.id)).group_by(Assignment.status)
        )
        return {status: count for status, count in result.all()}

    async def count_assignments(self, since=None):
        query = select(func.count(Assignment.id))
        if since is not None:
            query = query.where(Assignment.created_at >= since)
        return await self.db.scalar(query) or 0

    async def count_payments(self, status):
        return await self.db.scalar(select(func.count(Payment.id)).where(Payment.status == status)) or 0

    async def sum_payments(self, status, since=None):
        query = select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == status)
        if since is not None:
            query = query.where(Payment.created_at >= since)
        return float(await self.db.scalar(query) or 0)

    # ---------- unit of work ----------
    async def commit(self):
        await self.db.commit()

    async def rollback(self):
        await self.db.rollback()
