"""Assignment status state machine.

All status changes go through :data:`TRANSITIONS` and are applied with a
conditional UPDATE on the current status, so two racing callers produce at
most one real transition. A real transition stages exactly one activity log
entry; a repeated call that finds the target status already in place is a
no-op and logs nothing.
"""

import logging
from enum import Enum
from typing import Optional

from marketplace.constants import (
    TERMINAL_STATUSES,
    ActivityType,
    AssignmentStatus,
    PaymentStatus,
    money,
)
from marketplace.errors import Forbidden, InvalidTransition, NotFound, ValidationError
from marketplace.models import Assignment, User
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import PersistenceGateway
from marketplace.services.pricing import PricingDecision


class Event(str, Enum):
    BEGIN_PRICING = "begin_pricing"
    PRICED_IN_SCOPE = "priced_in_scope"
    PRICED_OUT_OF_SCOPE = "priced_out_of_scope"
    PRICING_FAILED = "pricing_failed"
    PAYMENT_CONFIRMED = "payment_confirmed"
    OPERATOR_COMPLETE = "operator_complete"
    OPERATOR_REJECT = "operator_reject"


S = AssignmentStatus

TRANSITIONS = {
    (S.PENDING, Event.BEGIN_PRICING): S.ANALYZING,
    (S.ANALYZING, Event.PRICED_IN_SCOPE): S.ANALYZED,
    (S.ANALYZING, Event.PRICED_OUT_OF_SCOPE): S.REJECTED,
    (S.ANALYZING, Event.PRICING_FAILED): S.PENDING,
    (S.ANALYZED, Event.PAYMENT_CONFIRMED): S.SUBMITTED,
    (S.PAID, Event.PAYMENT_CONFIRMED): S.SUBMITTED,
    (S.ANALYZED, Event.OPERATOR_COMPLETE): S.COMPLETED,
    (S.PAID, Event.OPERATOR_COMPLETE): S.COMPLETED,
    (S.SUBMITTED, Event.OPERATOR_COMPLETE): S.COMPLETED,
}
for _status in S:
    if _status not in TERMINAL_STATUSES:
        TRANSITIONS[(_status, Event.OPERATOR_REJECT)] = S.REJECTED

# Events whose target status may already be in place from an earlier identical call.
EVENT_TARGETS = {
    Event.BEGIN_PRICING: S.ANALYZING,
    Event.PRICED_IN_SCOPE: S.ANALYZED,
    Event.PRICED_OUT_OF_SCOPE: S.REJECTED,
    Event.PAYMENT_CONFIRMED: S.SUBMITTED,
    Event.OPERATOR_COMPLETE: S.COMPLETED,
    Event.OPERATOR_REJECT: S.REJECTED,
}

OPERATOR_EVENTS = {S.COMPLETED: Event.OPERATOR_COMPLETE, S.REJECTED: Event.OPERATOR_REJECT}


def next_status(current, event: Event) -> AssignmentStatus:
    current = AssignmentStatus(current)
    try:
        return TRANSITIONS[(current, event)]
    except KeyError:
        raise InvalidTransition(
            f"Cannot apply {event.value} to an assignment in status {current.value}",
            current=current,
        )


def parse_status(value) -> AssignmentStatus:
    try:
        return AssignmentStatus(value)
    except ValueError:
        allowed = ", ".join(s.value for s in AssignmentStatus)
        raise ValidationError(f"Invalid status. Must be one of: {allowed}")


class AssignmentLifecycle:
    def __init__(self, gateway: PersistenceGateway, activity: Optional[ActivityLogService] = None):
        self.gateway = gateway
        self.activity = activity or ActivityLogService(gateway)

    async def _load(self, assignment_id: str) -> Assignment:
        assignment = await self.gateway.get_assignment(assignment_id)
        if assignment is None:
            raise NotFound(f"Assignment {assignment_id} not found")
        return assignment

    async def _transition(self, assignment_id: str, event: Event, is_repeat=None, **fields):
        """Apply ``event``; return the refreshed assignment and whether it changed.

        ``is_repeat(assignment)`` decides whether an assignment already sitting
        in the event's target status counts as the same call repeated.
        """
        assignment = await self._load(assignment_id)
        target = EVENT_TARGETS.get(event)

        if target is not None and assignment.status == target.value:
            if is_repeat is None or is_repeat(assignment):
                return assignment, False

        try:
            new_status = next_status(assignment.status, event)
        except InvalidTransition as exc:
            logging.warning(
                "Refused %s for assignment %s in status %s", event.value, assignment_id, assignment.status
            )
            exc.target = target
            raise

        applied = await self.gateway.transition_assignment(
            assignment_id, assignment.status, new_status.value, **fields
        )
        if not applied:
            # Lost a race: someone else moved the assignment first.
            assignment = await self._load(assignment_id)
            if target is not None and assignment.status == target.value:
                return assignment, False
            logging.warning(
                "Concurrent update on assignment %s: expected %s, found %s",
                assignment_id,
                new_status.value,
                assignment.status,
            )
            raise InvalidTransition(
                f"Assignment {assignment_id} changed concurrently (now {assignment.status})",
                current=assignment.status,
                target=new_status,
            )

        return await self._load(assignment_id), True

    async def _commit(self, commit: bool):
        if commit:
            await self.gateway.commit()

    async def _ensure_price_unlocked(self, assignment: Assignment, target):
        """A completed payment fixes the price it was charged at."""
        if not assignment.payment_id:
            return
        linked = await self.gateway.get_payment(assignment.payment_id)
        if linked is not None and linked.status == PaymentStatus.COMPLETED.value:
            raise InvalidTransition(
                f"Price of assignment {assignment.id} is fixed by completed payment {linked.id}",
                current=assignment.status,
                target=target,
            )

    async def start_pricing(self, assignment_id: str, commit: bool = True) -> Assignment:
        assignment = await self._load(assignment_id)
        if assignment.status != S.ANALYZING.value:
            await self._ensure_price_unlocked(assignment, S.ANALYZING)
        assignment, changed = await self._transition(assignment_id, Event.BEGIN_PRICING)
        if changed:
            await self.activity.record(
                ActivityType.ASSIGNMENT_ANALYZING,
                f"Review started for assignment {assignment_id}",
                user_id=assignment.user_id,
                user_name=assignment.user_name,
                assignment_id=assignment_id,
            )
        await self._commit(commit)
        return assignment

    async def apply_pricing_result(
        self, assignment_id: str, decision: PricingDecision, commit: bool = True
    ) -> Assignment:
        current = await self._load(assignment_id)
        if current.status == S.ANALYZING.value:
            await self._ensure_price_unlocked(current, S.ANALYZED if decision.in_scope else S.REJECTED)

        fields = {
            "complexity": decision.complexity,
            "estimated_hours": decision.estimated_hours,
            "payment_amount": decision.price,
            "payment_currency": decision.currency,
            "urgency": decision.urgency,
            "requirements": list(decision.requirements),
            "in_scope": decision.in_scope,
            "rejection_reason": decision.reason,
        }

        def same_decision(a: Assignment) -> bool:
            return a.payment_amount == decision.price and a.complexity == decision.complexity

        event = Event.PRICED_IN_SCOPE if decision.in_scope else Event.PRICED_OUT_OF_SCOPE
        assignment, changed = await self._transition(
            assignment_id, event, is_repeat=same_decision, **fields
        )
        if changed:
            if decision.in_scope:
                await self.activity.record(
                    ActivityType.ASSIGNMENT_ANALYZED,
                    f"Review complete. Price: {money(decision.price, decision.currency)}. "
                    f"Complexity: {decision.complexity}",
                    user_id=assignment.user_id,
                    user_name=assignment.user_name,
                    assignment_id=assignment_id,
                    metadata=decision.to_dict(),
                )
            else:
                await self.activity.record(
                    ActivityType.ASSIGNMENT_REJECTED,
                    f"Assignment {assignment_id} is out of scope: {decision.reason}",
                    user_id=assignment.user_id,
                    user_name=assignment.user_name,
                    assignment_id=assignment_id,
                )
        await self._commit(commit)
        return assignment

    async def fail_pricing(self, assignment_id: str, reason: str, commit: bool = True) -> Assignment:
        """Revert ``analyzing`` to ``pending`` so the student can resubmit."""
        assignment = await self._load(assignment_id)
        if assignment.status == S.PENDING.value:
            return assignment
        assignment, changed = await self._transition(assignment_id, Event.PRICING_FAILED)
        if changed:
            await self.activity.record(
                ActivityType.ASSIGNMENT_PRICING_FAILED,
                f"Review failed for assignment {assignment_id}: {reason}",
                user_id=assignment.user_id,
                assignment_id=assignment_id,
            )
        await self._commit(commit)
        return assignment

    async def confirm_payment(self, assignment_id: str, payment_id: str, commit: bool = True) -> Assignment:
        payment = await self.gateway.get_payment(payment_id)
        if payment is None or payment.assignment_id != assignment_id:
            raise NotFound(f"Payment {payment_id} not found for assignment {assignment_id}")
        if payment.status != PaymentStatus.COMPLETED.value:
            raise InvalidTransition(
                f"Payment {payment_id} is {payment.status}, not completed",
                target=S.SUBMITTED,
            )

        assignment, changed = await self._transition(
            assignment_id,
            Event.PAYMENT_CONFIRMED,
            is_repeat=lambda a: a.payment_id == payment_id,
            payment_id=payment_id,
        )
        if changed:
            await self.activity.record(
                ActivityType.PAYMENT_COMPLETED,
                f"Payment verified. {money(payment.amount, payment.currency)}. "
                f"Assignment {assignment_id} submitted",
                user_id=payment.user_id,
                user_name=assignment.user_name,
                assignment_id=assignment_id,
                payment_id=payment_id,
                metadata={"transaction_reference": payment.transaction_reference},
            )
        await self._commit(commit)
        return assignment

    async def admin_set_status(
        self,
        assignment_id: str,
        status,
        actor: Optional[User],
        payment_amount: Optional[float] = None,
        note: Optional[str] = None,
        commit: bool = True,
    ) -> Assignment:
        """Privileged override; bypasses the transition table but not the CAS."""
        if actor is None or not actor.is_admin:
            raise Forbidden("Forbidden: admin only")
        target = parse_status(status)
        if payment_amount is not None and payment_amount < 0:
            raise ValidationError("payment_amount must not be negative")

        assignment = await self._load(assignment_id)
        if assignment.status == target.value and payment_amount in (None, assignment.payment_amount):
            return assignment

        fields = {}
        if payment_amount is not None and payment_amount != assignment.payment_amount:
            await self._ensure_price_unlocked(assignment, target)
            fields["payment_amount"] = payment_amount

        applied = await self.gateway.transition_assignment(
            assignment_id, assignment.status, target.value, **fields
        )
        if not applied:
            current = (await self._load(assignment_id)).status
            raise InvalidTransition(
                f"Assignment {assignment_id} changed concurrently (now {current})",
                current=current,
                target=target,
            )

        operator_event = OPERATOR_EVENTS.get(target)
        override = operator_event is None or (
            (AssignmentStatus(assignment.status), operator_event) not in TRANSITIONS
        )

        description = f"Admin updated assignment {assignment_id} → {target.value}"
        if "payment_amount" in fields:
            description += f". Price set to {money(payment_amount, assignment.payment_currency or 'GBP')}"
        if note:
            description += f". Notes: {note}"
        await self.activity.record(
            ActivityType.ADMIN_ACTION,
            description,
            user_id=actor.id,
            user_name=actor.name,
            user_email=actor.email,
            assignment_id=assignment_id,
            metadata={"from": assignment.status, "to": target.value, "override": override},
        )
        await self._commit(commit)
        return await self._load(assignment_id)
