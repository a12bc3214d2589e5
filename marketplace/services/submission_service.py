"""Assignment intake and the pricing run that follows it."""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from marketplace import config
from marketplace.constants import ASSIGNMENT_TYPES, PLATFORMS, ActivityType
from marketplace.errors import InvalidTransition, MarketplaceError, NotFound, ValidationError
from marketplace.models import Assignment, User
from marketplace.schemas import AssignmentCreate
from marketplace.services import pricing
from marketplace.services.activity_log import ActivityLogService
from marketplace.services.gateway import PersistenceGateway
from marketplace.services.lifecycle import AssignmentLifecycle

REQUIRED_TEXT_FIELDS = ("course_name", "class_name", "teacher_name", "platform_contact")


def validate_submission(data: AssignmentCreate) -> None:
    for field in REQUIRED_TEXT_FIELDS:
        if not (getattr(data, field) or "").strip():
            raise ValidationError(f"{field} is required")
    if data.assignment_type not in ASSIGNMENT_TYPES:
        raise ValidationError(f"Unknown assignment type: {data.assignment_type}")
    if not data.platform:
        raise ValidationError("Please select a delivery platform")
    if data.platform not in PLATFORMS:
        raise ValidationError(f"Unsupported delivery platform: {data.platform}")
    if data.due_date is None:
        raise ValidationError("due_date is required")


async def create_assignment(gateway: PersistenceGateway, user: User, data: AssignmentCreate) -> Assignment:
    validate_submission(data)

    assignment = Assignment(
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        assignment_type=data.assignment_type,
        course_name=data.course_name.strip(),
        class_name=data.class_name.strip(),
        teacher_name=data.teacher_name.strip(),
        due_date=data.due_date,
        platform=data.platform,
        platform_contact=data.platform_contact.strip(),
        description=data.description,
        files=[f.model_dump() for f in data.files],
        status="pending",
        created_at=datetime.utcnow(),
    )
    await gateway.add_assignment(assignment)

    failed_uploads = [f.name for f in data.files if f.upload_error]
    description = f"Assignment created: {assignment.course_name} — {assignment.assignment_type}"
    if failed_uploads:
        description += f". Failed uploads: {', '.join(failed_uploads)}"
    await ActivityLogService(gateway).record(
        ActivityType.ASSIGNMENT_CREATED,
        description,
        user_id=user.id,
        user_name=user.name,
        user_email=user.email,
        assignment_id=assignment.id,
    )
    await gateway.commit()
    logging.info("Assignment %s created by %s", assignment.id, user.id)
    return assignment


async def _load_rules(gateway: PersistenceGateway):
    try:
        return await gateway.list_pricing_rules()
    except SQLAlchemyError:
        logging.exception("Pricing rules unavailable; using fallback rates")
        await gateway.rollback()
        return None


async def analyze_assignment(
    gateway: PersistenceGateway,
    assignment_id: str,
    user_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> Tuple[Assignment, pricing.PricingDecision]:
    """Run ``pending → analyzing → analyzed | rejected``; revert to pending on failure."""
    assignment = await gateway.get_assignment(assignment_id)
    if assignment is None or (user_id is not None and assignment.user_id != user_id):
        raise NotFound("Assignment not found")

    lifecycle = AssignmentLifecycle(gateway)
    await lifecycle.start_pricing(assignment_id)

    try:
        rules = await _load_rules(gateway)
        owner = await gateway.get_user(assignment.user_id)
        decision = pricing.evaluate(
            assignment.assignment_type,
            assignment.description,
            assignment.due_date,
            owner.school_level if owner else None,
            rules=rules or None,
            now=now,
            currency=config.DEFAULT_CURRENCY,
        )
        assignment = await lifecycle.apply_pricing_result(assignment_id, decision)
    except InvalidTransition:
        raise
    except (MarketplaceError, SQLAlchemyError) as exc:
        logging.exception("Pricing failed for assignment %s", assignment_id)
        await gateway.rollback()
        await lifecycle.fail_pricing(assignment_id, str(exc) or exc.__class__.__name__)
        raise

    return assignment, decision
