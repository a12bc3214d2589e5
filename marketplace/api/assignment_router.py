from typing import Optional

from fastapi import APIRouter, Depends

from marketplace import config
from marketplace.api.deps import get_current_user, get_gateway
from marketplace.errors import NotFound
from marketplace.models import User
from marketplace.schemas import (
    AnalysisOut,
    AssignmentCreate,
    AssignmentOut,
    AssignmentPage,
    PricingDecisionOut,
    QuoteRequest,
)
from marketplace.services import pricing, submission_service
from marketplace.services.gateway import SqlGateway

router = APIRouter()


@router.post("/assignments", response_model=AssignmentOut, status_code=201)
async def create_assignment(
    data: AssignmentCreate,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    return await submission_service.create_assignment(gateway, user, data)


@router.get("/assignments", response_model=AssignmentPage)
async def list_my_assignments(
    status: Optional[str] = None,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    data, count = await gateway.list_assignments(status=status, user_id=user.id)
    return {"data": data, "count": count}


@router.get("/assignments/{assignment_id}", response_model=AssignmentOut)
async def get_assignment(
    assignment_id: str,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    assignment = await gateway.get_assignment(assignment_id)
    if assignment is None or (assignment.user_id != user.id and not user.is_admin):
        raise NotFound("Assignment not found")
    return assignment


@router.post("/assignments/{assignment_id}/analyze", response_model=AnalysisOut)
async def analyze_assignment(
    assignment_id: str,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    """Price the assignment and move it to analyzed (or rejected when out of scope)."""
    assignment, decision = await submission_service.analyze_assignment(
        gateway, assignment_id, user_id=user.id
    )
    return {"assignment": assignment, "decision": decision.to_dict()}


@router.post("/pricing/quote", response_model=PricingDecisionOut)
async def quote(
    data: QuoteRequest,
    user: User = Depends(get_current_user),
    gateway: SqlGateway = Depends(get_gateway),
):
    # Предварительный расчёт, ничего не сохраняет
    rules = await gateway.list_pricing_rules()
    decision = pricing.evaluate(
        data.assignment_type,
        data.description,
        data.due_date,
        data.school_level or user.school_level,
        rules=rules or None,
        currency=config.DEFAULT_CURRENCY,
    )
    return decision.to_dict()
