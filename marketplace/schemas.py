from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class FileRef(BaseModel):
    name: str
    size: int = 0
    type: str = ""
    url: Optional[str] = None
    public_id: Optional[str] = None
    upload_error: Optional[str] = None


class AssignmentCreate(BaseModel):
    assignment_type: str
    course_name: str
    class_name: str
    teacher_name: str
    due_date: Optional[date] = None
    platform: str
    platform_contact: str
    description: Optional[str] = None
    files: List[FileRef] = Field(default_factory=list)


class AssignmentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    assignment_type: str
    course_name: str
    class_name: str
    teacher_name: str
    due_date: Optional[date] = None
    platform: str
    platform_contact: str
    description: Optional[str] = None
    files: List[FileRef] = Field(default_factory=list)
    status: str
    payment_amount: Optional[float] = None
    payment_currency: Optional[str] = None
    complexity: Optional[str] = None
    estimated_hours: Optional[int] = None
    urgency: Optional[str] = None
    requirements: Optional[List[str]] = None
    in_scope: Optional[bool] = None
    rejection_reason: Optional[str] = None
    payment_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssignmentPage(BaseModel):
    data: List[AssignmentOut]
    count: int


class QuoteRequest(BaseModel):
    assignment_type: str
    description: Optional[str] = None
    due_date: Optional[str] = None
    school_level: Optional[str] = None


class PricingDecisionOut(BaseModel):
    in_scope: bool
    complexity: str
    estimated_hours: int
    price: float
    currency: str
    urgency: Optional[str] = None
    days_until_due: Optional[int] = None
    reason: Optional[str] = None
    confidence: float
    requirements: List[str] = Field(default_factory=list)


class AnalysisOut(BaseModel):
    assignment: AssignmentOut
    decision: PricingDecisionOut


class PaymentInitiate(BaseModel):
    assignment_id: str
    amount: Optional[float] = None
    currency: Optional[str] = None
    redirect_origin: Optional[str] = None


class PaymentInitiateOut(BaseModel):
    payment_id: str
    transaction_reference: str
    checkout_url: Optional[str] = None
    provider_available: bool


class PaymentVerify(BaseModel):
    transaction_reference: str


class VerificationTimeoutReport(BaseModel):
    transaction_reference: str
    attempts: int


class PaymentVerifyOut(BaseModel):
    success: bool
    status: str
    payment_id: str
    transaction_reference: str


class PaymentOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    assignment_id: str
    user_id: str
    amount: float
    currency: str
    status: str
    provider: str
    transaction_reference: str
    provider_transaction_id: Optional[str] = None
    checkout_url: Optional[str] = None
    created_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class UserRegister(BaseModel):
    name: str
    email: str
    region: Optional[str] = None
    country: Optional[str] = None
    school_level: Optional[str] = None
    department: Optional[str] = None


class ProfileUpdate(BaseModel):
    name: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    school_level: Optional[str] = None
    department: Optional[str] = None


class UserOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: Optional[str] = None
    email: Optional[str] = None
    role: str
    region: Optional[str] = None
    country: Optional[str] = None
    school_level: Optional[str] = None
    department: Optional[str] = None
    created_at: Optional[datetime] = None
    last_login: Optional[datetime] = None


class ActivityLogOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    type: str
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    assignment_id: Optional[str] = None
    payment_id: Optional[str] = None
    description: str
    metadata: Optional[Dict[str, Any]] = Field(default=None, validation_alias="details")
    timestamp: datetime


class AdminStatusUpdate(BaseModel):
    status: str
    payment_amount: Optional[float] = None
    notes: Optional[str] = None


class AdminMessage(BaseModel):
    text: Optional[str] = None


class ContactOut(BaseModel):
    platform: str
    link: Optional[str] = None
    message: str
    delivered: bool


class DashboardStats(BaseModel):
    total_users: int
    total_assignments: int
    total_revenue: float
    pending_assignments: int
    analyzing_assignments: int
    completed_assignments: int
    failed_payments: int
    new_users_today: int
    assignments_today: int
    revenue_today: float
    assignments_by_status: Dict[str, int]
