"""Closed vocabularies shared by the models, services and API schemas."""

from enum import Enum


class AssignmentStatus(str, Enum):
    PENDING = "pending"
    ANALYZING = "analyzing"
    ANALYZED = "analyzed"
    PAID = "paid"
    SUBMITTED = "submitted"
    COMPLETED = "completed"
    REJECTED = "rejected"


TERMINAL_STATUSES = frozenset({AssignmentStatus.COMPLETED, AssignmentStatus.REJECTED})


class PaymentStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ActivityType(str, Enum):
    USER_REGISTERED = "user_registered"
    USER_LOGIN = "user_login"
    USER_LOGOUT = "user_logout"
    USER_UPDATED = "user_updated"
    ASSIGNMENT_CREATED = "assignment_created"
    ASSIGNMENT_ANALYZING = "assignment_analyzing"
    ASSIGNMENT_ANALYZED = "assignment_analyzed"
    ASSIGNMENT_PRICING_FAILED = "assignment_pricing_failed"
    ASSIGNMENT_PAID = "assignment_paid"
    ASSIGNMENT_SUBMITTED = "assignment_submitted"
    ASSIGNMENT_COMPLETED = "assignment_completed"
    ASSIGNMENT_REJECTED = "assignment_rejected"
    PAYMENT_INITIATED = "payment_initiated"
    PAYMENT_PROVIDER_UNAVAILABLE = "payment_provider_unavailable"
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_REFUNDED = "payment_refunded"
    PAYMENT_VERIFICATION_TIMEOUT = "payment_verification_timeout"
    STUDENT_CONTACTED = "student_contacted"
    ADMIN_ACTION = "admin_action"


ASSIGNMENT_TYPES = [
    "Essay",
    "Research Paper",
    "Project",
    "Homework",
    "Lab Report",
    "Presentation",
    "Case Study",
    "Thesis",
    "Dissertation",
    "Other",
]

SCHOOL_LEVELS = ["Primary", "Middle", "High", "University"]

PLATFORMS = ["WhatsApp", "Email", "Snapchat", "Telegram", "Instagram", "Discord"]

CURRENCY_SYMBOLS = {"GBP": "£", "USD": "$", "EUR": "€", "RUB": "₽"}


def money(amount, currency: str) -> str:
    symbol = CURRENCY_SYMBOLS.get(currency)
    if symbol:
        return f"{symbol}{amount:.2f}"
    return f"{amount:.2f} {currency}"
