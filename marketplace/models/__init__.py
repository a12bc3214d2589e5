from marketplace.models.activity_log import ActivityLog
from marketplace.models.assignment import Assignment
from marketplace.models.payment import Payment
from marketplace.models.pricing_rule import PricingRule
from marketplace.models.user import User

__all__ = ["ActivityLog", "Assignment", "Payment", "PricingRule", "User"]
