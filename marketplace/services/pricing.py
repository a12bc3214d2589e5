"""Scope check and price quote for a submitted assignment.

``evaluate`` is a pure function: it reads nothing but its arguments and the
static tables below, so it can be called repeatedly or concurrently. Callers
persist the resulting :class:`PricingDecision` and drive the status change.
"""

import math
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, time
from typing import Iterable, List, Optional

OUT_OF_SCOPE_KEYWORDS = ["take exam", "take test", "cheat", "plagiarize", "hack", "illegal"]
OUT_OF_SCOPE_REASON = "Assignment contains prohibited content"

HIGH_COMPLEXITY_TYPES = ["Thesis", "Dissertation", "Research Paper"]
MEDIUM_COMPLEXITY_TYPES = ["Project", "Case Study", "Lab Report", "Presentation"]
LOW_COMPLEXITY_WORDS = ["simple", "basic", "short", "brief", "summary"]
HIGH_COMPLEXITY_WORDS = ["research", "analysis", "comprehensive", "detailed", "complex", "advanced"]

BASE_HOURS = {"low": 2, "medium": 5, "high": 10}

TYPE_MULTIPLIERS = {
    "Essay": 1,
    "Research Paper": 2,
    "Project": 1.5,
    "Homework": 0.5,
    "Lab Report": 1.2,
    "Presentation": 0.8,
    "Case Study": 1.5,
    "Thesis": 3,
    "Dissertation": 4,
    "Other": 1,
}

# £/hour when no rule in the table matches
FALLBACK_RATES = {"low": 12, "medium": 20, "high": 35}

URGENCY_MULTIPLIERS = {"normal": 1.0, "urgent": 1.4, "express": 1.8}

SCHOOL_MULTIPLIERS = {"Primary": 0.7, "Middle": 0.8, "High": 1.0, "University": 1.3}

DEFAULT_DAYS_UNTIL_DUE = 7
DEFAULT_RULE_TYPE = "default"
CONFIDENCE = 0.95

REQUIREMENT_MARKERS = [
    "APA",
    "MLA",
    "Chicago",
    "references",
    "bibliography",
    "citations",
    "double-spaced",
    "word count",
    "page count",
    "data analysis",
    "charts",
    "appendix",
]

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass(frozen=True)
class PricingDecision:
    in_scope: bool
    complexity: str
    estimated_hours: int
    price: float
    currency: str
    urgency: Optional[str] = None
    days_until_due: Optional[int] = None
    reason: Optional[str] = None
    confidence: float = CONFIDENCE
    requirements: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return asdict(self)


def _round_half_up(value: float, digits: int = 0) -> float:
    factor = 10 ** digits
    return math.floor(value * factor + 0.5) / factor


def _rule_field(rule, name):
    if isinstance(rule, dict):
        return rule.get(name)
    return getattr(rule, name, None)


def is_out_of_scope(description: Optional[str]) -> bool:
    text = (description or "").lower()
    return any(keyword in text for keyword in OUT_OF_SCOPE_KEYWORDS)


def classify_complexity(assignment_type: str, description: Optional[str]) -> str:
    """Type decides first; the low keywords are checked before the high ones."""
    text = (description or "").lower()
    if assignment_type in HIGH_COMPLEXITY_TYPES:
        return "high"
    if assignment_type in MEDIUM_COMPLEXITY_TYPES:
        return "medium"
    if any(word in text for word in LOW_COMPLEXITY_WORDS):
        return "low"
    if any(word in text for word in HIGH_COMPLEXITY_WORDS):
        return "high"
    return "medium"


def _parse_due_date(due_date) -> Optional[datetime]:
    if due_date is None or due_date == "":
        return None
    if isinstance(due_date, datetime):
        return _to_naive_utc(due_date) if due_date.tzinfo else due_date
    if isinstance(due_date, date):
        return datetime.combine(due_date, time.min)
    if isinstance(due_date, str):
        try:
            parsed = datetime.fromisoformat(due_date.strip().replace("Z", "+00:00"))
        except ValueError:
            return None
        return _to_naive_utc(parsed) if parsed.tzinfo else parsed
    return None


def _to_naive_utc(value: datetime) -> datetime:
    return (value - value.utcoffset()).replace(tzinfo=None)


def days_until(due_date, now: Optional[datetime] = None) -> int:
    due = _parse_due_date(due_date)
    if due is None:
        return DEFAULT_DAYS_UNTIL_DUE
    now = now or datetime.utcnow()
    return math.ceil((due - now).total_seconds() / SECONDS_PER_DAY)


def classify_urgency(days_until_due: int) -> str:
    if days_until_due <= 1:
        return "express"
    if days_until_due <= 3:
        return "urgent"
    return "normal"


def estimate_hours(complexity: str, assignment_type: str) -> int:
    multiplier = TYPE_MULTIPLIERS.get(assignment_type, 1)
    return int(_round_half_up(BASE_HOURS[complexity] * multiplier))


def resolve_rate(complexity: str, assignment_type: str, rules: Optional[Iterable] = None) -> float:
    """Type-specific rule, then the complexity's ``default`` rule, then the static table."""
    rules = list(rules or [])
    for wanted in (assignment_type, DEFAULT_RULE_TYPE):
        for rule in rules:
            if (
                _rule_field(rule, "complexity") == complexity
                and _rule_field(rule, "assignment_type") == wanted
            ):
                return float(_rule_field(rule, "hourly_rate"))
    return float(FALLBACK_RATES[complexity])


def extract_requirements(description: Optional[str]) -> List[str]:
    if not description:
        return []
    text = description.lower()
    return [marker for marker in REQUIREMENT_MARKERS if marker.lower() in text]


def evaluate(
    assignment_type: str,
    description: Optional[str] = None,
    due_date=None,
    school_level: Optional[str] = None,
    rules: Optional[Iterable] = None,
    now: Optional[datetime] = None,
    currency: str = "GBP",
) -> PricingDecision:
    """Return the scope verdict and price quote for one assignment.

    ``rules`` is any iterable of objects or dicts carrying ``complexity``,
    ``assignment_type`` and ``hourly_rate``; ``None`` means no rule table is
    available and the static rates apply.
    """
    if is_out_of_scope(description):
        return PricingDecision(
            in_scope=False,
            complexity="low",
            estimated_hours=0,
            price=0.0,
            currency=currency,
            reason=OUT_OF_SCOPE_REASON,
        )

    complexity = classify_complexity(assignment_type, description)
    days_until_due = days_until(due_date, now)
    urgency = classify_urgency(days_until_due)
    hours = estimate_hours(complexity, assignment_type)
    rate = resolve_rate(complexity, assignment_type, rules)
    school_multiplier = SCHOOL_MULTIPLIERS.get(school_level, 1.0)

    price = _round_half_up(
        rate * hours * URGENCY_MULTIPLIERS[urgency] * school_multiplier, 2
    )

    return PricingDecision(
        in_scope=True,
        complexity=complexity,
        estimated_hours=hours,
        price=price,
        currency=currency,
        urgency=urgency,
        days_until_due=days_until_due,
        requirements=extract_requirements(description),
    )
