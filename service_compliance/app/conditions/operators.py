"""
Operator semantics and evaluation context.

Every comparison in the engine, for conditions and sub-conditions alike,
goes through ``compare``. Comparisons never raise: anything that cannot be
coerced or is not understood compares as ``False``.
"""

import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

from shared.logging import get_logger
from .models import Operator, ValueType

logger = get_logger("compliance.operators")

TODAY_TOKEN = "{today}"
NOT_AVAILABLE = "N/A"

_NUMBER_PREFIX = re.compile(r"^[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")
_DATE_FORMATS = ("%m/%d/%Y", "%Y/%m/%d", "%m-%d-%Y", "%d %B %Y", "%B %d, %Y")

DATE_COMPARISON_OPERATORS = frozenset({Operator.IS_BEFORE, Operator.IS_AFTER, Operator.IS_ON})
NUMERIC_COMPARISON_OPERATORS = frozenset({
    Operator.GREATER_THAN, Operator.LESS_THAN,
    Operator.GREATER_THAN_OR_EQUAL, Operator.LESS_THAN_OR_EQUAL,
})


@dataclass(frozen=True)
class DynamicValue:
    """Named placeholder token resolvable to a literal at evaluation time."""
    label: str
    token: str
    value_type: ValueType
    value: str

    def to_dict(self):
        return {
            "label": self.label,
            "value": self.token,
            "type": self.value_type.value,
            "calculatedValue": self.value,
        }


def build_dynamic_values(settings: Any = None, today: Optional[date] = None) -> list:
    """Build the dynamic value table, reading literals from ``settings`` when given."""
    today = today or date.today()

    def setting(name: str, default: str) -> str:
        value = getattr(settings, name, None) if settings is not None else None
        return str(value) if value is not None else default

    return [
        DynamicValue("Institution Name", "{institution_name}", ValueType.STRING,
                     setting("institution_name", "Simple State University")),
        DynamicValue("Term Name", "{term_name}", ValueType.STRING, setting("term_name", "Fall 2025")),
        DynamicValue("Total Students (LMS)", "{total_student (LMS)}", ValueType.NUMERIC,
                     setting("total_students_lms", "12,345")),
        DynamicValue("Total Students (SHE)", "{total_student (SHE)}", ValueType.NUMERIC,
                     setting("total_students_she", "12,500")),
        DynamicValue("Total Published Syllabi", "{total_published_syllabi}", ValueType.NUMERIC,
                     setting("total_published_syllabi", "350")),
        DynamicValue("Total Syllabi", "{total_syllabi}", ValueType.NUMERIC, setting("total_syllabi", "410")),
        DynamicValue("Total Sections", "{total_sections}", ValueType.NUMERIC, setting("total_sections", "450")),
        DynamicValue("Today's Date", TODAY_TOKEN, ValueType.DATE, today.isoformat()),
        DynamicValue("Term Start Date", "{term_start}", ValueType.DATE, setting("term_start", "08/26/2024")),
        DynamicValue("Term End Date", "{term_end}", ValueType.DATE, setting("term_end", "12/13/2024")),
        DynamicValue("Syllabus Due Date", "{syllabus_due_date}", ValueType.DATE,
                     setting("syllabus_due_date", "08/19/2024")),
        DynamicValue("Plan Due Date", "{plan_due_date}", ValueType.DATE, setting("plan_due_date", "07/15/2024")),
    ]


@dataclass(frozen=True)
class EvaluationContext:
    """Per-call evaluation inputs resolved once: the current date and token values."""
    today: date
    tokens: Mapping[str, str] = field(default_factory=lambda: MappingProxyType({}))

    @classmethod
    def create(cls, today: Optional[date] = None,
               dynamic_values: Optional[Iterable[DynamicValue]] = None) -> "EvaluationContext":
        today = today or date.today()
        values = dynamic_values if dynamic_values is not None else build_dynamic_values(today=today)
        tokens = {value.token: value.value for value in values}
        tokens[TODAY_TOKEN] = today.isoformat()
        return cls(today=today, tokens=MappingProxyType(tokens))

    def resolve(self, value: Any) -> Any:
        """Substitute a dynamic value token; other values pass through."""
        if isinstance(value, str):
            return self.tokens.get(value.strip(), value)
        return value


def to_number(value: Any) -> Optional[float]:
    """Best-effort float parse; ``None`` when nothing numeric can be read."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        return number if math.isfinite(number) else None
    if isinstance(value, str):
        match = _NUMBER_PREFIX.match(value.strip().replace(",", ""))
        if match:
            return float(match.group(0))
    return None


def to_date(value: Any) -> Optional[date]:
    """Parse a date or timestamp down to a calendar date."""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    return None


def percent_of(count: Any, denominator: Any) -> Optional[int]:
    """``round(count / denominator * 100)``; ``None`` for a zero or non-numeric denominator."""
    numerator = to_number(count)
    total = to_number(denominator)
    if numerator is None or total is None or total == 0:
        return None
    # Half-up rounding
    return int(math.floor(numerator / total * 100 + 0.5))


def format_value(value: Any) -> str:
    """Stringify a resolved value for display."""
    if value is None:
        return NOT_AVAILABLE
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    return str(value)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool) or (isinstance(value, float) and value.is_integer()):
        return format_value(value).lower()
    return str(value).lower()


def _is_blank(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip() != ""
    return bool(value)


def _equals(actual: Any, expected: Any) -> bool:
    if isinstance(actual, (int, float)) and not isinstance(actual, bool):
        number = to_number(expected)
        if number is not None:
            return float(actual) == number
    return _text(actual) == _text(expected)


def _matches(actual: Any, pattern: Any) -> Optional[bool]:
    try:
        return re.fullmatch(str(pattern), str(actual), re.IGNORECASE) is not None
    except re.error:
        logger.debug("Invalid match pattern", pattern=str(pattern))
        return None


def _compare_dates(actual: Any, operator: Operator, expected: Any) -> bool:
    actual_date = to_date(actual)
    expected_date = to_date(expected)
    if actual_date is None or expected_date is None:
        return False
    if operator is Operator.IS_BEFORE:
        return actual_date < expected_date
    if operator is Operator.IS_AFTER:
        return actual_date > expected_date
    return actual_date == expected_date


def _compare_numbers(actual: Any, operator: Operator, expected: Any) -> bool:
    left = to_number(actual)
    right = to_number(expected)
    if left is None or right is None:
        return False
    if operator is Operator.GREATER_THAN:
        return left > right
    if operator is Operator.LESS_THAN:
        return left < right
    if operator is Operator.GREATER_THAN_OR_EQUAL:
        return left >= right
    return left <= right


def compare(actual: Any, operator: Any, expected: Any,
            context: Optional[EvaluationContext] = None) -> bool:
    """Apply ``operator`` to a resolved value and the configured value."""
    op = Operator.parse(operator)
    if op is None:
        logger.debug("Unknown operator", operator=operator)
        return False

    if actual is None:
        return op is Operator.IS_EMPTY

    if context is None:
        context = EvaluationContext.create()
    expected = context.resolve(expected)

    if op in DATE_COMPARISON_OPERATORS:
        return _compare_dates(actual, op, expected)

    if op in NUMERIC_COMPARISON_OPERATORS:
        return _compare_numbers(actual, op, expected)

    if op in (Operator.IS, Operator.EQUALS):
        return _equals(actual, expected)
    if op in (Operator.IS_NOT, Operator.DOES_NOT_EQUAL):
        return not _equals(actual, expected)

    if op is Operator.IS_EMPTY:
        return _is_blank(actual)
    if op is Operator.IS_NOT_EMPTY:
        return not _is_blank(actual)

    if op in (Operator.IS_PRESENT, Operator.EXISTS, Operator.IS_TRUE):
        return _truthy(actual)
    if op in (Operator.IS_NOT_PRESENT, Operator.DOES_NOT_EXIST, Operator.IS_FALSE):
        return not _truthy(actual)

    if op is Operator.CONTAINS:
        return _text(expected) in _text(actual)
    if op is Operator.STARTS_WITH:
        return _text(actual).startswith(_text(expected))
    if op is Operator.ENDS_WITH:
        return _text(actual).endswith(_text(expected))

    if op in (Operator.MATCHES, Operator.DOES_NOT_MATCH):
        matched = _matches(actual, expected)
        if matched is None:
            return False
        return matched if op is Operator.MATCHES else not matched

    if op in (Operator.CHARACTER_COUNT_EQUALS, Operator.CHARACTER_COUNT_LESS_THAN):
        limit = to_number(expected)
        if limit is None:
            return False
        length = len(str(actual))
        return length == limit if op is Operator.CHARACTER_COUNT_EQUALS else length < limit

    if op in (Operator.IS_PUBLISHED, Operator.IS_NOT_PUBLISHED):
        published = _text(actual) == "published" or actual is True
        return published if op is Operator.IS_PUBLISHED else not published

    if op in (Operator.IS_COMPLETE, Operator.IS_NOT_COMPLETE):
        complete = _text(actual) in ("complete", "completed") or actual is True
        return complete if op is Operator.IS_COMPLETE else not complete

    if op in (Operator.IS_ACTIVE, Operator.IS_INACTIVE):
        active = _text(actual) == "active" or actual is True
        return active if op is Operator.IS_ACTIVE else not active

    return False
