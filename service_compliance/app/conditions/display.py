"""
Display value projection for evaluation results.
"""

from typing import Any, List, Optional

from shared.logging import get_logger
from .models import Condition, ConditionResult, DisplayType, PlanTask, Section, ValueType
from .operators import (
    NOT_AVAILABLE, EvaluationContext, format_value, percent_of, to_date, to_number
)
from .resolver import resolve_property
from .schema import DEFAULT_SCHEMA, PropertySchema
from .validator import operator_requires_value

VALUE_DISPLAY_TYPES = frozenset({
    DisplayType.NUMBER, DisplayType.FRACTION, DisplayType.PERCENT,
    DisplayType.DATE, DisplayType.STATUS_LABEL,
})

# Aggregates whose resolved value is already a percentage
PERCENT_PROPERTIES = frozenset({"Total Percent"})


def governing_condition(task: PlanTask) -> Optional[Condition]:
    """The task's only condition, or ``None`` when it has zero or several."""
    conditions = task.all_conditions()
    return conditions[0] if len(conditions) == 1 else None


def select_result(task: PlanTask, passes: bool) -> ConditionResult:
    return task.condition_result if passes else task.condition_failure


def format_date(value: Any) -> str:
    parsed = to_date(value)
    if parsed is None:
        return NOT_AVAILABLE
    return f"{parsed.month}/{parsed.day}/{parsed.year}"


def allowed_display_types(task: PlanTask, schema: PropertySchema = DEFAULT_SCHEMA,
                          context: Optional[EvaluationContext] = None) -> List[DisplayType]:
    """Display types the editor may offer for ``task``.

    ``Yes/No`` is always legal. Value-bearing types need exactly one
    condition, and what they show depends on that condition's value type.
    Fraction and Percent also need a positive numeric value to divide by.
    """
    allowed = [DisplayType.YES_NO]
    condition = governing_condition(task)
    if condition is None:
        return allowed

    config = schema.config_for(condition)
    if config is None:
        return allowed

    if config.value_type == ValueType.NUMERIC:
        allowed.append(DisplayType.NUMBER)
        if operator_requires_value(condition.operator):
            value = context.resolve(condition.value) if context else condition.value
            denominator = to_number(value)
            if denominator is not None and denominator > 0:
                allowed.extend([DisplayType.FRACTION, DisplayType.PERCENT])
    elif config.value_type == ValueType.DATE:
        allowed.append(DisplayType.DATE)
    elif config.value_type in (ValueType.STRING, ValueType.SELECT):
        allowed.append(DisplayType.STATUS_LABEL)

    return allowed


class DisplayProjector:
    """Renders the display value of an evaluation outcome."""

    def __init__(self, schema: PropertySchema = DEFAULT_SCHEMA):
        self.logger = get_logger("compliance.display")
        self.schema = schema

    def project(self, task: PlanTask, passes: bool, condition: Optional[Condition],
                section: Section, context: EvaluationContext) -> str:
        try:
            display_type = DisplayType(task.display_type)
        except ValueError:
            self.logger.debug("Unknown display type", task_id=task.id, display_type=task.display_type)
            return self._yes_no(passes)
        if display_type not in VALUE_DISPLAY_TYPES:
            return self._yes_no(passes)

        if condition is None:
            self.logger.warning(
                "Value display requires a single condition, using Yes/No",
                task_id=task.id,
                display_type=display_type.value,
                condition_count=len(task.all_conditions())
            )
            return self._yes_no(passes)

        try:
            actual = resolve_property(condition, section, context, self.schema)
            expected = context.resolve(condition.value)
            return self._render(display_type, condition, actual, expected)
        except Exception as e:
            self.logger.error("Display projection error", task_id=task.id, error=str(e))
            return NOT_AVAILABLE

    def _yes_no(self, passes: bool) -> str:
        return "Yes" if passes else "No"

    def _render(self, display_type: DisplayType, condition: Condition, actual: Any, expected: Any) -> str:
        if display_type == DisplayType.NUMBER or display_type == DisplayType.STATUS_LABEL:
            return format_value(actual)

        if display_type == DisplayType.FRACTION:
            denominator = to_number(expected)
            if actual is None or not denominator:
                return NOT_AVAILABLE
            return f"{format_value(actual)} / {format_value(expected)}"

        if display_type == DisplayType.PERCENT:
            if condition.property in PERCENT_PROPERTIES:
                percent = actual
            elif isinstance(actual, (int, float)) and not isinstance(actual, bool):
                percent = percent_of(actual, expected)
            else:
                percent = None
            return NOT_AVAILABLE if percent is None else f"{format_value(percent)}%"

        if display_type == DisplayType.DATE:
            return format_date(actual)

        return NOT_AVAILABLE
