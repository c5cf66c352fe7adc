"""
Condition evaluation engine for the Compliance Service.
"""

from typing import Optional, List

from shared.logging import get_logger
from .models import Condition, ConditionGroup, PlanTask, Section, EvaluationResult
from .operators import EvaluationContext, compare
from .resolver import resolve_property
from .schema import DEFAULT_SCHEMA, PropertySchema
from .display import DisplayProjector, governing_condition, select_result
from .validator import ConfigurationValidator


class ConditionEngine:
    """Evaluates plan tasks against sections.

    Groups combine with OR and conditions within a group with AND. The
    engine holds only the immutable schema; every call builds or receives
    its own ``EvaluationContext``.
    """

    def __init__(self, schema: PropertySchema = DEFAULT_SCHEMA):
        self.logger = get_logger("compliance.engine")
        self.schema = schema
        self.projector = DisplayProjector(schema)

    def evaluate(self, task: PlanTask, section: Section,
                 context: Optional[EvaluationContext] = None) -> Optional[EvaluationResult]:
        """Evaluate a task; ``None`` when the task has no condition groups."""
        if not task.condition_groups:
            return None

        context = context or EvaluationContext.create()
        passes = self.check_condition_groups(task.condition_groups, section, context)
        display_value = self.projector.project(task, passes, governing_condition(task), section, context)
        result = select_result(task, passes)

        self.logger.debug(
            "Task evaluated",
            task_id=task.id,
            section_id=section.id,
            passes=passes,
            display_value=display_value
        )

        return EvaluationResult(
            passes=passes,
            display_value=display_value,
            result_type=result.type,
            custom_name=result.custom_name,
            icon=result.icon
        )

    def check_condition_groups(self, groups: List[ConditionGroup], section: Section,
                               context: EvaluationContext) -> bool:
        """True if any group passes."""
        return any(self.check_single_group(group, section, context) for group in groups)

    def check_single_group(self, group: ConditionGroup, section: Section,
                           context: EvaluationContext) -> bool:
        """True if every condition in the group passes."""
        for condition in group.conditions:
            if not self.check_condition(condition, section, context):
                return False
        return True

    def check_condition(self, condition: Condition, section: Section,
                        context: EvaluationContext) -> bool:
        """Resolve and compare a single condition."""
        try:
            actual = resolve_property(condition, section, context, self.schema)
            return compare(actual, condition.operator, condition.value, context)
        except Exception as e:
            self.logger.error(
                "Condition evaluation error",
                condition_id=condition.id,
                property=condition.property,
                error=str(e)
            )
            return False


_default_engine = ConditionEngine()
_default_validator = ConfigurationValidator()


def evaluate_task(task: PlanTask, section: Section,
                  context: Optional[EvaluationContext] = None,
                  engine: Optional[ConditionEngine] = None,
                  validator: Optional[ConfigurationValidator] = None) -> Optional[EvaluationResult]:
    """Evaluate a task only when its configuration is valid."""
    validator = validator or _default_validator
    if not validator.is_valid(task):
        return None
    return (engine or _default_engine).evaluate(task, section, context)
