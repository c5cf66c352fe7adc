"""
Configuration validation for plan task conditions.

Each field check is a link in a precondition chain: a field is only
reported missing once the field before it is set. A later field never
makes an earlier one invalid.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Union

from shared.logging import get_logger
from .models import Condition, PlanTask, SubCondition, VALUE_FREE_OPERATORS
from .schema import DEFAULT_SCHEMA, PropertySchema

Clause = Union[Condition, SubCondition]


def operator_requires_value(operator: Any) -> bool:
    """True when ``operator`` is set and compares against a value."""
    operator = getattr(operator, "value", operator)
    return bool(operator) and operator not in VALUE_FREE_OPERATORS


def _missing(value: Any) -> bool:
    return value is None or value == ""


@dataclass
class ConfigurationIssue:
    """One incomplete field in a task's conditions."""
    group_id: Any
    condition_id: Any
    field: str
    message: str
    sub_condition_id: Any = None

    def to_dict(self):
        return {
            "group_id": self.group_id,
            "condition_id": self.condition_id,
            "sub_condition_id": self.sub_condition_id,
            "field": self.field,
            "message": self.message,
        }


class ConfigurationValidator:
    """Checks that every condition of a task is fully configured."""

    def __init__(self, schema: PropertySchema = DEFAULT_SCHEMA):
        self.logger = get_logger("compliance.validator")
        self.schema = schema

    # Field-chain predicates

    def is_group_type_invalid(self, condition: Condition) -> bool:
        return not condition.group_type

    def is_source_invalid(self, condition: Condition) -> bool:
        return bool(condition.group_type) and not condition.source

    def is_property_invalid(self, condition: Condition) -> bool:
        return bool(condition.source) and not condition.property

    def is_sub_condition_property_invalid(self, sub_condition: SubCondition) -> bool:
        return not sub_condition.property

    def is_operator_invalid(self, clause: Clause) -> bool:
        return bool(clause.property) and not clause.operator

    def is_value_invalid(self, clause: Clause) -> bool:
        return operator_requires_value(clause.operator) and _missing(clause.value)

    def requires_sub_conditions(self, condition: Condition) -> bool:
        config = self.schema.config_for(condition)
        return bool(config and config.requires_sub_conditions)

    def is_sub_condition_invalid(self, sub_condition: SubCondition) -> bool:
        return (
            self.is_sub_condition_property_invalid(sub_condition)
            or self.is_operator_invalid(sub_condition)
            or self.is_value_invalid(sub_condition)
        )

    def is_condition_invalid(self, condition: Condition) -> bool:
        if (
            self.is_group_type_invalid(condition)
            or self.is_source_invalid(condition)
            or self.is_property_invalid(condition)
            or self.is_operator_invalid(condition)
            or self.is_value_invalid(condition)
        ):
            return True

        if self.requires_sub_conditions(condition) and not condition.sub_conditions:
            return True

        return any(self.is_sub_condition_invalid(sub) for sub in condition.sub_conditions)

    def has_invalid_configuration(self, task: PlanTask) -> bool:
        return any(self.is_condition_invalid(condition) for condition in task.all_conditions())

    def is_valid(self, task: PlanTask) -> bool:
        return not self.has_invalid_configuration(task)

    def is_savable(self, task: PlanTask) -> bool:
        """Editor rule: a task needs a name as well as a valid configuration."""
        if not (task.name or "").strip():
            return False
        return self.is_valid(task)

    def find_issues(self, task: PlanTask) -> List[ConfigurationIssue]:
        """List every invalid field so the editor can mark it."""
        issues: List[ConfigurationIssue] = []

        for group in task.condition_groups:
            for condition in group.conditions:
                def report(field: str, message: str, sub_condition_id: Optional[Any] = None):
                    issues.append(ConfigurationIssue(
                        group_id=group.id,
                        condition_id=condition.id,
                        field=field,
                        message=message,
                        sub_condition_id=sub_condition_id
                    ))

                if self.is_group_type_invalid(condition):
                    report("groupType", "Condition type is required")
                if self.is_source_invalid(condition):
                    report("source", "Source is required")
                if self.is_property_invalid(condition):
                    report("property", "Property is required")
                if self.is_operator_invalid(condition):
                    report("operator", "Operator is required")
                if self.is_value_invalid(condition):
                    report("value", "Value is required")
                if self.requires_sub_conditions(condition) and not condition.sub_conditions:
                    report("subConditions", "At least one sub-condition is required")

                for sub in condition.sub_conditions:
                    if self.is_sub_condition_property_invalid(sub):
                        report("property", "Sub-condition property is required", sub.id)
                    if self.is_operator_invalid(sub):
                        report("operator", "Sub-condition operator is required", sub.id)
                    if self.is_value_invalid(sub):
                        report("value", "Sub-condition value is required", sub.id)

        if issues:
            self.logger.debug("Configuration issues found", task_id=task.id, issue_count=len(issues))

        return issues


_default_validator = ConfigurationValidator()


def has_invalid_configuration(task: PlanTask) -> bool:
    return _default_validator.has_invalid_configuration(task)


def is_valid(task: PlanTask) -> bool:
    return _default_validator.is_valid(task)


def is_savable(task: PlanTask) -> bool:
    return _default_validator.is_savable(task)


def find_issues(task: PlanTask) -> List[ConfigurationIssue]:
    return _default_validator.find_issues(task)
