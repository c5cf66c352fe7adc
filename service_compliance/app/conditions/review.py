"""
Reviewer-facing views over evaluation results.

``resolve_displayed_result`` decides what a reviewer sees for one task and
one section, including manual tasks and manual overrides.
``build_validation_context`` evaluates a task over many sections so the
editor can page through the ones that pass or fail.
"""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from shared.logging import get_logger
from .models import (
    ConditionGroupType, DisplayType, DisplayedEvaluationResult, EvaluationResult,
    PlanTask, Section
)
from .engine import ConditionEngine
from .display import select_result
from .operators import EvaluationContext
from .validator import ConfigurationValidator

DEFAULT_PAGE_SIZE = 5


class ResultStatus(str, Enum):
    """What the result panel shows."""
    NO_SECTION = "no_section"
    MANUAL = "manual"
    EVALUATED = "evaluated"
    INVALID = "invalid"


class ManualOverride(str, Enum):
    """Reviewer override of an evaluated or manual outcome."""
    PASS = "pass"
    FAIL = "fail"


class ContextLabel(str, Enum):
    SYLLABUS = "Syllabus"
    LMS = "LMS"
    ATTRIBUTE = "Attribute"
    MIXED = "Mixed"


class ContextMode(str, Enum):
    PASS = "pass"
    FAIL = "fail"


_LABELS = {
    ConditionGroupType.SYLLABUS: ContextLabel.SYLLABUS,
    ConditionGroupType.LMS: ContextLabel.LMS,
    ConditionGroupType.ATTRIBUTE: ContextLabel.ATTRIBUTE,
}


@dataclass
class ResultView:
    status: ResultStatus
    data: Optional[DisplayedEvaluationResult] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "status": self.status.value,
            "data": self.data.to_dict() if self.data else None,
        }


@dataclass
class ValidationContextEntry:
    """One section's outcome in a validation context run."""
    id: str
    name: str
    passes: bool
    label: ContextLabel
    section_id: Any
    result: EvaluationResult

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "passes": self.passes,
            "label": self.label.value,
            "section_id": self.section_id,
            "result": self.result.to_dict(),
        }


@dataclass
class ValidationContextPage:
    entries: List[ValidationContextEntry]
    page: int
    page_size: int
    total: int
    range_label: str
    has_previous: bool = False
    has_next: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entries": [entry.to_dict() for entry in self.entries],
            "page": self.page,
            "page_size": self.page_size,
            "total": self.total,
            "range_label": self.range_label,
            "has_previous": self.has_previous,
            "has_next": self.has_next,
        }


def manual_display_value(task: PlanTask, passes: bool) -> str:
    """Manual outcomes have no resolved value, only Yes/No."""
    if task.display_type == DisplayType.YES_NO:
        return "Yes" if passes else "No"
    return ""


def context_label(task: PlanTask) -> ContextLabel:
    """Label a task by the single group type its conditions use."""
    group_types = {
        ConditionGroupType.parse(condition.group_type)
        for condition in task.all_conditions()
        if condition.group_type
    }
    group_types.discard(None)
    if len(group_types) != 1:
        return ContextLabel.MIXED
    return _LABELS.get(group_types.pop(), ContextLabel.MIXED)


def context_entry_name(label: ContextLabel, section: Section) -> str:
    if label == ContextLabel.LMS:
        return f"{section.name} LMS"
    return section.name


class TaskReviewer:
    """Builds reviewer views on top of the condition engine."""

    def __init__(self, engine: Optional[ConditionEngine] = None,
                 validator: Optional[ConfigurationValidator] = None):
        self.logger = get_logger("compliance.review")
        self.engine = engine or ConditionEngine()
        self.validator = validator or ConfigurationValidator(self.engine.schema)

    def _manual_result(self, task: PlanTask, passes: bool, overridden: bool,
                       manual_task: bool) -> DisplayedEvaluationResult:
        result = select_result(task, passes)
        return DisplayedEvaluationResult(
            passes=passes,
            display_value=manual_display_value(task, passes),
            result_type=result.type,
            custom_name=result.custom_name,
            icon=result.icon,
            is_manual_override=overridden,
            is_manual_task=manual_task
        )

    def resolve_displayed_result(self, task: PlanTask, section: Optional[Section],
                                 override: Optional[Any] = None,
                                 context: Optional[EvaluationContext] = None) -> ResultView:
        """Decide what the result panel shows for ``task`` on ``section``."""
        if section is None:
            return ResultView(ResultStatus.NO_SECTION)

        override = ManualOverride(override) if override else None

        if not task.condition_groups:
            # Manual tasks fail until a reviewer says otherwise
            passes = override == ManualOverride.PASS if override else False
            return ResultView(
                ResultStatus.MANUAL,
                self._manual_result(task, passes, override is not None, manual_task=True)
            )

        if self.validator.has_invalid_configuration(task):
            return ResultView(ResultStatus.INVALID)

        if override:
            passes = override == ManualOverride.PASS
            return ResultView(
                ResultStatus.EVALUATED,
                self._manual_result(task, passes, overridden=True, manual_task=False)
            )

        result = self.engine.evaluate(task, section, context)
        if result is None:
            return ResultView(ResultStatus.NO_SECTION)

        return ResultView(
            ResultStatus.EVALUATED,
            DisplayedEvaluationResult(
                passes=result.passes,
                display_value=result.display_value,
                result_type=result.result_type,
                custom_name=result.custom_name,
                icon=result.icon
            )
        )

    def build_validation_context(self, task: PlanTask, sections: Iterable[Section],
                                 context: Optional[EvaluationContext] = None) -> List[ValidationContextEntry]:
        """Evaluate ``task`` against every section."""
        if not task.condition_groups or self.validator.has_invalid_configuration(task):
            return []

        context = context or EvaluationContext.create()
        label = context_label(task)
        entries: List[ValidationContextEntry] = []

        for section in sections:
            result = self.engine.evaluate(task, section, context)
            if result is None:
                continue
            entries.append(ValidationContextEntry(
                id=f"{label.value}-{section.id}",
                name=context_entry_name(label, section),
                passes=result.passes,
                label=label,
                section_id=section.id,
                result=result
            ))

        self.logger.info(
            "Validation context built",
            task_id=task.id,
            label=label.value,
            entries=len(entries),
            passing=sum(1 for entry in entries if entry.passes)
        )
        return entries

    def filter_validation_context(self, entries: List[ValidationContextEntry],
                                  mode: Any = ContextMode.FAIL) -> List[ValidationContextEntry]:
        want_pass = ContextMode(mode) == ContextMode.PASS
        return [entry for entry in entries if entry.passes == want_pass]

    def paginate(self, entries: List[ValidationContextEntry], page: int = 1,
                 page_size: int = DEFAULT_PAGE_SIZE) -> ValidationContextPage:
        """Slice one 1-based page; out-of-range pages clamp to the last page."""
        page_size = max(1, page_size)
        total = len(entries)
        page_count = max(1, math.ceil(total / page_size))
        page = min(max(page, 1), page_count)
        start = (page - 1) * page_size
        end = min(start + page_size, total)

        range_label = f"{start + 1}-{end} of {total}" if total else "0 of 0"

        return ValidationContextPage(
            entries=entries[start:end],
            page=page,
            page_size=page_size,
            total=total,
            range_label=range_label,
            has_previous=page > 1,
            has_next=page < page_count
        )
