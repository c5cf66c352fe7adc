"""
Compliance service for course plan task evaluation.
"""

from datetime import date
from typing import Dict, List, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.errors import InvalidPayloadError, ServiceError, ValidationError
from shared.logging import set_task_context

from .conditions.display import allowed_display_types
from .conditions.engine import ConditionEngine
from .conditions.history import ConditionHistory
from .conditions.models import (
    Condition, ConditionPayload, ConfigurationIssueResponse, DynamicValuesResponse,
    EvaluateRequest, HistoryRecordRequest, HistoryStateResponse, ResultViewResponse,
    ValidateRequest, ValidateResponse, ValidationContextRequest, ValidationContextResponse,
    ValueType
)
from .conditions.operators import EvaluationContext, build_dynamic_values
from .conditions.resolver import verify_resolver_coverage
from .conditions.review import ResultStatus, TaskReviewer
from .conditions.schema import DEFAULT_SCHEMA
from .conditions.validator import ConfigurationValidator


class ComplianceService(BaseService):
    """Compliance service implementation."""

    def __init__(self):
        super().__init__("compliance", 8020)

        self.schema = DEFAULT_SCHEMA
        self.engine = ConditionEngine(self.schema)
        self.validator = ConfigurationValidator(self.schema)
        self.reviewer = TaskReviewer(self.engine, self.validator)
        self.history = ConditionHistory(self.config.history_limit)

        self._setup_compliance_routes()
        self._setup_history_routes()

    def _today(self, requested: Optional[date] = None) -> date:
        return requested or self.config.fixed_today or date.today()

    def _evaluation_context(self, requested: Optional[date] = None) -> EvaluationContext:
        today = self._today(requested)
        return EvaluationContext.create(today, build_dynamic_values(self.config, today))

    def _setup_compliance_routes(self):
        """Set up compliance-specific routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "compliance",
                "message": "Course Compliance - Compliance Service",
                "version": "1.0.0",
                "schemaVersion": self.schema.version,
                "capabilities": [
                    "condition_evaluation", "configuration_validation",
                    "validation_context", "condition_history"
                ]
            }

        @self.app.get("/compliance/schema")
        async def get_schema():
            """Property catalog for the condition editor."""
            return self.schema.catalog()

        @self.app.get("/compliance/dynamic-values")
        async def get_dynamic_values(
            type: Optional[str] = Query(None, description="Filter by value type")
        ) -> DynamicValuesResponse:
            """Dynamic value tokens with their current values."""
            values = build_dynamic_values(self.config, self._today())
            if type:
                try:
                    value_type = ValueType(type.lower())
                except ValueError:
                    raise ValidationError(
                        "Unknown value type",
                        details={"type": type, "allowed": [t.value for t in ValueType]}
                    )
                values = [value for value in values if value.value_type == value_type]

            return DynamicValuesResponse.model_validate(
                {"dynamic_values": [value.to_dict() for value in values]}
            )

        @self.app.post("/compliance/validate")
        async def validate_task(request: ValidateRequest) -> ValidateResponse:
            """Check a task's condition configuration."""
            task = request.task.to_domain()
            set_task_context(task_id=task.id)

            issues = self.validator.find_issues(task)
            valid = not issues
            self.metrics.increment_counter("configuration_validations_total", valid=str(valid).lower())

            self.logger.info("Task configuration validated", task_id=task.id, valid=valid, issues=len(issues))

            return ValidateResponse(
                valid=valid,
                savable=self.validator.is_savable(task),
                issues=[ConfigurationIssueResponse(**issue.to_dict()) for issue in issues],
                allowed_display_types=allowed_display_types(task, self.schema)
            )

        @self.app.post("/compliance/evaluate")
        async def evaluate_task(request: EvaluateRequest) -> ResultViewResponse:
            """Evaluate a task against one section."""
            task = request.task.to_domain()
            section = request.section.to_domain() if request.section else None
            set_task_context(task_id=task.id)

            context = self._evaluation_context(request.today)
            with self.metrics.time_operation("task_evaluation_duration_seconds", mode="single"):
                view = self.reviewer.resolve_displayed_result(task, section, request.override, context)

            outcome = view.status.value
            if view.status in (ResultStatus.EVALUATED, ResultStatus.MANUAL) and view.data:
                outcome = "pass" if view.data.passes else "fail"
            self.metrics.increment_counter("task_evaluations_total", outcome=outcome)
            self.metrics.record_business_event("task_evaluated")

            self.logger.info(
                "Task evaluated",
                task_id=task.id,
                section_id=section.id if section else None,
                status=view.status.value,
                outcome=outcome,
                override=request.override
            )

            return ResultViewResponse.model_validate(view.to_dict())

        @self.app.post("/compliance/evaluate/context")
        async def evaluate_context(request: ValidationContextRequest) -> ValidationContextResponse:
            """Evaluate a task across sections and page through passes or failures."""
            if len(request.sections) > self.config.max_context_sections:
                raise InvalidPayloadError(
                    "Too many sections",
                    details={
                        "sections": len(request.sections),
                        "maxSections": self.config.max_context_sections
                    }
                )

            task = request.task.to_domain()
            sections = [section.to_domain() for section in request.sections]
            set_task_context(task_id=task.id)

            context = self._evaluation_context(request.today)
            with self.metrics.time_operation("task_evaluation_duration_seconds", mode="context"):
                entries = self.reviewer.build_validation_context(task, sections, context)

            filtered = self.reviewer.filter_validation_context(entries, request.mode)
            page = self.reviewer.paginate(
                filtered,
                request.page,
                request.limit or self.config.validation_page_size
            )

            self.metrics.record_business_event("validation_context_built")

            return ValidationContextResponse.model_validate({
                **page.to_dict(),
                "mode": request.mode,
                "evaluated": len(entries),
            })

    def _history_state(self, task_id: str, group_id: str,
                       conditions: Optional[List[Condition]] = None,
                       recorded: Optional[bool] = None) -> HistoryStateResponse:
        key = (task_id, group_id)
        return HistoryStateResponse(
            task_id=task_id,
            group_id=group_id,
            conditions=None if conditions is None else [ConditionPayload.from_domain(c) for c in conditions],
            can_undo=self.history.can_undo(key),
            can_redo=self.history.can_redo(key),
            recorded=recorded
        )

    def _setup_history_routes(self):
        """Undo/redo of condition edits, one timeline per task group."""
        base = "/compliance/history/{task_id}/groups/{group_id}"

        @self.app.get(base)
        async def get_history(task_id: str, group_id: str) -> HistoryStateResponse:
            """Current snapshot of a group."""
            return self._history_state(task_id, group_id, self.history.current((task_id, group_id)))

        @self.app.post(base)
        async def record_history(task_id: str, group_id: str,
                                 request: HistoryRecordRequest) -> HistoryStateResponse:
            """Record a group's conditions after an edit."""
            key = (task_id, group_id)
            recorded = self.history.record(key, [c.to_domain() for c in request.conditions])
            if recorded:
                self.metrics.record_business_event("condition_history_recorded")
            self.logger.debug("Condition history recorded", task_id=task_id, group_id=group_id, recorded=recorded)
            return self._history_state(task_id, group_id, self.history.current(key), recorded)

        @self.app.post(base + "/undo")
        async def undo_history(task_id: str, group_id: str) -> HistoryStateResponse:
            """Step back one snapshot; ``conditions`` is null when there is nothing to undo."""
            return self._history_state(task_id, group_id, self.history.undo((task_id, group_id)))

        @self.app.post(base + "/redo")
        async def redo_history(task_id: str, group_id: str) -> HistoryStateResponse:
            return self._history_state(task_id, group_id, self.history.redo((task_id, group_id)))

        @self.app.delete(base)
        async def clear_history(task_id: str, group_id: str) -> HistoryStateResponse:
            self.history.clear((task_id, group_id))
            return self._history_state(task_id, group_id)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Check that every catalog property can be resolved."""
        problems = verify_resolver_coverage(self.schema)
        if problems:
            raise ServiceError("Property resolvers out of sync with schema", details={"problems": problems})
        return {"property_schema": "ok"}


def create_app():
    """Create compliance service application."""
    service = ComplianceService()
    return service.app


if __name__ == "__main__":
    service = ComplianceService()
    service.run()
