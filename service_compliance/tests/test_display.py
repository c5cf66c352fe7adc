"""
Unit tests for display value projection.
"""

from datetime import date

import pytest

from shared.test_helpers import TestDataFactory
from service_compliance.app.conditions.display import (
    DisplayProjector, allowed_display_types, format_date, governing_condition, select_result
)
from service_compliance.app.conditions.engine import ConditionEngine
from service_compliance.app.conditions.models import (
    ConditionResultType, DisplayType, PlanTaskPayload, SectionPayload
)
from service_compliance.app.conditions.operators import EvaluationContext


def build_task(payload):
    return PlanTaskPayload.model_validate(payload).to_domain()


def build_section(payload):
    return SectionPayload.model_validate(payload).to_domain()


class TestDisplayProjector:
    """Test cases for DisplayProjector."""

    @pytest.fixture
    def engine(self):
        """Create ConditionEngine instance."""
        return ConditionEngine()

    @pytest.fixture
    def context(self):
        """Create an evaluation context pinned to a fixed date."""
        return EvaluationContext.create(date(2025, 10, 1))

    @pytest.fixture
    def section(self):
        """Create a section with three assignments."""
        return build_section(TestDataFactory.section())

    def display(self, engine, section, context, condition, display_type):
        task = build_task(TestDataFactory.single_condition_task(condition, display_type=display_type))
        return engine.evaluate(task, section, context).display_value

    def test_number(self, engine, section, context):
        """Test Number shows the resolved value."""
        condition = TestDataFactory.condition("LMS Condition", "Assignments", "Total Count", "Equals", "3")

        assert self.display(engine, section, context, condition, "Number") == "3"

    def test_number_unresolved(self, engine, section, context):
        """Test Number shows N/A when nothing resolves."""
        condition = TestDataFactory.condition("LMS Condition", "Course", "Student count", "Equals", "30")

        assert self.display(engine, section, context, condition, "Number") == "N/A"

    def test_fraction(self, engine, section, context):
        """Test Fraction shows actual over expected."""
        condition = TestDataFactory.condition("LMS Condition", "Assignments", "Total Count", "Equals", "4")

        assert self.display(engine, section, context, condition, "Fraction") == "3 / 4"

    def test_fraction_zero_denominator(self, engine, section, context):
        """Test Fraction with a zero or non-numeric value is N/A."""
        zero = TestDataFactory.condition("LMS Condition", "Assignments", "Total Count", "Equals", "0")
        text = TestDataFactory.condition("LMS Condition", "Assignments", "Total Count", "Equals", "many")

        assert self.display(engine, section, context, zero, "Fraction") == "N/A"
        assert self.display(engine, section, context, text, "Fraction") == "N/A"

    def test_percent(self, engine, section, context):
        """Test Percent divides the resolved value by the expected value."""
        condition = TestDataFactory.condition("LMS Condition", "Assignments", "Total Count", "Equals", "4")

        assert self.display(engine, section, context, condition, "Percent") == "75%"

    def test_percent_zero_denominator(self, engine, section, context):
        """Test Percent with a zero value is N/A."""
        condition = TestDataFactory.condition("LMS Condition", "Assignments", "Total Count", "Equals", 0)

        assert self.display(engine, section, context, condition, "Percent") == "N/A"

    def test_percent_non_numeric_actual(self, engine, section, context):
        """Test Percent of a non-numeric value is N/A."""
        condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Status", "Is", "4")

        assert self.display(engine, section, context, condition, "Percent") == "N/A"

    def test_date(self, engine, section, context):
        """Test Date renders month/day/year."""
        condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Completed date", "Is before", "{today}")

        assert self.display(engine, section, context, condition, "Date") == "9/1/2025"

    def test_date_unresolved(self, engine, context):
        """Test Date shows N/A without a value."""
        section = build_section(TestDataFactory.section(completedDate=None))
        condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Completed date", "Is before", "{today}")

        assert self.display(engine, section, context, condition, "Date") == "N/A"

    def test_status_label(self, engine, section, context):
        """Test Status Label shows the raw value."""
        condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Status", "Is", "Completed")

        assert self.display(engine, section, context, condition, "Status Label") == "Completed"

    def test_value_display_falls_back_with_many_conditions(self, engine, section, context):
        """Test value display types fall back to Yes/No without a single condition."""
        task = build_task(TestDataFactory.task(
            [TestDataFactory.group([
                TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Publish State", "Is", "Published", id=1),
                TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Material count", "Equals", "5", id=2),
            ])],
            display_type="Number"
        ))

        assert engine.evaluate(task, section, context).display_value == "Yes"

    def test_projector_yes_no(self, section, context):
        """Test Yes/No display ignores the governing condition."""
        task = build_task(TestDataFactory.task([TestDataFactory.group([])]))
        projector = DisplayProjector()

        assert projector.project(task, True, None, section, context) == "Yes"
        assert projector.project(task, False, None, section, context) == "No"


class TestDisplayHelpers:
    """Test cases for display helper functions."""

    def test_allowed_display_types_many_conditions(self):
        """Test only Yes/No is offered for several conditions."""
        task = build_task(TestDataFactory.create_sample_tasks()[0])

        assert allowed_display_types(task) == [DisplayType.YES_NO]

    def test_allowed_display_types_numeric(self):
        """Test numeric conditions with a positive value offer Fraction and Percent."""
        condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Material count", "Is greater than", "3")
        task = build_task(TestDataFactory.single_condition_task(condition))

        assert allowed_display_types(task) == [
            DisplayType.YES_NO, DisplayType.NUMBER, DisplayType.FRACTION, DisplayType.PERCENT
        ]

    def test_allowed_display_types_numeric_without_denominator(self):
        """Test numeric conditions without a positive value only offer Number."""
        zero = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Material count", "Equals", "0")
        empty = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Material count", "Is empty")

        for condition in (zero, empty):
            task = build_task(TestDataFactory.single_condition_task(condition))
            assert allowed_display_types(task) == [DisplayType.YES_NO, DisplayType.NUMBER]

    def test_allowed_display_types_dynamic_denominator(self):
        """Test dynamic values are resolved when a context is given."""
        condition = TestDataFactory.condition(
            "Syllabus condition", "Syllabus Details", "Material count", "Is less than", "{total_sections}"
        )
        task = build_task(TestDataFactory.single_condition_task(condition))
        context = EvaluationContext.create(date(2025, 10, 1))

        assert DisplayType.PERCENT not in allowed_display_types(task)
        assert DisplayType.PERCENT in allowed_display_types(task, context=context)

    def test_allowed_display_types_by_value_type(self):
        """Test date and text properties offer Date and Status Label."""
        date_condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Completed date", "Is on", "{today}")
        select_condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Status", "Is", "Completed")
        unknown = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Shoe size", "Is", "9")

        assert allowed_display_types(build_task(TestDataFactory.single_condition_task(date_condition))) == [
            DisplayType.YES_NO, DisplayType.DATE
        ]
        assert allowed_display_types(build_task(TestDataFactory.single_condition_task(select_condition))) == [
            DisplayType.YES_NO, DisplayType.STATUS_LABEL
        ]
        assert allowed_display_types(build_task(TestDataFactory.single_condition_task(unknown))) == [
            DisplayType.YES_NO
        ]

    def test_governing_condition(self):
        """Test the governing condition is the only condition."""
        single = build_task(TestDataFactory.single_condition_task(
            TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Status", "Is", "Completed", id=7)
        ))
        several = build_task(TestDataFactory.create_sample_tasks()[0])

        assert governing_condition(single).id == 7
        assert governing_condition(several) is None

    def test_select_result(self):
        """Test the configured pass or failure result is selected."""
        task = build_task(TestDataFactory.task(
            [],
            conditionResult={"type": "Custom", "customName": "Done"},
            conditionFailure={"type": "Warning", "customName": "Check"},
        ))

        assert select_result(task, True).type == ConditionResultType.CUSTOM
        assert select_result(task, False).custom_name == "Check"

    def test_format_date(self):
        """Test dates render without leading zeros."""
        assert format_date("2025-01-05T08:00:00Z") == "1/5/2025"
        assert format_date(None) == "N/A"
        assert format_date("not a date") == "N/A"
