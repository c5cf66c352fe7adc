"""
Property resolution for the Compliance Service.

Maps a condition's ``(group type, source, property)`` to the value it reads
from a section. Aggregate LMS properties filter their item list through the
condition's sub-conditions before counting.
"""

from statistics import mean
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from shared.logging import get_logger
from .models import (
    AttributeSource, Condition, ConditionGroupType, LmsItem, LmsSource, Operator,
    Section, SectionComponent, SyllabusSource
)
from .operators import EvaluationContext, compare, percent_of
from .schema import DEFAULT_SCHEMA, FIELD_PREFIX, PropertySchema

logger = get_logger("compliance.resolver")

Resolver = Callable[[Condition, Section, EvaluationContext, PropertySchema], Any]
ResolverKey = Tuple[ConditionGroupType, str, str]


def _label(flag: Any, on: str, off: str) -> Optional[str]:
    if flag is None:
        return None
    return on if flag else off


# --- Item readers ----------------------------------------------------------------

LMS_ITEM_READERS: Dict[str, Callable[[LmsItem], Any]] = {
    "Name": lambda item: item.name,
    "Publish State": lambda item: item.publish_state,
    "Last Updated": lambda item: item.last_updated,
    "Graded": lambda item: _label(item.graded, "Graded", "Not Graded"),
    "Due Date": lambda item: item.due_date,
    "Due Date relative to Term": lambda item: _label(
        item.due_outside_term, "Outside term dates", "Not outside term dates"
    ),
    "Rubric": lambda item: _label(item.rubric_used, "Used", "Not Used"),
    "Anonymous Grading": lambda item: _label(item.anonymous_grading, "On", "Off"),
    "Instructor Post": lambda item: item.instructor_post,
}

COMPONENT_READERS: Dict[str, Callable[[SectionComponent], Any]] = {
    "Name": lambda component: component.name,
    "Required": lambda component: _label(component.required, "Required", "Not Required"),
    "Visible": lambda component: _label(component.visible, "Visible", "Not Visible"),
    "Public/Private": lambda component: _label(component.public, "Public", "Private"),
    "Section editing": lambda component: _label(component.section_editing, "Enabled", "Not Enabled"),
    "Course editing": lambda component: _label(component.course_editing, "Enabled", "Not Enabled"),
    "Help Text": lambda component: component.help_text,
}


def read_lms_item(item: LmsItem, property_name: str) -> Any:
    reader = LMS_ITEM_READERS.get(property_name)
    return reader(item) if reader else None


def read_component(component: SectionComponent, property_name: str) -> Any:
    if property_name.startswith(FIELD_PREFIX):
        return component.fields.get(property_name[len(FIELD_PREFIX):])
    reader = COMPONENT_READERS.get(property_name)
    return reader(component) if reader else None


def matches_sub_conditions(item: Any, condition: Condition, context: EvaluationContext,
                           schema: PropertySchema, reader: Callable[[Any, str], Any]) -> bool:
    """True when ``item`` satisfies every sub-condition of ``condition``."""
    for sub_condition in condition.sub_conditions:
        if schema.sub_condition_config(condition, sub_condition.property) is None:
            logger.debug(
                "Unknown sub-condition property",
                condition_id=condition.id,
                property=sub_condition.property
            )
            actual = None
        else:
            actual = reader(item, sub_condition.property)
        if not compare(actual, sub_condition.operator, sub_condition.value, context):
            return False
    return True


def filter_items(items: Iterable[Any], condition: Condition, context: EvaluationContext,
                 schema: PropertySchema, reader: Callable[[Any, str], Any]) -> List[Any]:
    """Keep the items matching all of the condition's sub-conditions."""
    return [
        item for item in items
        if matches_sub_conditions(item, condition, context, schema, reader)
    ]


# --- Syllabus ----------------------------------------------------------------------

def _section_field(name: str) -> Resolver:
    def resolve(condition, section, context, schema):
        return getattr(section, name)
    return resolve


def _component_by_name(condition, section, context, schema):
    if Operator.parse(condition.operator) not in (Operator.IS_PRESENT, Operator.IS_NOT_PRESENT):
        return None
    component = next((c for c in section.components if c.name == condition.property), None)
    if component is None:
        return False
    if not condition.sub_conditions:
        return True
    return matches_sub_conditions(component, condition, context, schema, read_component)


def _component_by_type(condition, section, context, schema):
    wanted = condition.property.strip().lower()
    return any(
        (component.type or "").strip().lower() == wanted for component in section.components
    )


SYLLABUS_DETAIL_FIELDS = {
    "Publish State": "publish_state",
    "Status": "status",
    "Completed date": "completed_date",
    "Material count": "material_count",
    "Objective count": "objective_count",
    "Instructor count": "instructor_count",
    "Syllabus Access": "syllabus_access",
    "Student engagement": "student_engagement",
}


# --- LMS ---------------------------------------------------------------------------

LMS_LISTS = {
    LmsSource.ASSIGNMENTS: "assignments",
    LmsSource.DISCUSSIONS: "discussions",
    LmsSource.DOCUMENTS: "documents",
    LmsSource.MODULES: "modules",
    LmsSource.PAGES: "pages",
    LmsSource.QUIZ: "quizzes",
    LmsSource.RUBRICS: "rubrics",
    LmsSource.SURVEY: "surveys",
}


def _filtered(source: LmsSource, condition, section, context, schema) -> List[LmsItem]:
    items = getattr(section, LMS_LISTS[source])
    return filter_items(items, condition, context, schema, read_lms_item)


def _mean_of(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [value for value in values if value is not None]
    return mean(present) if present else None


def _lms_aggregate(source: LmsSource, property_name: str) -> Resolver:
    def resolve(condition, section, context, schema):
        items = _filtered(source, condition, section, context, schema)
        if property_name == "Total Count":
            return len(items)
        if property_name == "Total Points":
            return sum(item.points or 0 for item in items)
        if property_name == "Total Percent":
            # condition.value doubles as the denominator
            return percent_of(len(items), context.resolve(condition.value))
        if property_name == "Average Score":
            return _mean_of(item.average_score for item in items)
        if property_name == "Completion Rate":
            return _mean_of(item.completion_rate for item in items)
        if property_name == "Is Used":
            return any(item.in_use for item in items)
        return None
    return resolve


LMS_AGGREGATES = {
    LmsSource.ASSIGNMENTS: ("Total Count", "Total Points", "Total Percent"),
    LmsSource.DISCUSSIONS: ("Total Count", "Total Points", "Total Percent"),
    LmsSource.DOCUMENTS: ("Total Count", "Total Percent"),
    LmsSource.MODULES: ("Total Count", "Total Percent"),
    LmsSource.PAGES: ("Total Count", "Total Percent"),
    LmsSource.QUIZ: ("Total Count", "Average Score", "Total Points", "Total Percent"),
    LmsSource.RUBRICS: ("Total Count", "Is Used"),
    LmsSource.SURVEY: ("Total Count", "Completion Rate", "Total Percent"),
}

LMS_COURSE_FIELDS = {
    "Publish State": "publish_state",
    "Name": "name",
    "Last Updated": "last_updated",
    "Cross-listed": "cross_listed",
    "Start date": "start_date",
    "End date": "end_date",
    "Student count": "student_count",
    "Most recent enrollment": "most_recent_enrollment",
    "Instructor assigned": "instructor_assigned",
    "Created date": "created_date",
}

_YES_NO_COURSE_FIELDS = ("cross_listed", "instructor_assigned")


def _lms_course_field(name: str) -> Resolver:
    def resolve(condition, section, context, schema):
        if section.lms_course is None:
            return None
        value = getattr(section.lms_course, name)
        if name in _YES_NO_COURSE_FIELDS:
            return _label(value, "Yes", "No")
        return value
    return resolve


# --- Attributes ----------------------------------------------------------------------

COURSE_ATTRIBUTE_FIELDS = {
    "Subject": "subject",
    "Course number": "course_number",
    "Title": "title",
    "Parent organization": "parent_organization",
    "Term": "term",
    "Catalog description": "catalog_description",
    "Prerequisite": "prerequisite",
    "Credit hours": "credit_hours",
}

SECTION_ATTRIBUTE_FIELDS = {
    "Name": "name",
    "Course number": "course_number",
    "Title": "title",
    "Syllabus due date": "syllabus_due_date",
    "Timezone": "timezone",
    "Term": "term",
    "Subject": "subject",
    "Delivery method": "delivery_method",
    "CRN": "crn",
}


def _course_attribute(name: str) -> Resolver:
    def resolve(condition, section, context, schema):
        return getattr(section.course, name, None)
    return resolve


# --- Tables --------------------------------------------------------------------------

def _build_resolvers() -> Dict[ResolverKey, Resolver]:
    resolvers: Dict[ResolverKey, Resolver] = {}

    syllabus = ConditionGroupType.SYLLABUS
    details = SyllabusSource.DETAILS.value
    for property_name, field_name in SYLLABUS_DETAIL_FIELDS.items():
        resolvers[(syllabus, details, property_name)] = _section_field(field_name)
    resolvers[(syllabus, details, "Component count")] = (
        lambda condition, section, context, schema: len(section.components)
    )

    lms = ConditionGroupType.LMS
    for source, properties in LMS_AGGREGATES.items():
        for property_name in properties:
            resolvers[(lms, source.value, property_name)] = _lms_aggregate(source, property_name)
    for property_name, field_name in LMS_COURSE_FIELDS.items():
        resolvers[(lms, LmsSource.COURSE.value, property_name)] = _lms_course_field(field_name)

    attribute = ConditionGroupType.ATTRIBUTE
    for property_name, field_name in COURSE_ATTRIBUTE_FIELDS.items():
        resolvers[(attribute, AttributeSource.COURSE.value, property_name)] = _course_attribute(field_name)
    for property_name, field_name in SECTION_ATTRIBUTE_FIELDS.items():
        resolvers[(attribute, AttributeSource.SECTION.value, property_name)] = _section_field(field_name)

    return resolvers


_RESOLVERS: Dict[ResolverKey, Resolver] = _build_resolvers()

# Sources whose properties are open-ended names (components) resolve per source.
_SOURCE_RESOLVERS: Dict[Tuple[ConditionGroupType, str], Resolver] = {
    (ConditionGroupType.SYLLABUS, SyllabusSource.COMPONENT_BY_NAME.value): _component_by_name,
    (ConditionGroupType.SYLLABUS, SyllabusSource.COMPONENT_BY_TYPE.value): _component_by_type,
}


def resolver_for(condition: Condition) -> Optional[Resolver]:
    group = ConditionGroupType.parse(condition.group_type)
    if group is None:
        return None
    source = getattr(condition.source, "value", condition.source)
    resolver = _RESOLVERS.get((group, source, condition.property))
    if resolver is None:
        resolver = _SOURCE_RESOLVERS.get((group, source))
    return resolver


def resolve_property(condition: Condition, section: Section, context: EvaluationContext,
                     schema: PropertySchema = DEFAULT_SCHEMA) -> Any:
    """Read the value a condition compares against; ``None`` when unresolvable."""
    if schema.config_for(condition) is None:
        logger.debug(
            "Property not in schema",
            condition_id=condition.id,
            group_type=getattr(condition.group_type, "value", condition.group_type),
            source=condition.source,
            property=condition.property
        )
        return None

    resolver = resolver_for(condition)
    if resolver is None:
        logger.debug("No resolver for property", condition_id=condition.id, property=condition.property)
        return None

    return resolver(condition, section, context, schema)


def verify_resolver_coverage(schema: PropertySchema = DEFAULT_SCHEMA) -> List[str]:
    """List mismatches between the resolver table and the schema."""
    problems: List[str] = []
    schema_keys = set(schema.keys())

    for key in _RESOLVERS:
        if key not in schema_keys:
            problems.append(f"Resolver without schema entry: {key[0].value} / {key[1]} / {key[2]}")

    for group, source, property_name in schema_keys:
        if (group, source) in _SOURCE_RESOLVERS:
            continue
        if (group, source, property_name) not in _RESOLVERS:
            problems.append(f"Schema entry without resolver: {group.value} / {source} / {property_name}")

    return sorted(problems)
