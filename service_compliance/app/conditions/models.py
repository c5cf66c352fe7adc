"""
Condition data models for the Compliance Service.
"""

from typing import Dict, Any, Optional, List, Union, Literal
from dataclasses import dataclass, field, asdict
from datetime import date
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic.alias_generators import to_camel


class ConditionGroupType(str, Enum):
    """Condition group types."""
    SYLLABUS = "Syllabus condition"
    LMS = "LMS Condition"
    ATTRIBUTE = "Attribute condition"

    @classmethod
    def parse(cls, value: Any) -> Optional["ConditionGroupType"]:
        """Parse a group type, accepting identifier spellings like ``LmsCondition``."""
        if value is None or isinstance(value, cls):
            return value
        key = str(value).replace(" ", "").replace("_", "").lower()
        if not key:
            return None
        for member in cls:
            if member.value.replace(" ", "").lower() == key:
                return member
        return None


class SyllabusSource(str, Enum):
    """Sources for syllabus conditions."""
    DETAILS = "Syllabus Details"
    COMPONENT_BY_NAME = "Component by name"
    COMPONENT_BY_TYPE = "Component by type"


class LmsSource(str, Enum):
    """Sources for LMS conditions."""
    ASSIGNMENTS = "Assignments"
    COURSE = "Course"
    DISCUSSIONS = "Discussions"
    DOCUMENTS = "Documents"
    MODULES = "Modules"
    PAGES = "Pages"
    QUIZ = "Quiz"
    RUBRICS = "Rubrics"
    SURVEY = "Survey"


class AttributeSource(str, Enum):
    """Sources for attribute conditions."""
    COURSE = "Course"
    SECTION = "Section"


class ValueType(str, Enum):
    """Value types a property accepts."""
    NONE = "none"
    SELECT = "select"
    NUMERIC = "numeric"
    STRING = "string"
    DATE = "date"


class DisplayType(str, Enum):
    """Rendering modes for an evaluation outcome."""
    YES_NO = "Yes/No"
    NUMBER = "Number"
    FRACTION = "Fraction"
    PERCENT = "Percent"
    DATE = "Date"
    STATUS_LABEL = "Status Label"


class ConditionResultType(str, Enum):
    """Result types shown for a pass or a failure."""
    PASS = "Pass"
    WARNING = "Warning"
    FAIL = "Fail"
    CUSTOM = "Custom"


class Operator(str, Enum):
    """Condition operators."""
    IS = "Is"
    IS_NOT = "Is not"
    EQUALS = "Equals"
    DOES_NOT_EQUAL = "Does not equal"
    GREATER_THAN = "Is greater than"
    LESS_THAN = "Is less than"
    GREATER_THAN_OR_EQUAL = "Is greater than or equal to"
    LESS_THAN_OR_EQUAL = "Is less than or equal to"
    IS_EMPTY = "Is empty"
    IS_NOT_EMPTY = "Is not empty"
    STARTS_WITH = "Starts with"
    ENDS_WITH = "Ends with"
    CONTAINS = "Contains"
    MATCHES = "Matches"
    DOES_NOT_MATCH = "Does not match"
    CHARACTER_COUNT_EQUALS = "Character count equals"
    CHARACTER_COUNT_LESS_THAN = "Character count less than"
    IS_BEFORE = "Is before"
    IS_AFTER = "Is after"
    IS_ON = "Is on"
    IS_PRESENT = "Is present"
    IS_NOT_PRESENT = "Is not present"
    IS_TRUE = "Is true"
    IS_FALSE = "Is false"
    EXISTS = "Exists"
    DOES_NOT_EXIST = "Does not exist"
    IS_PUBLISHED = "Is published"
    IS_NOT_PUBLISHED = "Is not published"
    IS_COMPLETE = "Is complete"
    IS_NOT_COMPLETE = "Is not complete"
    IS_ACTIVE = "Is Active"
    IS_INACTIVE = "Is Inactive"

    @classmethod
    def parse(cls, value: Any) -> Optional["Operator"]:
        """Parse an operator string; unknown operators yield None."""
        if isinstance(value, cls):
            return value
        if not isinstance(value, str) or not value:
            return None
        try:
            return cls(value)
        except ValueError:
            return _OPERATORS_BY_KEY.get(value.strip().lower())


_OPERATORS_BY_KEY = {op.value.lower(): op for op in Operator}

VALUE_FREE_OPERATORS = frozenset({
    Operator.IS_PUBLISHED.value, Operator.IS_NOT_PUBLISHED.value,
    Operator.IS_COMPLETE.value, Operator.IS_NOT_COMPLETE.value,
    Operator.IS_PRESENT.value, Operator.IS_NOT_PRESENT.value,
    Operator.IS_EMPTY.value, Operator.IS_NOT_EMPTY.value,
    Operator.IS_TRUE.value, Operator.IS_FALSE.value,
    Operator.IS_ACTIVE.value, Operator.IS_INACTIVE.value,
    Operator.EXISTS.value, Operator.DOES_NOT_EXIST.value,
})


@dataclass
class SubCondition:
    """Filter applied to the items behind an aggregate property."""
    id: Any = None
    property: str = ""
    operator: str = ""
    value: Any = None


@dataclass
class Condition:
    """Single comparison against a section property."""
    id: Any = None
    group_type: Optional[ConditionGroupType] = None
    source: str = ""
    property: str = ""
    operator: str = ""
    value: Any = None
    sub_conditions: List[SubCondition] = field(default_factory=list)


@dataclass
class ConditionGroup:
    """AND-combined conditions."""
    id: Any = None
    conditions: List[Condition] = field(default_factory=list)


@dataclass
class ConditionResult:
    """Result shown when a task passes or fails."""
    type: ConditionResultType = ConditionResultType.PASS
    custom_name: Optional[str] = None
    icon: Optional[str] = None


@dataclass
class PlanTask:
    """Plan task with an OR-combined list of condition groups."""
    id: Any = None
    term: str = ""
    name: str = ""
    description: str = ""
    condition_groups: List[ConditionGroup] = field(default_factory=list)
    display_type: DisplayType = DisplayType.YES_NO
    condition_result: ConditionResult = field(default_factory=ConditionResult)
    condition_failure: ConditionResult = field(
        default_factory=lambda: ConditionResult(type=ConditionResultType.FAIL)
    )
    allow_view: bool = True
    allow_edit: bool = False
    active: bool = True

    def all_conditions(self) -> List[Condition]:
        """Flatten conditions across all groups."""
        return [condition for group in self.condition_groups for condition in group.conditions]


@dataclass
class SectionComponent:
    """Named syllabus component."""
    name: str
    type: Optional[str] = None
    visible: bool = True
    required: bool = False
    public: bool = True
    section_editing: bool = False
    course_editing: bool = False
    help_text: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class LmsItem:
    """Assignment-like LMS item (assignment, discussion, page, quiz...)."""
    name: str = ""
    publish_state: Optional[str] = None
    last_updated: Any = None
    graded: bool = False
    due_date: Any = None
    due_outside_term: bool = False
    rubric_used: bool = False
    anonymous_grading: bool = False
    instructor_post: bool = False
    points: Optional[float] = None
    average_score: Optional[float] = None
    completion_rate: Optional[float] = None
    in_use: bool = False


@dataclass
class LmsCourse:
    """Course shell metadata reported by the LMS."""
    publish_state: Optional[str] = None
    name: Optional[str] = None
    last_updated: Any = None
    cross_listed: Optional[bool] = None
    start_date: Any = None
    end_date: Any = None
    student_count: Optional[int] = None
    most_recent_enrollment: Any = None
    instructor_assigned: Optional[bool] = None
    created_date: Any = None


@dataclass
class CourseAttributes:
    """Catalog attributes of the course a section belongs to."""
    subject: Optional[str] = None
    course_number: Optional[str] = None
    title: Optional[str] = None
    parent_organization: Optional[str] = None
    term: Optional[str] = None
    catalog_description: Optional[str] = None
    prerequisite: Optional[str] = None
    credit_hours: Optional[float] = None


@dataclass
class Section:
    """Record under test."""
    id: Any = None
    name: str = ""
    term: str = ""

    # Syllabus properties
    publish_state: Optional[str] = None
    status: Optional[str] = None
    material_count: Optional[int] = None
    objective_count: Optional[int] = None
    instructor_count: Optional[int] = None
    completed_date: Any = None
    syllabus_access: Optional[str] = None
    student_engagement: Optional[float] = None
    components: List[SectionComponent] = field(default_factory=list)

    # LMS properties
    assignments: List[LmsItem] = field(default_factory=list)
    discussions: List[LmsItem] = field(default_factory=list)
    documents: List[LmsItem] = field(default_factory=list)
    modules: List[LmsItem] = field(default_factory=list)
    pages: List[LmsItem] = field(default_factory=list)
    quizzes: List[LmsItem] = field(default_factory=list)
    rubrics: List[LmsItem] = field(default_factory=list)
    surveys: List[LmsItem] = field(default_factory=list)
    lms_course: Optional[LmsCourse] = None

    # Attribute properties
    course: CourseAttributes = field(default_factory=CourseAttributes)
    crn: Optional[str] = None
    delivery_method: Optional[str] = None
    timezone: Optional[str] = None
    syllabus_due_date: Any = None
    subject: Optional[str] = None
    course_number: Optional[str] = None
    title: Optional[str] = None


@dataclass
class EvaluationResult:
    """Result of evaluating a plan task against a section."""
    passes: bool
    display_value: str
    result_type: ConditionResultType
    custom_name: Optional[str] = None
    icon: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["result_type"] = self.result_type.value
        return data


@dataclass
class DisplayedEvaluationResult(EvaluationResult):
    """Evaluation result as shown to a reviewer, including manual overrides."""
    is_manual_override: bool = False
    is_manual_task: bool = False


# --- Request/response payloads ---------------------------------------------

class CamelModel(BaseModel):
    """Payload base accepting camelCase or snake_case keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class SubConditionPayload(CamelModel):
    id: Optional[Union[int, str]] = None
    property: str = ""
    operator: str = ""
    value: Any = None

    def to_domain(self) -> SubCondition:
        return SubCondition(id=self.id, property=self.property, operator=self.operator, value=self.value)

    @classmethod
    def from_domain(cls, sub_condition: SubCondition) -> "SubConditionPayload":
        return cls(
            id=sub_condition.id,
            property=sub_condition.property,
            operator=sub_condition.operator,
            value=sub_condition.value
        )


class ConditionPayload(CamelModel):
    id: Optional[Union[int, str]] = None
    group_type: Optional[str] = None
    source: str = ""
    property: str = ""
    operator: str = ""
    value: Any = None
    sub_conditions: Optional[List[SubConditionPayload]] = None

    def to_domain(self) -> Condition:
        return Condition(
            id=self.id,
            group_type=ConditionGroupType.parse(self.group_type),
            source=self.source,
            property=self.property,
            operator=self.operator,
            value=self.value,
            sub_conditions=[sub.to_domain() for sub in self.sub_conditions or []]
        )

    @classmethod
    def from_domain(cls, condition: Condition) -> "ConditionPayload":
        return cls(
            id=condition.id,
            group_type=getattr(condition.group_type, "value", condition.group_type),
            source=condition.source,
            property=condition.property,
            operator=condition.operator,
            value=condition.value,
            sub_conditions=[SubConditionPayload.from_domain(sub) for sub in condition.sub_conditions]
        )


class ConditionGroupPayload(CamelModel):
    id: Optional[Union[int, str]] = None
    conditions: List[ConditionPayload] = Field(default_factory=list)

    def to_domain(self) -> ConditionGroup:
        return ConditionGroup(id=self.id, conditions=[c.to_domain() for c in self.conditions])


class ConditionResultPayload(CamelModel):
    type: ConditionResultType = ConditionResultType.PASS
    custom_name: Optional[str] = None
    icon: Optional[str] = None

    def to_domain(self) -> ConditionResult:
        return ConditionResult(type=self.type, custom_name=self.custom_name, icon=self.icon)


class PlanTaskPayload(CamelModel):
    """Plan task as sent by the editor."""
    id: Optional[Union[int, str]] = None
    term: str = ""
    name: str = ""
    description: str = ""
    condition_groups: List[ConditionGroupPayload] = Field(default_factory=list)
    display_type: DisplayType = DisplayType.YES_NO
    condition_result: ConditionResultPayload = Field(default_factory=ConditionResultPayload)
    condition_failure: ConditionResultPayload = Field(
        default_factory=lambda: ConditionResultPayload(type=ConditionResultType.FAIL)
    )
    allow_view: bool = True
    allow_edit: bool = False
    active: bool = True

    def to_domain(self) -> PlanTask:
        return PlanTask(
            id=self.id,
            term=self.term,
            name=self.name,
            description=self.description,
            condition_groups=[g.to_domain() for g in self.condition_groups],
            display_type=self.display_type,
            condition_result=self.condition_result.to_domain(),
            condition_failure=self.condition_failure.to_domain(),
            allow_view=self.allow_view,
            allow_edit=self.allow_edit,
            active=self.active
        )


class ComponentPayload(CamelModel):
    name: str
    type: Optional[str] = None
    visible: bool = True
    required: bool = False
    public: bool = True
    section_editing: bool = False
    course_editing: bool = False
    help_text: Optional[str] = None
    fields: Dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> SectionComponent:
        return SectionComponent(**self.model_dump())


class LmsItemPayload(CamelModel):
    name: str = ""
    publish_state: Optional[str] = None
    last_updated: Any = None
    graded: bool = False
    due_date: Any = None
    due_outside_term: bool = False
    rubric_used: bool = False
    anonymous_grading: bool = False
    instructor_post: bool = False
    points: Optional[float] = None
    average_score: Optional[float] = None
    completion_rate: Optional[float] = None
    in_use: bool = False

    def to_domain(self) -> LmsItem:
        return LmsItem(**self.model_dump())


class LmsCoursePayload(CamelModel):
    publish_state: Optional[str] = None
    name: Optional[str] = None
    last_updated: Any = None
    cross_listed: Optional[bool] = None
    start_date: Any = None
    end_date: Any = None
    student_count: Optional[int] = None
    most_recent_enrollment: Any = None
    instructor_assigned: Optional[bool] = None
    created_date: Any = None

    def to_domain(self) -> LmsCourse:
        return LmsCourse(**self.model_dump())


class CourseAttributesPayload(CamelModel):
    subject: Optional[str] = None
    course_number: Optional[str] = None
    title: Optional[str] = None
    parent_organization: Optional[str] = None
    term: Optional[str] = None
    catalog_description: Optional[str] = None
    prerequisite: Optional[str] = None
    credit_hours: Optional[float] = None

    def to_domain(self) -> CourseAttributes:
        return CourseAttributes(**self.model_dump())


class SectionPayload(CamelModel):
    """Section record as supplied by the document collaborator."""
    id: Optional[Union[int, str]] = None
    name: str = ""
    term: str = ""
    publish_state: Optional[str] = None
    status: Optional[str] = None
    material_count: Optional[int] = None
    objective_count: Optional[int] = None
    instructor_count: Optional[int] = None
    completed_date: Any = None
    syllabus_access: Optional[str] = None
    student_engagement: Optional[float] = None
    components: List[ComponentPayload] = Field(default_factory=list)
    assignments: List[LmsItemPayload] = Field(
        default_factory=list,
        validation_alias=AliasChoices("assignments", "lmsAssignments", "lms_assignments")
    )
    discussions: List[LmsItemPayload] = Field(default_factory=list)
    documents: List[LmsItemPayload] = Field(default_factory=list)
    modules: List[LmsItemPayload] = Field(default_factory=list)
    pages: List[LmsItemPayload] = Field(default_factory=list)
    quizzes: List[LmsItemPayload] = Field(default_factory=list)
    rubrics: List[LmsItemPayload] = Field(default_factory=list)
    surveys: List[LmsItemPayload] = Field(default_factory=list)
    lms_course: Optional[LmsCoursePayload] = None
    course: Optional[CourseAttributesPayload] = None
    attribute_credit_hours: Optional[float] = None
    crn: Optional[str] = Field(default=None, validation_alias=AliasChoices("crn", "CRN"))
    delivery_method: Optional[str] = None
    timezone: Optional[str] = None
    syllabus_due_date: Any = None
    subject: Optional[str] = None
    course_number: Optional[str] = None
    title: Optional[str] = None

    def to_domain(self) -> Section:
        course = self.course.to_domain() if self.course else CourseAttributes()
        if course.credit_hours is None and self.attribute_credit_hours is not None:
            course.credit_hours = self.attribute_credit_hours

        def items(payloads: List[LmsItemPayload]) -> List[LmsItem]:
            return [p.to_domain() for p in payloads]

        return Section(
            id=self.id,
            name=self.name,
            term=self.term,
            publish_state=self.publish_state,
            status=self.status,
            material_count=self.material_count,
            objective_count=self.objective_count,
            instructor_count=self.instructor_count,
            completed_date=self.completed_date,
            syllabus_access=self.syllabus_access,
            student_engagement=self.student_engagement,
            components=[c.to_domain() for c in self.components],
            assignments=items(self.assignments),
            discussions=items(self.discussions),
            documents=items(self.documents),
            modules=items(self.modules),
            pages=items(self.pages),
            quizzes=items(self.quizzes),
            rubrics=items(self.rubrics),
            surveys=items(self.surveys),
            lms_course=self.lms_course.to_domain() if self.lms_course else None,
            course=course,
            crn=self.crn,
            delivery_method=self.delivery_method,
            timezone=self.timezone,
            syllabus_due_date=self.syllabus_due_date,
            subject=self.subject,
            course_number=self.course_number,
            title=self.title
        )


class EvaluateRequest(CamelModel):
    """Request model for evaluating one task against one section."""
    task: PlanTaskPayload
    section: Optional[SectionPayload] = None
    override: Optional[Literal["pass", "fail"]] = None
    today: Optional[date] = None


class ValidateRequest(CamelModel):
    """Request model for checking a task's configuration."""
    task: PlanTaskPayload


class ConfigurationIssueResponse(CamelModel):
    group_id: Optional[Union[int, str]] = None
    condition_id: Optional[Union[int, str]] = None
    sub_condition_id: Optional[Union[int, str]] = None
    field: str
    message: str


class ValidateResponse(CamelModel):
    """Response model for configuration checks."""
    valid: bool
    savable: bool
    issues: List[ConfigurationIssueResponse] = Field(default_factory=list)
    allowed_display_types: List[DisplayType] = Field(default_factory=list)


class ValidationContextRequest(CamelModel):
    """Request model for evaluating a task across many sections."""
    task: PlanTaskPayload
    sections: List[SectionPayload] = Field(default_factory=list)
    mode: Literal["pass", "fail"] = "fail"
    page: int = Field(1, ge=1)
    limit: Optional[int] = Field(None, ge=1, le=100)
    today: Optional[date] = None


class EvaluationResultResponse(CamelModel):
    """Evaluation outcome as returned to clients."""
    passes: bool
    display_value: str
    result_type: ConditionResultType
    custom_name: Optional[str] = None
    icon: Optional[str] = None


class DisplayedResultResponse(EvaluationResultResponse):
    is_manual_override: bool = False
    is_manual_task: bool = False


class ResultViewResponse(CamelModel):
    """Response model for single-section evaluation."""
    status: str
    data: Optional[DisplayedResultResponse] = None


class ValidationContextEntryResponse(CamelModel):
    id: str
    name: str
    passes: bool
    label: str
    section_id: Optional[Union[int, str]] = None
    result: EvaluationResultResponse


class ValidationContextResponse(CamelModel):
    """Response model for one page of a validation context."""
    entries: List[ValidationContextEntryResponse] = Field(default_factory=list)
    page: int
    page_size: int
    total: int
    range_label: str
    has_previous: bool = False
    has_next: bool = False
    mode: Literal["pass", "fail"]
    evaluated: int


class DynamicValueResponse(CamelModel):
    label: str
    value: str
    type: str
    calculated_value: str


class DynamicValuesResponse(CamelModel):
    dynamic_values: List[DynamicValueResponse] = Field(default_factory=list)


class HistoryRecordRequest(CamelModel):
    """Conditions of one group after an edit."""
    conditions: List[ConditionPayload] = Field(default_factory=list)


class HistoryStateResponse(CamelModel):
    """Undo/redo state of one condition group."""
    task_id: Union[int, str]
    group_id: Union[int, str]
    conditions: Optional[List[ConditionPayload]] = None
    can_undo: bool = False
    can_redo: bool = False
    recorded: Optional[bool] = None
