"""
Property schema for condition configuration.

The catalog maps ``(group type, source, property)`` to a ``PropertyConfig``
describing the value type, legal operators and, for aggregate properties,
the item-level properties that sub-conditions may filter on. The same
``PropertyConfig`` objects back both the top-level condition view and the
sub-condition view, so the two cannot drift apart.
"""

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from shared.errors import SchemaDefinitionError
from .models import (
    AttributeSource, Condition, ConditionGroupType, LmsSource, Operator,
    SyllabusSource, ValueType
)

SCHEMA_VERSION = "2025.1"

NUMERIC_OPERATORS: Tuple[str, ...] = (
    Operator.EQUALS.value, Operator.DOES_NOT_EQUAL.value,
    Operator.GREATER_THAN.value, Operator.LESS_THAN.value,
    Operator.GREATER_THAN_OR_EQUAL.value, Operator.LESS_THAN_OR_EQUAL.value,
    Operator.IS_EMPTY.value, Operator.IS_NOT_EMPTY.value,
)

STRING_OPERATORS: Tuple[str, ...] = (
    Operator.STARTS_WITH.value, Operator.ENDS_WITH.value, Operator.CONTAINS.value,
    Operator.MATCHES.value, Operator.DOES_NOT_MATCH.value,
    Operator.CHARACTER_COUNT_EQUALS.value, Operator.CHARACTER_COUNT_LESS_THAN.value,
    Operator.IS_EMPTY.value, Operator.IS_NOT_EMPTY.value,
)

DATE_OPERATORS: Tuple[str, ...] = (
    Operator.IS_BEFORE.value, Operator.IS_AFTER.value, Operator.IS_ON.value,
    Operator.IS_EMPTY.value, Operator.IS_NOT_EMPTY.value,
)

IS_OPERATORS: Tuple[str, ...] = (Operator.IS.value, Operator.IS_NOT.value)
PRESENCE_OPERATORS: Tuple[str, ...] = (Operator.IS_PRESENT.value, Operator.IS_NOT_PRESENT.value)

DEFAULT_OPERATORS: Dict[ValueType, Tuple[str, ...]] = {
    ValueType.NUMERIC: NUMERIC_OPERATORS,
    ValueType.STRING: STRING_OPERATORS,
}


@dataclass(frozen=True)
class PropertyConfig:
    """Immutable description of one configurable property."""
    value_type: ValueType
    options: Tuple[str, ...] = ()
    operators: Tuple[str, ...] = ()
    sub_condition_properties: Mapping[str, "PropertyConfig"] = field(
        default_factory=lambda: MappingProxyType({})
    )
    requires_sub_conditions: bool = False

    def __post_init__(self):
        if not isinstance(self.sub_condition_properties, MappingProxyType):
            object.__setattr__(
                self, "sub_condition_properties", MappingProxyType(dict(self.sub_condition_properties))
            )
        if self.requires_sub_conditions and not self.sub_condition_properties:
            raise SchemaDefinitionError(
                "Property requires sub-conditions but defines none",
                details={"value_type": self.value_type.value}
            )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "valueType": self.value_type.value,
            "operators": list(operators_for(self)),
        }
        if self.options:
            data["options"] = list(self.options)
        if self.sub_condition_properties:
            data["subConditionProperties"] = {
                name: config.to_dict() for name, config in self.sub_condition_properties.items()
            }
        if self.requires_sub_conditions:
            data["requiresSubConditions"] = True
        return data


def operators_for(config: PropertyConfig) -> Tuple[str, ...]:
    """Return the legal operators for a property config."""
    if config.operators:
        return config.operators
    return DEFAULT_OPERATORS.get(config.value_type, ())


def _select(*options: str, operators: Tuple[str, ...] = IS_OPERATORS) -> PropertyConfig:
    return PropertyConfig(ValueType.SELECT, options=tuple(options), operators=operators)


_STRING = PropertyConfig(ValueType.STRING, operators=STRING_OPERATORS)
_DATE = PropertyConfig(ValueType.DATE, operators=DATE_OPERATORS)
_NUMERIC = PropertyConfig(ValueType.NUMERIC)
_PRESENCE = PropertyConfig(ValueType.NONE, operators=PRESENCE_OPERATORS)

# --- Sub-condition property sets --------------------------------------------

BASE_COMPONENT_SUB_CONDITIONS: Dict[str, PropertyConfig] = {
    "Name": _STRING,
    "Required": _select("Required", "Not Required"),
    "Visible": _select("Visible", "Not Visible"),
    "Public/Private": _select("Public", "Private"),
    "Section editing": _select("Enabled", "Not Enabled"),
    "Course editing": _select("Enabled", "Not Enabled"),
    "Help Text": _STRING,
}

_MATERIAL_FIELDS = (
    "Title", "Subtitle", "ISBN", "Description", "Thumbnail",
    "Authors", "Published", "URL", "Notes",
)

COMPONENT_FIELD_EXTRAS: Dict[str, Tuple[str, ...]] = {
    "Instructor Information": (
        "Name", "Title", "Email", "Phone", "Office location", "Office Hours", "Instructor Photo",
    ),
    "Course Objective": ("Objective", "Bloom's Taxonomy", "Assessment Method"),
    "Required materials": _MATERIAL_FIELDS,
    "Optional materials": _MATERIAL_FIELDS,
}

FIELD_PREFIX = "Field - "

COMPONENT_NAMES: Tuple[str, ...] = (
    "Instructor Information", "Required materials", "Optional materials",
    "Grading scheme", "Program outcomes", "Course overview", "Class schedule",
    "Course Objective", "Student engagement (syllabus)",
)

COMPONENT_TYPES: Tuple[str, ...] = (
    "Content", "Instructor", "Internal", "Materials", "Objectives", "Quick Pick", "Schedule",
)


def build_component_sub_conditions(component_name: str) -> Dict[str, PropertyConfig]:
    """Base component sub-conditions plus the component's own fields."""
    properties = dict(BASE_COMPONENT_SUB_CONDITIONS)
    for field_name in COMPONENT_FIELD_EXTRAS.get(component_name, ()):
        properties[f"{FIELD_PREFIX}{field_name}"] = _STRING
    return properties


LMS_SUB_COMMON: Dict[str, PropertyConfig] = {
    "Name": _STRING,
    "Publish State": _select("Published", "Unpublished", operators=(Operator.IS.value,)),
    "Last Updated": _DATE,
}

LMS_SUB_GRADABLE: Dict[str, PropertyConfig] = {
    **LMS_SUB_COMMON,
    "Graded": _select("Graded", "Not Graded", operators=(Operator.IS.value,)),
    "Due Date": _DATE,
    "Due Date relative to Term": _select(
        "Outside term dates", "Not outside term dates", operators=(Operator.IS.value,)
    ),
    "Rubric": _select("Used", "Not Used", operators=(Operator.IS.value,)),
}

LMS_SUB_ASSIGNMENT: Dict[str, PropertyConfig] = {
    **LMS_SUB_GRADABLE,
    "Anonymous Grading": _select("On", "Off", operators=(Operator.IS.value,)),
}

LMS_SUB_POSTABLE: Dict[str, PropertyConfig] = {
    **LMS_SUB_GRADABLE,
    "Instructor Post": PropertyConfig(
        ValueType.NONE, operators=(Operator.EXISTS.value, Operator.DOES_NOT_EXIST.value)
    ),
}


def _count(sub_properties: Dict[str, PropertyConfig]) -> PropertyConfig:
    return PropertyConfig(ValueType.NUMERIC, sub_condition_properties=sub_properties)


def _percent(sub_properties: Dict[str, PropertyConfig]) -> PropertyConfig:
    return PropertyConfig(
        ValueType.NUMERIC, sub_condition_properties=sub_properties, requires_sub_conditions=True
    )


def _plain(key: Any) -> Any:
    # Enum members hash by name, catalog keys are their string values
    return key.value if isinstance(key, Enum) else key


# --- Catalog ------------------------------------------------------------------

Catalog = Dict[ConditionGroupType, Dict[str, Dict[str, PropertyConfig]]]

CATALOG: Catalog = {
    ConditionGroupType.SYLLABUS: {
        SyllabusSource.DETAILS.value: {
            "Publish State": _select("Published", "Not Published"),
            "Status": _select("Not Started", "In progress", "Awaiting approval", "Completed", "Inactive"),
            "Completed date": PropertyConfig(
                ValueType.DATE,
                operators=(Operator.IS_BEFORE.value, Operator.IS_AFTER.value, Operator.IS_ON.value)
            ),
            "Material count": _NUMERIC,
            "Objective count": _NUMERIC,
            "Instructor count": _NUMERIC,
            "Component count": _NUMERIC,
            "Syllabus Access": _select("General Public", "Campus Community", "Private Access"),
            "Student engagement": _NUMERIC,
        },
        SyllabusSource.COMPONENT_BY_NAME.value: {
            name: PropertyConfig(
                ValueType.NONE,
                operators=PRESENCE_OPERATORS,
                sub_condition_properties=build_component_sub_conditions(name)
            )
            for name in COMPONENT_NAMES
        },
        SyllabusSource.COMPONENT_BY_TYPE.value: {
            component_type: _PRESENCE for component_type in COMPONENT_TYPES
        },
    },
    ConditionGroupType.LMS: {
        LmsSource.ASSIGNMENTS.value: {
            "Total Count": _count(LMS_SUB_ASSIGNMENT),
            "Total Points": _NUMERIC,
            "Total Percent": _percent(LMS_SUB_ASSIGNMENT),
        },
        LmsSource.COURSE.value: {
            "Publish State": _select("Published", "Unpublished", operators=(Operator.IS.value,)),
            "Name": _STRING,
            "Last Updated": _DATE,
            "Cross-listed": _select("Yes", "No", operators=(Operator.IS.value,)),
            "Start date": _DATE,
            "End date": _DATE,
            "Student count": _NUMERIC,
            "Most recent enrollment": _DATE,
            "Instructor assigned": _select("Yes", "No", operators=(Operator.IS.value,)),
            "Created date": _DATE,
        },
        LmsSource.DISCUSSIONS.value: {
            "Total Count": _count(LMS_SUB_POSTABLE),
            "Total Points": _NUMERIC,
            "Total Percent": _percent(LMS_SUB_POSTABLE),
        },
        LmsSource.DOCUMENTS.value: {
            "Total Count": _count(LMS_SUB_COMMON),
            "Total Percent": _percent(LMS_SUB_COMMON),
        },
        LmsSource.MODULES.value: {
            "Total Count": _count(LMS_SUB_COMMON),
            "Total Percent": _percent(LMS_SUB_COMMON),
        },
        LmsSource.PAGES.value: {
            "Total Count": _count(LMS_SUB_COMMON),
            "Total Percent": _percent(LMS_SUB_COMMON),
        },
        LmsSource.QUIZ.value: {
            "Total Count": _count(LMS_SUB_POSTABLE),
            "Average Score": _NUMERIC,
            "Total Points": _NUMERIC,
            "Total Percent": _percent(LMS_SUB_POSTABLE),
        },
        LmsSource.RUBRICS.value: {
            "Total Count": _count(LMS_SUB_COMMON),
            "Is Used": PropertyConfig(
                ValueType.NONE, operators=(Operator.IS_TRUE.value, Operator.IS_FALSE.value)
            ),
        },
        LmsSource.SURVEY.value: {
            "Total Count": _count(LMS_SUB_POSTABLE),
            "Completion Rate": _NUMERIC,
            "Total Percent": _percent(LMS_SUB_POSTABLE),
        },
    },
    ConditionGroupType.ATTRIBUTE: {
        AttributeSource.COURSE.value: {
            "Subject": _STRING,
            "Course number": _STRING,
            "Title": _STRING,
            "Parent organization": _STRING,
            "Term": _STRING,
            "Catalog description": _STRING,
            "Prerequisite": _STRING,
            "Credit hours": PropertyConfig(ValueType.NUMERIC, operators=NUMERIC_OPERATORS),
        },
        AttributeSource.SECTION.value: {
            "Name": _STRING,
            "Course number": _STRING,
            "Title": _STRING,
            "Syllabus due date": _DATE,
            "Timezone": _STRING,
            "Term": _STRING,
            "Subject": _STRING,
            "Delivery method": _select("Online", "In-Person", "Hybrid"),
            "CRN": _STRING,
        },
    },
}


class PropertySchema:
    """Read-only lookup over a property catalog."""

    def __init__(self, catalog: Catalog, version: str = SCHEMA_VERSION):
        self._catalog = catalog
        self.version = version

    def lookup(self, group_type: Any, source: Any, property_name: Any) -> Optional[PropertyConfig]:
        """Find the config for a (group type, source, property) triple."""
        group = ConditionGroupType.parse(group_type)
        if group is None or not source or not property_name:
            return None
        return self._catalog.get(group, {}).get(_plain(source), {}).get(_plain(property_name))

    def config_for(self, condition: Condition) -> Optional[PropertyConfig]:
        return self.lookup(condition.group_type, condition.source, condition.property)

    def sub_condition_config(self, condition: Condition, sub_property: str) -> Optional[PropertyConfig]:
        """Item-level config for a sub-condition property of ``condition``."""
        config = self.config_for(condition)
        if config is None or not sub_property:
            return None
        return config.sub_condition_properties.get(_plain(sub_property))

    def group_types(self) -> List[ConditionGroupType]:
        return list(self._catalog.keys())

    def sources_for(self, group_type: Any) -> List[str]:
        group = ConditionGroupType.parse(group_type)
        return list(self._catalog.get(group, {}).keys()) if group else []

    def properties_for(self, group_type: Any, source: str) -> Dict[str, PropertyConfig]:
        group = ConditionGroupType.parse(group_type)
        if group is None:
            return {}
        return dict(self._catalog.get(group, {}).get(_plain(source), {}))

    def keys(self) -> Iterator[Tuple[ConditionGroupType, str, str]]:
        """Iterate every (group type, source, property) triple."""
        for group, sources in self._catalog.items():
            for source, properties in sources.items():
                for property_name in properties:
                    yield group, source, property_name

    def catalog(self) -> Dict[str, Any]:
        """JSON-ready dump of the catalog."""
        return {
            "version": self.version,
            "groupTypes": {
                group.value: {
                    source: {
                        "properties": {
                            name: config.to_dict() for name, config in properties.items()
                        }
                    }
                    for source, properties in sources.items()
                }
                for group, sources in self._catalog.items()
            },
        }


DEFAULT_SCHEMA = PropertySchema(CATALOG)


def lookup(group_type: Any, source: Any, property_name: Any) -> Optional[PropertyConfig]:
    """Look up a property in the default schema."""
    return DEFAULT_SCHEMA.lookup(group_type, source, property_name)
