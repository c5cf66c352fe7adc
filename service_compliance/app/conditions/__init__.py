"""
Condition evaluation package.

Defines the property schema and evaluation engine used by the Compliance
Service. Condition groups combine with OR, conditions within a group with
AND, and aggregate properties may be narrowed by sub-conditions before
they are counted.

Modules of interest:
- schema: Catalog of group types, sources and properties.
- operators: Evaluation context and the shared comparison routine.
- resolver: Reads property values from a section.
- engine: Evaluation of a task against a section.
- display: Display value rendering.
- validator: Configuration completeness checks.
- review: Reviewer views, manual overrides and validation context.
- history: Undo/redo snapshots for condition editing.
"""
