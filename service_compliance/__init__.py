"""
Compliance Service package for course plan tasks.

This package decides whether a course section satisfies the conditions
configured on a plan task. It provides:

- app.main: API surface for evaluation, validation and health.
- app.conditions: Property schema, operators, resolvers and the engine.

Guidelines:
- Evaluation is a pure function of task, section and evaluation context.
- Malformed conditions evaluate to false; they never raise.
"""
