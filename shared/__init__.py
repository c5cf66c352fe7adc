"""
Shared utilities for the Compliance Service.

This package aggregates common building blocks:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request and task correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- base_service: FastAPI service scaffold with health and metrics routes
- test_helpers: Builders for sections and plan tasks used in tests

Do not import from service packages into shared/.
"""
