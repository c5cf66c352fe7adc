"""
Unit tests for Compliance main service.
"""

import pytest
from datetime import date
from unittest.mock import patch
from fastapi.testclient import TestClient
from pydantic import ValidationError as PydanticValidationError

from shared.config import get_config
from shared.errors import ServiceError
from shared.test_helpers import TestDataFactory
from service_compliance.app.main import ComplianceService, create_app


LMS_CONDITION = TestDataFactory.condition(
    "LMS Condition", "Assignments", "Total Count", "Is greater than or equal to", "2",
    sub_conditions=[TestDataFactory.sub_condition("Publish State", "Is", "Published")]
)


class TestComplianceService:
    """Test cases for ComplianceService."""

    @pytest.fixture
    def compliance_service(self):
        """Create ComplianceService instance."""
        return ComplianceService()

    @pytest.fixture
    def app(self):
        """Create FastAPI app instance."""
        return create_app()

    @pytest.fixture
    def client(self, app):
        """Create test client."""
        return TestClient(app)

    def test_root_endpoint(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["service"] == "compliance"
        assert "condition_evaluation" in data["capabilities"]
        assert data["schemaVersion"]

    def test_health_endpoint(self, client):
        """Test health check endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "ok"
        assert data["dependencies"] == {"property_schema": "ok"}

    def test_health_endpoint_resolver_drift(self, client):
        """Test health check fails when resolvers and schema disagree."""
        with patch(
            "service_compliance.app.main.verify_resolver_coverage",
            return_value=["No resolver for LMS Condition / Gradebook / Total Count"]
        ):
            response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "error"

    def test_metrics_endpoint(self, client):
        """Test Prometheus metrics endpoint."""
        client.post("/compliance/evaluate", json={
            "task": TestDataFactory.single_condition_task(LMS_CONDITION),
            "section": TestDataFactory.section(),
        })

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "task_evaluations_total" in response.text
        assert "http_requests_total" in response.text

    def test_request_id_is_echoed(self, client):
        """Test request ids are propagated to the response."""
        response = client.get("/", headers={"x-request-id": "req-123"})

        assert response.headers["x-request-id"] == "req-123"
        assert client.get("/").headers["x-request-id"]

    def test_schema_endpoint(self, client):
        """Test the property catalog endpoint."""
        response = client.get("/compliance/schema")
        assert response.status_code == 200

        group_types = response.json()["groupTypes"]
        assert set(group_types) == {"Syllabus condition", "LMS Condition", "Attribute condition"}
        assert "Total Percent" in group_types["LMS Condition"]["Assignments"]["properties"]

    def test_dynamic_values_endpoint(self, client):
        """Test dynamic values can be filtered by type."""
        response = client.get("/compliance/dynamic-values")
        assert response.status_code == 200
        tokens = {value["value"] for value in response.json()["dynamicValues"]}
        assert "{today}" in tokens
        assert "{term_name}" in tokens

        response = client.get("/compliance/dynamic-values", params={"type": "date"})
        values = response.json()["dynamicValues"]
        assert values
        assert all(value["type"] == "date" for value in values)

    def test_dynamic_values_unknown_type(self, client):
        """Test an unknown value type is rejected."""
        response = client.get("/compliance/dynamic-values", params={"type": "colour"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"

    def test_validate_endpoint(self, client):
        """Test configuration validation of a complete task."""
        response = client.post("/compliance/validate", json={
            "task": TestDataFactory.single_condition_task(LMS_CONDITION)
        })
        assert response.status_code == 200

        data = response.json()
        assert data["valid"] is True
        assert data["savable"] is True
        assert data["issues"] == []
        assert data["allowedDisplayTypes"] == ["Yes/No", "Number", "Fraction", "Percent"]

    def test_validate_endpoint_reports_issues(self, client):
        """Test configuration issues are returned with camelCase keys."""
        condition = TestDataFactory.condition("Syllabus condition", "Syllabus Details", "Status", "", id=9)

        response = client.post("/compliance/validate", json={
            "task": TestDataFactory.single_condition_task(condition, name="")
        })
        assert response.status_code == 200

        data = response.json()
        assert data["valid"] is False
        assert data["savable"] is False
        assert data["issues"][0]["conditionId"] == 9
        assert data["issues"][0]["field"] == "operator"

    def test_evaluate_endpoint(self, client):
        """Test evaluating a task against one section."""
        response = client.post("/compliance/evaluate", json={
            "task": TestDataFactory.single_condition_task(LMS_CONDITION, display_type="Fraction"),
            "section": TestDataFactory.section(),
        })
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "evaluated"
        assert data["data"]["passes"] is True
        assert data["data"]["displayValue"] == "2 / 2"
        assert data["data"]["resultType"] == "Pass"
        assert set(data["data"]) == {
            "passes", "displayValue", "resultType", "customName", "icon",
            "isManualOverride", "isManualTask"
        }

    def test_evaluate_without_section(self, client):
        """Test evaluation without a section."""
        response = client.post("/compliance/evaluate", json={
            "task": TestDataFactory.single_condition_task(LMS_CONDITION)
        })

        assert response.status_code == 200
        assert response.json() == {"status": "no_section", "data": None}

    def test_evaluate_manual_override(self, client):
        """Test a manual task with a pass override."""
        response = client.post("/compliance/evaluate", json={
            "task": TestDataFactory.create_sample_tasks()[2],
            "section": TestDataFactory.section(),
            "override": "pass",
        })

        data = response.json()
        assert data["status"] == "manual"
        assert data["data"]["passes"] is True
        assert data["data"]["isManualOverride"] is True

    def test_evaluate_uses_requested_today(self, client):
        """Test the evaluation date can be pinned per request."""
        condition = TestDataFactory.condition(
            "Syllabus condition", "Syllabus Details", "Completed date", "Is before", "{today}"
        )
        payload = {
            "task": TestDataFactory.single_condition_task(condition),
            "section": TestDataFactory.section(),
        }

        before = client.post("/compliance/evaluate", json={**payload, "today": "2025-08-01"})
        after = client.post("/compliance/evaluate", json={**payload, "today": "2025-10-01"})

        assert before.json()["data"]["passes"] is False
        assert after.json()["data"]["passes"] is True

    def test_evaluate_rejects_unknown_override(self, client):
        """Test request validation of the override value."""
        response = client.post("/compliance/evaluate", json={
            "task": TestDataFactory.create_sample_tasks()[2],
            "section": TestDataFactory.section(),
            "override": "maybe",
        })

        assert response.status_code == 422

    def test_evaluate_context_endpoint(self, client):
        """Test paging through failing and passing sections."""
        payload = {
            "task": TestDataFactory.create_sample_tasks()[0],
            "sections": TestDataFactory.create_test_sections(),
        }

        failing = client.post("/compliance/evaluate/context", json=payload).json()
        passing = client.post("/compliance/evaluate/context", json={**payload, "mode": "pass"}).json()

        assert failing["mode"] == "fail"
        assert failing["evaluated"] == 4
        assert [entry["sectionId"] for entry in failing["entries"]] == [3, 4]
        assert failing["rangeLabel"] == "1-2 of 2"
        assert [entry["sectionId"] for entry in passing["entries"]] == [2, 5]
        assert passing["entries"][0]["id"] == "Mixed-2"
        assert passing["entries"][0]["result"]["displayValue"] == "Yes"
        assert {"pageSize", "hasPrevious", "hasNext"} <= set(passing)

    def test_evaluate_context_page_limit(self, client):
        """Test explicit page size and page number."""
        response = client.post("/compliance/evaluate/context", json={
            "task": TestDataFactory.create_sample_tasks()[0],
            "sections": TestDataFactory.create_test_sections(),
            "mode": "pass",
            "page": 2,
            "limit": 1,
        })

        data = response.json()
        assert data["page"] == 2
        assert data["rangeLabel"] == "2-2 of 2"
        assert data["entries"][0]["sectionId"] == 5

    def test_evaluate_context_too_many_sections(self, compliance_service):
        """Test oversized section lists are rejected."""
        compliance_service.config.max_context_sections = 1
        client = TestClient(compliance_service.app)

        response = client.post("/compliance/evaluate/context", json={
            "task": TestDataFactory.create_sample_tasks()[0],
            "sections": TestDataFactory.create_test_sections(),
        })

        assert response.status_code == 400
        assert response.json()["code"] == "INVALID_PAYLOAD"
        assert response.json()["details"]["maxSections"] == 1
        assert "requestId" in response.json()

    def test_service_error_is_a_server_error(self, client):
        """Test service failures inside a route answer with HTTP 500."""
        with patch(
            "service_compliance.app.main.build_dynamic_values",
            side_effect=ServiceError("Dynamic values unavailable")
        ):
            response = client.get("/compliance/dynamic-values")

        assert response.status_code == 500
        assert response.json()["code"] == "SERVICE_ERROR"


class TestConditionHistoryRoutes:
    """Test cases for the condition undo/redo routes."""

    @pytest.fixture
    def client(self):
        """Create test client."""
        return TestClient(create_app())

    def conditions(self, operator="", value=None):
        return {"conditions": [TestDataFactory.condition(
            "Syllabus condition", "Syllabus Details", "Status", operator, value, id=4
        )]}

    def test_record_undo_redo(self, client):
        """Test recording edits and stepping back and forward."""
        url = "/compliance/history/7/groups/1"

        first = client.post(url, json=self.conditions()).json()
        second = client.post(url, json=self.conditions("Is", "Completed")).json()

        assert first["recorded"] is True
        assert first["canUndo"] is False
        assert second["canUndo"] is True
        assert second["conditions"][0]["operator"] == "Is"

        undone = client.post(url + "/undo").json()
        assert undone["conditions"][0]["operator"] == ""
        assert undone["conditions"][0]["groupType"] == "Syllabus condition"
        assert undone["canRedo"] is True

        redone = client.post(url + "/redo").json()
        assert redone["conditions"][0]["value"] == "Completed"
        assert client.get(url).json()["conditions"][0]["value"] == "Completed"

    def test_duplicate_record_and_empty_undo(self, client):
        """Test unchanged edits are not recorded and undo past the start is empty."""
        url = "/compliance/history/7/groups/2"

        client.post(url, json=self.conditions())
        repeat = client.post(url, json=self.conditions()).json()
        undone = client.post(url + "/undo").json()

        assert repeat["recorded"] is False
        assert undone["conditions"] is None
        assert undone["canUndo"] is False

    def test_groups_of_different_tasks_are_separate(self, client):
        """Test timelines are keyed by task and group."""
        client.post("/compliance/history/7/groups/1", json=self.conditions())
        client.post("/compliance/history/7/groups/1", json=self.conditions("Is", "Completed"))

        other = client.get("/compliance/history/8/groups/1").json()

        assert other["conditions"] is None
        assert other["canUndo"] is False

    def test_clear(self, client):
        """Test clearing a group's history."""
        url = "/compliance/history/7/groups/3"
        client.post(url, json=self.conditions())
        client.post(url, json=self.conditions("Is", "Completed"))

        cleared = client.delete(url).json()

        assert cleared["canUndo"] is False
        assert client.get(url).json()["conditions"] is None


class TestServiceConfig:
    """Test cases for service configuration."""

    def test_fixed_today(self, monkeypatch):
        """Test a configured evaluation date is used when none is requested."""
        monkeypatch.setenv("COMPLIANCE_FIXED_TODAY", "2025-10-01")
        service = ComplianceService()

        assert service.config.fixed_today == date(2025, 10, 1)
        assert service._today() == date(2025, 10, 1)
        assert service._today(date(2024, 1, 2)) == date(2024, 1, 2)

    def test_malformed_fixed_today_fails_at_startup(self, monkeypatch):
        """Test a malformed evaluation date is rejected when config loads."""
        monkeypatch.setenv("COMPLIANCE_FIXED_TODAY", "not-a-date")

        with pytest.raises(PydanticValidationError):
            get_config("compliance", 8020)
