"""Tests for scheduled task endpoints."""

from datetime import timedelta
from unittest.mock import AsyncMock, patch

import pytest
from httpx import AsyncClient

from reporter.config import get_settings
from reporter.core.datetime_utils import utc_now
from reporter.main import app
from reporter.models.task import TaskStatus
from reporter.schemas.report import RunResult

pytestmark = pytest.mark.asyncio


class TestScheduleTask:
    """Tests for POST /api/tasks."""

    async def test_create(self, client: AsyncClient, user_factory, template_factory):
        user = await user_factory()
        template = await template_factory()

        response = await client.post(
            "/api/tasks",
            json={
                "name": "Morning shift",
                "template_id": str(template.id),
                "user_id": str(user.id),
                "scheduled_time": "2030-01-15T06:00:00+01:00",
                "recurrence": "weekly",
                "entity_ids": ["M1", "M2"],
            },
        )

        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Morning shift"
        assert data["status"] == "scheduled"
        assert data["display_status"] == "scheduled"
        assert data["recurrence"] == "weekly"
        # Stored as naive UTC
        assert data["scheduled_time"] == "2030-01-15T05:00:00"

    async def test_unknown_template(self, client: AsyncClient, user_factory):
        user = await user_factory()

        response = await client.post(
            "/api/tasks",
            json={
                "name": "Orphan",
                "template_id": "00000000-0000-0000-0000-000000000001",
                "user_id": str(user.id),
                "scheduled_time": "2030-01-15T06:00:00",
            },
        )

        assert response.status_code == 404
        assert response.json()["detail"] == "Template not found"

    async def test_empty_name_rejected(self, client: AsyncClient, user_factory, template_factory):
        user = await user_factory()
        template = await template_factory()

        response = await client.post(
            "/api/tasks",
            json={
                "name": "",
                "template_id": str(template.id),
                "user_id": str(user.id),
                "scheduled_time": "2030-01-15T06:00:00",
            },
        )

        assert response.status_code == 422


class TestListTasks:
    """Tests for GET /api/tasks."""

    async def test_overdue_is_display_only(
        self, client: AsyncClient, user_factory, template_factory, task_factory
    ):
        user = await user_factory()
        template = await template_factory()
        await task_factory(user, template, name="late", scheduled_time=utc_now() - timedelta(hours=1))
        await task_factory(user, template, name="later", scheduled_time=utc_now() + timedelta(hours=1))

        response = await client.get("/api/tasks", params={"user_id": str(user.id)})

        assert response.status_code == 200
        data = response.json()
        assert [t["name"] for t in data] == ["late", "later"]
        assert [t["status"] for t in data] == ["scheduled", "scheduled"]
        assert [t["display_status"] for t in data] == ["overdue", "scheduled"]


class TestRetryTask:
    """Tests for POST /api/tasks/{id}/retry."""

    async def test_retry_failed(self, client: AsyncClient, user_factory, template_factory, task_factory):
        task = await task_factory(
            await user_factory(), await template_factory(), status=TaskStatus.FAILED
        )
        task.last_error = "Database query failed: timeout"

        response = await client.post(f"/api/tasks/{task.id}/retry")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "scheduled"
        assert data["last_error"] is None

    async def test_retry_scheduled_conflicts(
        self, client: AsyncClient, user_factory, template_factory, task_factory
    ):
        task = await task_factory(await user_factory(), await template_factory())

        response = await client.post(f"/api/tasks/{task.id}/retry")

        assert response.status_code == 409

    async def test_retry_missing(self, client: AsyncClient):
        response = await client.post("/api/tasks/00000000-0000-0000-0000-000000000001/retry")

        assert response.status_code == 404


class TestTriggerRun:
    """Tests for POST /api/tasks/run."""

    async def test_run(self, client: AsyncClient):
        result = RunResult(success=False, processed_count=2, errors=["Task x (y) failed: boom"])

        with patch("reporter.api.tasks.run_due_tasks", AsyncMock(return_value=result)):
            response = await client.post("/api/tasks/run")

        assert response.status_code == 200
        assert response.json() == {
            "success": False,
            "processed_count": 2,
            "errors": ["Task x (y) failed: boom"],
        }

    async def test_token_required_when_configured(self, client: AsyncClient):
        settings = app.dependency_overrides[get_settings]()
        app.dependency_overrides[get_settings] = lambda: settings.model_copy(
            update={"trigger_token": "s3cret"}
        )
        runner = AsyncMock(return_value=RunResult(success=True, processed_count=0, errors=[]))

        with patch("reporter.api.tasks.run_due_tasks", runner):
            denied = await client.post("/api/tasks/run", headers={"X-Trigger-Token": "wrong"})
            missing = await client.post("/api/tasks/run")
            allowed = await client.post("/api/tasks/run", headers={"X-Trigger-Token": "s3cret"})

        assert denied.status_code == 401
        assert missing.status_code == 401
        assert allowed.status_code == 200
        runner.assert_awaited_once()
