"""
Tests for the deploy HTTP API.

Tests cover:
- Request/response contract (camelCase fields, envelope)
- Error mapping (400, 404, 409, 422, 500)
- Service health and project type listing

Run with: pytest tests/test_api.py -v
"""
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from conftest import FakeFetcher, FakeRuntime, build_pipeline
from autodeploy.core.config import Settings
from autodeploy.core.exceptions import DeploymentInProgressError
from autodeploy.main import create_app
from autodeploy.models import ProjectType


@pytest.fixture
def api_runtime():
    return FakeRuntime()


@pytest.fixture
def api_pipeline(workspace_root, api_runtime):
    return build_pipeline(FakeFetcher(workspace_root), api_runtime)


@pytest.fixture
def client(api_pipeline):
    app = create_app(Settings(APP_NAME="Vision Deploy"), pipeline=api_pipeline)
    return TestClient(app)


class TestAutoDeploy:
    """Tests for POST /api/deploy/auto."""

    def test_successful_deploy(self, client):
        response = client.post("/api/deploy/auto", json={
            "projectId": "web",
            "gitUrl": "https://github.com/acme/web.git",
            "envVars": {"NODE_ENV": "production"},
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        data = body["data"]
        assert data["state"] == "running"
        assert data["projectType"] == "nextjs"
        assert data["port"] == 3000
        assert data["hostPort"] == 49153
        assert data["containerId"] == "vision-web"
        assert "EXPOSE 3000" in data["dockerfile"]
        assert data["stateHistory"][0] == "pending"

    def test_memory_default(self, client, api_runtime):
        client.post("/api/deploy/auto", json={"projectId": "web", "gitUrl": "https://x/web.git"})

        start = [call for call in api_runtime.calls if call[0] == "start"][0]
        assert start[5] == 512

    def test_failed_deploy_is_not_http_error(self, workspace_root):
        pipeline = build_pipeline(FakeFetcher(workspace_root), FakeRuntime(fail_build=True))
        client = TestClient(create_app(Settings(), pipeline=pipeline))

        response = client.post("/api/deploy/auto", json={"projectId": "web", "gitUrl": "https://x/web.git"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["data"]["state"] == "failed"
        assert "missing script" in body["data"]["error"]

    def test_invalid_project_id(self, client):
        response = client.post("/api/deploy/auto", json={"projectId": "../etc", "gitUrl": "https://x"})

        assert response.status_code == 400
        assert response.json()["error_type"] == "InvalidDeploymentRequestError"

    def test_project_id_shadowed_by_route(self, client):
        response = client.post("/api/deploy/auto", json={"projectId": "health", "gitUrl": "https://x/web.git"})

        assert response.status_code == 400
        assert response.json()["field"] == "project_id"

    def test_missing_fields(self, client):
        response = client.post("/api/deploy/auto", json={"projectId": "web"})

        assert response.status_code == 422
        assert response.json()["success"] is False

    def test_conflict(self, client, api_pipeline):
        api_pipeline.deploy = AsyncMock(side_effect=DeploymentInProgressError("web"))

        response = client.post("/api/deploy/auto", json={"projectId": "web", "gitUrl": "https://x"})

        assert response.status_code == 409
        assert response.json()["project_id"] == "web"


class TestCustomDeploy:
    """Tests for POST /api/deploy/custom."""

    def test_overrides_applied(self, client):
        response = client.post("/api/deploy/custom", json={
            "projectId": "web",
            "gitUrl": "https://x/web.git",
            "projectType": "FLASK",
            "port": 9000,
            "startCommand": "python app.py",
            "memoryMB": 1024,
        })

        data = response.json()["data"]
        assert data["projectType"] == "flask"
        assert data["port"] == 9000
        assert 'CMD ["sh", "-c", "python app.py"]' in data["dockerfile"]

    def test_unknown_project_type(self, client):
        response = client.post("/api/deploy/custom", json={
            "projectId": "web",
            "gitUrl": "https://x/web.git",
            "projectType": "cobol",
        })

        assert response.status_code == 400
        assert response.json()["field"] == "projectType"


class TestRedeployAndRollback:
    """Tests for redeploy and rollback endpoints."""

    def test_redeploy(self, client, api_runtime):
        response = client.post("/api/deploy/redeploy/web", json={"gitUrl": "https://x/web.git"})

        assert response.status_code == 200
        assert response.json()["data"]["state"] == "running"
        assert ("remove_image", "web") in api_runtime.calls

    def test_rollback(self, client, api_runtime):
        api_runtime.containers["vision-web-old"] = False

        response = client.post("/api/deploy/rollback/web", json={"previousContainerId": "vision-web-old"})

        assert response.status_code == 200
        assert response.json()["success"] is True
        assert api_runtime.containers["vision-web-old"] is True

    def test_rollback_failure(self, client):
        response = client.post("/api/deploy/rollback/web", json={"previousContainerId": "gone"})

        assert response.status_code == 500
        assert response.json()["error_type"] == "RollbackError"


class TestQueries:
    """Tests for status, logs, stats, health and project types."""

    def test_status_after_deploy(self, client):
        client.post("/api/deploy/auto", json={"projectId": "web", "gitUrl": "https://x/web.git"})

        response = client.get("/api/deploy/web")

        assert response.status_code == 200
        assert response.json()["data"]["state"] == "running"

    def test_status_unknown_project(self, client):
        response = client.get("/api/deploy/never-deployed")

        assert response.status_code == 404

    def test_logs_and_stats(self, client):
        client.post("/api/deploy/auto", json={"projectId": "web", "gitUrl": "https://x/web.git"})

        logs = client.get("/api/deploy/web/logs", params={"tail": 10}).json()["data"]
        stats = client.get("/api/deploy/web/stats").json()["data"]

        assert logs["container"] == "vision-web"
        assert logs["tail"] == 10
        assert "started server" in logs["logs"]
        assert stats["status"] == "running"
        assert stats["running"] is True

    def test_logs_without_container(self, client):
        response = client.get("/api/deploy/web/logs")

        assert response.status_code == 404

    def test_health(self, client, api_runtime):
        api_runtime.reachable = False

        response = client.get("/api/deploy/health")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert response.json()["service"] == "Vision Deploy"
        assert response.json()["docker"] is False

    def test_project_types(self, client):
        data = client.get("/api/deploy/project-types").json()["data"]

        tags = {item["tag"] for item in data}
        assert "unknown" not in tags
        assert len(data) == len(ProjectType) - 1
        nextjs = next(item for item in data if item["tag"] == "nextjs")
        assert nextjs["defaultPort"] == 3000
        assert nextjs["displayName"] == "Next.js"
