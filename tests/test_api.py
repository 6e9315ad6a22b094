"""
Tests for the FastAPI endpoints.
"""

import pytest
from fastapi.testclient import TestClient
from httpx import AsyncClient, ASGITransport

from mcpflow.api.schemas import ExecuteResponse
from mcpflow.engine.executor import ExecutionStatus
from mcpflow.main import app
from mcpflow.workflows.text_analysis import DEMO_WORKFLOW_ID, register_text_analysis_workflow


# ============================================================
# Sync Test Client (for simple tests)
# ============================================================

@pytest.fixture(scope="module")
def client():
    # Entering the client runs the lifespan, which registers the demo workflow
    with TestClient(app) as test_client:
        yield test_client


def workflow_payload(**overrides):
    payload = {
        "name": "Word count",
        "nodes": [
            {"id": "t1", "type": "trigger", "data": {"label": "Start"}},
            {
                "id": "s1",
                "type": "mcpServer",
                "data": {
                    "label": "Count words",
                    "mcpServer": {"slug": "text-stats", "name": "Text Statistics", "cost_per_call_cents": 1},
                    "inputs": [{"name": "text", "source": "$input.text", "required": True}],
                },
            },
            {"id": "o1", "type": "output", "data": {"label": "Done", "outputType": "return"}},
        ],
        "edges": [
            {"id": "e1", "source": "t1", "target": "s1"},
            {"id": "e2", "source": "s1", "target": "o1"},
        ],
    }
    payload.update(overrides)
    return payload


class TestRootEndpoints:
    """Tests for root endpoints."""

    def test_root(self, client):
        """Test root endpoint."""
        response = client.get("/")
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "MCPFlow"
        assert "endpoints" in data
        assert data["demo_workflow"] == DEMO_WORKFLOW_ID

    def test_health(self, client):
        """Test health endpoint."""
        response = client.get("/health")
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "healthy"
        assert data["services_count"] > 0


class TestSchemas:
    """Tests for the API response models."""

    def test_execute_response_uses_engine_status(self):
        response = ExecuteResponse(execution_id="exec-1", status=ExecutionStatus.PENDING)

        assert response.status is ExecutionStatus.PENDING
        assert response.success is None
        assert response.model_dump(by_alias=True)["executionId"] == "exec-1"


class TestServiceEndpoints:
    """Tests for service endpoints."""

    def test_list_services(self, client):
        response = client.get("/services")
        assert response.status_code == 200

        data = response.json()
        slugs = [s["slug"] for s in data["services"]]
        assert "text-stats" in slugs
        assert "keyword-sentiment" in slugs
        assert data["total"] == len(slugs)

    def test_get_service(self, client):
        response = client.get("/services/text-stats")
        assert response.status_code == 200
        assert response.json()["cost_per_call_cents"] == 1
        assert response.json()["local"] is True

    def test_get_missing_service(self, client):
        response = client.get("/services/nope")
        assert response.status_code == 404


class TestWorkflowEndpoints:
    """Tests for workflow endpoints."""

    def test_create_and_get_workflow(self, client):
        response = client.post("/workflows", json=workflow_payload())
        assert response.status_code == 201

        data = response.json()
        assert data["node_count"] == 3
        assert data["slug"] == "word-count"

        info = client.get(f"/workflows/{data['workflow_id']}").json()
        assert info["nodes"] == ["t1", "s1", "o1"]
        assert info["total_runs"] == 0
        assert "graph TD" in info["mermaid_diagram"]
        assert info["definition"]["nodes"][1]["type"] == "service"

    def test_create_without_trigger(self, client):
        payload = workflow_payload(
            nodes=[{"id": "o1", "type": "output", "data": {"label": "Done"}}],
            edges=[],
        )
        response = client.post("/workflows", json=payload)

        assert response.status_code == 400
        assert "No trigger node found" in response.json()["detail"]

    def test_create_with_dangling_edge(self, client):
        payload = workflow_payload(edges=[{"source": "t1", "target": "ghost"}])
        response = client.post("/workflows", json=payload)
        assert response.status_code == 400

    def test_list_workflows(self, client):
        response = client.get("/workflows")
        assert response.status_code == 200

        ids = [w["workflow_id"] for w in response.json()["workflows"]]
        assert DEMO_WORKFLOW_ID in ids

    def test_update_status_allows_execution(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload(status="draft")).json()["workflow_id"]
        assert client.post(f"/workflows/{workflow_id}/execute", json={"input": {"text": "x"}}).status_code == 400

        response = client.put(f"/workflows/{workflow_id}", json={"status": "active"})
        assert response.status_code == 200
        assert response.json()["status"] == "active"
        assert response.json()["version"] == 1

        data = client.post(f"/workflows/{workflow_id}/execute", json={"input": {"text": "x"}}).json()
        assert data["success"] is True

    def test_update_definition_bumps_version(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        response = client.put(
            f"/workflows/{workflow_id}",
            json={"name": "Renamed", "settings": {"maxCostCents": 10}},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["name"] == "Renamed"
        assert data["version"] == 2
        assert data["nodes"] == ["t1", "s1", "o1"]
        assert data["definition"]["settings"]["maxCostCents"] == 10

    def test_update_rename_keeps_version(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        data = client.put(f"/workflows/{workflow_id}", json={"name": "Other name"}).json()
        assert data["name"] == "Other name"
        assert data["version"] == 1

    def test_update_without_fields(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        response = client.put(f"/workflows/{workflow_id}", json={})
        assert response.status_code == 400
        assert response.json()["detail"] == "No fields to update"

    def test_update_with_invalid_definition(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        response = client.put(
            f"/workflows/{workflow_id}",
            json={"nodes": [{"id": "o1", "type": "output", "data": {"label": "Done"}}]},
        )
        assert response.status_code == 400
        assert "No trigger node found" in response.json()["detail"]
        assert client.get(f"/workflows/{workflow_id}").json()["version"] == 1

    def test_update_missing_workflow(self, client):
        assert client.put("/workflows/nonexistent", json={"name": "x"}).status_code == 404

    def test_delete_workflow(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        assert client.delete(f"/workflows/{workflow_id}").status_code == 204
        assert client.get(f"/workflows/{workflow_id}").status_code == 404
        assert client.delete(f"/workflows/{workflow_id}").status_code == 404

    def test_get_missing_workflow(self, client):
        assert client.get("/workflows/nonexistent").status_code == 404


class TestExecutionEndpoints:
    """Tests for executing workflows and reading executions."""

    def test_execute_workflow(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        response = client.post(
            f"/workflows/{workflow_id}/execute",
            json={"input": {"text": "one two three"}, "user_id": "tester"},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["success"] is True
        assert data["totalCostCents"] == 1
        assert data["output"]["s1"]["words"] == 3
        assert "durationMs" in data

        detail = client.get(f"/executions/{data['executionId']}").json()
        assert detail["status"] == "completed"
        assert detail["user_id"] == "tester"
        assert [n["node_id"] for n in detail["node_executions"]] == ["t1", "s1", "o1"]
        assert detail["node_executions"][1]["mcp_server_slug"] == "text-stats"

        info = client.get(f"/workflows/{workflow_id}").json()
        assert info["total_runs"] == 1
        assert info["successful_runs"] == 1

    def test_execute_missing_required_input(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]

        data = client.post(f"/workflows/{workflow_id}/execute", json={"input": {}}).json()

        assert data["success"] is False
        assert data["error"] == 'Node "Count words" failed: Missing required input "text"'
        assert data["totalCostCents"] == 0

    def test_execute_inactive_workflow(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload(status="draft")).json()["workflow_id"]

        response = client.post(f"/workflows/{workflow_id}/execute", json={"input": {"text": "x"}})
        assert response.status_code == 400

    def test_execute_missing_workflow(self, client):
        response = client.post("/workflows/nonexistent/execute", json={"input": {}})
        assert response.status_code == 404

    def test_execute_demo_workflow(self, client):
        response = client.post(
            f"/workflows/{DEMO_WORKFLOW_ID}/execute",
            json={"input": {"text": "Great product, I love it. Thanks!"}},
        )
        data = response.json()

        assert data["success"] is True
        assert data["totalCostCents"] == 3
        assert data["output"]["sentiment"]["label"] == "positive"
        assert data["output"]["check"] == {"conditionResult": False}

    def test_negative_demo_text_is_stored(self, client):
        data = client.post(
            f"/workflows/{DEMO_WORKFLOW_ID}/execute",
            json={"input": {"text": "Terrible outage, the app is broken"}},
        ).json()

        assert data["success"] is True
        assert data["output"]["check"] == {"conditionResult": True}

        detail = client.get(f"/executions/{data['executionId']}").json()
        node_ids = [n["node_id"] for n in detail["node_executions"]]
        assert "flagged" in node_ids
        assert "result" not in node_ids

    def test_list_executions(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]
        for text in ("a", "b", "c"):
            client.post(f"/workflows/{workflow_id}/execute", json={"input": {"text": text}})

        response = client.get("/executions", params={"workflow_id": workflow_id, "limit": 2})
        data = response.json()

        assert data["total"] == 3
        assert len(data["executions"]) == 2
        assert all(e["workflow_id"] == workflow_id for e in data["executions"])

        completed = client.get("/executions", params={"workflow_id": workflow_id, "status": "completed"}).json()
        assert completed["total"] == 3

    def test_get_missing_execution(self, client):
        assert client.get("/executions/nonexistent").status_code == 404

    def test_cancel_finished_execution(self, client):
        workflow_id = client.post("/workflows", json=workflow_payload()).json()["workflow_id"]
        execution_id = client.post(
            f"/workflows/{workflow_id}/execute", json={"input": {"text": "x"}}
        ).json()["executionId"]

        response = client.delete(f"/executions/{execution_id}")
        assert response.status_code == 400

    def test_cancel_missing_execution(self, client):
        assert client.delete("/executions/nonexistent").status_code == 404


class TestWebSocket:
    """Tests for the WebSocket endpoints."""

    def test_run_over_websocket(self, client):
        with client.websocket_connect(f"/ws/run/{DEMO_WORKFLOW_ID}") as websocket:
            websocket.send_json({"action": "start", "input": {"text": "nice and easy"}})

            started = websocket.receive_json()
            assert started["type"] == "started"

            messages = []
            while True:
                message = websocket.receive_json()
                messages.append(message)
                if message["type"] == "completed":
                    break

        types = [m["type"] for m in messages]
        assert types[0] == "node_started"
        assert "execution_completed" in types
        assert messages[-1]["success"] is True
        assert messages[-1]["executionId"] == started["execution_id"]

    def test_run_requires_start_action(self, client):
        with client.websocket_connect(f"/ws/run/{DEMO_WORKFLOW_ID}") as websocket:
            websocket.send_json({"action": "stop"})
            assert websocket.receive_json()["type"] == "error"

    def test_subscribe_to_finished_execution(self, client):
        execution_id = client.post(
            f"/workflows/{DEMO_WORKFLOW_ID}/execute", json={"input": {"text": "ok"}}
        ).json()["executionId"]

        with client.websocket_connect(f"/ws/executions/{execution_id}") as websocket:
            snapshot = websocket.receive_json()
            assert snapshot["type"] == "current_state"
            assert snapshot["status"] == "completed"
            assert websocket.receive_json()["type"] == "execution_completed"


# ============================================================
# Async Tests (for async endpoints)
# ============================================================

@pytest.mark.asyncio
async def test_async_execution():
    """Test async execution mode."""
    await register_text_analysis_workflow()

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post(
            f"/workflows/{DEMO_WORKFLOW_ID}/execute",
            json={"input": {"text": "fast and helpful"}, "async_execution": True},
        )
        assert response.status_code == 200

        data = response.json()
        assert data["status"] == "pending"
        assert data["success"] is None

        # Background task has run by the time the response is returned
        state_response = await ac.get(f"/executions/{data['executionId']}")
        assert state_response.status_code == 200
        assert state_response.json()["status"] == "completed"


@pytest.mark.asyncio
async def test_run_nonexistent_workflow():
    """Test running a workflow that doesn't exist."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        response = await ac.post("/workflows/nonexistent-workflow/execute", json={"input": {}})
        assert response.status_code == 404


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
