"""HTTP API tests against the FastAPI application."""

import json
import time

import pytest
from fastapi.testclient import TestClient
from sse_starlette.sse import AppStatus

from dagflow.core.dependencies import get_run_store, get_workflow_store
from dagflow.main import create_app


@pytest.fixture(autouse=True)
def fresh_sse_exit_event(monkeypatch):
    """Each TestClient runs its own event loop, so the shutdown event is not shared."""
    monkeypatch.setattr(AppStatus, "should_exit_event", None, raising=False)


@pytest.fixture
def client():
    get_workflow_store().clear()
    get_run_store().clear()
    with TestClient(create_app()) as test_client:
        yield test_client
    get_workflow_store().clear()
    get_run_store().clear()


def greeting_workflow(workflow_id="wf-greet", trigger_type="MANUAL_TRIGGER"):
    return {
        "id": workflow_id,
        "name": "Greeting",
        "nodes": [
            {"id": "start", "type": trigger_type, "data": {"variableName": "input"}},
            {
                "id": "greet",
                "type": "SET_VARIABLE",
                "data": {"variableName": "greeting", "value": "Hello {{trigger.name}}"},
            },
            {
                "id": "shout",
                "type": "SET_VARIABLE",
                "data": {"variableName": "loud", "value": "{{greeting}}!"},
            },
        ],
        "edges": [
            {"source": "start", "target": "greet"},
            {"source": "greet", "target": "shout"},
        ],
    }


def wait_for_run(client, run_id, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        detail = client.get(f"/api/runs/{run_id}").json()
        if detail["status"] in ("completed", "stopped", "failed"):
            return detail
        time.sleep(0.02)
    raise AssertionError(f"run {run_id} did not finish")


def stream_statuses(response):
    """(nodeId, status) pairs from an SSE response body."""
    statuses = []
    for line in response.text.splitlines():
        if line.startswith("data:"):
            payload = json.loads(line[len("data:"):])
            statuses.append((payload["nodeId"], payload["status"]))
    return statuses


@pytest.fixture
def workflow_id(client):
    response = client.post("/api/workflows", json=greeting_workflow())
    assert response.status_code == 201
    return response.json()["id"]


# =============================================================================
# ROOT
# =============================================================================


class TestRoot:
    def test_root(self, client):
        assert client.get("/").json()["status"] == "running"

    def test_health_counts_node_types(self, client):
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert body["node_types"] == 13


# =============================================================================
# WORKFLOWS
# =============================================================================


class TestWorkflowRoutes:
    """CRUD and validation of stored workflows."""

    def test_create_and_get(self, client, workflow_id):
        assert workflow_id == "wf-greet"

        detail = client.get(f"/api/workflows/{workflow_id}").json()
        assert detail["webhook_url"] == "/webhook/wf-greet"
        assert [n["id"] for n in detail["definition"]["nodes"]] == ["start", "greet", "shout"]
        assert detail["definition"]["edges"][0]["sourceHandle"] is None

    def test_list(self, client, workflow_id):
        items = client.get("/api/workflows").json()
        assert [(i["id"], i["node_count"]) for i in items] == [(workflow_id, 3)]

    def test_missing_workflow(self, client):
        assert client.get("/api/workflows/nope").status_code == 404

    def test_cycle_is_rejected(self, client):
        payload = greeting_workflow()
        payload["edges"].append({"source": "shout", "target": "greet"})

        response = client.post("/api/workflows", json=payload)
        assert response.status_code == 400
        assert client.get("/api/workflows").json() == []

    def test_unknown_node_type_is_rejected(self, client):
        payload = greeting_workflow()
        payload["nodes"][1]["type"] = "SEND_FAX"
        assert client.post("/api/workflows", json=payload).status_code == 400

    def test_update_keeps_omitted_fields(self, client, workflow_id):
        response = client.put(f"/api/workflows/{workflow_id}", json={"name": "Renamed"})

        assert response.status_code == 200
        body = response.json()
        assert body["name"] == "Renamed"
        assert len(body["definition"]["nodes"]) == 3

    def test_delete(self, client, workflow_id):
        assert client.delete(f"/api/workflows/{workflow_id}").json()["success"] is True
        assert client.delete(f"/api/workflows/{workflow_id}").status_code == 404

    def test_validate_reports_order(self, client, workflow_id):
        body = client.post(f"/api/workflows/{workflow_id}/validate").json()
        assert body == {"valid": True, "order": ["start", "greet", "shout"], "error": None, "field": None}

    def test_variables_nearest_first(self, client, workflow_id):
        response = client.get(f"/api/workflows/{workflow_id}/nodes/shout/variables")

        assert response.status_code == 200
        assert [v["name"] for v in response.json()] == ["greeting", "input"]
        assert response.json()[0]["produced_by"] == "greet"

    def test_variables_for_unknown_node(self, client, workflow_id):
        assert client.get(f"/api/workflows/{workflow_id}/nodes/ghost/variables").status_code == 404

    def test_rename_variable_rewrites_references(self, client, workflow_id):
        response = client.post(
            f"/api/workflows/{workflow_id}/nodes/greet/rename-variable",
            json={"oldName": "greeting", "newName": "salutation"},
        )

        assert response.status_code == 200
        nodes = {n["id"]: n for n in response.json()["definition"]["nodes"]}
        assert nodes["greet"]["data"]["variableName"] == "salutation"
        assert nodes["shout"]["data"]["value"] == "{{salutation}}!"

    def test_rename_with_wrong_old_name(self, client, workflow_id):
        response = client.post(
            f"/api/workflows/{workflow_id}/nodes/greet/rename-variable",
            json={"oldName": "other", "newName": "salutation"},
        )
        assert response.status_code == 400


# =============================================================================
# RUNS
# =============================================================================


class TestRunRoutes:
    """Triggering runs and reading their history."""

    def test_run_to_completion(self, client, workflow_id):
        response = client.post(
            f"/api/workflows/{workflow_id}/run",
            params={"wait": True},
            json={"initialData": {"name": "Ada"}},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "completed"
        assert body["variables"]["greeting"] == "Hello Ada"
        assert body["variables"]["loud"] == "Hello Ada!"
        assert body["variables"]["input"] == {"name": "Ada"}
        assert body["variable_sources"] == {"input": "start", "greeting": "greet", "loud": "shout"}
        assert body["executed"] == ["start", "greet", "shout"]
        assert body["channel"] == f"workflow-run:{body['run_id']}"

    def test_run_is_accepted_and_driven_in_background(self, client, workflow_id):
        response = client.post(f"/api/workflows/{workflow_id}/run", json={"initialData": {"name": "Ada"}})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "pending"
        assert body["executed"] == []
        assert body["channel"] == f"workflow-run:{body['run_id']}"

        detail = wait_for_run(client, body["run_id"])
        assert detail["status"] == "completed"
        assert detail["result"]["variables"]["loud"] == "Hello Ada!"

    def test_deferred_run_waits_for_start(self, client, workflow_id):
        run_id = client.post(f"/api/workflows/{workflow_id}/run", json={"deferStart": True}).json()["run_id"]

        time.sleep(0.05)
        assert client.get(f"/api/runs/{run_id}").json()["status"] == "pending"

        response = client.post(f"/api/runs/{run_id}/resume")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_run_missing_workflow(self, client):
        assert client.post("/api/workflows/nope/run").status_code == 404

    def test_run_history(self, client, workflow_id):
        run_id = client.post(f"/api/workflows/{workflow_id}/run", params={"wait": True}).json()["run_id"]

        runs = client.get("/api/runs", params={"workflow_id": workflow_id}).json()
        assert [r["id"] for r in runs] == [run_id]

        detail = client.get(f"/api/runs/{run_id}").json()
        assert detail["status"] == "completed"
        assert detail["mode"] == "manual"
        assert detail["result"]["executed"] == ["start", "greet", "shout"]

    def test_unknown_run(self, client):
        assert client.get("/api/runs/nope").status_code == 404
        assert client.post("/api/runs/nope/resume").status_code == 404
        assert client.post("/api/runs/nope/cancel").status_code == 404

    def test_cancel_finished_run_is_a_no_op(self, client, workflow_id):
        run_id = client.post(f"/api/workflows/{workflow_id}/run", params={"wait": True}).json()["run_id"]

        response = client.post(f"/api/runs/{run_id}/cancel")
        assert response.status_code == 200
        assert response.json()["status"] == "completed"

    def test_event_without_waiters(self, client):
        response = client.post("/api/events/order-paid", json={"payload": {"orderId": 7}})
        assert response.json() == {"event": "order-paid", "woken_runs": []}


# =============================================================================
# WEBHOOKS
# =============================================================================


class TestWebhookRoutes:
    def test_webhook_runs_workflow(self, client):
        client.post("/api/workflows", json=greeting_workflow("wf-hook", "WEBHOOK_TRIGGER"))

        response = client.post("/webhook/wf-hook", json={"name": "Ada"})

        assert response.status_code == 202
        body = response.json()
        assert body["status"] == "pending"
        assert body["channel"] == f"workflow-run:{body['runId']}"
        detail = wait_for_run(client, body["runId"])
        assert detail["status"] == "completed"
        assert detail["mode"] == "webhook"
        assert detail["result"]["variables"]["input"]["body"] == {"name": "Ada"}
        assert detail["result"]["variables"]["input"]["method"] == "POST"

    def test_webhook_requires_webhook_trigger(self, client, workflow_id):
        assert client.post(f"/webhook/{workflow_id}", json={}).status_code == 400

    def test_inactive_workflow(self, client):
        client.post("/api/workflows", json=greeting_workflow("wf-hook", "WEBHOOK_TRIGGER"))
        get_workflow_store().set_active("wf-hook", False)

        assert client.post("/webhook/wf-hook", json={}).status_code == 400

    def test_unknown_workflow(self, client):
        assert client.post("/webhook/nope", json={}).status_code == 404


# =============================================================================
# NODES AND REALTIME
# =============================================================================


class TestNodeRoutes:
    def test_list_nodes(self, client):
        types = {n["type"] for n in client.get("/api/nodes").json()}
        assert {"HTTP_REQUEST", "IF_ELSE", "WAIT", "BUNDLE_WORKFLOW"} <= types

    def test_get_node(self, client):
        body = client.get("/api/nodes/SWITCH").json()
        assert body["displayName"] == "Switch"

    def test_filter_trigger_types(self, client):
        triggers = [n["type"] for n in client.get("/api/nodes", params={"trigger": True}).json()]
        assert sorted(triggers) == ["MANUAL_TRIGGER", "WEBHOOK_TRIGGER"]

        others = client.get("/api/nodes", params={"trigger": False}).json()
        assert len(others) == 11
        assert not any(n["isTrigger"] for n in others)

    def test_node_carries_example_output(self, client):
        body = client.get("/api/nodes/HTTP_REQUEST").json()
        assert body["isTrigger"] is False
        assert body["exampleOutput"]["status"] == 200

    def test_unknown_node(self, client):
        assert client.get("/api/nodes/SEND_FAX").status_code == 404


class TestRealtimeRoutes:
    """Subscription tokens for the live status stream."""

    def test_token_for_run(self, client, workflow_id):
        run_id = client.post(f"/api/workflows/{workflow_id}/run", params={"wait": True}).json()["run_id"]

        response = client.post("/api/realtime/token", json={"runId": run_id})

        assert response.status_code == 200
        body = response.json()
        assert body["channel"] == f"workflow-run:{run_id}"
        assert body["topics"] == ["status"]

    def test_token_for_unknown_run(self, client):
        assert client.post("/api/realtime/token", json={"runId": "nope"}).status_code == 404

    def test_stream_rejects_foreign_token(self, client, workflow_id):
        first = client.post(f"/api/workflows/{workflow_id}/run", params={"wait": True}).json()["run_id"]
        second = client.post(f"/api/workflows/{workflow_id}/run", params={"wait": True}).json()["run_id"]
        token = client.post("/api/realtime/token", json={"runId": first}).json()["token"]

        response = client.get(f"/api/realtime/{second}/stream", params={"token": token})
        assert response.status_code == 403

    def test_stream_follows_run_until_it_ends(self, client, workflow_id):
        run = client.post(
            f"/api/workflows/{workflow_id}/run",
            json={"initialData": {"name": "Ada"}, "deferStart": True},
        ).json()
        assert run["status"] == "pending"
        token = client.post("/api/realtime/token", json={"runId": run["run_id"]}).json()["token"]

        response = client.get(
            f"/api/realtime/{run['run_id']}/stream",
            params={"token": token, "start": True},
        )

        assert response.status_code == 200
        assert stream_statuses(response) == [
            ("start", "loading"),
            ("start", "success"),
            ("greet", "loading"),
            ("greet", "success"),
            ("shout", "loading"),
            ("shout", "success"),
        ]
        assert client.get(f"/api/runs/{run['run_id']}").json()["status"] == "completed"

    def test_stream_of_finished_run_is_empty(self, client, workflow_id):
        run_id = client.post(f"/api/workflows/{workflow_id}/run", params={"wait": True}).json()["run_id"]
        token = client.post("/api/realtime/token", json={"runId": run_id}).json()["token"]

        response = client.get(f"/api/realtime/{run_id}/stream", params={"token": token})

        assert response.status_code == 200
        assert stream_statuses(response) == []
