"""HTTP-level tests for the bolt_server application."""

from collections.abc import Iterator
from dataclasses import replace
from typing import Any
from unittest.mock import AsyncMock

import pytest
from starlette.testclient import TestClient

from bolt_server.config import Config
from bolt_server.dependencies import Dependencies
from bolt_server.errors import AuthenticationError
from bolt_server.models import CommandResult
from bolt_server.server import create_app


@pytest.fixture
def client(deps: Dependencies) -> Iterator[TestClient]:
    with TestClient(create_app(deps)) as client:
        yield client


def _client_for(settings, registry, **overrides: Any) -> TestClient:
    config = Config.from_settings(replace(settings, **overrides))
    return TestClient(create_app(Dependencies.from_config(config, registry=registry)))


class TestRouting:
    def test_index(self, client: TestClient) -> None:
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "OK"

    def test_health(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        assert "text/plain" in response.headers["content-type"]

    def test_unknown_action(self, client: TestClient, ssh_target, fake_ssh) -> None:
        response = client.post("/ssh/run_tasksss", json={"target": ssh_target})

        assert response.status_code == 404
        assert response.json() == {
            "msg": "Could not find route /ssh/run_tasksss",
            "kind": "boltserver/not-found",
        }
        assert fake_ssh.connected == []

    def test_unknown_transport(self, client: TestClient) -> None:
        response = client.post("/telnet/run_command", json={})

        assert response.status_code == 404
        assert response.json()["kind"] == "boltserver/not-found"

    def test_unknown_path(self, client: TestClient) -> None:
        response = client.get("/some/deeper/path")

        assert response.status_code == 404
        assert response.json()["msg"] == "Could not find route /some/deeper/path"

    def test_wrong_method_renders_not_found(self, client: TestClient) -> None:
        response = client.get("/ssh/run_command")

        assert response.status_code == 404
        assert response.json() == {
            "msg": "Could not find route /ssh/run_command",
            "kind": "boltserver/not-found",
        }


class TestValidation:
    def _error(self, response) -> dict[str, Any]:
        assert response.status_code == 400
        body = response.json()
        assert body["status"] == "failure"
        error = body["value"]["_error"]
        assert error["kind"] == "boltserver/schema-error"
        return error

    def test_target_and_targets(self, client, ssh_target, fake_ssh) -> None:
        response = client.post(
            "/ssh/run_command",
            json={"target": ssh_target, "targets": [ssh_target], "command": "uptime"},
        )

        error = self._error(response)
        assert error["details"]
        assert fake_ssh.connected == []

    def test_neither_target_field(self, client) -> None:
        error = self._error(client.post("/ssh/run_command", json={"command": "uptime"}))
        assert error["violations"]

    def test_both_credentials(self, client, ssh_target, fake_ssh) -> None:
        target = {**ssh_target, "private-key-content": "-----BEGIN KEY-----"}

        self._error(client.post("/ssh/run_command", json={"target": target, "command": "id"}))

        assert fake_ssh.connected == []

    def test_winrm_private_key_rejected(self, client, winrm_target, fake_winrm) -> None:
        target = {**winrm_target, "private-key-content": "-----BEGIN KEY-----"}

        error = self._error(
            client.post("/winrm/check_node_connections", json={"target": target})
        )

        assert error["violations"][0]["property"] == "#/target"
        assert "BEGIN KEY" not in str(error)
        assert fake_winrm.connected == []

    def test_winrm_port_must_be_integer(self, client, winrm_target, fake_winrm) -> None:
        target = {**winrm_target, "port": "5985"}

        error = self._error(
            client.post("/winrm/run_command", json={"target": target, "command": "dir"})
        )

        assert any("port" in v["property"] for v in error["violations"])
        assert fake_winrm.connected == []

    def test_malformed_json(self, client) -> None:
        response = client.post(
            "/ssh/run_command",
            content=b"{not json",
            headers={"content-type": "application/json"},
        )
        self._error(response)

    def test_missing_action_field(self, client, ssh_target) -> None:
        self._error(client.post("/ssh/run_script", json={"target": ssh_target}))


class TestExecution:
    def test_single_target_returns_outcome(self, client, ssh_target, fake_ssh) -> None:
        fake_ssh.results["node1.example.com"] = CommandResult("up 3 days\n", "", 0)

        response = client.post(
            "/ssh/run_command", json={"target": ssh_target, "command": "uptime"}
        )

        assert response.status_code == 200
        assert response.json() == {
            "target": "node1.example.com",
            "action": "command",
            "object": "uptime",
            "status": "success",
            "value": {
                "stdout": "up 3 days\n",
                "stderr": "",
                "merged_output": "up 3 days\n",
                "exit_code": 0,
            },
        }
        assert fake_ssh.closed == ["node1.example.com"]

    def test_targets_returns_aggregate(self, client, ssh_target) -> None:
        targets = [ssh_target, {**ssh_target, "hostname": "node2.example.com"}]

        response = client.post("/ssh/check_node_connections", json={"targets": targets})

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "success"
        assert [r["target"] for r in body["result"]] == ["node1.example.com", "node2.example.com"]
        assert all(r["value"] == {} for r in body["result"])

    def test_partial_failure_is_still_200(self, client, ssh_target, fake_ssh) -> None:
        fake_ssh.connect_errors["node2.example.com"] = AuthenticationError(
            "node2.example.com", "Authentication failed for root@node2.example.com"
        )
        targets = [ssh_target, {**ssh_target, "hostname": "node2.example.com"}]

        response = client.post(
            "/ssh/run_command", json={"targets": targets, "command": "uptime"}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "failure"
        first, second = body["result"]
        assert first["status"] == "success"
        assert second["status"] == "failure"
        assert second["value"]["_error"]["issue_code"] == "AUTH_ERROR"

    def test_unexpected_error_is_scrubbed(self, client, winrm_target, fake_winrm) -> None:
        fake_winrm.deliver_errors["win1.example.com"] = KeyError("secret detail")

        response = client.post(
            "/winrm/run_command", json={"target": winrm_target, "command": "dir"}
        )

        assert response.status_code == 200
        error = response.json()["value"]["_error"]
        assert error["kind"] == "boltserver/internal-error"
        assert error["msg"] == "An unexpected error occurred"
        assert error["details"] == {}
        assert "secret detail" not in response.text

    def test_server_fault_returns_generic_500(self, deps, ssh_target) -> None:
        deps.dispatcher.dispatch = AsyncMock(side_effect=RuntimeError("boom at /etc/passwd"))

        with TestClient(create_app(deps)) as client:
            response = client.post(
                "/ssh/run_command", json={"target": ssh_target, "command": "id"}
            )

        assert response.status_code == 500
        assert response.json() == {
            "msg": "500: Unknown error: An unexpected error occurred",
            "kind": "boltserver/server-error",
        }
        assert "passwd" not in response.text


class TestAdmission:
    def test_api_key_required(self, settings, registry, ssh_target) -> None:
        with _client_for(settings, registry, auth_enabled=True, api_keys=["k1"]) as client:
            body = {"target": ssh_target, "command": "id"}
            missing = client.post("/ssh/run_command", json=body)
            wrong = client.post("/ssh/run_command", json=body, headers={"X-API-Key": "nope"})
            ok = client.post("/ssh/run_command", json=body, headers={"X-API-Key": "k1"})
            health = client.get("/health")

        assert missing.status_code == 401
        assert missing.json() == {"error": "Missing API key"}
        assert wrong.status_code == 401
        assert ok.status_code == 200
        assert health.status_code == 200

    def test_rate_limited(self, settings, registry, ssh_target) -> None:
        with _client_for(
            settings, registry, rate_limit_per_minute=1, rate_limit_burst=2
        ) as client:
            body = {"target": ssh_target, "command": "id"}
            statuses = [client.post("/ssh/run_command", json=body).status_code for _ in range(3)]
            limited = client.post("/ssh/run_command", json=body)

        assert statuses[:2] == [200, 200]
        assert limited.status_code == 429
        assert "Retry-After" in limited.headers
