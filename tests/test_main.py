"""Tests for the HTTP application and metadata output."""

import json

import pytest
from fastapi.testclient import TestClient

from mcp_server.audit import AuditLogger
from mcp_server.main import create_app, print_metadata
from mcp_server.server import MCPNewsServer, build_registry
from shared.config import CONFIG_SCHEMA, ServerSettings, Settings
from shared.schema import resolve
from shared.secrets import Secrets

SESSION_TOKEN = '{"email":"jane@x.com","fullName":"Jane Doe"}'


@pytest.fixture
def client():
    settings = Settings()
    server = MCPNewsServer(
        config=resolve(CONFIG_SCHEMA, [{"greeting": "Welcome"}]),
        settings=settings,
        secrets=Secrets(),
        registry=build_registry(settings.server),
        audit_logger=AuditLogger(enabled=False),
    )
    with TestClient(create_app(server)) as test_client:
        yield test_client


class TestHTTPApi:
    """Tests for the FastAPI endpoints."""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["counts"] == {"tool": 7, "resource": 2, "prompt": 2}

    def test_list_tools(self, client):
        tools = client.get("/tools").json()["tools"]

        greet = next(t for t in tools if t["name"] == "greet")
        assert greet["inputSchema"]["properties"]["formal"]["type"] == "boolean"
        assert "handler" not in greet

    def test_call_tool_with_session(self, client):
        response = client.post(
            "/tools/greet",
            json={"arguments": {}},
            headers={"Authorization": f"Bearer {SESSION_TOKEN}"},
        )

        payload = response.json()
        assert payload["status"] == "success"
        assert payload["data"]["isError"] is False
        assert payload["data"]["content"][0]["text"] == (
            "Welcome, Jane Doe!\n\nLogged in as: jane@x.com"
        )

    def test_call_tool_anonymous(self, client):
        payload = client.post("/tools/greet", json={}).json()

        assert payload["data"]["content"][0]["text"] == "Welcome, User!"

    def test_invalid_token_rejected(self, client):
        response = client.post(
            "/tools/greet",
            json={"arguments": {}},
            headers={"Authorization": "Bearer not-a-token"},
        )

        assert response.status_code == 401
        assert response.headers["www-authenticate"] == "Bearer"

    def test_unknown_tool(self, client):
        payload = client.post("/tools/nope", json={"arguments": {}}).json()

        assert payload["status"] == "not_found"
        assert payload["error_code"] == "NOT_FOUND"

    def test_news_without_key(self, client):
        payload = client.post("/tools/get_news", json={"arguments": {"query": "x"}}).json()

        assert payload["status"] == "success"
        assert payload["data"]["isError"] is True
        assert "SECRET_NEWSAPI_KEY" in payload["data"]["content"][0]["text"]

    def test_context_headers(self, client):
        response = client.get(
            "/resources/context",
            headers={
                "X-MCP-Context-project-id": "p1",
                "X-MCP-Context-unlisted": "dropped",
                "X-MCP-Workspace-Id": "ws-1",
                "X-MCP-Project-Root": "/work/app",
            },
        )

        text = response.json()["data"]["contents"][0]["text"]
        assert "Workspace ID: ws-1" in text
        assert "Project Root: /work/app" in text
        assert "project-id: p1" in text
        assert "unlisted" not in text

    def test_request_id_header(self, client):
        payload = client.post(
            "/tools/greet", json={}, headers={"X-Request-Id": "req-42"}
        ).json()

        assert payload["request_id"] == "req-42"

    def test_prompt(self, client):
        payload = client.post(
            "/prompts/get_news_about", json={"arguments": {"topic": "climate"}}
        ).json()

        assert payload["status"] == "success"
        assert payload["data"]["messages"][0]["role"] == "user"

    def test_calls_without_body(self, client):
        """Test that tools and prompts without arguments need no request body."""
        tool = client.post("/tools/ai_status")
        prompt = client.post(
            "/prompts/greet_current_user",
            headers={"Authorization": f"Bearer {SESSION_TOKEN}"},
        )

        assert tool.status_code == 200
        assert tool.json()["status"] == "success"
        assert tool.json()["data"]["content"][0]["text"].startswith("📊 AI Status: Not Configured")
        assert prompt.status_code == 200
        assert "The user's name is Jane Doe." in (
            prompt.json()["data"]["messages"][0]["content"]["text"]
        )

    def test_meta(self, client):
        metadata = client.get("/meta").json()

        assert metadata["name"] == "mcp-news-server"
        assert metadata["contextHeaders"] == ["project-id", "environment", "custom-tag"]
        assert metadata["requireSession"] is False


class TestMetadataOutput:
    """Tests for the --meta output."""

    def test_print_metadata(self, capsys):
        settings = ServerSettings()
        registry = build_registry(settings)
        capsys.readouterr()

        print_metadata(registry, settings)

        metadata = json.loads(capsys.readouterr().out)
        assert metadata["configSchema"]["properties"]["maxItems"]["default"] == 10
        assert len(metadata["tools"]) == 7
        assert {r["name"] for r in metadata["resources"]} == {"news_sources", "context_info"}
