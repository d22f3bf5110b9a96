"""Tests for MCP Server components."""

import json
from datetime import datetime, timedelta, timezone
from types import MappingProxyType
from unittest.mock import AsyncMock

import pytest
from jose import jwt

from shared.errors import InvalidToken
from shared.models import (
    Descriptor,
    DescriptorKind,
    DispatchResult,
    RequestContext,
    ResourceResponse,
    ResultStatus,
    Session,
    ToolResponse,
)
from shared.sanitize import API_KEY_MARKER
from shared.secrets import SECRET_MARKER, Secrets


def sign(claims, key, expires_in=timedelta(minutes=30)):
    payload = {**claims, "exp": datetime.now(timezone.utc) + expires_in}
    return jwt.encode(payload, key, algorithm="HS256")


async def echo(params, context):
    return ToolResponse.text(json.dumps(params, sort_keys=True))


def tool(name, handler=echo, input_schema=None, required_roles=None):
    return Descriptor(
        kind=DescriptorKind.TOOL,
        name=name,
        description=f"{name} tool",
        input_schema=input_schema or {"type": "object", "properties": {}},
        required_roles=required_roles or [],
        handler=handler,
    )


class TestRegistry:
    """Tests for the Registry."""

    def test_register_and_get(self):
        from mcp_server.registry import Registry

        registry = Registry()
        registry.register(tool("echo"))

        assert registry.get(DescriptorKind.TOOL, "echo") is not None
        assert registry.get(DescriptorKind.PROMPT, "echo") is None

    def test_register_duplicate_raises(self):
        """Test that a duplicate name within a kind is rejected."""
        from mcp_server.registry import Registry

        registry = Registry()
        registry.register(tool("echo"))

        with pytest.raises(ValueError, match="already registered"):
            registry.register(tool("echo"))

    def test_same_name_different_kinds(self):
        from mcp_server.registry import Registry

        registry = Registry()
        registry.register(tool("greet"))
        registry.register(Descriptor(
            kind=DescriptorKind.PROMPT,
            name="greet",
            description="greet prompt",
            handler=echo,
        ))

        assert registry.counts() == {"tool": 1, "resource": 0, "prompt": 1}

    def test_frozen_registry_rejects_registration(self):
        from mcp_server.registry import Registry

        registry = Registry().freeze()

        assert registry.frozen
        with pytest.raises(RuntimeError):
            registry.register(tool("late"))

    def test_resource_lookup_by_uri(self):
        from mcp_server.registry import Registry

        registry = Registry()
        registry.register(Descriptor(
            kind=DescriptorKind.RESOURCE,
            name="news_sources",
            uri="sources",
            description="Sources",
            handler=echo,
        ))

        assert registry.get(DescriptorKind.RESOURCE, "sources").name == "news_sources"
        assert registry.get(DescriptorKind.RESOURCE, "news_sources").uri == "sources"
        assert registry.get_resource_by_uri("missing") is None

    def test_resource_needs_uri(self):
        from mcp_server.registry import Registry

        with pytest.raises(ValueError, match="needs a uri"):
            Registry().register(Descriptor(
                kind=DescriptorKind.RESOURCE,
                name="nowhere",
                description="No uri",
                handler=echo,
            ))

    def test_describe_tools(self):
        """Test that listings expose the schema and hide the handler."""
        from mcp_server.registry import Registry

        registry = Registry()
        registry.register(tool("guarded", required_roles=["User"]))

        listing = registry.describe(DescriptorKind.TOOL)

        assert listing == [{
            "name": "guarded",
            "description": "guarded tool",
            "inputSchema": {"type": "object", "properties": {}},
            "roles": ["User"],
        }]


class TestSessionAuthenticator:
    """Tests for session authentication."""

    def test_json_token_minimized(self):
        """Test that only email and fullName survive."""
        from mcp_server.auth import SessionAuthenticator

        auth = SessionAuthenticator()
        session = auth.authenticate('{"email":"a@b.com","fullName":"X","extra":1}')

        assert session == Session(email="a@b.com", full_name="X")

    def test_non_string_full_name_dropped(self):
        from mcp_server.auth import SessionAuthenticator

        session = SessionAuthenticator().authenticate('{"email":"a@b.com","fullName":5}')

        assert session.full_name is None

    @pytest.mark.parametrize("token", [
        "not-json",
        "[1, 2]",
        '{"fullName":"No Email"}',
        '{"email":""}',
        '{"email":"not-an-email"}',
    ])
    def test_invalid_tokens(self, token):
        from mcp_server.auth import SessionAuthenticator

        with pytest.raises(InvalidToken):
            SessionAuthenticator().authenticate(token)

    def test_signed_token(self):
        from mcp_server.auth import SessionAuthenticator

        auth = SessionAuthenticator(secret_key="test-secret-key")
        token = sign({"email": "a@b.com", "fullName": "Ann", "role": "admin"}, "test-secret-key")

        assert auth.authenticate(token) == Session(email="a@b.com", full_name="Ann")

    def test_signed_token_wrong_key(self):
        from mcp_server.auth import SessionAuthenticator

        token = sign({"email": "a@b.com"}, "one-key")

        with pytest.raises(InvalidToken):
            SessionAuthenticator(secret_key="another-key").authenticate(token)

    def test_expired_signed_token(self):
        from mcp_server.auth import SessionAuthenticator

        token = sign({"email": "a@b.com"}, "test-secret-key", expires_in=timedelta(minutes=-5))

        with pytest.raises(InvalidToken):
            SessionAuthenticator(secret_key="test-secret-key").authenticate(token)

    def test_signed_token_needs_configured_key(self):
        from mcp_server.auth import SessionAuthenticator

        with pytest.raises(InvalidToken):
            SessionAuthenticator().authenticate(sign({"email": "a@b.com"}, "test-secret-key"))


class TestRoles:
    """Tests for role authorization."""

    def test_absent_session_never_authorized(self):
        from mcp_server.auth import authorize

        assert authorize(None, "User") is False

    def test_user_role(self):
        from mcp_server.auth import authorize

        assert authorize(Session(email="a@b.com"), "User") is True

    def test_unknown_role(self):
        from mcp_server.auth import authorize

        assert authorize(Session(email="a@b.com"), "Admin") is False

    def test_custom_roles_evaluated_per_call(self):
        from mcp_server.auth import authorize, granted_roles, missing_roles

        admins = set()
        roles = MappingProxyType({
            "User": lambda s: s is not None,
            "Admin": lambda s: s is not None and s.email in admins,
        })
        session = Session(email="root@example.com")

        assert authorize(session, "Admin", roles) is False
        assert missing_roles(session, ["User", "Admin"], roles) == ["Admin"]

        admins.add("root@example.com")

        assert authorize(session, "Admin", roles) is True
        assert granted_roles(session, roles) == ["User", "Admin"]


class TestAuditLogger:
    """Tests for the AuditLogger."""

    def _result(self, **kwargs):
        defaults = {
            "kind": DescriptorKind.TOOL,
            "name": "get_news",
            "status": ResultStatus.SUCCESS,
            "execution_time_ms": 12.5,
        }
        defaults.update(kwargs)
        return DispatchResult(**defaults)

    def test_create_entry(self):
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(enabled=False)
        context = RequestContext(session=Session(email="a@b.com"), workspace_id="ws-1")

        entry = audit.create_entry(
            self._result(data=ToolResponse.text("No key", is_error=True)),
            {"query": "bitcoin", "api_key": "secret-value", "nested": {"token": "t"}},
            context
        )

        assert entry.user_email == "a@b.com"
        assert entry.workspace_id == "ws-1"
        assert entry.business_error is True
        assert entry.parameters == {
            "query": "bitcoin",
            "api_key": "[REDACTED]",
            "nested": {"token": "[REDACTED]"},
        }

    def test_non_dict_parameters(self):
        from mcp_server.audit import AuditLogger

        entry = AuditLogger(enabled=False).create_entry(
            self._result(status=ResultStatus.VALIDATION_ERROR), ["bad"], RequestContext()
        )

        assert entry.parameters == {}

    @pytest.mark.asyncio
    async def test_log_writes_json_lines(self, tmp_path):
        from mcp_server.audit import AuditLogger

        path = tmp_path / "audit" / "audit.log"
        audit = AuditLogger(log_path=str(path), buffer_size=1)

        await audit.log(self._result(), {"query": "x"}, RequestContext(request_id="req-1"))

        lines = path.read_text().splitlines()
        assert len(lines) == 1
        record = json.loads(lines[0])
        assert record["name"] == "get_news"
        assert record["request_id"] == "req-1"
        assert audit.pending == 0

    @pytest.mark.asyncio
    async def test_buffer_until_flush(self, tmp_path):
        from mcp_server.audit import AuditLogger

        path = tmp_path / "audit.log"
        audit = AuditLogger(log_path=str(path), buffer_size=10)

        await audit.log(self._result(), {}, RequestContext())
        assert audit.pending == 1
        assert not path.exists()

        await audit.flush()
        assert audit.pending == 0
        assert len(path.read_text().splitlines()) == 1

    @pytest.mark.asyncio
    async def test_disabled_logger_records_nothing(self, tmp_path):
        from mcp_server.audit import AuditLogger

        audit = AuditLogger(log_path=str(tmp_path / "audit.log"), enabled=False)
        await audit.log(self._result(), {}, RequestContext())

        assert audit.pending == 0


class TestDispatcher:
    """Tests for the Dispatcher."""

    def setup_method(self):
        from mcp_server.audit import AuditLogger
        from mcp_server.registry import Registry
        from mcp_server.router import Dispatcher

        async def fail(params, context):
            raise RuntimeError(params["message"])

        async def business_failure(params, context):
            return ToolResponse.text("Upstream said no", is_error=True)

        async def broken_resource(params, context):
            raise ValueError("disk on fire")

        async def greeting(params, context):
            return ToolResponse.text(context.config.get("greeting", "Hello"))

        registry = Registry()
        registry.register_many([
            tool("echo", input_schema={
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "count": {"type": "integer", "default": 3, "minimum": 1},
                },
                "required": ["name"],
            }),
            tool("fail", handler=fail, input_schema={
                "type": "object",
                "properties": {"message": {"type": "string"}},
                "required": ["message"],
            }),
            tool("business_failure", handler=business_failure),
            tool("guarded", required_roles=["User"]),
            tool("config_greeting", handler=greeting),
            Descriptor(
                kind=DescriptorKind.RESOURCE,
                name="broken",
                uri="broken",
                description="Always fails",
                handler=broken_resource,
            ),
        ])
        registry.freeze()

        self.audit = AuditLogger(enabled=False)
        self.audit.log = AsyncMock()
        self.dispatcher = Dispatcher(registry, self.audit)

    @pytest.mark.asyncio
    async def test_unknown_name(self):
        result = await self.dispatcher.call_tool("nope", {}, RequestContext())

        assert result.status == ResultStatus.NOT_FOUND
        assert result.error_code == "NOT_FOUND"
        assert "nope" in result.error

    @pytest.mark.asyncio
    async def test_defaults_applied_and_unknown_fields_dropped(self):
        result = await self.dispatcher.call_tool(
            "echo", {"name": "x", "ignored": True}, RequestContext()
        )

        assert result.status == ResultStatus.SUCCESS
        assert json.loads(result.data.content[0].text) == {"count": 3, "name": "x"}

    @pytest.mark.asyncio
    async def test_validation_error(self):
        result = await self.dispatcher.call_tool("echo", {"count": 0}, RequestContext())

        assert result.status == ResultStatus.VALIDATION_ERROR
        assert result.error_code == "VALIDATION_ERROR"
        assert "name" in result.error

    @pytest.mark.asyncio
    async def test_handler_exception_is_sanitized(self):
        message = "Bearer abc123 rejected key " + "k" * 50

        result = await self.dispatcher.call_tool("fail", {"message": message}, RequestContext())

        assert result.status == ResultStatus.ERROR
        assert result.error_code == "EXECUTION_ERROR"
        assert "abc123" not in result.error
        assert API_KEY_MARKER in result.error
        assert result.data.is_error is True
        assert result.data.content[0].text.startswith("Error: ")
        assert "abc123" not in result.data.content[0].text

    @pytest.mark.asyncio
    async def test_secret_values_masked(self):
        context = RequestContext(secrets=Secrets({"SECRET_NEWSAPI_KEY": "hunter2secret"}))

        result = await self.dispatcher.call_tool(
            "fail", {"message": "key hunter2secret refused"}, context
        )

        assert "hunter2secret" not in result.error
        assert SECRET_MARKER in result.error

    @pytest.mark.asyncio
    async def test_business_failure_passes_through(self):
        """Test that handler-authored failures are not rewritten."""
        result = await self.dispatcher.call_tool("business_failure", None, RequestContext())

        assert result.status == ResultStatus.SUCCESS
        assert result.error is None
        assert result.data.is_error is True
        assert result.data.content[0].text == "Upstream said no"

    @pytest.mark.asyncio
    async def test_role_required(self):
        anonymous = await self.dispatcher.call_tool("guarded", {}, RequestContext())
        signed_in = await self.dispatcher.call_tool(
            "guarded", {}, RequestContext(session=Session(email="a@b.com"))
        )

        assert anonymous.status == ResultStatus.UNAUTHORIZED
        assert "User" in anonymous.error
        assert signed_in.status == ResultStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_config_reaches_handler(self):
        context = RequestContext(config={"greeting": "Howdy"})

        result = await self.dispatcher.call_tool("config_greeting", {}, context)

        assert result.data.content[0].text == "Howdy"

    @pytest.mark.asyncio
    async def test_resource_failure(self):
        result = await self.dispatcher.read_resource("broken", RequestContext())

        assert result.status == ResultStatus.ERROR
        assert result.data is None
        assert result.error == "disk on fire"

    @pytest.mark.asyncio
    async def test_every_dispatch_audited(self):
        await self.dispatcher.call_tool("echo", {"name": "x"}, RequestContext())
        await self.dispatcher.call_tool("nope", {}, RequestContext())

        assert self.audit.log.await_count == 2

    @pytest.mark.asyncio
    async def test_audit_failure_does_not_fail_request(self):
        self.audit.log.side_effect = OSError("disk full")

        result = await self.dispatcher.call_tool("echo", {"name": "x"}, RequestContext())

        assert result.status == ResultStatus.SUCCESS

    @pytest.mark.asyncio
    async def test_payload_uses_wire_names(self):
        result = await self.dispatcher.call_tool("business_failure", {}, RequestContext())

        payload = result.to_payload()

        assert payload["status"] == "success"
        assert payload["data"]["isError"] is True
        assert payload["data"]["content"] == [{"type": "text", "text": "Upstream said no"}]


class TestServer:
    """Tests for server assembly."""

    def test_create_context_filters_headers(self):
        from mcp_server.audit import AuditLogger
        from mcp_server.registry import Registry
        from mcp_server.server import MCPNewsServer

        server = MCPNewsServer(
            config=MappingProxyType({"greeting": "Hello", "maxItems": 10}),
            registry=Registry(),
            audit_logger=AuditLogger(enabled=False),
        )

        context = server.create_context(
            context_headers={"project-id": "p1", "other": "dropped"},
            workspace_id="ws",
        )

        assert context.context_headers == {"project-id": "p1"}
        assert context.workspace_id == "ws"
        assert context.config["maxItems"] == 10
        assert server.registry.frozen

    def test_metadata(self):
        from mcp_server.server import build_registry, server_metadata
        from shared.config import ServerSettings

        metadata = server_metadata(build_registry(ServerSettings()), ServerSettings())

        assert metadata["name"] == "mcp-news-server"
        assert metadata["configSchema"]["required"] == ["maxItems"]
        assert [t["name"] for t in metadata["tools"]] == [
            "greet",
            "get_news",
            "ai_summarize",
            "ai_translate",
            "ai_analyze_sentiment",
            "ai_chat",
            "ai_status",
        ]
        assert {r["uri"] for r in metadata["resources"]} == {"sources", "context"}
        assert {p["name"] for p in metadata["prompts"]} == {"greet_current_user", "get_news_about"}
        assert metadata["roles"] == ["User"]
