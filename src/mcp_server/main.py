"""MCP News Server - FastAPI Application and CLI.

Exposes the registry over HTTP/JSON. Authentication is optional: a
bearer token, when sent, must yield a valid session.
"""

import json
import os
import sys
from contextlib import asynccontextmanager
from typing import Any, Optional, Sequence

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field

from shared.config import ServerSettings, get_settings, load_server_config
from shared.errors import InvalidToken, SchemaViolation
from shared.logging import (
    bind_request_context,
    clear_request_context,
    get_logger,
    setup_logging,
)
from shared.models import DescriptorKind, RequestContext
from shared.secrets import Secrets
from mcp_server.registry import Registry
from mcp_server.server import (
    SERVER_DESCRIPTION,
    SERVER_NAME,
    SERVER_VERSION,
    MCPNewsServer,
    build_registry,
    server_metadata,
)

logger = get_logger(__name__)
security = HTTPBearer(auto_error=False)

CONTEXT_HEADER_PREFIX = "x-mcp-context-"
WORKSPACE_HEADER = "x-mcp-workspace-id"
PROJECT_ROOT_HEADER = "x-mcp-project-root"
REQUEST_ID_HEADER = "x-request-id"


class ArgumentsRequest(BaseModel):
    """Arguments for a tool call or prompt."""
    arguments: dict[str, Any] = Field(default_factory=dict)


class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    version: str
    counts: dict[str, int]


def get_server(request: Request) -> MCPNewsServer:
    return request.app.state.server


async def get_request_context(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    server: MCPNewsServer = Depends(get_server)
) -> RequestContext:
    """Dependency building the per-request context bundle."""
    session = None
    if credentials:
        try:
            session = server.authenticator.authenticate(credentials.credentials)
        except InvalidToken as e:
            logger.warning("Session token rejected", error=str(e))
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail=str(e),
                headers={"WWW-Authenticate": "Bearer"},
            )

    context_headers = {
        name[len(CONTEXT_HEADER_PREFIX):]: value
        for name, value in request.headers.items()
        if name.startswith(CONTEXT_HEADER_PREFIX)
    }

    context = server.create_context(
        session=session,
        context_headers=context_headers,
        workspace_id=request.headers.get(WORKSPACE_HEADER),
        project_root=request.headers.get(PROJECT_ROOT_HEADER),
        request_id=request.headers.get(REQUEST_ID_HEADER),
    )

    clear_request_context()
    bind_request_context(
        request_id=context.request_id,
        user=session.email if session else None,
    )
    return context


def create_app(server: MCPNewsServer) -> FastAPI:
    """Create the FastAPI application around an assembled server."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(
            "MCP News Server started",
            counts=server.registry.counts(),
        )
        yield
        logger.info("Shutting down MCP News Server")
        await server.audit_logger.flush()

    app = FastAPI(
        title=SERVER_NAME,
        description=SERVER_DESCRIPTION,
        version=SERVER_VERSION,
        lifespan=lifespan
    )
    app.state.server = server

    @app.get("/health", response_model=HealthResponse, tags=["System"])
    async def health_check():
        """Health check endpoint."""
        return HealthResponse(
            status="healthy",
            version=SERVER_VERSION,
            counts=server.registry.counts()
        )

    @app.get("/meta", tags=["System"])
    async def metadata():
        """Server metadata: config schema, descriptors, roles."""
        return server.metadata()

    @app.get("/tools", tags=["Tools"])
    async def list_tools():
        return {"tools": server.registry.describe(DescriptorKind.TOOL)}

    @app.post("/tools/{name}", tags=["Tools"])
    async def call_tool(
        name: str,
        request: Optional[ArgumentsRequest] = None,
        context: RequestContext = Depends(get_request_context)
    ):
        """Call a tool. Failures are reported in the result envelope."""
        arguments = request.arguments if request else {}
        result = await server.dispatcher.call_tool(name, arguments, context)
        return result.to_payload()

    @app.get("/resources", tags=["Resources"])
    async def list_resources():
        return {"resources": server.registry.describe(DescriptorKind.RESOURCE)}

    @app.get("/resources/{uri:path}", tags=["Resources"])
    async def read_resource(
        uri: str,
        context: RequestContext = Depends(get_request_context)
    ):
        """Read a resource by URI or name."""
        result = await server.dispatcher.read_resource(uri, context)
        return result.to_payload()

    @app.get("/prompts", tags=["Prompts"])
    async def list_prompts():
        return {"prompts": server.registry.describe(DescriptorKind.PROMPT)}

    @app.post("/prompts/{name}", tags=["Prompts"])
    async def get_prompt(
        name: str,
        request: Optional[ArgumentsRequest] = None,
        context: RequestContext = Depends(get_request_context)
    ):
        arguments = request.arguments if request else {}
        result = await server.dispatcher.get_prompt(name, arguments, context)
        return result.to_payload()

    return app


def print_metadata(registry: Optional[Registry] = None, settings: Optional[ServerSettings] = None) -> None:
    """Write server metadata as JSON to stdout."""
    settings = settings or get_settings().server
    registry = registry or build_registry(settings)
    json.dump(server_metadata(registry, settings), sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Run the MCP News Server."""
    import uvicorn

    argv = list(sys.argv[1:] if argv is None else argv)
    settings = get_settings()
    setup_logging(settings.log_level, json_output=settings.environment == "production")

    if "--meta" in argv:
        print_metadata(settings=settings.server)
        return

    try:
        config = load_server_config(argv, os.environ, settings)
    except SchemaViolation as e:
        logger.error("Invalid configuration", errors=e.errors)
        raise SystemExit(2)

    server = MCPNewsServer(
        config=config,
        settings=settings,
        secrets=Secrets.from_environ(os.environ),
    )
    logger.info("Configuration resolved", config=dict(config), secrets=repr(server.secrets))

    uvicorn.run(
        create_app(server),
        host=settings.server.host,
        port=settings.server.port,
    )


if __name__ == "__main__":
    main()
