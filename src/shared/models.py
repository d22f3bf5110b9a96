"""Core data models for the MCP News Server.

Defines sessions, descriptors, the per-request context bundle and the
protocol-shaped responses handlers return.
"""

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from enum import Enum
from types import MappingProxyType
from typing import Any, Awaitable, Callable, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from shared.schema import EMPTY_OBJECT_SCHEMA
from shared.secrets import Secrets


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Session(BaseModel):
    """
    Minimal authenticated identity.

    Only ``email`` and ``fullName`` survive from a token; a session
    without a valid email cannot be constructed.
    """
    email: str = Field(..., description="User email address")
    full_name: Optional[str] = Field(
        default=None, alias="fullName", description="User full name"
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        local, sep, domain = value.partition("@")
        if not sep or not local or not domain or "@" in domain or any(c.isspace() for c in value):
            raise ValueError("email must look like local@domain")
        return value

    @property
    def display_name(self) -> str:
        """Full name, else the local part of the email."""
        return self.full_name or self.email.split("@")[0]


class DescriptorKind(str, Enum):
    """Kinds of registered functionality."""
    TOOL = "tool"
    RESOURCE = "resource"
    PROMPT = "prompt"


class RequestContext(BaseModel):
    """
    Context bundle passed explicitly to every handler.

    Config and secrets are read-only; nothing here is shared between
    requests except the resolved config mapping.
    """
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    config: MappingProxyType = Field(default_factory=lambda: MappingProxyType({}))
    session: Optional[Session] = None
    secrets: Secrets = Field(default_factory=Secrets)
    context_headers: dict[str, str] = Field(default_factory=dict)
    workspace_id: Optional[str] = None
    project_root: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    @field_validator("config", mode="before")
    @classmethod
    def _freeze_config(cls, value: Any) -> Any:
        if isinstance(value, Mapping) and not isinstance(value, MappingProxyType):
            return MappingProxyType(dict(value))
        return value


class TextContent(BaseModel):
    """A single text item."""
    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """
    Tool output.

    ``is_error`` marks a business failure authored by the handler,
    as opposed to an exception.
    """
    content: list[TextContent] = Field(default_factory=list)
    is_error: bool = Field(default=False, alias="isError")

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def text(cls, text: str, is_error: bool = False) -> "ToolResponse":
        return cls(content=[TextContent(text=text)], is_error=is_error)


class ResourceContent(BaseModel):
    uri: str
    mime_type: str = Field(default="text/plain", alias="mimeType")
    text: str

    model_config = ConfigDict(populate_by_name=True)


class ResourceResponse(BaseModel):
    """Resource output."""
    contents: list[ResourceContent] = Field(default_factory=list)

    @classmethod
    def text(cls, uri: str, text: str, mime_type: str = "text/plain") -> "ResourceResponse":
        return cls(contents=[ResourceContent(uri=uri, mime_type=mime_type, text=text)])


class PromptMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: TextContent


class PromptResponse(BaseModel):
    """Prompt output."""
    messages: list[PromptMessage] = Field(default_factory=list)

    @classmethod
    def user_message(cls, text: str) -> "PromptResponse":
        return cls(messages=[PromptMessage(role="user", content=TextContent(text=text))])


Handler = Callable[[dict[str, Any], RequestContext], Awaitable[Any]]


class Descriptor(BaseModel):
    """
    Registered definition of a tool, resource or prompt.

    Names are unique within a kind and part of the external contract.
    """
    kind: DescriptorKind
    name: str = Field(..., description="Name, unique within its kind")
    description: str = Field(..., description="Human and LLM readable description")
    input_schema: dict[str, Any] = Field(
        default_factory=lambda: dict(EMPTY_OBJECT_SCHEMA),
        description="JSON Schema for input validation"
    )
    uri: Optional[str] = Field(default=None, description="Resource URI")
    mime_type: str = Field(default="text/plain")
    required_roles: list[str] = Field(default_factory=list)
    handler: Handler = Field(..., exclude=True)

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> tuple[DescriptorKind, str]:
        return self.kind, self.name

    def listing(self) -> dict[str, Any]:
        """Public listing entry, without the handler."""
        entry: dict[str, Any] = {
            "name": self.name,
            "description": self.description,
        }
        if self.kind == DescriptorKind.TOOL:
            entry["inputSchema"] = self.input_schema
        elif self.kind == DescriptorKind.PROMPT:
            entry["arguments"] = self.input_schema
        else:
            entry["uri"] = self.uri
            entry["mimeType"] = self.mime_type
        if self.required_roles:
            entry["roles"] = list(self.required_roles)
        return entry


class ResultStatus(str, Enum):
    """Status of a dispatch."""
    SUCCESS = "success"
    ERROR = "error"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
    VALIDATION_ERROR = "validation_error"


class DispatchResult(BaseModel):
    """
    Envelope returned by the dispatcher.

    ``data`` carries the handler response; ``error`` is always sanitized.
    """
    kind: DescriptorKind
    name: str
    status: ResultStatus
    data: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    execution_time_ms: float = 0
    request_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == ResultStatus.SUCCESS

    def to_payload(self) -> dict[str, Any]:
        """JSON-ready dict, with wire field names for the response data."""
        payload = self.model_dump(mode="json", exclude={"data"})
        if isinstance(self.data, BaseModel):
            payload["data"] = self.data.model_dump(mode="json", by_alias=True)
        else:
            payload["data"] = self.data
        return payload


class AuditEntry(BaseModel):
    """
    Audit log entry for a single dispatch.

    Captures identity, target, parameters, timing and outcome.
    """
    id: str
    timestamp: datetime = Field(default_factory=_utcnow)

    # Identity
    user_email: Optional[str] = None
    workspace_id: Optional[str] = None

    # Target
    kind: DescriptorKind
    name: str

    # Request details
    parameters: dict[str, Any] = Field(default_factory=dict)

    # Outcome
    status: ResultStatus
    business_error: bool = False
    error: Optional[str] = None
    execution_time_ms: float = 0

    request_id: str
