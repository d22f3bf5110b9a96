"""Configuration management for the MCP News Server.

Two layers:

- ``Settings``: process settings (host, port, logging, timeouts) loaded
  with pydantic-settings from the environment and ``.env``.
- Server config: the schema-described values handlers see. Sources are
  gathered here (file, environment, CLI, override) and merged by the
  pure ``shared.schema.resolve``.
"""

import json
import re
from collections.abc import Mapping, Sequence
from functools import lru_cache
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import SchemaViolation
from shared.schema import resolve, schema_defaults

CONFIG_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {
        "greeting": {
            "type": "string",
            "default": "Hello",
            "description": "Default greeting message for tools",
        },
        "maxItems": {
            "type": "integer",
            "default": 10,
            "minimum": 1,
            "maximum": 100,
            "description": "Maximum number of items to return in list operations",
        },
    },
    "required": ["maxItems"],
}

OVERRIDE_ENV_VAR = "MCP_CONFIG"
RESERVED_FLAGS = {"meta", "config"}
YAML_SUFFIXES = {".yaml", ".yml"}


class ServerSettings(BaseSettings):
    """HTTP server and upstream configuration."""
    host: str = Field(default="127.0.0.1")
    port: int = Field(default=8000)
    enable_audit: bool = Field(default=True)
    audit_log_path: str = Field(default="logs/audit.log")

    # Security
    auth_secret_key: Optional[str] = Field(
        default=None, description="HS256 secret for signed session tokens"
    )
    context_headers: list[str] = Field(
        default_factory=lambda: ["project-id", "environment", "custom-tag"]
    )

    # Upstreams
    newsapi_base_url: str = Field(default="https://newsapi.org/v2")
    http_timeout_seconds: float = Field(default=30.0, gt=0)
    ai_timeout_seconds: float = Field(default=60.0, gt=0)
    ai_model: Optional[str] = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="MCP_SERVER_",
        env_file=".env",
        extra="ignore"
    )


class Settings(BaseSettings):
    """Main application settings."""
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    config_file: str = Field(default=".mcp-news-server.json")

    server: ServerSettings = Field(default_factory=ServerSettings)

    model_config = SettingsConfigDict(
        env_prefix="MCP_",
        env_file=".env",
        extra="ignore"
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()


def load_config_file(path: str | Path) -> dict[str, Any]:
    """
    Load a JSON configuration file; ``.yaml``/``.yml`` files are read as YAML.

    A missing file is an empty source.

    Raises:
        SchemaViolation: If the file does not parse or does not hold an object
    """
    path = Path(path)
    if not path.exists():
        return {}

    with open(path) as f:
        try:
            if path.suffix.lower() in YAML_SUFFIXES:
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
        except (yaml.YAMLError, json.JSONDecodeError) as e:
            raise SchemaViolation([f"{path}: unreadable config file ({e.__class__.__name__})"])

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise SchemaViolation([f"{path}: config file must contain an object"])
    return data


def env_name_to_field(name: str) -> str:
    """``MAX_ITEMS`` -> ``maxItems``."""
    head, *rest = name.lower().split("_")
    return head + "".join(part.capitalize() for part in rest)


def flag_to_field(flag: str) -> str:
    """``max-items`` -> ``maxItems``; camelCase flags pass through."""
    head, *rest = flag.split("-")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


_INTEGER = re.compile(r"^[+-]?\d+$")


def coerce_value(value: Any, field_schema: Mapping[str, Any]) -> Any:
    """
    Convert a string from the environment or CLI to the field's type.

    Values that do not parse are returned unchanged so that validation
    reports them.
    """
    if not isinstance(value, str):
        return value

    field_type = field_schema.get("type")
    text = value.strip()

    if field_type == "integer" and _INTEGER.match(text):
        return int(text)
    if field_type == "number":
        try:
            number = float(text)
        except ValueError:
            return value
        return int(number) if number.is_integer() and "." not in text else number
    if field_type == "boolean" and text.lower() in ("true", "false", "1", "0", "yes", "no"):
        return text.lower() in ("true", "1", "yes")
    return value


def config_from_env(environ: Mapping[str, str], schema: dict[str, Any]) -> dict[str, Any]:
    """Pick schema fields out of upper snake case environment variables."""
    properties = schema.get("properties", {})
    values: dict[str, Any] = {}

    for name, raw in environ.items():
        if not name.isupper():
            continue
        field = env_name_to_field(name)
        if field in properties:
            values[field] = coerce_value(raw, properties[field])

    return values


def config_from_cli(argv: Sequence[str], schema: dict[str, Any]) -> dict[str, Any]:
    """
    Parse ``--field value`` / ``--field=value`` arguments.

    A flag followed by another flag (or nothing) is ``true``.
    Unknown fields are left for ``resolve`` to drop.
    """
    properties = schema.get("properties", {})
    values: dict[str, Any] = {}
    args = list(argv)
    i = 0

    while i < len(args):
        arg = args[i]
        i += 1
        if not arg.startswith("--") or arg == "--":
            continue

        flag, sep, raw = arg[2:].partition("=")
        if not sep:
            if i < len(args) and not args[i].startswith("--"):
                raw = args[i]
                i += 1
            else:
                raw = "true"

        if flag in RESERVED_FLAGS:
            continue

        field = flag_to_field(flag)
        values[field] = coerce_value(raw, properties.get(field, {}))

    return values


def cli_config_path(argv: Sequence[str]) -> Optional[str]:
    """Value of ``--config`` if given."""
    args = list(argv)
    for i, arg in enumerate(args):
        if arg.startswith("--config="):
            return arg.split("=", 1)[1]
        if arg == "--config" and i + 1 < len(args):
            return args[i + 1]
    return None


def config_from_override(environ: Mapping[str, str]) -> dict[str, Any]:
    """
    Highest precedence override map supplied by the hosting manager.

    Raises:
        SchemaViolation: If ``MCP_CONFIG`` is not a JSON object
    """
    raw = environ.get(OVERRIDE_ENV_VAR)
    if not raw:
        return {}

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        raise SchemaViolation([f"{OVERRIDE_ENV_VAR}: not valid JSON"])

    if not isinstance(data, dict):
        raise SchemaViolation([f"{OVERRIDE_ENV_VAR}: must be a JSON object"])
    return data


def load_server_config(
    argv: Sequence[str],
    environ: Mapping[str, str],
    settings: Optional[Settings] = None,
    schema: Optional[dict[str, Any]] = None,
) -> Mapping[str, Any]:
    """
    Gather every configuration source and resolve them.

    Precedence, low to high: defaults, file, environment, CLI, override.

    Raises:
        SchemaViolation: If the merged configuration is invalid
    """
    settings = settings or get_settings()
    schema = schema or CONFIG_SCHEMA
    config_path = cli_config_path(argv) or settings.config_file

    return resolve(schema, [
        schema_defaults(schema),
        load_config_file(config_path),
        config_from_env(environ, schema),
        config_from_cli(argv, schema),
        config_from_override(environ),
    ])
