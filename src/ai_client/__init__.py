"""Client for the hosting manager's AI proxy."""

from ai_client.client import (
    AIClient,
    AIClientError,
    AIErrorCode,
    CompletionOptions,
    ModelInfo,
    ModelList,
)

__all__ = [
    "AIClient",
    "AIClientError",
    "AIErrorCode",
    "CompletionOptions",
    "ModelInfo",
    "ModelList",
]
