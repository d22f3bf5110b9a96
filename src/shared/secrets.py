"""Read-only secrets view handed to handlers."""

from collections.abc import Mapping
from typing import Iterator, Optional

SECRET_PREFIX = "SECRET_"
NEWSAPI_KEY = "SECRET_NEWSAPI_KEY"
AI_PROXY_URL = "MCP_AI_PROXY_URL"
AI_PROXY_TOKEN = "MCP_AI_PROXY_TOKEN"

SECRET_MARKER = "[SECRET_REMOVED]"

# Secret values shorter than this are not scrubbed from text
_MIN_REDACTED_LENGTH = 4


class Secrets(Mapping):
    """
    Immutable key -> string lookup scoped to a request.

    Values never appear in ``repr`` and can be scrubbed out of
    arbitrary text before it leaves the process.
    """

    def __init__(self, values: Optional[Mapping[str, str]] = None) -> None:
        self._values = {k: v for k, v in (values or {}).items() if v}

    @classmethod
    def from_environ(cls, environ: Mapping[str, str]) -> "Secrets":
        """Collect ``SECRET_*`` variables and the AI proxy pair."""
        return cls({
            key: value
            for key, value in environ.items()
            if key.startswith(SECRET_PREFIX) or key in (AI_PROXY_URL, AI_PROXY_TOKEN)
        })

    def __getitem__(self, key: str) -> str:
        return self._values[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Secrets(keys={sorted(self._values)})"

    def redact(self, text: str) -> str:
        """Replace every secret value found in ``text``."""
        # Longest first so a value containing another is masked whole
        for value in sorted(self._values.values(), key=len, reverse=True):
            if len(value) >= _MIN_REDACTED_LENGTH:
                text = text.replace(value, SECRET_MARKER)
        return text
