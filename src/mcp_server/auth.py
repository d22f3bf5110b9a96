"""Authentication and Authorization for the MCP News Server.

Handles:
- Session authentication (bearer token -> minimal Session)
- Role authorization (role name -> predicate over the session)
"""

import json
from collections.abc import Mapping
from types import MappingProxyType
from typing import Any, Callable, Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from shared.errors import InvalidToken
from shared.logging import get_logger
from shared.models import Session

logger = get_logger(__name__)

ALGORITHM = "HS256"

RolePredicate = Callable[[Optional[Session]], bool]


def _is_user(session: Optional[Session]) -> bool:
    return session is not None and bool(session.email)


# Role name -> predicate. Add roles here; dispatch needs no changes.
ROLES: Mapping[str, RolePredicate] = MappingProxyType({
    "User": _is_user,
})


def session_from_claims(claims: Any) -> Session:
    """
    Keep only ``email`` and a string ``fullName`` from decoded claims.

    Raises:
        InvalidToken: If claims are not an object or email is unusable
    """
    if not isinstance(claims, dict):
        raise InvalidToken("Invalid session token: expected a JSON object")

    email = claims.get("email")
    if not email or not isinstance(email, str):
        raise InvalidToken("Invalid session token: email is required")

    data: dict[str, str] = {"email": email}
    full_name = claims.get("fullName")
    if full_name and isinstance(full_name, str):
        data["fullName"] = full_name

    try:
        return Session(**data)
    except ValidationError:
        raise InvalidToken("Invalid session token: malformed email")


class SessionAuthenticator:
    """
    Turns opaque bearer tokens into sessions.

    Tokens are JSON objects. When a secret key is configured, HS256
    JWTs are accepted as well and their claims minimized the same way.
    """

    def __init__(self, secret_key: Optional[str] = None) -> None:
        self.secret_key = secret_key

    def authenticate(self, token: str) -> Session:
        """
        Build a session from a token.

        Raises:
            InvalidToken: If the token does not decode or lacks an email
        """
        try:
            claims = json.loads(token)
        except (TypeError, ValueError):
            claims = self._decode_jwt(token)

        return session_from_claims(claims)

    def _decode_jwt(self, token: str) -> dict[str, Any]:
        if not self.secret_key:
            raise InvalidToken("Invalid session token: not a JSON object")

        try:
            return jwt.decode(token, self.secret_key, algorithms=[ALGORITHM])
        except JWTError as e:
            logger.warning("Token verification failed", error=str(e))
            raise InvalidToken("Invalid session token: signature check failed")


def authorize(
    session: Optional[Session],
    role_name: str,
    roles: Mapping[str, RolePredicate] = ROLES
) -> bool:
    """
    Check whether a role is granted for a (possibly absent) session.

    Evaluated fresh on every call. Absent sessions and unknown roles
    are never granted.
    """
    if session is None:
        return False

    predicate = roles.get(role_name)
    if predicate is None:
        logger.debug("Unknown role requested", role=role_name)
        return False

    return bool(predicate(session))


def granted_roles(
    session: Optional[Session],
    roles: Mapping[str, RolePredicate] = ROLES
) -> list[str]:
    """Names of every role the session currently holds."""
    return [name for name in roles if authorize(session, name, roles)]


def missing_roles(
    session: Optional[Session],
    required: list[str],
    roles: Mapping[str, RolePredicate] = ROLES
) -> list[str]:
    """Required roles the session does not hold."""
    return [name for name in required if not authorize(session, name, roles)]
