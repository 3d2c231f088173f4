"""
Identity Resolver

Session payloads reach the service in several shapes: a flat user row,
a `{"user": {...}}` wrapper, a `{"session": {"user": {...}}}` wrapper, or a
federated identity record with an `identities` list. Ids are integer
primary keys in the account tables and UUID strings from the identity
provider.

`UserId.from_payload` is the one place that probes those shapes; the rest
of the service takes a `UserId` (or a raw id passed through `UserId.parse`).
"""

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Optional, Union

from loguru import logger

from thesisvault.errors import InvalidInputError, NotAuthenticatedError

# Probed in this order on every level of the payload.
USER_ID_FIELDS = (
    "user_id",
    "id",
    "userID",
    "userId",
    "uid",
    "sub",
    "user_uuid",
    "uuid",
)

_MAX_DEPTH = 4

RawId = Union[int, str]


def _field(payload: Any, name: str) -> Any:
    if isinstance(payload, Mapping):
        return payload.get(name)
    return getattr(payload, name, None)


def find_user_id(payload: Any, _depth: int = 0) -> Optional[RawId]:
    """
    Find a user id in a session payload.

    Args:
        payload: Mapping or object in any of the known shapes, or a bare id

    Returns:
        The first non-null id found, or None when nothing matches
    """
    if payload is None or isinstance(payload, bool) or _depth > _MAX_DEPTH:
        return None

    if isinstance(payload, (int, str)):
        return payload

    for name in USER_ID_FIELDS:
        value = _field(payload, name)
        if value is not None and not isinstance(value, (Mapping, list, tuple, bool)):
            return value

    nested = _field(payload, "user")
    if nested is not None and not isinstance(nested, (int, str)):
        found = find_user_id(nested, _depth + 1)
        if found is not None:
            return found

    session = _field(payload, "session")
    if session is not None:
        session_user = _field(session, "user")
        if session_user is not None and not isinstance(session_user, (int, str)):
            found = find_user_id(session_user, _depth + 1)
            if found is not None:
                return found

    identities = _field(payload, "identities")
    if isinstance(identities, (list, tuple)) and identities:
        identity_id = _field(identities[0], "user_id")
        if identity_id is not None:
            return identity_id

    return None


def normalize_user_id(value: Any) -> Optional[RawId]:
    """
    Normalize an id of unknown type.

    Strings containing a hyphen are opaque UUID keys and pass through.
    Everything else is parsed as an integer, falling back to the original
    value when parsing fails. Empty values normalize to None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None

    if isinstance(value, str):
        if "-" in value:
            return value
        try:
            return int(value.strip())
        except ValueError:
            return value

    if isinstance(value, int):
        return value or None

    if isinstance(value, float) and value.is_integer():
        return int(value) or None

    return value


@dataclass(frozen=True)
class UserId:
    """Canonical user identifier."""

    value: RawId

    @property
    def is_uuid(self) -> bool:
        return isinstance(self.value, str)

    def as_key(self) -> int:
        """
        Integer key used by the account and ledger tables.

        Raises:
            InvalidInputError: the id is an identity-provider UUID
        """
        if self.is_uuid:
            raise InvalidInputError(
                "User ID is not an account key",
                detail=f"identity-provider id '{self.value}' has no account row",
            )
        return self.value

    @classmethod
    def parse(cls, raw: Any) -> "UserId":
        """
        Build from a raw id.

        Raises:
            InvalidInputError: the value is neither a positive integer nor a UUID key
        """
        if isinstance(raw, UserId):
            return raw

        value = normalize_user_id(raw)

        if isinstance(value, int) and value > 0:
            return cls(value)
        if isinstance(value, str) and "-" in value:
            return cls(value)

        raise InvalidInputError("Invalid user ID format", detail=repr(raw))

    @classmethod
    def from_payload(cls, payload: Any) -> "UserId":
        """
        Resolve the identity carried by a session payload.

        Raises:
            NotAuthenticatedError: no usable id anywhere in the payload
        """
        raw = find_user_id(payload)
        if raw is None:
            logger.warning("No user ID found in session payload")
            raise NotAuthenticatedError("No user identity available")

        try:
            return cls.parse(raw)
        except InvalidInputError:
            logger.warning(f"Session payload carries an unusable user ID: {raw!r}")
            raise NotAuthenticatedError("No user identity available")

    def __str__(self) -> str:
        return str(self.value)


def parse_thesis_id(raw: Any) -> int:
    """
    Parse a thesis id.

    Raises:
        InvalidInputError: not a positive integer
    """
    if isinstance(raw, bool) or raw is None:
        raise InvalidInputError("Thesis ID is required")

    try:
        thesis_id = int(raw.strip()) if isinstance(raw, str) else int(raw)
    except (TypeError, ValueError):
        raise InvalidInputError("Invalid thesis ID", detail=repr(raw))

    if isinstance(raw, float) and not raw.is_integer():
        raise InvalidInputError("Invalid thesis ID", detail=repr(raw))

    if thesis_id <= 0:
        raise InvalidInputError("Invalid thesis ID", detail=repr(raw))

    return thesis_id
