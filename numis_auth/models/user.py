"""
Credential and cached user profile models.
Identity normalization happens here, at the ingestion boundary, so nothing
else in the package branches on ``_id`` versus ``id``.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..core.logging import token_fingerprint

# Keys the server has used for the account identity over time
_IDENTITY_KEYS = ("id", "_id", "userId")


@dataclass(frozen=True)
class Credential:
    """Bearer token plus the identity it was issued to."""
    token: str
    user_id: Optional[str] = None

    @property
    def fingerprint(self) -> Optional[str]:
        return token_fingerprint(self.token)

    def bound_to(self, user_id: Optional[str]) -> "Credential":
        """Return a new credential for the same token bound to ``user_id``."""
        return Credential(token=self.token, user_id=user_id)


class UserProfile(BaseModel):
    """Cached account data for the signed-in user."""

    model_config = ConfigDict(populate_by_name=True, extra="allow", frozen=True)

    id: str = Field(..., description="Canonical account identity")
    username: Optional[str] = None
    email: Optional[str] = None
    full_name: Optional[str] = Field(None, alias="fullName")
    location: Optional[str] = None
    avatar: Optional[str] = None
    bio: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def normalize_identity(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        data = dict(data)
        canonical = None
        for key in _IDENTITY_KEYS:
            if data.get(key) not in (None, ""):
                canonical = data[key]
                break
        for key in _IDENTITY_KEYS:
            data.pop(key, None)
        if canonical is not None:
            data["id"] = str(canonical)
        return data

    @property
    def legacy_id(self) -> str:
        """Legacy ``_id`` alias; always the canonical id."""
        return self.id

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "UserProfile":
        """
        Build a profile from a server or caller payload.

        Accepts either the bare user object or an envelope ``{"user": {...}}``.

        Raises:
            ValueError: If the payload carries no identity
        """
        if isinstance(payload, Mapping) and isinstance(payload.get("user"), Mapping):
            payload = payload["user"]
        return cls.model_validate(payload)

    @classmethod
    def from_storage(cls, raw: str) -> "UserProfile":
        """Parse the JSON form written by ``to_storage``."""
        return cls.from_payload(json.loads(raw))

    def merged(self, fields: Mapping[str, Any]) -> "UserProfile":
        """Shallow-merge ``fields`` (by name or alias) into a new profile. Identity keys are ignored."""
        aliases = {
            info.alias: name for name, info in type(self).model_fields.items() if info.alias
        }
        data = self.model_dump()
        for key, value in fields.items():
            if key in _IDENTITY_KEYS:
                continue
            data[aliases.get(key, key)] = value
        return type(self).model_validate(data)

    def to_payload(self) -> Dict[str, Any]:
        """Serialize with server field names and both identity fields."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data["_id"] = self.id
        return data

    def to_storage(self) -> str:
        return json.dumps(self.to_payload(), sort_keys=True)
