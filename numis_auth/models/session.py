"""
Active session records as reported by the sessions endpoint.
"""
from datetime import datetime
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class DeviceInfo(BaseModel):
    """Device fingerprint attached to a session."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: str = "unknown"
    os: str = Field("unknown", validation_alias=AliasChoices("os", "operatingSystem"))
    browser: str = "unknown"
    device_name: str = Field(
        "Unknown device", validation_alias=AliasChoices("device_name", "deviceName")
    )


class SessionRecord(BaseModel):
    """One server-recognized authenticated device/browser for the account."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    session_id: str = Field(validation_alias=AliasChoices("session_id", "sessionId", "_id", "id"))
    device_info: DeviceInfo = Field(
        default_factory=DeviceInfo, validation_alias=AliasChoices("device_info", "deviceInfo")
    )
    ip_address: Optional[str] = Field(None, validation_alias=AliasChoices("ip_address", "ipAddress"))
    location: str = "Unknown"
    last_active: Optional[datetime] = Field(
        None, validation_alias=AliasChoices("last_active", "lastActive")
    )
    is_current_session: bool = Field(
        False, validation_alias=AliasChoices("is_current_session", "isCurrentSession")
    )
    is_active: bool = Field(True, validation_alias=AliasChoices("is_active", "isActive"))

    @field_validator("session_id", mode="before")
    @classmethod
    def coerce_session_id(cls, v: Any) -> Any:
        return str(v) if v is not None else v

    @field_validator("device_info", mode="before")
    @classmethod
    def default_device_info(cls, v: Any) -> Any:
        return {} if v is None else v

    @field_validator("location", mode="before")
    @classmethod
    def default_location(cls, v: Any) -> Any:
        return v or "Unknown"
