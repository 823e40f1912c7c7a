"""Pydantic models describing mailac configuration and state documents."""
from __future__ import annotations

import base64
import binascii
from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError as _PydanticValidationError
from pydantic import field_serializer, field_validator


STATE_VERSION = 2


class ValidationError(ValueError):
    """Raised when a document does not satisfy the schema."""


class PathsConfig(BaseModel):
    """Filesystem layout used by the runtime."""

    model_config = ConfigDict(extra="forbid")

    state_file: str


class GossipConfig(BaseModel):
    """Gossip send/receive switches."""

    model_config = ConfigDict(extra="forbid")

    receive: bool = True
    send: bool = True


class RecommendationConfig(BaseModel):
    """Recommendation engine tuning."""

    model_config = ConfigDict(extra="forbid")

    staleness_days: int = Field(default=35, gt=0)


class HeadersConfig(BaseModel):
    """Outgoing header limits."""

    model_config = ConfigDict(extra="forbid")

    max_bytes: int = Field(default=10 * 1024, gt=0)
    wrap_column: int = Field(default=76, gt=0)


class RuntimeConfig(BaseModel):
    """Root configuration loaded from ``config.yaml``."""

    model_config = ConfigDict(extra="forbid")

    version: int = 1
    paths: PathsConfig
    gossip: GossipConfig = Field(default_factory=GossipConfig)
    recommendation: RecommendationConfig = Field(default_factory=RecommendationConfig)
    headers: HeadersConfig = Field(default_factory=HeadersConfig)


def _utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _b64decode(value: Any) -> Optional[bytes]:
    if value is None or isinstance(value, bytes):
        return value
    if not isinstance(value, str):
        raise ValueError("key material must be a base64 string")
    try:
        return base64.b64decode("".join(value.split()), validate=True)
    except (binascii.Error, ValueError) as exc:
        raise ValueError(f"invalid base64 key material: {exc}") from exc


class AccountEntry(BaseModel):
    """Persisted account."""

    model_config = ConfigDict(extra="forbid")

    address: str
    key_fingerprint: str
    preference: Literal["mutual", "nopreference", "none", "disabled"] = "nopreference"


class PeerEntry(BaseModel):
    """Persisted peer record."""

    model_config = ConfigDict(extra="forbid")

    address: str
    last_seen: Optional[datetime] = None
    timestamp: Optional[datetime] = None
    public_key: Optional[bytes] = None
    preference: Optional[Literal["mutual", "nopreference", "none"]] = None
    gossip_timestamp: Optional[datetime] = None
    gossip_key: Optional[bytes] = None
    deactivated: bool = False

    @field_validator("last_seen", "timestamp", "gossip_timestamp")
    @classmethod
    def _normalise_ts(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _utc(value)

    @field_validator("public_key", "gossip_key", mode="before")
    @classmethod
    def _decode_key(cls, value: Any) -> Optional[bytes]:
        return _b64decode(value)

    @field_serializer("public_key", "gossip_key")
    def _encode_key(self, value: Optional[bytes]) -> Optional[str]:
        if value is None:
            return None
        return base64.b64encode(value).decode("ascii")

    @field_serializer("last_seen", "timestamp", "gossip_timestamp")
    def _encode_ts(self, value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value is not None else None


class StateV2(BaseModel):
    """Versioned record set holding accounts and peers."""

    model_config = ConfigDict(extra="forbid")

    version: Literal[2] = STATE_VERSION
    accounts: List[AccountEntry] = Field(default_factory=list)
    peers: List[PeerEntry] = Field(default_factory=list)

    @classmethod
    def model_validate(cls, data: Dict[str, Any]) -> "StateV2":  # type: ignore[override]
        try:
            return super().model_validate(data)
        except _PydanticValidationError as exc:
            raise ValidationError(str(exc)) from exc

    @classmethod
    def minimal(cls) -> "StateV2":
        return cls(version=STATE_VERSION, accounts=[], peers=[])
