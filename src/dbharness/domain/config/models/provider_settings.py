"""
Provider settings domain model.

Connection parameters for one database provider (one server instance).
"""

import re
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .enums import ServerKind

_VERSION_PATTERN = re.compile(r"^\d+(\.\d+)*$")


class ProviderSettings(BaseModel):
    """
    Domain model for provider settings.

    A LocalDB provider needs either ``local_instance_name`` or a
    ``connection_string``; an external provider needs a connection string.
    Missing values are reported when a connection is requested, so the
    error names the exact setting at the point it matters.
    """

    model_config = ConfigDict(frozen=True, extra="ignore", use_enum_values=False)

    provider_id: str = Field("sqlserver", description="Identifier used by groups and the global policy")
    provider_type: str = Field("sqlserver", description="Provider implementation (key into the provider factories)")
    server_kind: ServerKind = Field(ServerKind.LOCALDB, description="How the server instance is managed")
    connection_string: Optional[str] = Field(None, description="ODBC connection string to the server")
    local_instance_name: Optional[str] = Field(None, description="LocalDB instance to create/start")
    allowed_versions: Tuple[str, ...] = Field(
        default_factory=tuple,
        description="LocalDB versions allowed for new instances (e.g. '15.0')"
    )
    odbc_driver: Optional[str] = Field(None, description="ODBC driver name (autodetected when unset)")
    connect_timeout: int = Field(30, description="Seconds to wait for a connection")
    command_timeout: Optional[int] = Field(None, description="Seconds before a statement or SqlPackage publish is abandoned")
    sqlpackage_path: str = Field("SqlPackage", description="SqlPackage executable for engine deploys")
    sqllocaldb_path: str = Field("SqlLocalDB", description="SqlLocalDB executable")

    @field_validator("provider_type")
    @classmethod
    def normalize_provider_type(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("provider_type cannot be empty")
        return v.strip().lower()

    @field_validator("server_kind", mode="before")
    @classmethod
    def normalize_server_kind(cls, v):
        if isinstance(v, str):
            return ServerKind(v.strip().lower())
        return v

    @field_validator("connection_string", "local_instance_name", "odbc_driver")
    @classmethod
    def blank_to_none(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            return None
        return v

    @field_validator("allowed_versions")
    @classmethod
    def validate_versions(cls, v: Tuple[str, ...]) -> Tuple[str, ...]:
        cleaned = tuple(item.strip() for item in v)
        for item in cleaned:
            if not _VERSION_PATTERN.match(item):
                raise ValueError(f"Invalid version '{item}' (expected e.g. '15.0')")
        return cleaned

    @field_validator("connect_timeout")
    @classmethod
    def validate_connect_timeout(cls, v: int) -> int:
        if v < 0:
            raise ValueError("connect_timeout cannot be negative")
        return v

    @field_validator("command_timeout")
    @classmethod
    def validate_command_timeout(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v < 1:
            raise ValueError("command_timeout must be at least 1 second (omit it for no limit)")
        return v

    @property
    def is_local_instance(self) -> bool:
        return self.server_kind == ServerKind.LOCALDB
