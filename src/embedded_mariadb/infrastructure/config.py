"""Configuration management for the embedded database."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import TYPE_CHECKING, Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

if TYPE_CHECKING:
    from embedded_mariadb.domain.entities.server_properties import ServerProperties


class ServerConfig(BaseModel):
    """Server endpoint and credential configuration."""

    hostname: str = Field(default="127.0.0.1", description="Server host")
    port: int = Field(default=3306, ge=1, le=65535, description="Server port")
    schema_name: str = Field(default="example", min_length=1, description="Application schema")
    username: str = Field(default="user", min_length=1, description="Application username")
    password: SecretStr = Field(default=SecretStr(""), description="Application password")
    root_password: SecretStr = Field(default=SecretStr(""), description="Root account password")


class DirectoryConfig(BaseModel):
    """Filesystem layout configuration."""

    installation_dir: Path = Field(
        default=Path("/var/lib/embedded-mariadb/base"), description="Binary installation dir"
    )
    data_dir: Path = Field(
        default=Path("/var/lib/embedded-mariadb/data"), description="Server data dir"
    )
    operating_system: Literal["linux", "osx", "windows"] | None = Field(
        default=None, description="Operating system family (detected when unset)"
    )


class TimeoutConfig(BaseModel):
    """Lifecycle timeout budgets, each configurable independently."""

    install_timeout_seconds: float = Field(default=30.0, gt=0, description="Init command budget")
    upgrade_timeout_seconds: float = Field(default=60.0, gt=0, description="Upgrade script budget")
    online_timeout_seconds: float = Field(default=60.0, gt=0, description="Online wait budget")
    shutdown_timeout_seconds: float = Field(default=30.0, gt=0, description="Graceful stop budget")
    poll_interval_seconds: float = Field(
        default=0.1, ge=0.1, le=0.25, description="Online ping interval"
    )


class ObservabilityConfig(BaseModel):
    """Observability configuration."""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Log level"
    )
    log_format: Literal["json", "console"] = Field(default="json", description="Log format")
    otel_endpoint: str | None = Field(
        default=None, description="OpenTelemetry collector endpoint"
    )
    otel_service_name: str = Field(
        default="embedded_mariadb", description="Service name for tracing"
    )
    metrics_enabled: bool = Field(default=False, description="Expose Prometheus metrics")
    metrics_port: int = Field(default=8003, ge=1, le=65535, description="Prometheus metrics port")


class Config(BaseSettings):
    """Main configuration for the embedded database."""

    model_config = SettingsConfigDict(
        env_prefix="EMBEDDED_MARIADB_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    directories: DirectoryConfig = Field(default_factory=DirectoryConfig)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    def ensure_directories(self) -> None:
        """Ensure the installation directory and the data directory's parent exist.

        The data directory itself is left alone: the Windows installer refuses
        to initialize into a directory that already exists.
        """
        self.directories.installation_dir.mkdir(parents=True, exist_ok=True)
        self.directories.data_dir.parent.mkdir(parents=True, exist_ok=True)

    def to_server_properties(self) -> ServerProperties:
        """Build immutable server properties from this configuration."""
        from embedded_mariadb.domain.entities.server_properties import ServerProperties
        from embedded_mariadb.domain.value_objects import Credentials, OperatingSystemType

        if self.directories.operating_system is None:
            operating_system = OperatingSystemType.detect()
        else:
            operating_system = OperatingSystemType(self.directories.operating_system)

        return ServerProperties(
            hostname=self.server.hostname,
            port=self.server.port,
            root_password=self.server.root_password.get_secret_value(),
            credentials=Credentials(
                username=self.server.username,
                password=self.server.password.get_secret_value(),
                schema=self.server.schema_name,
            ),
            schema=self.server.schema_name,
            installation_directory=self.directories.installation_dir,
            data_directory=self.directories.data_dir,
            operating_system=operating_system,
        )


@lru_cache
def get_config() -> Config:
    """Get the global configuration instance."""
    config = Config()
    config.ensure_directories()
    return config
