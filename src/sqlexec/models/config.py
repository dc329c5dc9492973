"""Connection and pool configuration models."""

from collections.abc import Mapping

from pydantic import BaseModel, ConfigDict, Field


class DatabaseConfig(BaseModel):
    """Where and as whom to connect."""

    model_config = ConfigDict(frozen=True)

    host: str = Field(min_length=1)
    port: int = Field(ge=1, le=65535)
    database: str = Field(min_length=1)
    username: str
    password: str = Field(repr=False)
    properties: dict[str, str] = Field(default_factory=dict)
    scheme: str = "postgresql"

    def merged_properties(self, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        """Config properties updated with call-site overrides (overrides win)."""
        merged = dict(self.properties)
        if overrides:
            merged.update(overrides)
        return merged

    def connection_url(self, overrides: Mapping[str, str] | None = None) -> str:
        """Build ``scheme://host:port/database?k1=v1&k2=v2``.

        Credentials are passed to the driver separately and never embedded.
        """
        url = f"{self.scheme}://{self.host}:{self.port}/{self.database}"
        props = self.merged_properties(overrides)
        if props:
            url += "?" + "&".join(f"{key}={value}" for key, value in props.items())
        return url


class PoolConfig(BaseModel):
    """Sizing and timeouts for a pooled connection source.

    Timeouts are in milliseconds, matching the usual pool conventions.
    """

    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=1)
    max_size: int = Field(default=10, gt=0)
    min_idle: int = Field(default=2, ge=0)
    idle_timeout_ms: int = Field(default=300_000, ge=0)
    acquire_timeout_ms: int = Field(default=10_000, ge=0)
    properties: dict[str, str] = Field(default_factory=dict)

    @property
    def idle_timeout(self) -> float:
        """Idle timeout in seconds."""
        return self.idle_timeout_ms / 1000

    @property
    def acquire_timeout(self) -> float:
        """Acquisition timeout in seconds."""
        return self.acquire_timeout_ms / 1000

    @property
    def effective_min_idle(self) -> int:
        """Minimum idle connections, never above the pool maximum."""
        return min(self.min_idle, self.max_size)
