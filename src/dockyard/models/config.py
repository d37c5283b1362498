"""Configuration models."""

from typing import Optional
from pydantic import BaseModel, Field, validator


# Create, update and delete each default to 20 minutes.
DEFAULT_OPERATION_TIMEOUT = 20 * 60


class AgentConfig(BaseModel):
    """Agent configuration."""
    reconciliation_interval: int = Field(default=60, ge=5)
    log_level: str = Field(default="INFO")
    config_dir: str = Field(default="./configs")
    state_dir: str = Field(default="./state")

    @validator("log_level")
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()


class EngineConfig(BaseModel):
    """Container engine connection settings."""
    base_url: Optional[str] = Field(None, description="Daemon URL; unset reads DOCKER_HOST")
    docker_binary: str = Field(default="docker", description="CLI used for buildx builds")
    api_timeout: int = Field(default=120, ge=1, description="Per-request API timeout in seconds")


class TimeoutsConfig(BaseModel):
    """Bounded duration of each reconciliation step, in seconds."""
    create: float = Field(default=DEFAULT_OPERATION_TIMEOUT, gt=0)
    update: float = Field(default=DEFAULT_OPERATION_TIMEOUT, gt=0)
    delete: float = Field(default=DEFAULT_OPERATION_TIMEOUT, gt=0)


class DockyardConfig(BaseModel):
    """Main configuration model."""
    agent: AgentConfig = Field(default_factory=AgentConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)

    class Config:
        """Pydantic config."""
        extra = "ignore"
