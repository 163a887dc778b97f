"""
Pydantic model for run-wide settings.
Loaded from the reserved ``[lifter]`` section of the INI file, with CLI overrides.
"""

from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field, field_validator


class RateLimitPolicy(str, Enum):
    """What the run does with remaining API items after a rate-limit response."""

    SKIP = "skip"
    CONTINUE = "continue"


class RunSettings(BaseModel):
    """A validated settings model for one run."""

    output_dir: Path = Path(".")
    max_workers: int = 4
    timeout: float = 60.0
    retries: int = 3
    token_env: str = "GITHUB_TOKEN"
    on_rate_limit: RateLimitPolicy = RateLimitPolicy.SKIP
    history: bool = True

    # Internal fields not loaded from INI file
    config_path: str = Field(..., repr=False)

    class Config:
        """Pydantic model configuration."""

        validate_assignment = True
        str_strip_whitespace = True

    @field_validator("output_dir")
    @classmethod
    def expand_output_dir(cls, v: Path) -> Path:
        """Expands '~' so the directory can be written to directly."""
        return v.expanduser()

    @field_validator("max_workers")
    @classmethod
    def validate_workers(cls, v: int) -> int:
        """Ensures a reasonable number of workers."""
        if v < 1 or v > 32:
            raise ValueError("Max workers must be between 1 and 32.")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be a positive number of seconds.")
        return v

    @field_validator("retries")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        if v < 1 or v > 10:
            raise ValueError("Retries must be between 1 and 10.")
        return v

    @field_validator("token_env")
    @classmethod
    def validate_token_env(cls, v: str) -> str:
        if not v:
            raise ValueError("token_env cannot be empty.")
        return v

    @classmethod
    def get_ini_keys(cls) -> set[str]:
        """Returns a set of all keys that are expected in the settings section."""
        internal_fields = {"config_path"}
        return {key for key in cls.model_fields if key not in internal_fields}
