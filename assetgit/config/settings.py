"""Configuration settings models using Pydantic."""

from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GitConfig(BaseModel):
    """Configuration for the git executable."""

    executable: str = "git"
    timeout: float = Field(default=120.0, gt=0)

    @field_validator("executable")
    @classmethod
    def validate_executable(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("executable cannot be empty")
        return v.strip()


class AssetsConfig(BaseModel):
    """Configuration for asset paths and their sidecar files."""

    root: str = "Assets"
    sidecar_suffix: str = ".meta"

    @field_validator("sidecar_suffix")
    @classmethod
    def validate_sidecar_suffix(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2:
            raise ValueError("sidecar_suffix must be an extension such as '.meta'")
        return v


class LogConfig(BaseModel):
    """Configuration for history listings."""

    default_count: int = Field(default=10, ge=1, le=1000)


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="ASSETGIT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    git: GitConfig = Field(default_factory=GitConfig)
    assets: AssetsConfig = Field(default_factory=AssetsConfig)
    log: LogConfig = Field(default_factory=LogConfig)
    diff_tool: Optional[str] = None
    log_file: Optional[str] = None

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        # YAML values arrive as init kwargs; environment variables win over them.
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    @field_validator("diff_tool")
    @classmethod
    def validate_diff_tool(cls, v: Optional[str]) -> Optional[str]:
        """Require both placeholders so the tool sees both sides."""
        if v is None or not v.strip():
            return None
        if "{left}" not in v or "{right}" not in v:
            raise ValueError("diff_tool must contain {left} and {right}")
        return v.strip()

    @property
    def resolved_log_file(self) -> Optional[Path]:
        """Get the log file path with ~ expanded."""
        if not self.log_file:
            return None
        return Path(self.log_file).expanduser()
