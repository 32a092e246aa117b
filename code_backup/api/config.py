"""Configuration for FastAPI application."""

import dataclasses
import json
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from code_backup.config import BackupConfig


class Settings(BaseSettings):
    # API Configuration
    api_prefix: str = "/api/v1"
    api_title: str = "code-backup API"
    api_version: str = "1.0.0"
    allowed_origins: Union[str, List[str]] = ["*"]

    @field_validator("allowed_origins", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        """Parse allowed_origins from string or list."""
        if isinstance(v, str):
            if v.startswith("["):
                try:
                    return json.loads(v)
                except json.JSONDecodeError:
                    return [v]
            return [v]
        return v

    # Store overrides, unset values fall back to BackupConfig.from_env()
    backup_dir: Optional[str] = None
    emergency_backup_dir: Optional[str] = None
    max_versions: Optional[int] = Field(default=None, description="Maximum versions kept per original path")

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"

    def backup_config(self) -> BackupConfig:
        """Engine config from the environment with this app's overrides applied."""
        config = BackupConfig.from_env()
        overrides = {
            name: getattr(self, name)
            for name in ("backup_dir", "emergency_backup_dir", "max_versions")
            if getattr(self, name) is not None
        }
        return dataclasses.replace(config, **overrides) if overrides else config


settings = Settings()
