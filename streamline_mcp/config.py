"""
Configuration loading.

Store credentials come from the first config file found (see
``config_search_paths``) with ``SUPABASE_*`` environment variables taking
precedence; the environment alone is enough when all three are set.
"""
import json
import logging
import os
from pathlib import Path
from typing import Optional, List

from pydantic import BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from streamline_mcp.exceptions import ConfigError

logger = logging.getLogger(__name__)

ENV_CONFIG_PATH = "STREAMLINE_CONFIG_PATH"
ENV_URL = "SUPABASE_URL"
ENV_API_KEY = "SUPABASE_API_KEY"
ENV_USER_ID = "SUPABASE_USER_ID"


class StoreConfig(BaseModel):
    """Connection settings for the hosted record store."""
    project_url: str = Field(..., alias="projectURL", min_length=1)
    api_key: str = Field(..., alias="apiKey", min_length=1)
    user_id: str = Field(..., alias="userID", min_length=1)

    model_config = {"populate_by_name": True}

    @field_validator("project_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def config_search_paths() -> List[Path]:
    """Candidate config files, in priority order."""
    paths = []
    explicit = os.getenv(ENV_CONFIG_PATH)
    if explicit:
        paths.append(Path(explicit).expanduser())
    config_dir = Path.home() / ".config" / "streamline-mcp"
    paths.extend([
        Path.cwd() / "config.json",
        config_dir / "config.json",
        config_dir / "supabase.json",
    ])
    return paths


def _build(project_url: Optional[str], api_key: Optional[str], user_id: Optional[str], source: str) -> StoreConfig:
    try:
        return StoreConfig(project_url=project_url, api_key=api_key, user_id=user_id)
    except PydanticValidationError as e:
        raise ConfigError(f"Incomplete store configuration in {source}: {e}", original_error=e) from e


def load_config() -> StoreConfig:
    """
    Load store configuration.

    Returns:
        StoreConfig with environment overrides applied

    Raises:
        ConfigError: If no usable configuration is found
    """
    for path in config_search_paths():
        if not path.is_file():
            continue
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Could not read config file {path}: {e}", original_error=e) from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config file {path} must contain a JSON object")

        logger.info(f"Loaded store configuration from {path}")
        return _build(
            os.getenv(ENV_URL) or data.get("projectURL"),
            os.getenv(ENV_API_KEY) or data.get("apiKey"),
            os.getenv(ENV_USER_ID) or data.get("userID"),
            str(path)
        )

    if os.getenv(ENV_URL) and os.getenv(ENV_API_KEY) and os.getenv(ENV_USER_ID):
        return _build(os.getenv(ENV_URL), os.getenv(ENV_API_KEY), os.getenv(ENV_USER_ID), "environment")

    raise ConfigError(
        "Config not found. Create ~/.config/streamline-mcp/config.json "
        f"or set {ENV_URL}, {ENV_API_KEY}, {ENV_USER_ID}"
    )
