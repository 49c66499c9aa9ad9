# =============================================================================
# winshirt_core/config.py
# Process-wide settings for the WinShirt data layer
# =============================================================================
"""
Settings are resolved once at process start:

1. explicit keyword arguments
2. environment variables (a local .env file is loaded first)
3. .streamlit/secrets.toml

Expected secrets.toml format:
    [supabase]
    url = "https://your-project.supabase.co"
    key = "your-anon-key"
    service_key = "your-service-role-key"   # optional, admin tools only
"""

from __future__ import annotations
import logging
import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Optional

import toml
from dotenv import load_dotenv

from winshirt_core.errors import ConfigurationError
from winshirt_core.logging import get_logger

logger = get_logger(__name__)

PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_SECRETS_PATH = PROJECT_ROOT / ".streamlit" / "secrets.toml"
DEFAULT_LOCAL_DB = PROJECT_ROOT / "local_data" / "winshirt_mirror.db"
DEFAULT_BACKUP_DIR = PROJECT_ROOT / "backups"

ENV_VARS = {
    "supabase_url": "SUPABASE_URL",
    "supabase_key": "SUPABASE_KEY",
    "supabase_service_key": "SUPABASE_SERVICE_ROLE_KEY",
    "local_db_path": "WINSHIRT_LOCAL_DB",
    "backup_dir": "WINSHIRT_BACKUP_DIR",
    "log_level": "WINSHIRT_LOG_LEVEL",
}


@dataclass(frozen=True)
class Settings:
    """Single configuration for the remote endpoint and local storage."""
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    supabase_service_key: Optional[str] = None
    local_db_path: Path = DEFAULT_LOCAL_DB
    backup_dir: Path = DEFAULT_BACKUP_DIR
    probe_table: str = "lotteries"
    log_level: str = "INFO"

    @property
    def remote_configured(self) -> bool:
        """True when both endpoint and key are known."""
        return bool(self.supabase_url and self.supabase_key)

    @property
    def logging_level(self) -> int:
        level = logging.getLevelName(self.log_level.upper())
        if not isinstance(level, int):
            raise ConfigurationError(
                f"Unknown log level: {self.log_level}",
                config_key="log_level",
            )
        return level

    def with_overrides(self, **overrides: Any) -> Settings:
        return replace(self, **overrides)

    @classmethod
    def load(
        cls,
        secrets_path: Optional[Path] = None,
        env_file: Optional[Path] = None,
        **overrides: Any,
    ) -> Settings:
        """
        Build settings from arguments, environment and secrets file.

        Args:
            secrets_path: Path to secrets.toml (default: .streamlit/secrets.toml)
            env_file: Optional .env file to load before reading the environment
            **overrides: Explicit values, highest priority

        Returns:
            Settings instance
        """
        load_dotenv(env_file)

        values: Dict[str, Any] = {}
        values.update(_read_secrets(secrets_path or DEFAULT_SECRETS_PATH))

        for attr, env_name in ENV_VARS.items():
            env_value = os.getenv(env_name)
            if env_value:
                values[attr] = env_value

        values.update({k: v for k, v in overrides.items() if v is not None})

        for path_attr in ("local_db_path", "backup_dir"):
            if path_attr in values:
                values[path_attr] = Path(values[path_attr])

        settings = cls(**values)
        if not settings.remote_configured:
            logger.warning("Supabase credentials not configured, running on the local mirror only")
        return settings


def _read_secrets(secrets_path: Path) -> Dict[str, Any]:
    """Read the [supabase] section of a secrets.toml file."""
    if not secrets_path.exists():
        return {}

    try:
        secrets = toml.load(secrets_path)
    except (toml.TomlDecodeError, OSError) as e:
        raise ConfigurationError(
            f"Could not read secrets file {secrets_path}: {e}",
            config_key="supabase",
        ) from e

    section = secrets.get("supabase", {})
    mapping = {
        "url": "supabase_url",
        "key": "supabase_key",
        "service_key": "supabase_service_key",
    }
    return {attr: section[key] for key, attr in mapping.items() if section.get(key)}
