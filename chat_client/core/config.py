"""
Configuration loader and settings for the realtime session client.
Merges YAML configuration files with environment variables.
"""

import os
import yaml
from pathlib import Path
from typing import Dict, Any, Optional
from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict
import logging

logger = logging.getLogger(__name__)


class ClientSettings(BaseSettings):
    """
    Client settings.
    Environment variables (prefix CHAT_CLIENT_) take priority over values
    passed in from the YAML configuration.
    """

    # Endpoints
    api_base_url: str = "http://localhost:8000"
    ws_url: str = "ws://localhost:8000/ws/chat"

    # Realtime channel
    reconnect_delay_ms: int = Field(3000, ge=0)
    max_reconnect_attempts: Optional[int] = Field(None, ge=1)
    connect_timeout: float = 10.0
    ping_interval: Optional[float] = 30.0

    # Request/response calls
    request_timeout: float = 30.0
    request_retry_attempts: int = Field(3, ge=1)
    request_retry_backoff: float = 1.0

    # Feature flags
    enable_health_check: bool = True
    enable_session_management: bool = True
    enable_message_history: bool = True

    # Input limits
    max_message_length: int = Field(1000, ge=1)

    environment: str = "development"
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="CHAT_CLIENT_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings
    ):
        # Values loaded from YAML arrive as init kwargs; CHAT_CLIENT_* wins over them.
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @property
    def reconnect_delay(self) -> float:
        """Reconnect delay in seconds."""
        return self.reconnect_delay_ms / 1000.0


class ConfigLoader:
    """
    Configuration loader.
    Loads YAML configurations and merges them with environment variables.
    """

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir or os.getenv("CHAT_CLIENT_CONFIG_DIR", "config"))
        self.config_cache: Dict[str, Any] = {}
        self.settings = ClientSettings()

        self.reload_config()

    def load_config(self, path: str) -> Dict[str, Any]:
        """
        Load YAML configuration file.

        Args:
            path: Path to the YAML file, relative to the config directory

        Returns:
            Dictionary containing configuration data (empty if the file is missing)
        """
        file_path = self.config_dir / path if not Path(path).is_absolute() else Path(path)

        try:
            with open(file_path, 'r') as file:
                config = yaml.safe_load(file) or {}
        except FileNotFoundError:
            logger.debug(f"Configuration file not found: {file_path}")
            return {}
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML file {file_path}: {e}")
            return {}

        config = self._replace_env_vars(config)
        logger.info(f"Loaded configuration from {file_path}")
        return config

    def _replace_env_vars(self, config: Any) -> Any:
        """
        Recursively replace environment variables in configuration.
        Supports ${VAR_NAME} and ${VAR_NAME:-default} syntax.
        """
        if isinstance(config, dict):
            return {k: self._replace_env_vars(v) for k, v in config.items()}
        elif isinstance(config, list):
            return [self._replace_env_vars(item) for item in config]
        elif isinstance(config, str) and config.startswith("${") and config.endswith("}"):
            var_expr = config[2:-1]
            if ":-" in var_expr:
                var_name, default = var_expr.split(":-", 1)
                return os.getenv(var_name, default)
            else:
                return os.getenv(var_expr, config)
        return config

    def merge_configs(self, *configs: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge multiple configuration dictionaries.
        Later configs override earlier ones.
        """
        result = {}

        for config in configs:
            self._deep_merge(result, config)

        return result

    def _deep_merge(self, target: Dict, source: Dict) -> Dict:
        """Deep merge source into target dictionary."""
        for key, value in source.items():
            if key in target and isinstance(target[key], dict) and isinstance(value, dict):
                self._deep_merge(target[key], value)
            else:
                target[key] = value
        return target

    def get_environment_config(self) -> Dict[str, Any]:
        """
        Load base configuration merged with the environment-specific file.

        Returns:
            Merged configuration
        """
        env = self.settings.environment

        base_config = self.load_config("config.yaml")
        env_config = self.load_config(f"config.{env}.yaml")

        return self.merge_configs(base_config, env_config)

    def reload_config(self):
        """Reload all configurations and rebuild the client settings."""
        self.config_cache = self.get_environment_config()

        client_section = self.config_cache.get("client") or {}
        try:
            self.settings = ClientSettings(**client_section)
        except ValidationError as e:
            logger.error(f"Configuration validation failed, using environment defaults: {e}")
            self.settings = ClientSettings()

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value by dot-notation key.
        Example: get("client.ws_url")
        """
        keys = key.split(".")
        value = self.config_cache

        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
                if value is None:
                    return default
            else:
                return default

        return value


# Global config instance
config_loader = ConfigLoader()

# Convenience functions
def get_config(key: str, default: Any = None) -> Any:
    """Get configuration value."""
    return config_loader.get(key, default)

def get_settings() -> ClientSettings:
    """Get client settings."""
    return config_loader.settings
