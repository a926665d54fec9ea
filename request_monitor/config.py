import copy
import logging
import os

import yaml

logger = logging.getLogger(__name__)


class Config:
    """Configuration manager that loads from YAML and merges with defaults."""

    DEFAULTS = {
        "server": {
            "host": "0.0.0.0",
            "port": 5000,
            "debug": False,
        },
        "storage": {
            "url": "sqlite:///request_monitor.db",
            "table_name": "request_logs",
            "echo": False,
            "drop_on_disable": False,
        },
        "capture": {
            "enabled": True,
            "excluded_prefixes": ["/admin", "/api/", "/health"],
            "auth_paths": ["/login", "/logout", "/register", "/wp-login.php", "/wp-register.php"],
            "session_cookies": ["session"],
        },
        "admin": {
            "token": None,
        },
        "schema": {
            "path": None,
        },
        "logging": {
            "level": "INFO",
        },
    }

    def __init__(self, config_path=None):
        self._config = copy.deepcopy(self.DEFAULTS)

        if config_path is not None:
            try:
                with open(config_path, "r") as f:
                    user_config = yaml.safe_load(f)

                if user_config and isinstance(user_config, dict):
                    self._config = self._deep_merge(self._config, user_config)
            except FileNotFoundError:
                logger.info("Config file %s not found, using defaults", config_path)
            except yaml.YAMLError:
                logger.warning("Invalid YAML in %s, using defaults", config_path)

        database_url = os.environ.get("DATABASE_URL")
        if database_url:
            self._config["storage"]["url"] = database_url

    @classmethod
    def from_env(cls):
        """Load the file named by CONFIG_PATH, defaulting to ./config.yaml."""
        return cls(os.environ.get("CONFIG_PATH", "config.yaml"))

    @staticmethod
    def _deep_merge(base, override):
        """Recursively merge override dict into base dict."""
        result = copy.deepcopy(base)
        for key, value in override.items():
            if (
                key in result
                and isinstance(result[key], dict)
                and isinstance(value, dict)
            ):
                result[key] = Config._deep_merge(result[key], value)
            else:
                result[key] = copy.deepcopy(value)
        return result

    def get(self, key, default=None):
        return self._config.get(key, default)

    def __getitem__(self, key):
        return self._config[key]

    def __contains__(self, key):
        return key in self._config
