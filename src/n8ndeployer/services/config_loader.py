"""Configuration loader for n8n-deployer."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from n8ndeployer.errors import ConfigurationError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults.

    The basic auth password is deliberately not a supported key: it is read
    from the environment or prompted for, never stored next to other settings.
    """

    SUPPORTED_KEYS = {
        "domain",
        "email",
        "auth_user",
        "ip_allowlist",
        "timezone",
        "n8n_image",
        "proxy_image",
        "base_dir",
        "systemd_dir",
        "skip_upgrade",
        "verbose",
        "log_file",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise ConfigurationError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise ConfigurationError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise ConfigurationError("Config file must contain a YAML mapping at the root.")

        if "auth_password" in parsed:
            raise ConfigurationError(
                "Config file must not contain 'auth_password'. "
                "Set the N8N_AUTH_PASSWORD environment variable or enter it at the prompt."
            )

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise ConfigurationError(f"Unknown configuration keys: {unknown_list}")

        return parsed
