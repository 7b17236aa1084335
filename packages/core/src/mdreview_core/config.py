import os
import re
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "store": "file",  # file | sqlite | memory | none
    "store_path": None,  # None = backend default (.mdreview/ or .mdreview.db)
    "storage_key": "md-review-app",
    "quota_bytes": None,  # None = unlimited; only honoured by file and memory stores
    "max_file_size": 10 * 1024 * 1024,  # larger files load with a warning
    "extensions": [".md", ".markdown"],
}

# Environment variables that override the config file, mapped to config keys.
_ENV_OVERRIDES = {
    "MDREVIEW_STORE": "store",
    "MDREVIEW_STORE_PATH": "store_path",
}

# Keys double as file names for the file store.
_STORAGE_KEY_PATTERN = re.compile(r"[A-Za-z0-9._-]+")


def load_config(config_path: str = ".mdreview.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .mdreview.yml in the current directory
      3. MDREVIEW_* environment variables
      4. CLI argument overrides
    """
    config = {**DEFAULT_CONFIG, "extensions": list(DEFAULT_CONFIG["extensions"])}

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        if not isinstance(file_config, dict):
            raise ValueError(f"{config_path} must contain a YAML mapping.")
        config.update(file_config)

    for env_var, key in _ENV_OVERRIDES.items():
        value = os.environ.get(env_var)
        if value:
            config[key] = value

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    storage_key = config.get("storage_key")
    if not isinstance(storage_key, str) or not _STORAGE_KEY_PATTERN.fullmatch(storage_key):
        raise ValueError(
            f"storage_key must contain only letters, digits, '.', '_' or '-', got {storage_key!r}."
        )

    return config
