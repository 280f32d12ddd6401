"""
Settings
========

Loads task settings from JSON and applies environment overrides for
connection URIs and object store credentials.
"""

import copy
import json
import os
from pathlib import Path
from typing import Dict, Optional

from .errors import ConfigurationError

DEFAULT_CONFIG_PATH = str(Path(__file__).parent / "configs")
SETTINGS_FILENAME = "task_settings.json"

# environment variable -> (section, key)
ENV_OVERRIDES = {
    "POSTGRES_TO_REDSHIFT_SOURCE_URI": ("source", "uri"),
    "POSTGRES_TO_REDSHIFT_TARGET_URI": ("target", "uri"),
    "S3_DATABASE_EXPORT_ID": ("object_store", "access_key"),
    "S3_DATABASE_EXPORT_KEY": ("object_store", "secret_key"),
    "S3_DATABASE_EXPORT_BUCKET": ("object_store", "bucket"),
}

REQUIRED = [
    ("source", "uri"),
    ("target", "uri"),
    ("object_store", "bucket"),
    ("object_store", "access_key"),
    ("object_store", "secret_key"),
]


def load_task_settings(config_path: Optional[str] = None, environ: Optional[Dict] = None) -> Dict:
    """
    Load task_settings.json and apply environment overrides.
    
    Args:
        config_path: Directory holding task_settings.json, or the file itself
        environ: Environment mapping (defaults to os.environ)
        
    Returns:
        Settings dictionary
        
    Raises:
        ConfigurationError: if the file is unreadable or a required value is missing
    """
    path = Path(config_path or DEFAULT_CONFIG_PATH)
    if path.is_dir():
        path = path / SETTINGS_FILENAME
    
    try:
        with open(path, 'r') as f:
            settings = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"could not read settings from {path}: {e}") from e
    
    settings = apply_env_overrides(settings, os.environ if environ is None else environ)
    validate_settings(settings)
    return settings


def apply_env_overrides(settings: Dict, environ: Dict) -> Dict:
    """Return a copy of settings with environment values layered on top."""
    settings = copy.deepcopy(settings)
    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = environ.get(env_name)
        if value:
            settings.setdefault(section, {}).setdefault("connection", {})[key] = value
    return settings


def validate_settings(settings: Dict):
    missing = [
        f"{section}.connection.{key}"
        for section, key in REQUIRED
        if not settings.get(section, {}).get("connection", {}).get(key)
    ]
    if missing:
        raise ConfigurationError(f"missing required settings: {', '.join(missing)}")
    
    policy = settings.get("task_settings", {}).get("on_table_error", "abort")
    if policy not in ("abort", "continue"):
        raise ConfigurationError(f"on_table_error must be 'abort' or 'continue', got '{policy}'")
