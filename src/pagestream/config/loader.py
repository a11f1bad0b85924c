from pathlib import Path
from typing import Any, Dict

import yaml

from ..errors import OwnerKeyError

DEFAULT_CONFIG_PATH = Path("pagestream.config.yaml")
DEFAULT_SQLITE_PATH = "pagestream.db"
DEFAULT_FETCH_TIMEOUT_SECONDS = 10.0

EXAMPLE_CONFIG = """\
owner:
  id: ""  # owner key all collections are scoped under
storage:
  sqlite_path: pagestream.db
query:
  page_size: 50
  fetch_timeout_seconds: 10
"""


def load_config(path: Path | None = None) -> Dict[str, Any]:
    """
    Load pagestream configuration from YAML file.

    Args:
        path: Optional path to the config file. Defaults to pagestream.config.yaml

    Returns:
        Dictionary with configuration (sections: owner, storage, query)

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If config structure is invalid
    """
    cfg_path = path or DEFAULT_CONFIG_PATH
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config file not found: {cfg_path}")
    with cfg_path.open("r", encoding="utf-8") as f:
        config = yaml.safe_load(f) or {}

    if not isinstance(config, dict):
        raise ValueError("Config must be a dictionary")
    for section in ("owner", "storage", "query"):
        if section in config and not isinstance(config[section] or {}, dict):
            raise ValueError(f"Config '{section}' must be a dictionary if provided")

    page_size = (config.get("query") or {}).get("page_size")
    if page_size is not None and (not isinstance(page_size, int) or isinstance(page_size, bool) or page_size <= 0):
        raise ValueError("Config 'query.page_size' must be a positive integer")

    return config


def resolve_owner_id(config: Dict[str, Any], override: str | None = None) -> str:
    """
    Resolve the owner key: explicit override first, then ``owner.id``.

    Raises:
        OwnerKeyError: If neither yields a non-empty key
    """
    owner_id = override if override else (config.get("owner") or {}).get("id")
    if owner_id is None or not str(owner_id).strip():
        raise OwnerKeyError("No owner key configured (set owner.id or pass --owner)")
    return str(owner_id).strip()


def get_sqlite_path(config: Dict[str, Any]) -> str:
    return (config.get("storage") or {}).get("sqlite_path", DEFAULT_SQLITE_PATH)


def get_fetch_timeout(config: Dict[str, Any]) -> float:
    value = (config.get("query") or {}).get("fetch_timeout_seconds", DEFAULT_FETCH_TIMEOUT_SECONDS)
    if not isinstance(value, (int, float)) or isinstance(value, bool) or value <= 0:
        raise ValueError("Config 'query.fetch_timeout_seconds' must be a positive number")
    return float(value)


def get_query_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Query option defaults from the config file (only page_size is configurable)."""
    query_cfg = config.get("query") or {}
    defaults: Dict[str, Any] = {}
    if query_cfg.get("page_size") is not None:
        defaults["page_size"] = query_cfg["page_size"]
    return defaults
