"""Settings management for the inscription server and uploader"""

import json
import logging
import os
import platform
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

logger = logging.getLogger("X1Punks")

APP_DIR_NAME = "x1punks"
ENV_PREFIX = "X1PUNKS_"
CONFIG_ENV_VAR = "X1PUNKS_CONFIG"

# Keys resolved against project_root when given as relative paths
PATH_KEYS = (
    "generated_dir",
    "traits_csv",
    "mint_state_file",
    "inscriptions_file",
    "manifest_file",
    "wallet_file",
    "arweave_wallet_file",
)

HARDCODED_DEFAULTS: Dict[str, Any] = {
    "total_supply": 10000,
    "program_name": "X1 Punks",
    "collection_name": "X1 Punk",
    "collection_symbol": "X1PUNK",
    "rpc_url": "https://rpc.testnet.x1.xyz",
    "commitment": "confirmed",
    "use_memo": True,
    "max_quantity": 10,
    "host": "127.0.0.1",
    "port": 3000,
    "generated_dir": "generated",
    "traits_csv": "punks.whitelabel/punks.csv",
    "mint_state_file": "mint-state.json",
    "inscriptions_file": "inscriptions-index.json",
    "manifest_file": "arweave-manifest.json",
    "wallet_file": "wallet.json",
    "arweave_wallet_file": "arweave-wallet.json",
    "arweave_gateway": "https://arweave.net",
    "upload_batch_size": 5,
    "upload_delay_seconds": 2.0,
    "fallback_image_url": "https://raw.githubusercontent.com/Execute007/x1punks-images/master/generated/punk_{punk_id}.png",
    "request_timeout": 60,
}


def get_config_dir() -> Path:
    """Get platform-specific config directory.

    Returns:
        Windows: %APPDATA%/x1punks
        Mac: ~/Library/Application Support/x1punks
        Linux: ~/.config/x1punks
    """
    system = platform.system()
    if system == "Windows":
        appdata = os.getenv("APPDATA")
        if appdata:
            return Path(appdata) / APP_DIR_NAME
        return Path.home() / "AppData" / "Roaming" / APP_DIR_NAME
    elif system == "Darwin":
        return Path.home() / "Library" / "Application Support" / APP_DIR_NAME
    else:
        return Path.home() / ".config" / APP_DIR_NAME


def get_config_file(env: Optional[Mapping[str, str]] = None) -> Path:
    """Config file path; ``X1PUNKS_CONFIG`` overrides the platform location"""
    env = os.environ if env is None else env
    override = env.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return get_config_dir() / "config.json"


def load_config_file(config_file: Path) -> Dict[str, Any]:
    """Load the persistent config file; a missing or broken file yields {}"""
    if not config_file.exists():
        return {}
    try:
        with open(config_file, "r", encoding="utf-8") as f:
            config = json.load(f)
            return config if isinstance(config, dict) else {}
    except (json.JSONDecodeError, IOError) as e:
        logger.warning(f"Failed to load config file {config_file}: {e}")
        return {}


def _coerce(key: str, raw: Any) -> Any:
    """Coerce a raw (usually string) value to the type of its hardcoded default"""
    default = HARDCODED_DEFAULTS.get(key)
    if raw is None or default is None:
        return raw
    if isinstance(default, bool):
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() in {"1", "true", "yes", "y", "on"}
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, float):
        return float(raw)
    return str(raw)


def get_env_overrides(env: Optional[Mapping[str, str]] = None) -> Dict[str, Any]:
    """Collect ``X1PUNKS_<KEY>`` environment overrides"""
    env = os.environ if env is None else env
    overrides = {}
    for key in HARDCODED_DEFAULTS:
        value = env.get(f"{ENV_PREFIX}{key.upper()}")
        if value is not None and value != "":
            overrides[key] = value
    return overrides


@dataclass
class Settings:
    """Effective settings after merging every source"""
    project_root: Path
    total_supply: int
    program_name: str
    collection_name: str
    collection_symbol: str
    rpc_url: str
    commitment: str
    use_memo: bool
    max_quantity: int
    host: str
    port: int
    generated_dir: Path
    traits_csv: Path
    mint_state_file: Path
    inscriptions_file: Path
    manifest_file: Path
    wallet_file: Path
    arweave_wallet_file: Path
    arweave_gateway: str
    upload_batch_size: int
    upload_delay_seconds: float
    fallback_image_url: str
    request_timeout: int

    def fallback_image_for(self, punk_id: int) -> str:
        return self.fallback_image_url.format(punk_id=punk_id)

    def to_dict(self) -> Dict[str, Any]:
        result = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = str(value) if isinstance(value, Path) else value
        return result


def load_settings(
    project_root: Optional[Union[str, Path]] = None,
    config_file: Optional[Union[str, Path]] = None,
    env: Optional[Mapping[str, str]] = None,
    **overrides: Any,
) -> Settings:
    """Build Settings with precedence: overrides > config file > env > hardcoded.

    Args:
        project_root: Directory relative paths are resolved against (default: cwd)
        config_file: Explicit config file (default: ``X1PUNKS_CONFIG`` or platform dir)
        env: Environment mapping (default: ``os.environ``)
        **overrides: Explicit per-call values (highest priority)
    """
    env = os.environ if env is None else env
    root = Path(project_root).resolve() if project_root else Path.cwd()

    config_path = Path(config_file) if config_file else get_config_file(env)
    file_values = load_config_file(config_path)
    unknown = set(file_values) - set(HARDCODED_DEFAULTS)
    if unknown:
        logger.warning(f"Ignoring unknown config keys in {config_path}: {sorted(unknown)}")

    merged: Dict[str, Any] = dict(HARDCODED_DEFAULTS)
    merged.update(get_env_overrides(env))
    merged.update({k: v for k, v in file_values.items() if k in HARDCODED_DEFAULTS})
    merged.update({k: v for k, v in overrides.items() if v is not None})

    values = {key: _coerce(key, value) for key, value in merged.items() if key in HARDCODED_DEFAULTS}
    for key in PATH_KEYS:
        path = Path(values[key]).expanduser()
        values[key] = path if path.is_absolute() else root / path

    if values["total_supply"] < 1:
        raise ValueError(f"total_supply must be positive, got {values['total_supply']}")
    if values["upload_batch_size"] < 1:
        raise ValueError(f"upload_batch_size must be positive, got {values['upload_batch_size']}")

    return Settings(project_root=root, **values)
