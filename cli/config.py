import os
import json
from pathlib import Path
from typing import Optional, Dict, Any
import datetime

CONFIG_DIR = Path.home() / ".silent-auction"
CONFIG_FILE = CONFIG_DIR / "config.json"
TOKEN_FILE = CONFIG_DIR / "token.txt"
SERVER_URL = os.getenv("AUCTION_SERVER_URL", "http://localhost:8000")

DEFAULT_SETTINGS = {
    "debounce_ms": 300,
    "blur_delay_ms": 300,
    "poll_seconds": 5,
    "error_dismiss_seconds": 5,
    "recent_limit": 5,
}


def ensure_config_dir():
    """Ensure config directory exists."""
    CONFIG_DIR.mkdir(exist_ok=True)


def _read_config() -> Dict[str, Any]:
    ensure_config_dir()
    if CONFIG_FILE.exists():
        return json.loads(CONFIG_FILE.read_text())
    return {}


def get_token() -> Optional[str]:
    """Get stored API token."""
    ensure_config_dir()
    if TOKEN_FILE.exists():
        return TOKEN_FILE.read_text().strip()
    return None


def save_token(token: str):
    """Save API token."""
    ensure_config_dir()
    TOKEN_FILE.write_text(token)


def get_settings() -> Dict[str, Any]:
    """Bid entry timings and limits, config.json values over the defaults."""
    settings = dict(DEFAULT_SETTINGS)
    config = _read_config()
    for key in DEFAULT_SETTINGS:
        if key in config:
            settings[key] = config[key]
    return settings


def get_timezone() -> str:
    """Get user timezone from config, or use system local timezone."""
    configured_tz = _read_config().get("timezone")
    if configured_tz:
        return configured_tz

    # /etc/localtime is a symlink into the zoneinfo tree on Linux and macOS
    localtime_path = Path("/etc/localtime")
    if localtime_path.exists():
        parts = localtime_path.resolve().parts
        for zoneinfo_name in ["zoneinfo", "zoneinfo.default"]:
            if zoneinfo_name in parts:
                tz_name = "/".join(parts[parts.index(zoneinfo_name) + 1:])
                if tz_name:
                    return tz_name

    local_tz = datetime.datetime.now().astimezone().tzinfo
    key = getattr(local_tz, "key", None)
    if key:
        return key

    return "UTC"
