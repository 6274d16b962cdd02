"""Bot configuration.

Values are resolved in this order (first wins):
- command line flags
- environment variables (NTFY_BOT_*)
- YAML config file (default /etc/ntfy/bot.yml)
- built-in defaults
"""
from __future__ import annotations

import os
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml  # type: ignore

from ..util.conv import coerce_bool, coerce_float


DEFAULT_BASE_URL = "https://ntfy.sh"
DEFAULT_CONFIG_FILE = "/etc/ntfy/bot.yml"
DEFAULT_RETRY_DELAY = 5.0
DEFAULT_CONNECT_TIMEOUT = 5.0
# ntfy sends a keepalive every 45s; anything longer means the stream is dead.
DEFAULT_READ_TIMEOUT = 60.0

TOKEN_PLACEHOLDER = "MUST_BE_SET"

ENV_TOKEN = "NTFY_BOT_TOKEN"
ENV_DEBUG = "NTFY_BOT_DEBUG"
ENV_CONFIG_FILE = "NTFY_BOT_CONFIG_FILE"
ENV_BASE_URL = "NTFY_BOT_BASE_URL"


class ConfigError(Exception):
    """Invalid or missing configuration."""


class Platform(str, Enum):
    DISCORD = "discord"
    SLACK = "slack"
    MEM = "mem"


@dataclass
class BotConfig:
    token: str
    base_url: str = DEFAULT_BASE_URL
    debug: bool = False
    retry_delay: float = DEFAULT_RETRY_DELAY
    connect_timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float = DEFAULT_READ_TIMEOUT

    @property
    def platform(self) -> Platform:
        """Target chat platform, derived from the token format."""
        if self.token.startswith("mem"):
            return Platform.MEM
        if self.token.startswith("xoxb-"):
            return Platform.SLACK
        return Platform.DISCORD


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read a YAML config file into a dict (empty file -> {})."""
    try:
        doc = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"config file {path} is not valid YAML: {e}") from e
    except OSError as e:
        raise ConfigError(f"cannot read config file {path}: {e}") from e
    if doc is None:
        return {}
    if not isinstance(doc, dict):
        raise ConfigError(f"config file {path} must contain a mapping")
    return doc


def _first(*values: Any) -> Any:
    for v in values:
        if v is None:
            continue
        if isinstance(v, str) and not v.strip():
            continue
        return v
    return None


def resolve_config(
    *,
    token: Optional[str] = None,
    debug: Optional[bool] = None,
    config_file: Optional[str] = None,
    base_url: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> BotConfig:
    """Build a BotConfig from CLI values, environment and config file."""
    env = os.environ if environ is None else environ

    explicit_path = _first(config_file, env.get(ENV_CONFIG_FILE))
    path = Path(str(explicit_path or DEFAULT_CONFIG_FILE)).expanduser()
    file_doc: Dict[str, Any] = {}
    if path.exists():
        file_doc = load_config_file(path)
    elif explicit_path:
        raise ConfigError(f"config file {path} does not exist")

    resolved_token = str(_first(token, env.get(ENV_TOKEN), file_doc.get("bot-token")) or "").strip()
    if not resolved_token or resolved_token == TOKEN_PLACEHOLDER:
        raise ConfigError(
            "missing bot token, pass --bot-token, set NTFY_BOT_TOKEN env variable or bot-token config option"
        )

    resolved_base = str(
        _first(base_url, env.get(ENV_BASE_URL), file_doc.get("base-url")) or DEFAULT_BASE_URL
    ).strip().rstrip("/")
    if not resolved_base.startswith(("http://", "https://")):
        raise ConfigError(f"base URL must start with http:// or https://, got {resolved_base}")

    if debug:
        resolved_debug = True
    else:
        resolved_debug = coerce_bool(_first(env.get(ENV_DEBUG), file_doc.get("debug")), default=False)

    return BotConfig(
        token=resolved_token,
        base_url=resolved_base,
        debug=resolved_debug,
        retry_delay=coerce_float(file_doc.get("retry-delay"), default=DEFAULT_RETRY_DELAY),
        connect_timeout=coerce_float(file_doc.get("connect-timeout"), default=DEFAULT_CONNECT_TIMEOUT),
        read_timeout=coerce_float(file_doc.get("read-timeout"), default=DEFAULT_READ_TIMEOUT),
    )
