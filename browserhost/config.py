"""
Daemon configuration loaded from BROWSERHOST_* environment variables.
"""
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

from .browser.manager import DEFAULT_CLOSE_TIMEOUT
from .browser.models import BrowserType, EngineConfig

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 3000
DEFAULT_SHUTDOWN_GRACE = 1.0

_TRUE = ("1", "true", "yes", "on")
_FALSE = ("0", "false", "no", "off")


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise ValueError(f"{key} must be a boolean, got {raw!r}")


def _env_int(env: Mapping[str, str], key: str, default: int, minimum: int = 0) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{key} must be an integer, got {raw!r}")
    if value < minimum:
        raise ValueError(f"{key} must be >= {minimum}, got {value}")
    return value


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        value = float(raw)
    except ValueError:
        raise ValueError(f"{key} must be a number, got {raw!r}")
    if value < 0:
        raise ValueError(f"{key} must not be negative, got {value}")
    return value


@dataclass
class DaemonConfig:
    """Configuration for the browserhost daemon."""
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    shutdown_grace: float = DEFAULT_SHUTDOWN_GRACE
    close_timeout: float = DEFAULT_CLOSE_TIMEOUT
    engine: EngineConfig = field(default_factory=EngineConfig)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "DaemonConfig":
        env = os.environ if env is None else env

        browser = env.get("BROWSERHOST_BROWSER") or BrowserType.CHROMIUM.value
        try:
            browser_type = BrowserType(browser.lower())
        except ValueError:
            raise ValueError(f"BROWSERHOST_BROWSER must be one of chromium, firefox, webkit, got {browser!r}")

        engine = EngineConfig(
            headless=_env_bool(env, "BROWSERHOST_HEADLESS", True),
            browser_type=browser_type,
            viewport_width=_env_int(env, "BROWSERHOST_VIEWPORT_WIDTH", 1280, minimum=1),
            viewport_height=_env_int(env, "BROWSERHOST_VIEWPORT_HEIGHT", 720, minimum=1),
            user_agent=env.get("BROWSERHOST_USER_AGENT", ""),
            ignore_https_errors=_env_bool(env, "BROWSERHOST_IGNORE_HTTPS_ERRORS", False),
            timeout_ms=_env_int(env, "BROWSERHOST_TIMEOUT_MS", 30000),
        )

        return cls(
            host=env.get("BROWSERHOST_HOST") or DEFAULT_HOST,
            port=_env_int(env, "BROWSERHOST_PORT", DEFAULT_PORT, minimum=1),
            shutdown_grace=_env_float(env, "BROWSERHOST_SHUTDOWN_GRACE", DEFAULT_SHUTDOWN_GRACE),
            close_timeout=_env_float(env, "BROWSERHOST_CLOSE_TIMEOUT", DEFAULT_CLOSE_TIMEOUT),
            engine=engine,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "host": self.host,
            "port": self.port,
            "shutdown_grace": self.shutdown_grace,
            "close_timeout": self.close_timeout,
            "engine": self.engine.to_dict(),
        }
