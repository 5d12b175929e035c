"""Local file locations for configuration and the cookie cache."""

import json
from pathlib import Path

from fedora_openid.models import DEFAULT_TIMEOUT, Config


COOKIE_CACHE_FILENAME = "fedora-openid-cookie-jar.json"

DEFAULT_CONFIG = Config(
    username=None,
    kind="default",
    timeout=DEFAULT_TIMEOUT,
    cache_cookies=True,
)


class Storage:
    """Manages local file storage for configuration and cached cookies."""

    def __init__(self, base_path: Path | None = None) -> None:
        self.base_path = base_path or Path.home() / ".fedora"
        self.config_path = self.base_path / "config.json"
        self.cookie_cache_path = self.base_path / COOKIE_CACHE_FILENAME

    def _ensure_dirs(self) -> None:
        """Create the base directory if it doesn't exist."""
        self.base_path.mkdir(parents=True, exist_ok=True)

    def clear_cookie_cache(self) -> bool:
        """Delete the cookie cache. Returns False if there was nothing to delete."""
        try:
            self.cookie_cache_path.unlink()
        except FileNotFoundError:
            return False
        return True

    def get_config(self) -> Config:
        """Load config from config.json."""
        if not self.config_path.exists():
            return DEFAULT_CONFIG

        data = json.loads(self.config_path.read_text(encoding="utf-8"))
        return Config(
            username=data.get("username", DEFAULT_CONFIG.username),
            kind=data.get("kind", DEFAULT_CONFIG.kind),
            timeout=float(data.get("timeout", DEFAULT_CONFIG.timeout)),
            cache_cookies=bool(data.get("cache_cookies", DEFAULT_CONFIG.cache_cookies)),
        )

    def save_config(self, config: Config) -> None:
        """Save config to config.json."""
        self._ensure_dirs()
        data = {
            "username": config.username,
            "kind": config.kind,
            "timeout": config.timeout,
            "cache_cookies": config.cache_cookies,
        }
        self.config_path.write_text(json.dumps(data, indent=2), encoding="utf-8")
