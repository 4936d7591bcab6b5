"""Server configuration: defaults, environment overrides, directories."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path

DEFAULT_PORT = 9222
DEFAULT_CDP_PORT = 9223


def _env_bool(value: str) -> bool:
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class ServerConfig:
    """
    Fixed at startup. ``port`` serves the HTTP control API, ``cdp_port`` is
    Chromium's remote debugging port that clients attach Playwright to.
    """

    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    cdp_port: int = DEFAULT_CDP_PORT
    headless: bool = False
    profile_dir: Path = field(default_factory=lambda: Path.cwd() / "profiles" / "browser-data")
    tmp_dir: Path = field(default_factory=lambda: Path.cwd() / "tmp")

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> ServerConfig:
        env = os.environ if environ is None else environ
        config = cls()
        if env.get("DEV_BROWSER_HEADLESS"):
            config.headless = _env_bool(env["DEV_BROWSER_HEADLESS"])
        if env.get("DEV_BROWSER_PORT"):
            config.port = int(env["DEV_BROWSER_PORT"])
        if env.get("DEV_BROWSER_CDP_PORT"):
            config.cdp_port = int(env["DEV_BROWSER_CDP_PORT"])
        if env.get("DEV_BROWSER_PROFILE_DIR"):
            config.profile_dir = Path(env["DEV_BROWSER_PROFILE_DIR"])
        return config

    def with_overrides(self, **overrides) -> ServerConfig:
        """Return a copy with every non-None override applied."""
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})

    def ensure_dirs(self) -> None:
        self.tmp_dir.mkdir(parents=True, exist_ok=True)
        self.profile_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"
