from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8765
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


@dataclass
class WebPrefs:
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT


@dataclass
class AppConfig:
    claude_dir: str
    web: WebPrefs = field(default_factory=WebPrefs)
    log_level: str = "INFO"

    @property
    def base_path(self) -> Path:
        return Path(self.claude_dir).expanduser().resolve()

    @property
    def skills_dir(self) -> Path:
        return self.base_path / "skills"

    @property
    def plugins_dir(self) -> Path:
        return self.base_path / "plugins" / "marketplaces"

    @property
    def agents_dir(self) -> Path:
        return self.base_path / "agents"

    @property
    def ide_dir(self) -> Path:
        return self.base_path / "ide"

    @property
    def projects_dir(self) -> Path:
        return self.base_path / "projects"

    @property
    def stats_file(self) -> Path:
        return self.base_path / "stats-cache.json"

    @property
    def sdk_config_file(self) -> Path:
        return self.base_path / "sdk-config.json"

    @property
    def trash_dir(self) -> Path:
        return self.base_path / ".claudedeck-trash"


def default_claude_dir() -> Path:
    return Path.home() / ".claude"


def config_path() -> Path:
    env_path = os.environ.get("CLAUDEDECK_CONFIG", "").strip()
    if env_path:
        return Path(env_path).expanduser()
    return Path("~/.config/claudedeck/config.json").expanduser()


def default_config() -> AppConfig:
    return AppConfig(claude_dir=str(default_claude_dir()))


def _to_port(raw: Any, default: int = DEFAULT_PORT) -> int:
    try:
        port = int(raw)
    except (TypeError, ValueError):
        return default
    if 0 < port < 65536:
        return port
    return default


def _to_log_level(raw: Any) -> str:
    text = str(raw or "").strip().upper()
    return text if text in LOG_LEVELS else "INFO"


def config_from_dict(data: dict[str, Any]) -> AppConfig:
    claude_dir = str(data.get("claude_dir") or "").strip() or str(default_claude_dir())

    web_data = data.get("web", {})
    if not isinstance(web_data, dict):
        web_data = {}
    host = str(web_data.get("host", data.get("host", "")) or "").strip() or DEFAULT_HOST
    port = _to_port(web_data.get("port", data.get("port")))

    return AppConfig(
        claude_dir=claude_dir,
        web=WebPrefs(host=host, port=port),
        log_level=_to_log_level(data.get("log_level")),
    )


def load_config() -> AppConfig:
    cfg_path = config_path()
    if not cfg_path.exists():
        return default_config()

    try:
        data = json.loads(cfg_path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError):
        return default_config()
    if not isinstance(data, dict):
        return default_config()
    return config_from_dict(data)


def save_config(cfg: AppConfig) -> Path:
    cfg_path = config_path()
    cfg_path.parent.mkdir(parents=True, exist_ok=True)
    cfg_path.write_text(
        json.dumps(asdict(cfg), ensure_ascii=False, indent=2),
        encoding="utf-8",
    )
    return cfg_path


def initialize_config(claude_dir: str | None = None) -> tuple[AppConfig, Path]:
    cfg = load_config()
    if claude_dir:
        cfg.claude_dir = str(Path(claude_dir).expanduser().resolve())
    ensure_layout(cfg)
    return cfg, save_config(cfg)


def ensure_layout(cfg: AppConfig) -> None:
    for path in (cfg.skills_dir, cfg.plugins_dir, cfg.agents_dir):
        path.mkdir(parents=True, exist_ok=True)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=getattr(logging, _to_log_level(level)),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
