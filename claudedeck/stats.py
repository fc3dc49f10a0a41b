from __future__ import annotations

import json
from typing import Any

from .config import AppConfig
from .errors import NotFoundError, ParseFailureError
from .scanner import SkillScanner


def _count_projects(cfg: AppConfig) -> int:
    root = cfg.projects_dir
    if not root.is_dir():
        return 0
    return sum(1 for item in root.iterdir() if not item.name.startswith(".") and item.is_dir())


def _count_agents(cfg: AppConfig) -> int:
    root = cfg.agents_dir
    if not root.is_dir():
        return 0
    return sum(1 for item in root.iterdir() if item.is_file() and item.name.endswith(".md"))


def _count_skills(cfg: AppConfig) -> int:
    scanner = SkillScanner(cfg.base_path)
    return scanner.count(cfg.skills_dir) + scanner.count(cfg.plugins_dir)


def load_stats(cfg: AppConfig) -> dict[str, Any]:
    path = cfg.stats_file
    if not path.is_file():
        raise NotFoundError(f"Stats file not found: {path}")
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ParseFailureError(f"Failed to read stats file: {exc}") from exc
    if not isinstance(payload, dict):
        raise ParseFailureError("Stats file must contain a JSON object")

    return {
        **payload,
        "total_projects": _count_projects(cfg),
        "total_agents": _count_agents(cfg),
        "total_skills": _count_skills(cfg),
    }
