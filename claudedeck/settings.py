from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

EXECUTABLE_KEY = "pathToClaudeCodeExecutable"


def read_sdk_config(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning(f"Error reading SDK config {path}: {exc}")
        return {}
    return data if isinstance(data, dict) else {}


def write_sdk_config(path: Path, data: dict[str, Any]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
    return path


def get_executable_path(path: Path) -> str:
    return str(read_sdk_config(path).get(EXECUTABLE_KEY) or "")


def set_executable_path(path: Path, executable: str | None) -> str:
    # 只改这一项，保留文件里的其他键
    data = read_sdk_config(path)
    data[EXECUTABLE_KEY] = str(executable or "").strip()
    write_sdk_config(path, data)
    return data[EXECUTABLE_KEY]
