from __future__ import annotations

import json
import logging
import platform
import subprocess
from pathlib import Path
from typing import Any

from .documents import iso_mtime
from .errors import NotFoundError, ValidationError
from .models import IdeConnection

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
REMOVED_SUFFIX = ".lock.removed"


def is_pid_running(pid: Any) -> bool:
    try:
        pid_num = int(pid)
    except (TypeError, ValueError):
        return False
    if pid_num <= 0:
        return False

    system = platform.system().lower()
    if system in {"darwin", "linux"}:
        cmd = ["ps", "-p", str(pid_num), "-o", "pid="]
    elif system == "windows":
        cmd = ["tasklist", "/FI", f"PID eq {pid_num}", "/FO", "CSV", "/NH"]
    else:
        return False

    try:
        proc = subprocess.run(cmd, text=True, capture_output=True, check=False, timeout=5)
    except (OSError, subprocess.TimeoutExpired) as exc:
        logger.warning(f"Process check failed for pid {pid_num}: {exc}")
        return False
    if proc.returncode != 0:
        return False
    out = proc.stdout.strip()
    if system == "windows":
        # tasklist 找不到时也返回 0，输出 "INFO: No tasks ..."
        return f'"{pid_num}"' in out
    return bool(out)


def _load_lock(path: Path) -> dict[str, Any]:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("lock file is not a JSON object")
    return data


def _lock_pid(data: dict[str, Any]) -> int | None:
    raw = data.get("pid")
    if isinstance(raw, bool):
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def _lock_files(ide_dir: Path) -> list[Path]:
    return sorted(p for p in ide_dir.iterdir() if p.is_file() and p.name.endswith(LOCK_SUFFIX))


class IdeMonitor:
    def __init__(self, ide_dir: Path, pid_check=is_pid_running):
        self.ide_dir = Path(ide_dir)
        self.pid_check = pid_check

    def list_connections(self) -> list[IdeConnection]:
        if not self.ide_dir.is_dir():
            return []

        rows: list[IdeConnection] = []
        for path in _lock_files(self.ide_dir):
            try:
                data = _load_lock(path)
            except (OSError, ValueError) as exc:
                logger.warning(f"Error parsing lock file {path.name}: {exc}")
                continue
            pid = _lock_pid(data)
            folders = data.get("workspaceFolders") or []
            rows.append(
                IdeConnection(
                    id=path.name[: -len(LOCK_SUFFIX)],
                    name=str(data.get("ideName") or "Unknown IDE"),
                    status="active" if self.pid_check(pid) else "inactive",
                    pid=pid,
                    lock_file=path.name,
                    workspace_folders=[str(x) for x in folders] if isinstance(folders, list) else [],
                    transport=str(data.get("transport") or "unknown"),
                    last_modified=iso_mtime(path),
                )
            )
        return rows

    def cleanup_connection(self, pid: Any) -> dict[str, Any]:
        if pid in (None, "", 0):
            raise ValidationError("PID is required")
        try:
            pid_num = int(pid)
        except (TypeError, ValueError) as exc:
            raise ValidationError(f"Invalid PID: {pid!r}") from exc

        if not self.ide_dir.is_dir():
            raise NotFoundError("IDE directory not found")

        for path in _lock_files(self.ide_dir):
            try:
                data = _load_lock(path)
            except (OSError, ValueError) as exc:
                logger.warning(f"Error processing lock file {path.name}: {exc}")
                continue
            if _lock_pid(data) != pid_num:
                continue

            # 软删除：改名为 .lock.removed，保留现场
            removed = path.with_name(f"{path.name}.removed")
            path.rename(removed)
            logger.info(f"Removed IDE connection {path.name} (pid {pid_num})")
            return {
                "original_file": path.name,
                "removed_file": removed.name,
                "pid": pid_num,
                "ide_name": data.get("ideName"),
            }

        raise NotFoundError(f"No IDE connection found for PID {pid_num}")
