from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Iterator

from .documents import iso_ctime, iso_mtime, read_document, to_list, to_text
from .errors import ParseFailureError
from .models import ScanEntry, SkillRecord, SkillTree

logger = logging.getLogger(__name__)

SKILL_MARKER = "SKILL.md"
LOCAL_PREFIX = "skills/"
PLUGIN_PREFIX = "plugins/marketplaces/"
# plugins / marketplaces / <repo>
MIN_PLUGIN_PARTS = 3


def _rel_posix(path: Path, base: Path) -> str:
    rel = os.path.relpath(path, base)
    if rel == ".":
        return ""
    return rel.replace(os.sep, "/")


class SkillScanner:
    def __init__(self, base_dir: Path, marker: str = SKILL_MARKER):
        self.base_dir = Path(base_dir)
        self.marker = marker

    @property
    def local_root(self) -> Path:
        return self.base_dir / "skills"

    @property
    def plugins_root(self) -> Path:
        return self.base_dir / "plugins" / "marketplaces"

    def walk(self, root: Path, path_base: Path | None = None) -> Iterator[ScanEntry]:
        """Depth-first walk of ``root`` yielding one entry per marker file or failure.

        ``path_base`` is what ``path_parts`` are measured from (defaults to
        ``root``); identifiers are always relative to ``base_dir``.
        """
        root = Path(root)
        path_base = Path(path_base) if path_base is not None else root
        if not root.is_dir():
            return

        visited: set[str] = set()
        stack: list[Path] = [root]
        while stack:
            directory = stack.pop()
            try:
                real = str(directory.resolve())
            except OSError as exc:
                logger.warning(f"Cannot resolve {directory}: {exc}")
                yield ScanEntry(kind="error", path=str(directory), reason=str(exc))
                continue
            # 软链接成环时只走一次
            if real in visited:
                yield ScanEntry(kind="skipped", path=str(directory), reason="already visited")
                continue
            visited.add(real)

            try:
                with os.scandir(directory) as it:
                    entries = list(it)
            except OSError as exc:
                logger.warning(f"Error reading directory {directory}: {exc}")
                yield ScanEntry(kind="error", path=str(directory), reason=str(exc))
                continue

            subdirs: list[Path] = []
            for entry in entries:
                try:
                    is_dir = entry.is_dir()
                except OSError:
                    is_dir = False
                if is_dir:
                    subdirs.append(Path(entry.path))
                elif entry.name == self.marker:
                    yield self._scan_marker(Path(entry.path), path_base)

            stack.extend(reversed(subdirs))

    def _scan_marker(self, marker_path: Path, path_base: Path) -> ScanEntry:
        try:
            doc, _raw = read_document(marker_path)
            created_at = iso_ctime(marker_path)
            updated_at = iso_mtime(marker_path)
        except ParseFailureError as exc:
            logger.warning(f"Skipping malformed skill file {marker_path}: {exc}")
            return ScanEntry(kind="skipped", path=str(marker_path), reason=str(exc))
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning(f"Error reading skill file {marker_path}: {exc}")
            return ScanEntry(kind="error", path=str(marker_path), reason=str(exc))

        skill_dir = marker_path.parent
        rel_path = _rel_posix(skill_dir, path_base)
        path_parts = rel_path.split("/") if rel_path else []
        meta = doc.metadata
        fallback_name = path_parts[-1] if path_parts else "Unnamed Skill"

        record = SkillRecord(
            id=_rel_posix(skill_dir, self.base_dir),
            name=to_text(meta.get("name"), fallback_name),
            description=to_text(meta.get("description")),
            path=rel_path,
            path_parts=path_parts,
            full_path=str(marker_path),
            category=to_text(meta.get("category"), "general"),
            tags=to_list(meta.get("tags")),
            author=to_text(meta.get("author")),
            version=to_text(meta.get("version")),
            created_at=created_at,
            updated_at=updated_at,
        )
        return ScanEntry(kind="found", path=str(marker_path), record=record)

    def scan(self, root: Path, path_base: Path | None = None) -> list[SkillRecord]:
        return [entry.record for entry in self.walk(root, path_base) if entry.record is not None]

    def scan_local(self) -> list[SkillRecord]:
        records = self.scan(self.local_root)
        logger.info(f"Found {len(records)} skills in {self.local_root}")
        return records

    def scan_plugins(self) -> list[SkillRecord]:
        records = self.scan(self.plugins_root, self.base_dir)
        logger.info(f"Found {len(records)} skills in {self.plugins_root}")
        return records

    def scan_all(self) -> list[SkillRecord]:
        return [*self.scan_local(), *self.scan_plugins()]

    def count(self, root: Path) -> int:
        # 只数标记文件，不解析内容
        root = Path(root)
        if not root.is_dir():
            return 0
        total = 0
        visited: set[str] = set()
        for dirpath, dirnames, filenames in os.walk(root, followlinks=True):
            real = os.path.realpath(dirpath)
            if real in visited:
                dirnames.clear()
                continue
            visited.add(real)
            if self.marker in filenames:
                total += 1
        return total


def build_skill_tree(records: list[SkillRecord]) -> SkillTree:
    tree = SkillTree()
    for rec in records:
        if rec.id.startswith(PLUGIN_PREFIX) and len(rec.path_parts) >= MIN_PLUGIN_PARTS:
            repo = rec.path_parts[2]
            tree.plugins.setdefault(repo, []).append(rec)
        else:
            # skills/ 下的条目，以及 marketplaces 根下层级不足的条目
            tree.skills.append(rec)
    return tree
