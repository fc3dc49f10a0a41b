from __future__ import annotations

import logging
import re
import shutil
from datetime import datetime
from pathlib import Path
from typing import Any

from .documents import iso_ctime, iso_mtime, read_document, serialize_yaml_document, to_list
from .errors import AccessDeniedError, ConflictError, NotFoundError, ValidationError
from .models import FileEntry
from .scanner import LOCAL_PREFIX, SKILL_MARKER, SkillScanner, build_skill_tree

logger = logging.getLogger(__name__)


def _slugify(name: str) -> str:
    s = name.strip().lower()
    s = re.sub(r"[^a-z0-9_-]+", "-", s)
    s = re.sub(r"-{2,}", "-", s).strip("-")
    return s


def _is_under(path: Path, root: Path) -> bool:
    try:
        path.relative_to(root)
        return True
    except ValueError:
        return False


def list_directory(directory: Path, id_prefix: str = "", exclude: set[str] | None = None) -> list[FileEntry]:
    """Immediate children of ``directory``: directories first, then case-insensitive by name."""
    rows: list[FileEntry] = []
    for item in directory.iterdir():
        if exclude and item.name in exclude:
            continue
        try:
            st = item.stat()
        except OSError as exc:
            logger.warning(f"Cannot stat {item}: {exc}")
            continue
        rows.append(
            FileEntry(
                name=item.name,
                size=st.st_size,
                is_directory=item.is_dir(),
                modified_at=iso_mtime(item),
                path=f"{id_prefix}/{item.name}" if id_prefix else "",
            )
        )
    rows.sort(key=lambda x: (not x.is_directory, x.name.casefold()))
    return rows


class SkillStore:
    def __init__(self, base_dir: Path, trash_dir: Path | None = None):
        self.base_dir = Path(base_dir).expanduser().resolve()
        self.trash_dir = Path(trash_dir) if trash_dir else self.base_dir / ".claudedeck-trash"
        self.scanner = SkillScanner(self.base_dir)

    def ensure_dirs(self) -> None:
        for path in (self.scanner.local_root, self.scanner.plugins_root):
            try:
                path.mkdir(parents=True, exist_ok=True)
            except OSError as exc:
                logger.warning(f"Error creating directory {path}: {exc}")

    def _skill_dir(self, skill_id: str) -> Path:
        sid = str(skill_id or "").strip().strip("/")
        if not sid:
            raise ValidationError("Skill id is required")
        skill_dir = (self.base_dir / sid).resolve()
        roots = (self.scanner.local_root.resolve(), self.scanner.plugins_root.resolve())
        # 根目录本身也可能直接放着 SKILL.md，扫描会列出它
        if not any(_is_under(skill_dir, root) for root in roots):
            raise AccessDeniedError("Access denied")
        return skill_dir

    def list_skills(self) -> dict[str, Any]:
        self.ensure_dirs()
        logger.info("Searching for SKILL.md files")
        records = self.scanner.scan_all()
        tree = build_skill_tree(records)
        return {
            "skills": [rec.to_dict() for rec in records],
            "tree": tree.to_dict(),
            "total": len(records),
        }

    def get_skill(self, skill_id: str) -> dict[str, Any]:
        skill_dir = self._skill_dir(skill_id)
        skill_md = skill_dir / SKILL_MARKER
        if not skill_md.is_file():
            raise NotFoundError("Skill not found")

        doc, raw = read_document(skill_md)
        sid = skill_id.strip().strip("/")
        resource_files = list_directory(skill_dir, id_prefix=sid, exclude={SKILL_MARKER})
        return {
            "id": sid,
            "metadata": doc.metadata,
            "content": doc.content,
            "raw_content": raw,
            "full_path": str(skill_md),
            "created_at": iso_ctime(skill_md),
            "updated_at": iso_mtime(skill_md),
            "resource_files": [row.to_dict() for row in resource_files],
        }

    def get_skill_file(self, skill_id: str, filename: str) -> dict[str, Any]:
        skill_dir = self._skill_dir(skill_id)
        target = (skill_dir / str(filename or "")).resolve()
        # 必须落在该 skill 目录内（含 ../ 穿越与软链接）
        if not _is_under(target, skill_dir):
            raise AccessDeniedError("Access denied")
        if not target.exists():
            raise NotFoundError("File not found")

        if target.is_dir():
            items = list_directory(target)
            return {"is_directory": True, "items": [row.to_dict() for row in items]}

        st = target.stat()
        return {
            "is_directory": False,
            "file": {
                "name": filename,
                "content": target.read_text(encoding="utf-8", errors="replace"),
                "size": st.st_size,
                "modified_at": iso_mtime(target),
            },
        }

    def _metadata_from(self, base: dict[str, Any], fields: dict[str, Any]) -> dict[str, Any]:
        meta = dict(base)
        for key in ("name", "description", "category", "author", "version"):
            value = fields.get(key)
            if value is not None:
                meta[key] = str(value).strip()
        if fields.get("tags") is not None:
            meta["tags"] = to_list(fields["tags"])
        return meta

    def create_skill(self, name: str | None, content: str | None = None, **fields: Any) -> dict[str, Any]:
        display = str(name or "").strip()
        if not display:
            raise ValidationError("Skill name is required")
        slug = _slugify(display)
        if not slug:
            raise ValidationError("Skill name must contain letters or digits")

        self.ensure_dirs()
        skill_dir = self.scanner.local_root / slug
        skill_md = skill_dir / SKILL_MARKER
        if skill_md.exists():
            raise ConflictError("Skill already exists")

        meta = self._metadata_from({"name": display, "description": ""}, fields)
        skill_dir.mkdir(parents=True, exist_ok=True)
        skill_md.write_text(serialize_yaml_document(meta, content or ""), encoding="utf-8")
        logger.info(f"Created skill {skill_md}")
        return {"id": f"{LOCAL_PREFIX}{slug}", "metadata": meta}

    def update_skill(self, skill_id: str, content: str | None = None, **fields: Any) -> dict[str, Any]:
        skill_dir = self._skill_dir(skill_id)
        skill_md = skill_dir / SKILL_MARKER
        if not skill_md.is_file():
            raise NotFoundError("Skill not found")

        doc, _raw = read_document(skill_md)
        meta = self._metadata_from(doc.metadata, fields)
        if not str(meta.get("name") or "").strip():
            meta["name"] = skill_dir.name
        body = doc.content if content is None else content
        skill_md.write_text(serialize_yaml_document(meta, body), encoding="utf-8")
        logger.info(f"Updated skill {skill_md}")
        return {"id": skill_id.strip().strip("/"), "metadata": meta}

    def delete_skill(self, skill_id: str) -> Path:
        skill_dir = self._skill_dir(skill_id)
        local_root = self.scanner.local_root.resolve()
        if skill_dir == local_root or not _is_under(skill_dir, local_root):
            raise AccessDeniedError("Only local skills can be deleted")
        if not (skill_dir / SKILL_MARKER).is_file():
            raise NotFoundError("Skill not found")

        self.trash_dir.mkdir(parents=True, exist_ok=True)
        rel = skill_dir.relative_to(self.scanner.local_root.resolve()).as_posix()
        suffix = datetime.now().strftime("%Y%m%d-%H%M%S")
        stem = f"{rel.replace('/', '-')}-{suffix}"
        dst = self.trash_dir / stem
        idx = 1
        while dst.exists():
            idx += 1
            dst = self.trash_dir / f"{stem}-{idx}"
        shutil.move(str(skill_dir), str(dst))
        logger.info(f"Moved skill {skill_dir} to {dst}")
        return dst
