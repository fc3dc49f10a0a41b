from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class SkillRecord:
    id: str
    name: str
    description: str
    path: str
    path_parts: list[str]
    full_path: str
    category: str = "general"
    tags: list[str] = field(default_factory=list)
    author: str = ""
    version: str = ""
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SkillTree:
    skills: list[SkillRecord] = field(default_factory=list)
    plugins: dict[str, list[SkillRecord]] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "skills": [rec.to_dict() for rec in self.skills],
            "plugins": {repo: [rec.to_dict() for rec in rows] for repo, rows in self.plugins.items()},
        }


@dataclass
class ScanEntry:
    # found / skipped / error
    kind: str
    path: str
    record: SkillRecord | None = None
    reason: str = ""


@dataclass
class FileEntry:
    name: str
    size: int
    is_directory: bool
    modified_at: str
    path: str = ""

    def to_dict(self) -> dict[str, Any]:
        row = asdict(self)
        if not self.path:
            row.pop("path")
        return row


@dataclass
class AgentRecord:
    id: str
    filename: str
    name: str
    description: str = ""
    tools: list[str] = field(default_factory=list)
    model: str = "inherit"
    color: str = "blue"
    created_at: str = ""
    updated_at: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class IdeConnection:
    id: str
    name: str
    status: str
    pid: int | None
    lock_file: str
    workspace_folders: list[str] = field(default_factory=list)
    transport: str = "unknown"
    last_modified: str = ""

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)
