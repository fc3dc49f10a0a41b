from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any

from .documents import iso_ctime, iso_mtime, read_document, serialize_document, to_list, to_text
from .errors import ConflictError, NotFoundError, ParseFailureError, ValidationError
from .models import AgentRecord

logger = logging.getLogger(__name__)

AGENT_SUFFIX = ".md"
DEFAULT_MODEL = "inherit"
DEFAULT_COLOR = "blue"


def agent_id_from_name(name: str) -> str:
    text = re.sub(r"[^a-z0-9]+", "-", name.lower())
    return text.strip("-")


def _check_id(agent_id: str) -> str:
    aid = str(agent_id or "").strip()
    if not aid or "/" in aid or "\\" in aid or aid in {".", ".."}:
        raise ValidationError(f"Invalid agent id: {agent_id!r}")
    return aid


def build_metadata(
    name: str,
    description: str | None = None,
    tools: list[str] | str | None = None,
    model: str | None = None,
    color: str | None = None,
) -> dict[str, Any]:
    return {
        "name": name,
        "description": to_text(description),
        "tools": to_list(tools),
        "model": to_text(model, DEFAULT_MODEL),
        "color": to_text(color, DEFAULT_COLOR),
    }


class AgentStore:
    """One markdown file per agent, read non-recursively from ``agents_dir``."""

    def __init__(self, agents_dir: Path):
        self.agents_dir = Path(agents_dir)

    def _path(self, agent_id: str) -> Path:
        return self.agents_dir / f"{_check_id(agent_id)}{AGENT_SUFFIX}"

    def _record(self, path: Path) -> AgentRecord:
        doc, _raw = read_document(path)
        meta = doc.metadata
        stem = path.name[: -len(AGENT_SUFFIX)]
        return AgentRecord(
            id=stem,
            filename=path.name,
            name=to_text(meta.get("name"), stem),
            description=to_text(meta.get("description")),
            tools=to_list(meta.get("tools")),
            model=to_text(meta.get("model"), DEFAULT_MODEL),
            color=to_text(meta.get("color"), DEFAULT_COLOR),
            created_at=iso_ctime(path),
            updated_at=iso_mtime(path),
        )

    def list_agents(self) -> list[AgentRecord]:
        self.agents_dir.mkdir(parents=True, exist_ok=True)
        rows: list[AgentRecord] = []
        for path in sorted(self.agents_dir.iterdir()):
            if not path.is_file() or not path.name.endswith(AGENT_SUFFIX):
                continue
            try:
                rows.append(self._record(path))
            except (ParseFailureError, OSError, UnicodeDecodeError) as exc:
                logger.warning(f"Error reading agent file {path.name}: {exc}")
        return rows

    def get_agent(self, agent_id: str) -> dict[str, Any]:
        path = self._path(agent_id)
        if not path.is_file():
            raise NotFoundError("Agent not found")

        doc, raw = read_document(path)
        metadata = dict(doc.metadata)
        if "tools" in metadata:
            metadata["tools"] = to_list(metadata["tools"])
        return {
            "id": path.name[: -len(AGENT_SUFFIX)],
            "filename": path.name,
            "metadata": metadata,
            "content": doc.content,
            "raw_content": raw,
            "created_at": iso_ctime(path),
            "updated_at": iso_mtime(path),
        }

    def create_agent(
        self,
        name: str | None,
        description: str | None = None,
        tools: list[str] | str | None = None,
        model: str | None = None,
        color: str | None = None,
        content: str | None = None,
    ) -> AgentRecord:
        display = str(name or "").strip()
        if not display:
            raise ValidationError("Agent name is required")
        agent_id = agent_id_from_name(display)
        if not agent_id:
            raise ValidationError("Agent name must contain letters or digits")

        self.agents_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(agent_id)
        if path.exists():
            raise ConflictError("Agent already exists")

        meta = build_metadata(display, description, tools, model, color)
        path.write_text(serialize_document(meta, content or ""), encoding="utf-8")
        logger.info(f"Created agent {path.name}")
        return self._record(path)

    def update_agent(
        self,
        agent_id: str,
        name: str | None = None,
        description: str | None = None,
        tools: list[str] | str | None = None,
        model: str | None = None,
        color: str | None = None,
        content: str | None = None,
    ) -> AgentRecord:
        path = self._path(agent_id)
        if not path.is_file():
            raise NotFoundError("Agent not found")

        meta = build_metadata(to_text(name, agent_id), description, tools, model, color)
        path.write_text(serialize_document(meta, content or ""), encoding="utf-8")
        logger.info(f"Updated agent {path.name}")
        return self._record(path)

    def delete_agent(self, agent_id: str) -> None:
        path = self._path(agent_id)
        if not path.is_file():
            raise NotFoundError("Agent not found")
        path.unlink()
        logger.info(f"Deleted agent {path.name}")
