from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any

import yaml

from .errors import ParseFailureError

DELIMITER = "---"


@dataclass
class ParsedDocument:
    metadata: dict[str, Any] = field(default_factory=dict)
    content: str = ""


def parse_document(text: str) -> ParsedDocument:
    """Split a markdown file into its YAML frontmatter and body.

    Text without a leading ``---`` block has no metadata. A block that does
    not close, does not parse as YAML, or is not a mapping raises
    ``ParseFailureError``.
    """
    if text.startswith("\ufeff"):
        text = text[1:]

    lines = text.splitlines()
    if not lines or lines[0].strip() != DELIMITER:
        return ParsedDocument(metadata={}, content=text.strip())

    end_idx = None
    for idx in range(1, len(lines)):
        if lines[idx].strip() == DELIMITER:
            end_idx = idx
            break
    if end_idx is None:
        raise ParseFailureError("Unterminated frontmatter block")

    block = "\n".join(lines[1:end_idx])
    try:
        data = yaml.safe_load(block) if block.strip() else {}
    except yaml.YAMLError as exc:
        raise ParseFailureError(f"Invalid frontmatter: {exc}") from exc
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseFailureError("Frontmatter must be a mapping")

    body = "\n".join(lines[end_idx + 1 :])
    return ParsedDocument(metadata={str(k): v for k, v in data.items()}, content=body.strip())


def read_document(path: Path) -> tuple[ParsedDocument, str]:
    raw = path.read_text(encoding="utf-8")
    return parse_document(raw), raw


def _quote_if_needed(text: str) -> str:
    try:
        loaded = yaml.safe_load(f"v: {text}")
    except yaml.YAMLError:
        loaded = None
    if isinstance(loaded, dict) and loaded.get("v") == text:
        return text
    return json.dumps(text, ensure_ascii=False)


def _format_value(value: Any) -> str:
    if isinstance(value, (list, tuple)):
        return _quote_if_needed(", ".join(str(x) for x in value))
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if value is None:
        return ""
    return _quote_if_needed(str(value))


def serialize_document(metadata: dict[str, Any], content: str) -> str:
    # 与 CLI 工具自身的 agent 文件格式一致：列表写成逗号分隔
    lines = [f"{key}: {_format_value(value)}" for key, value in metadata.items()]
    return "\n".join([DELIMITER, *lines, DELIMITER, "", content or ""])


def serialize_yaml_document(metadata: dict[str, Any], content: str) -> str:
    """Frontmatter as block-style YAML; nested lists and mappings are preserved."""
    block = yaml.safe_dump(metadata, sort_keys=False, allow_unicode=True, default_flow_style=False).rstrip("\n")
    return "\n".join([DELIMITER, block, DELIMITER, "", content or ""])


def to_list(raw: Any) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, (list, tuple)):
        return [str(x).strip() for x in raw if str(x).strip()]
    text = str(raw).strip()
    if not text:
        return []
    return [item.strip() for item in text.split(",") if item.strip()]


def to_text(raw: Any, default: str = "") -> str:
    if raw is None:
        return default
    text = str(raw).strip()
    return text or default


def iso_mtime(path: Path) -> str:
    return datetime.fromtimestamp(path.stat().st_mtime).astimezone().isoformat(timespec="seconds")


def iso_ctime(path: Path) -> str:
    st = path.stat()
    created = getattr(st, "st_birthtime", st.st_ctime)
    return datetime.fromtimestamp(created).astimezone().isoformat(timespec="seconds")
