"""
Pytest fixtures: 伪造的 CLI 配置目录与测试用 FastAPI 客户端。
"""

from collections.abc import Callable
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from claudedeck.config import AppConfig
from claudedeck.web import create_app

# =============================================================================
# Path Fixtures
# =============================================================================


@pytest.fixture
def claude_dir(tmp_path: Path) -> Path:
    """空的配置目录（相当于 ~/.claude）。"""
    path = tmp_path / ".claude"
    path.mkdir()
    return path


@pytest.fixture
def cfg(claude_dir: Path) -> AppConfig:
    return AppConfig(claude_dir=str(claude_dir))


@pytest.fixture
def write_skill(claude_dir: Path) -> Callable[..., Path]:
    """在 <claude_dir>/<rel_dir>/SKILL.md 写入一个 skill，返回该文件路径。"""

    def _write(rel_dir: str, name: str | None = None, description: str = "", body: str = "Body.\n") -> Path:
        skill_dir = claude_dir / rel_dir
        skill_dir.mkdir(parents=True, exist_ok=True)
        lines = ["---"]
        if name is not None:
            lines.append(f"name: {name}")
        if description:
            lines.append(f"description: {description}")
        lines.extend(["---", "", body])
        path = skill_dir / "SKILL.md"
        path.write_text("\n".join(lines), encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_layout(write_skill: Callable[..., Path]) -> None:
    """一个本地 skill + 一个 marketplace skill。"""
    write_skill("skills/reviewer", name="Reviewer", description="Reviews diffs")
    write_skill("plugins/marketplaces/acme/tools/formatter", name="Formatter")


# =============================================================================
# App Fixtures
# =============================================================================


@pytest.fixture
def client(cfg: AppConfig) -> TestClient:
    return TestClient(create_app(cfg))
