"""
test_agents.py - AgentStore CRUD
"""

from pathlib import Path

import pytest

from claudedeck.agents import AgentStore, agent_id_from_name
from claudedeck.errors import ConflictError, NotFoundError, ValidationError


@pytest.fixture
def store(claude_dir: Path) -> AgentStore:
    return AgentStore(claude_dir / "agents")


@pytest.mark.parametrize(
    "name,expected",
    [
        ("Code Reviewer", "code-reviewer"),
        ("  --Data__Pipeline!! ", "data-pipeline"),
        ("v2 Bot", "v2-bot"),
    ],
)
def test_agent_id_from_name(name: str, expected: str):
    assert agent_id_from_name(name) == expected


class TestAgentStore:
    def test_list_creates_directory(self, store: AgentStore):
        assert store.list_agents() == []
        assert store.agents_dir.is_dir()

    def test_create_then_read_applies_defaults(self, store: AgentStore):
        row = store.create_agent("Code Reviewer", content="You review code.")
        assert row.id == "code-reviewer"
        assert row.filename == "code-reviewer.md"

        agent = store.get_agent("code-reviewer")
        assert agent["metadata"] == {
            "name": "Code Reviewer",
            "description": "",
            "tools": [],
            "model": "inherit",
            "color": "blue",
        }
        assert agent["content"] == "You review code."

    def test_create_then_read_keeps_values(self, store: AgentStore):
        store.create_agent(
            "Planner",
            description="Plans work: carefully",
            tools=["Read", "Grep"],
            model="opus",
            color="green",
        )
        listed = store.list_agents()
        assert len(listed) == 1
        row = listed[0]
        assert (row.name, row.description, row.tools, row.model, row.color) == (
            "Planner",
            "Plans work: carefully",
            ["Read", "Grep"],
            "opus",
            "green",
        )

    def test_create_requires_name(self, store: AgentStore):
        with pytest.raises(ValidationError):
            store.create_agent(None)

    def test_create_duplicate(self, store: AgentStore):
        store.create_agent("Planner")
        with pytest.raises(ConflictError):
            store.create_agent("planner")

    def test_update(self, store: AgentStore):
        store.create_agent("Planner", model="opus")
        row = store.update_agent("planner", description="updated", tools="Bash, Edit", content="new")
        assert row.name == "planner"
        assert row.model == "inherit"
        assert row.tools == ["Bash", "Edit"]
        assert store.get_agent("planner")["content"] == "new"

    def test_update_missing(self, store: AgentStore):
        with pytest.raises(NotFoundError):
            store.update_agent("ghost", name="Ghost")

    def test_delete(self, store: AgentStore):
        store.create_agent("Planner")
        store.delete_agent("planner")
        assert store.list_agents() == []
        with pytest.raises(NotFoundError):
            store.delete_agent("planner")

    def test_unparsable_files_are_omitted(self, store: AgentStore):
        store.agents_dir.mkdir(parents=True)
        (store.agents_dir / "broken.md").write_text("---\nname: [x\n---\n", encoding="utf-8")
        (store.agents_dir / "notes.txt").write_text("ignored", encoding="utf-8")
        (store.agents_dir / "plain.md").write_text("no frontmatter", encoding="utf-8")

        rows = store.list_agents()
        assert [r.id for r in rows] == ["plain"]
        assert rows[0].name == "plain"

    @pytest.mark.parametrize("agent_id", ["../secrets", "a/b", ".."])
    def test_rejects_path_like_ids(self, store: AgentStore, agent_id: str):
        with pytest.raises(ValidationError):
            store.get_agent(agent_id)
