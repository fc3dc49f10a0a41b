"""
test_web.py - JSON API 与状态码映射

检查点:
1. 列表接口返回扁平列表 + 树 + total
2. success 标记与 400/403/404/409 映射
3. agents 创建-读取-删除往返
"""

import json
from pathlib import Path

from fastapi.testclient import TestClient

from claudedeck.config import AppConfig

# =============================================================================
# Skills
# =============================================================================


class TestSkillsApi:
    def test_list_scenario(self, client: TestClient, sample_layout):
        resp = client.get("/api/skills")
        assert resp.status_code == 200
        data = resp.json()

        assert data["success"] is True
        assert data["total"] == 2
        assert [s["name"] for s in data["tree"]["skills"]] == ["Reviewer"]
        assert list(data["tree"]["plugins"]) == ["acme"]
        assert [s["name"] for s in data["tree"]["plugins"]["acme"]] == ["Formatter"]
        assert {s["id"] for s in data["skills"]} == {
            "skills/reviewer",
            "plugins/marketplaces/acme/tools/formatter",
        }

    def test_detail_with_nested_id(self, client: TestClient, sample_layout):
        resp = client.get("/api/skills/plugins/marketplaces/acme/tools/formatter")
        assert resp.status_code == 200
        skill = resp.json()["skill"]
        assert skill["id"] == "plugins/marketplaces/acme/tools/formatter"
        assert skill["metadata"]["name"] == "Formatter"

    def test_detail_not_found(self, client: TestClient, claude_dir: Path):
        (claude_dir / "skills").mkdir()
        resp = client.get("/api/skills/skills/missing")
        assert resp.status_code == 404
        assert resp.json() == {"success": False, "error": "Skill not found"}

    def test_file_endpoint(self, client: TestClient, claude_dir: Path, sample_layout):
        (claude_dir / "skills" / "reviewer" / "docs").mkdir()
        (claude_dir / "skills" / "reviewer" / "docs" / "guide.md").write_text("guide", encoding="utf-8")

        listing = client.get("/api/skills/skills/reviewer/files/docs").json()
        assert listing["success"] is True
        assert listing["is_directory"] is True
        assert [i["name"] for i in listing["items"]] == ["guide.md"]

        file_resp = client.get("/api/skills/skills/reviewer/files/docs/guide.md").json()
        assert file_resp["file"]["content"] == "guide"

    def test_file_endpoint_rejects_traversal(self, client: TestClient, sample_layout, write_skill):
        write_skill("skills/other", name="Other")
        resp = client.get("/api/skills/skills/reviewer/files/..%2Fother%2FSKILL.md")
        assert resp.status_code == 403
        assert resp.json()["success"] is False

    def test_create_update_delete(self, client: TestClient):
        resp = client.post("/api/skills", json={"name": "New Skill", "description": "d", "content": "body"})
        assert resp.status_code == 200
        skill_id = resp.json()["skill"]["id"]
        assert skill_id == "skills/new-skill"

        assert client.post("/api/skills", json={"name": "New Skill"}).status_code == 409
        assert client.post("/api/skills", json={}).status_code == 400

        resp = client.put(f"/api/skills/{skill_id}", json={"description": "changed"})
        assert resp.status_code == 200
        assert client.get(f"/api/skills/{skill_id}").json()["skill"]["metadata"]["description"] == "changed"

        assert client.delete(f"/api/skills/{skill_id}").json()["success"] is True
        assert client.get("/api/skills").json()["total"] == 0
        assert client.delete(f"/api/skills/{skill_id}").status_code == 404


# =============================================================================
# Agents
# =============================================================================


class TestAgentsApi:
    def test_round_trip(self, client: TestClient):
        resp = client.post("/api/agents", json={"name": "Test Runner", "tools": ["Bash"], "content": "Run tests."})
        assert resp.status_code == 200
        agent = resp.json()["agent"]
        assert agent["id"] == "test-runner"
        assert agent["model"] == "inherit"
        assert agent["color"] == "blue"

        detail = client.get("/api/agents/test-runner").json()["agent"]
        assert detail["metadata"] == {
            "name": "Test Runner",
            "description": "",
            "tools": ["Bash"],
            "model": "inherit",
            "color": "blue",
        }
        assert detail["content"] == "Run tests."

        listed = client.get("/api/agents").json()["agents"]
        assert [a["id"] for a in listed] == ["test-runner"]

    def test_error_statuses(self, client: TestClient):
        assert client.post("/api/agents", json={"description": "no name"}).status_code == 400
        client.post("/api/agents", json={"name": "Dup"})
        dup = client.post("/api/agents", json={"name": "dup"})
        assert dup.status_code == 409
        assert dup.json() == {"success": False, "error": "Agent already exists"}
        assert client.get("/api/agents/ghost").status_code == 404
        assert client.put("/api/agents/ghost", json={"name": "Ghost"}).status_code == 404

    def test_delete(self, client: TestClient):
        client.post("/api/agents", json={"name": "Gone"})
        resp = client.delete("/api/agents/gone")
        assert resp.json() == {"success": True, "message": "Agent deleted successfully"}
        assert client.get("/api/agents").json()["agents"] == []
        assert client.delete("/api/agents/gone").status_code == 404

    def test_malformed_body(self, client: TestClient):
        resp = client.post("/api/agents", content="not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 400
        assert resp.json()["success"] is False


# =============================================================================
# System / stats / settings
# =============================================================================


class TestSystemApi:
    def test_ide_connections_empty(self, client: TestClient):
        assert client.get("/api/system/ide-connections").json() == {"success": True, "connections": []}

    def test_cleanup(self, client: TestClient, cfg: AppConfig):
        cfg.ide_dir.mkdir()
        (cfg.ide_dir / "42.lock").write_text(json.dumps({"pid": 42, "ideName": "JetBrains"}), encoding="utf-8")

        resp = client.post("/api/system/cleanup", json={"pid": 42})
        assert resp.status_code == 200
        body = resp.json()
        assert body["removed"]["removed_file"] == "42.lock.removed"
        assert body["message"] == "Successfully removed IDE connection for PID 42"

        assert client.post("/api/system/cleanup", json={"pid": 42}).status_code == 404
        assert client.post("/api/system/cleanup", json={}).status_code == 400

    def test_stats(self, client: TestClient, cfg: AppConfig, sample_layout):
        assert client.get("/api/stats").status_code == 404
        cfg.stats_file.write_text(json.dumps({"totalMessages": 3}), encoding="utf-8")
        data = client.get("/api/stats").json()["data"]
        assert data["totalMessages"] == 3
        assert data["total_skills"] == 2

    def test_sdk_settings(self, client: TestClient):
        assert client.get("/api/settings/sdk").json() == {"success": True, "path_to_executable": ""}
        resp = client.put("/api/settings/sdk", json={"path_to_executable": "/opt/claude"})
        assert resp.json()["path_to_executable"] == "/opt/claude"
        assert client.get("/api/settings/sdk").json()["path_to_executable"] == "/opt/claude"

    def test_index_page(self, client: TestClient):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "claudedeck" in resp.text
        assert "onclick=\"openAgent(" not in resp.text
        assert "data-agent=" in resp.text
