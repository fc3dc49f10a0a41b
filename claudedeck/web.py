from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import HTMLResponse, JSONResponse
from pydantic import BaseModel, Field
import uvicorn

from .agents import AgentStore
from .config import AppConfig, load_config
from .errors import DeckError
from .ide import IdeMonitor
from .settings import get_executable_path, set_executable_path
from .skills import SkillStore
from .stats import load_stats

logger = logging.getLogger(__name__)


class AgentRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    tools: list[str] | str | None = None
    model: str | None = None
    color: str | None = None
    content: str | None = None


class SkillRequest(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    tags: list[str] | str | None = None
    author: str | None = None
    version: str | None = None
    content: str | None = None

    def metadata_fields(self) -> dict[str, Any]:
        return {
            "description": self.description,
            "category": self.category,
            "tags": self.tags,
            "author": self.author,
            "version": self.version,
        }


class CleanupRequest(BaseModel):
    pid: int | str | None = None


class SdkConfigRequest(BaseModel):
    path_to_executable: str | None = Field(default=None, alias="pathToClaudeCodeExecutable")

    model_config = {"populate_by_name": True}


def _ok(**payload: Any) -> dict[str, Any]:
    return {"success": True, **payload}


def create_app(cfg: AppConfig | None = None) -> FastAPI:
    cfg = cfg or load_config()
    app = FastAPI(title="claudedeck", version="0.1.0")
    app.state.cfg = cfg

    def skills() -> SkillStore:
        return SkillStore(cfg.base_path, trash_dir=cfg.trash_dir)

    def agents() -> AgentStore:
        return AgentStore(cfg.agents_dir)

    @app.exception_handler(DeckError)
    async def deck_error_handler(request: Request, exc: DeckError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"success": False, "error": "Invalid request", "details": jsonable_encoder(exc.errors())},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.error(f"{request.method} {request.url.path} crashed: {exc}", exc_info=exc)
        return JSONResponse(status_code=500, content={"success": False, "error": "Internal server error"})

    @app.get("/", response_class=HTMLResponse)
    def index_page() -> str:
        return _page_html()

    # skills

    @app.get("/api/skills")
    def api_skills() -> dict[str, Any]:
        return _ok(**skills().list_skills())

    @app.post("/api/skills")
    def api_skill_create(req: SkillRequest) -> dict[str, Any]:
        row = skills().create_skill(req.name, content=req.content, **req.metadata_fields())
        return _ok(skill=row)

    @app.get("/api/skills/{skill_id:path}/files/{filename:path}")
    def api_skill_file(skill_id: str, filename: str) -> dict[str, Any]:
        return _ok(**skills().get_skill_file(skill_id, filename))

    @app.get("/api/skills/{skill_id:path}")
    def api_skill_detail(skill_id: str) -> dict[str, Any]:
        return _ok(skill=skills().get_skill(skill_id))

    @app.put("/api/skills/{skill_id:path}")
    def api_skill_update(skill_id: str, req: SkillRequest) -> dict[str, Any]:
        row = skills().update_skill(skill_id, content=req.content, name=req.name, **req.metadata_fields())
        return _ok(skill=row)

    @app.delete("/api/skills/{skill_id:path}")
    def api_skill_delete(skill_id: str) -> dict[str, Any]:
        skills().delete_skill(skill_id)
        return _ok(message="Skill deleted successfully")

    # agents

    @app.get("/api/agents")
    def api_agents() -> dict[str, Any]:
        return _ok(agents=[row.to_dict() for row in agents().list_agents()])

    @app.post("/api/agents")
    def api_agent_create(req: AgentRequest) -> dict[str, Any]:
        row = agents().create_agent(
            req.name,
            description=req.description,
            tools=req.tools,
            model=req.model,
            color=req.color,
            content=req.content,
        )
        return _ok(agent=row.to_dict())

    @app.get("/api/agents/{agent_id}")
    def api_agent_detail(agent_id: str) -> dict[str, Any]:
        return _ok(agent=agents().get_agent(agent_id))

    @app.put("/api/agents/{agent_id}")
    def api_agent_update(agent_id: str, req: AgentRequest) -> dict[str, Any]:
        row = agents().update_agent(
            agent_id,
            name=req.name,
            description=req.description,
            tools=req.tools,
            model=req.model,
            color=req.color,
            content=req.content,
        )
        return _ok(agent=row.to_dict())

    @app.delete("/api/agents/{agent_id}")
    def api_agent_delete(agent_id: str) -> dict[str, Any]:
        agents().delete_agent(agent_id)
        return _ok(message="Agent deleted successfully")

    # system / stats / settings

    @app.get("/api/system/ide-connections")
    def api_ide_connections() -> dict[str, Any]:
        rows = IdeMonitor(cfg.ide_dir).list_connections()
        return _ok(connections=[row.to_dict() for row in rows])

    @app.post("/api/system/cleanup")
    def api_ide_cleanup(req: CleanupRequest) -> dict[str, Any]:
        removed = IdeMonitor(cfg.ide_dir).cleanup_connection(req.pid)
        return _ok(
            removed=removed,
            message=f"Successfully removed IDE connection for PID {removed['pid']}",
        )

    @app.get("/api/stats")
    def api_stats() -> dict[str, Any]:
        return _ok(data=load_stats(cfg))

    @app.get("/api/settings/sdk")
    def api_sdk_config() -> dict[str, Any]:
        return _ok(path_to_executable=get_executable_path(cfg.sdk_config_file))

    @app.put("/api/settings/sdk")
    def api_sdk_config_update(req: SdkConfigRequest) -> dict[str, Any]:
        value = set_executable_path(cfg.sdk_config_file, req.path_to_executable)
        return _ok(path_to_executable=value)

    return app


def run_web(cfg: AppConfig | None = None, host: str | None = None, port: int | None = None) -> None:
    cfg = cfg or load_config()
    app = create_app(cfg)
    uvicorn.run(app, host=host or cfg.web.host, port=port or cfg.web.port, log_level=cfg.log_level.lower())


def _page_html() -> str:
    return """<!doctype html>
<html lang="zh-CN">
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>claudedeck 控制台</title>
  <style>
    :root {
      --bg: #f3ecdf;
      --card: rgba(255, 252, 246, 0.92);
      --ink: #1f2937;
      --muted: #5f6772;
      --line: #d6c8b2;
      --accent: #0f766e;
      --accent2: #145cb8;
      --warn: #b42318;
      --ok: #2f8f5b;
      --radius: 14px;
      --shadow: 0 10px 24px rgba(50, 35, 16, 0.08);
      --font-ui: "Avenir Next", "PingFang SC", "Noto Sans CJK SC", sans-serif;
      --font-mono: "SF Mono", Menlo, Monaco, Consolas, monospace;
    }
    * { box-sizing: border-box; }
    body { margin: 0; color: var(--ink); font-family: var(--font-ui); background: linear-gradient(150deg, var(--bg), #f8f1e6); }
    header { display: flex; gap: 8px; align-items: center; padding: 14px 20px; border-bottom: 1px solid var(--line); }
    header h1 { font-size: 20px; margin: 0 16px 0 0; }
    nav button { border: 1px solid var(--line); background: #fff; border-radius: 999px; padding: 6px 14px; cursor: pointer; }
    nav button.active { background: var(--accent); color: #fff; border-color: var(--accent); }
    main { width: min(1200px, 96vw); margin: 16px auto; }
    .card { background: var(--card); border: 1px solid var(--line); border-radius: var(--radius); box-shadow: var(--shadow); padding: 14px 16px; margin-bottom: 12px; }
    .grid { display: grid; grid-template-columns: repeat(auto-fill, minmax(180px, 1fr)); gap: 10px; }
    .stat b { display: block; font-size: 24px; }
    .muted { color: var(--muted); font-size: 13px; }
    .row { display: flex; justify-content: space-between; align-items: center; gap: 8px; padding: 6px 0; border-bottom: 1px dashed var(--line); }
    .row:last-child { border-bottom: 0; }
    .pill { border-radius: 999px; padding: 2px 8px; font-size: 12px; border: 1px solid var(--line); }
    .pill.active { color: var(--ok); border-color: var(--ok); }
    .pill.inactive { color: var(--warn); border-color: var(--warn); }
    .split { display: grid; grid-template-columns: 320px 1fr; gap: 12px; }
    .link { cursor: pointer; color: var(--accent2); }
    input, textarea, select { width: 100%; padding: 6px 8px; border: 1px solid var(--line); border-radius: 8px; font: inherit; }
    textarea { min-height: 220px; font-family: var(--font-mono); font-size: 13px; }
    label { display: block; margin: 8px 0 4px; font-size: 13px; color: var(--muted); }
    button.primary { background: var(--accent); color: #fff; border: 0; border-radius: 8px; padding: 6px 14px; cursor: pointer; }
    button.danger { background: #fff; color: var(--warn); border: 1px solid var(--warn); border-radius: 8px; padding: 6px 14px; cursor: pointer; }
    pre { white-space: pre-wrap; font-family: var(--font-mono); font-size: 13px; background: #fff; border: 1px solid var(--line); border-radius: 8px; padding: 10px; max-height: 480px; overflow: auto; }
    #toast { position: fixed; right: 16px; bottom: 16px; padding: 10px 14px; border-radius: 10px; background: var(--ink); color: #fff; display: none; }
    .hidden { display: none; }
  </style>
</head>
<body>
  <header>
    <h1>claudedeck</h1>
    <nav>
      <button data-tab="home" class="active">概览</button>
      <button data-tab="agents">Agents</button>
      <button data-tab="skills">Skills</button>
      <button data-tab="settings">设置</button>
    </nav>
  </header>
  <main>
    <section id="tab-home">
      <div class="card"><h3>使用统计</h3><div id="stats" class="grid"></div></div>
      <div class="card"><h3>IDE 连接</h3><div id="ide"></div></div>
    </section>
    <section id="tab-agents" class="hidden">
      <div class="split">
        <div class="card">
          <div class="row"><h3>Agents</h3><button class="primary" onclick="newAgent()">新建</button></div>
          <div id="agent-list"></div>
        </div>
        <div class="card">
          <h3 id="agent-title">新建 Agent</h3>
          <input type="hidden" id="agent-id" />
          <label>名称</label><input id="agent-name" />
          <label>描述</label><input id="agent-description" />
          <label>工具（逗号分隔）</label><input id="agent-tools" />
          <label>模型</label>
          <select id="agent-model"><option>inherit</option><option>sonnet</option><option>opus</option><option>haiku</option></select>
          <label>颜色</label><input id="agent-color" value="blue" />
          <label>系统提示</label><textarea id="agent-content"></textarea>
          <div class="row">
            <button class="primary" onclick="saveAgent()">保存</button>
            <button class="danger" id="agent-delete" onclick="deleteAgent()">删除</button>
          </div>
        </div>
      </div>
    </section>
    <section id="tab-skills" class="hidden">
      <div class="split">
        <div class="card">
          <div class="row"><h3>Skills</h3><span id="skill-total" class="muted"></span></div>
          <div id="skill-tree"></div>
        </div>
        <div class="card">
          <h3 id="skill-title">选择一个 skill</h3>
          <div id="skill-meta" class="muted"></div>
          <pre id="skill-content"></pre>
          <h4>资源文件</h4>
          <div id="skill-files"></div>
          <pre id="skill-file-view" class="hidden"></pre>
        </div>
      </div>
    </section>
    <section id="tab-settings" class="hidden">
      <div class="card">
        <h3>SDK</h3>
        <label>CLI 可执行文件路径（留空使用默认）</label>
        <input id="sdk-path" />
        <p><button class="primary" onclick="saveSdk()">保存</button></p>
      </div>
    </section>
  </main>
  <div id="toast"></div>
  <script>
    function escapeHtml(text) {
      return String(text ?? '')
        .replaceAll('&', '&amp;')
        .replaceAll('<', '&lt;')
        .replaceAll('>', '&gt;')
        .replaceAll('"', '&quot;')
        .replaceAll("'", '&#39;');
    }
    function toast(msg) {
      const el = document.getElementById('toast');
      el.textContent = msg;
      el.style.display = 'block';
      setTimeout(() => { el.style.display = 'none'; }, 2600);
    }
    function encodeId(id) { return id.split('/').map(encodeURIComponent).join('/'); }

    async function api(path, method='GET', body=null) {
      const opt = { method, headers: {} };
      if (body !== null) {
        opt.headers['Content-Type'] = 'application/json';
        opt.body = JSON.stringify(body);
      }
      const resp = await fetch(path, opt);
      const text = await resp.text();
      let data = null;
      try { data = JSON.parse(text); } catch (_e) { data = { error: text }; }
      if (!resp.ok || data.success === false) {
        throw new Error((data && data.error) || resp.statusText);
      }
      return data;
    }

    function showTab(tab) {
      document.querySelectorAll('nav button').forEach(b => b.classList.toggle('active', b.dataset.tab === tab));
      document.querySelectorAll('main > section').forEach(s => s.classList.toggle('hidden', s.id !== 'tab-' + tab));
      if (tab === 'home') loadHome();
      if (tab === 'agents') loadAgents();
      if (tab === 'skills') loadSkills();
      if (tab === 'settings') loadSdk();
    }
    document.querySelectorAll('nav button').forEach(b => b.addEventListener('click', () => showTab(b.dataset.tab)));
    document.addEventListener('click', (ev) => {
      const el = ev.target.closest('[data-agent], [data-skill]');
      if (!el) return;
      if (el.dataset.agent !== undefined) openAgent(el.dataset.agent);
      else if (el.dataset.skillFile !== undefined) openSkillFile(el.dataset.skill, el.dataset.skillFile);
      else openSkill(el.dataset.skill);
    });

    async function loadHome() {
      const stats = document.getElementById('stats');
      try {
        const data = (await api('/api/stats')).data;
        const keys = ['total_projects', 'total_agents', 'total_skills', 'totalSessions', 'totalMessages'];
        stats.innerHTML = keys.filter(k => data[k] !== undefined)
          .map(k => `<div class="stat"><b>${escapeHtml(data[k])}</b><span class="muted">${escapeHtml(k)}</span></div>`).join('');
      } catch (e) {
        stats.innerHTML = `<span class="muted">${escapeHtml(e.message)}</span>`;
      }
      const ide = document.getElementById('ide');
      try {
        const rows = (await api('/api/system/ide-connections')).connections;
        ide.innerHTML = rows.length ? rows.map(c => `
          <div class="row">
            <div><b>${escapeHtml(c.name)}</b> <span class="pill ${c.status}">${c.status}</span>
              <div class="muted">pid ${escapeHtml(c.pid)} · ${escapeHtml(c.transport)} · ${escapeHtml(c.workspace_folders.join(', '))}</div></div>
            <button class="danger" onclick="cleanupIde(${Number(c.pid)})">清理</button>
          </div>`).join('') : '<span class="muted">无 IDE 连接</span>';
      } catch (e) {
        ide.innerHTML = `<span class="muted">${escapeHtml(e.message)}</span>`;
      }
    }
    async function cleanupIde(pid) {
      try { toast((await api('/api/system/cleanup', 'POST', { pid })).message); loadHome(); }
      catch (e) { toast(e.message); }
    }

    async function loadAgents() {
      const rows = (await api('/api/agents')).agents;
      document.getElementById('agent-list').innerHTML = rows.map(a => `
        <div class="row"><span class="link" data-agent="${escapeHtml(a.id)}">${escapeHtml(a.name)}</span>
        <span class="pill">${escapeHtml(a.model)}</span></div>`).join('') || '<span class="muted">暂无</span>';
    }
    function fillAgent(id, meta, content) {
      document.getElementById('agent-id').value = id || '';
      document.getElementById('agent-title').textContent = id ? `编辑 ${id}` : '新建 Agent';
      document.getElementById('agent-name').value = meta.name || '';
      document.getElementById('agent-description').value = meta.description || '';
      document.getElementById('agent-tools').value = (meta.tools || []).join(', ');
      document.getElementById('agent-model').value = meta.model || 'inherit';
      document.getElementById('agent-color').value = meta.color || 'blue';
      document.getElementById('agent-content').value = content || '';
      document.getElementById('agent-delete').classList.toggle('hidden', !id);
    }
    function newAgent() { fillAgent('', {}, ''); }
    async function openAgent(id) {
      const agent = (await api('/api/agents/' + encodeURIComponent(id))).agent;
      fillAgent(agent.id, agent.metadata, agent.content);
    }
    async function saveAgent() {
      const id = document.getElementById('agent-id').value;
      const body = {
        name: document.getElementById('agent-name').value,
        description: document.getElementById('agent-description').value,
        tools: document.getElementById('agent-tools').value,
        model: document.getElementById('agent-model').value,
        color: document.getElementById('agent-color').value,
        content: document.getElementById('agent-content').value,
      };
      try {
        const data = id ? await api('/api/agents/' + encodeURIComponent(id), 'PUT', body) : await api('/api/agents', 'POST', body);
        toast('已保存');
        fillAgent(data.agent.id, data.agent, body.content);
        loadAgents();
      } catch (e) { toast(e.message); }
    }
    async function deleteAgent() {
      const id = document.getElementById('agent-id').value;
      if (!id || !confirm(`删除 ${id}?`)) return;
      try { await api('/api/agents/' + encodeURIComponent(id), 'DELETE'); newAgent(); loadAgents(); }
      catch (e) { toast(e.message); }
    }

    function skillLink(s) {
      return `<div class="row"><span class="link" data-skill="${escapeHtml(s.id)}">${escapeHtml(s.name)}</span></div>`;
    }
    async function loadSkills() {
      const data = await api('/api/skills');
      document.getElementById('skill-total').textContent = `共 ${data.total} 个`;
      const tree = data.tree;
      let html = '<h4>本地</h4>' + (tree.skills.map(skillLink).join('') || '<span class="muted">暂无</span>');
      for (const [repo, rows] of Object.entries(tree.plugins)) {
        html += `<h4>${escapeHtml(repo)}</h4>` + rows.map(skillLink).join('');
      }
      document.getElementById('skill-tree').innerHTML = html;
    }
    async function openSkill(id) {
      const skill = (await api('/api/skills/' + encodeId(id))).skill;
      const meta = skill.metadata || {};
      document.getElementById('skill-title').textContent = meta.name || skill.id;
      document.getElementById('skill-meta').textContent = [skill.id, meta.description, meta.version].filter(Boolean).join(' · ');
      document.getElementById('skill-content').textContent = skill.content;
      document.getElementById('skill-file-view').classList.add('hidden');
      document.getElementById('skill-files').innerHTML = skill.resource_files.map(f => `
        <div class="row"><span class="link" data-skill="${escapeHtml(skill.id)}" data-skill-file="${escapeHtml(f.name)}">${f.is_directory ? '📁 ' : ''}${escapeHtml(f.name)}</span>
        <span class="muted">${f.size} B</span></div>`).join('') || '<span class="muted">无</span>';
    }
    async function openSkillFile(id, name) {
      const view = document.getElementById('skill-file-view');
      try {
        const data = await api(`/api/skills/${encodeId(id)}/files/${encodeId(name)}`);
        view.textContent = data.is_directory
          ? data.items.map(i => (i.is_directory ? '[dir] ' : '') + i.name).join('\\n')
          : data.file.content;
        view.classList.remove('hidden');
      } catch (e) { toast(e.message); }
    }

    async function loadSdk() {
      document.getElementById('sdk-path').value = (await api('/api/settings/sdk')).path_to_executable;
    }
    async function saveSdk() {
      try {
        await api('/api/settings/sdk', 'PUT', { path_to_executable: document.getElementById('sdk-path').value });
        toast('已保存');
      } catch (e) { toast(e.message); }
    }

    loadHome();
  </script>
</body>
</html>"""
