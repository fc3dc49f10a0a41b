from __future__ import annotations

import argparse

from .agents import AgentStore
from .config import configure_logging, ensure_layout, initialize_config, load_config
from .errors import DeckError
from .ide import IdeMonitor
from .scanner import SkillScanner, build_skill_tree
from .stats import load_stats


def _cmd_init(args: argparse.Namespace) -> int:
    claude_dir = args.claude_dir
    if not claude_dir:
        user_input = input("请输入 CLI 配置目录（回车使用 ~/.claude）: ").strip()
        claude_dir = user_input or None

    cfg, cfg_path = initialize_config(claude_dir=claude_dir)
    print(f"配置已写入: {cfg_path}")
    print(f"配置目录: {cfg.base_path}")
    return 0


def _cmd_skills(args: argparse.Namespace) -> int:
    cfg = load_config()
    scanner = SkillScanner(cfg.base_path)
    records = scanner.scan_all()
    tree = build_skill_tree(records)

    print(f"共 {len(records)} 个 skills。")
    print("")
    print("[本地]")
    for rec in tree.skills:
        print(f"  {rec.name:<28} {rec.id}")
    for repo, rows in tree.plugins.items():
        print(f"[{repo}]")
        for rec in rows:
            print(f"  {rec.name:<28} {rec.id}")
    if args.verbose:
        bad = [entry for entry in scanner.walk(cfg.skills_dir) if entry.kind != "found"]
        bad += [entry for entry in scanner.walk(cfg.plugins_dir, cfg.base_path) if entry.kind != "found"]
        for entry in bad:
            print(f"  ! {entry.kind}: {entry.path} ({entry.reason})")
    return 0


def _cmd_agents(_args: argparse.Namespace) -> int:
    cfg = load_config()
    rows = AgentStore(cfg.agents_dir).list_agents()
    if not rows:
        print("未发现 agents。")
        return 0
    for row in rows:
        tools = ",".join(row.tools) if row.tools else "-"
        print(f"{row.id:<24} model={row.model:<8} color={row.color:<8} tools={tools}")
    return 0


def _cmd_ide(args: argparse.Namespace) -> int:
    cfg = load_config()
    monitor = IdeMonitor(cfg.ide_dir)
    if args.cleanup is not None:
        try:
            removed = monitor.cleanup_connection(args.cleanup)
        except DeckError as exc:
            print(f"失败: {exc.message}")
            return 2
        print(f"已移除: {removed['original_file']} -> {removed['removed_file']}")
        return 0

    rows = monitor.list_connections()
    if not rows:
        print("无 IDE 连接。")
        return 0
    for row in rows:
        folders = ", ".join(row.workspace_folders) or "-"
        print(f"{row.name:<20} pid={row.pid} {row.status:<8} {row.transport:<8} {folders}")
    return 0


def _cmd_stats(_args: argparse.Namespace) -> int:
    cfg = load_config()
    try:
        data = load_stats(cfg)
    except DeckError as exc:
        print(f"失败: {exc.message}")
        return 2
    for key in ("total_projects", "total_agents", "total_skills"):
        print(f"{key}: {data[key]}")
    return 0


def _cmd_web(args: argparse.Namespace) -> int:
    cfg = load_config()
    ensure_layout(cfg)
    try:
        from .web import run_web
    except ModuleNotFoundError as exc:
        print(f"缺少 web 依赖，请安装 fastapi/uvicorn: {exc}")
        return 2
    run_web(cfg, host=args.host, port=args.port)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="claudedeck",
        description="本地 CLI 配置控制台（agents / skills / IDE 连接 / 使用统计 / Web）",
    )
    parser.add_argument("--log-level", help="日志级别（默认读取配置，INFO）")
    sub = parser.add_subparsers(dest="command", required=True)

    p_init = sub.add_parser("init", help="初始化配置")
    p_init.add_argument("--claude-dir", help="CLI 配置目录（默认 ~/.claude）")
    p_init.set_defaults(func=_cmd_init)

    p_skills = sub.add_parser("skills", help="扫描并按树形列出 skills")
    p_skills.add_argument("-v", "--verbose", action="store_true", help="同时列出跳过/出错的条目")
    p_skills.set_defaults(func=_cmd_skills)

    p_agents = sub.add_parser("agents", help="列出 agents")
    p_agents.set_defaults(func=_cmd_agents)

    p_ide = sub.add_parser("ide", help="查看 IDE 连接")
    p_ide.add_argument("--cleanup", type=int, metavar="PID", help="软删除指定 PID 的连接")
    p_ide.set_defaults(func=_cmd_ide)

    p_stats = sub.add_parser("stats", help="查看使用统计")
    p_stats.set_defaults(func=_cmd_stats)

    p_web = sub.add_parser("web", help="启动本地浏览器 UI（FastAPI 单机服务）")
    p_web.add_argument("--host", help="监听地址（默认读取配置，127.0.0.1）")
    p_web.add_argument("--port", type=int, help="监听端口（默认读取配置，8765）")
    p_web.set_defaults(func=_cmd_web)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.log_level or load_config().log_level)
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
