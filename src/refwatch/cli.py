#!/usr/bin/env python3
"""refwatch CLI - track remote repositories and report what changed."""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Fail fast on unsupported interpreter version
if sys.version_info < (3, 10):
    print(f"refwatch requires Python 3.10+; found {sys.version.split()[0]}", file=sys.stderr)
    sys.exit(1)


DEFAULT_EVENTS_FILE = Path.home() / ".refwatch" / "events.jsonl"


def _events_file(cli_value: str | None, config) -> Path:
    from .fs import expand_path

    if cli_value:
        return expand_path(cli_value)
    if config is not None and config.events.file:
        return expand_path(config.events.file)
    return DEFAULT_EVENTS_FILE


def _load_config_or_exit(project_path: Path | None):
    from .config_loader import load_config, ConfigError

    try:
        return load_config(project_path)
    except ConfigError as e:
        print(f"❌ Config error: {e}", file=sys.stderr)
        sys.exit(1)


def _print_summary(payload: dict) -> None:
    state = "changed" if payload["changed"] else "unchanged"
    print(f"Repository {state}")
    for key in ("new_branches", "removed_branches", "new_tags", "removed_tags"):
        names = [entry["name"] for entry in payload[key]]
        if names:
            print(f"- {key.replace('_', ' ')}: {', '.join(names)}")
    moved = [t for t in payload["current_tags"] if t["moved_to"]]
    for tag in moved:
        print(f"- moved tag: {tag['name']} {tag['sha'][:8]} -> {tag['moved_to'][:8]}")
    for branch in payload["current_branches"]:
        if branch["changed"] and branch["prev_last_commit"]:
            print(f"- advanced branch: {branch['name']} (+{len(branch['log'])} commits)")
    total = payload["diff_stats"]["total"]
    print(
        f"- diff: {total['files']} files, +{total['insertions']} -{total['deletions']}"
    )


def main(argv: list[str] | None = None) -> None:
    ap = argparse.ArgumentParser(
        prog="refwatch",
        description="Track remote git repositories and report branch, tag and commit changes",
    )

    sub = ap.add_subparsers(dest="cmd")

    p_check = sub.add_parser("check", help="Sync one mirror and report what changed")
    p_check.add_argument("--repository", help="Remote repository URL")
    p_check.add_argument("--path", help="Local bare mirror path (parent must exist)")
    p_check.add_argument("--watch", help="Use a watch from config instead of --repository/--path")
    p_check.add_argument("--events", help="JSONL event log (default: config or ~/.refwatch/events.jsonl)")
    p_check.add_argument("--max-log", type=int, help="Cap on commits reported per log window")
    p_check.add_argument("--lock-timeout", type=float, help="Seconds to wait for a busy mirror (default: config schedule.lock_timeout)")
    p_check.add_argument("--json", dest="as_json", action="store_true", help="Print the report as JSON")
    p_check.add_argument("--project-path", help="Project directory for config discovery")

    p_watch = sub.add_parser("watch", help="Check every configured repository on a schedule")
    p_watch.add_argument("--once", action="store_true", help="Run each watch once and exit")
    p_watch.add_argument("--interval", help="Override interval (seconds or e.g. 30m, 12h)")
    p_watch.add_argument("--events", help="JSONL event log override")
    p_watch.add_argument("--project-path", help="Project directory for config discovery")

    p_config = sub.add_parser("config", help="Configuration management")
    config_sub = p_config.add_subparsers(dest="config_cmd")

    p_config_init = config_sub.add_parser("init", help="Initialize config file from template")
    p_config_init.add_argument("--user", action="store_true", help="Create user config (~/.refwatch/config.toml)")
    p_config_init.add_argument("--project", action="store_true", help="Create project config (.refwatch/config.toml)")
    p_config_init.add_argument("--force", action="store_true", help="Overwrite existing config")

    p_config_show = config_sub.add_parser("show", help="Show resolved configuration")
    p_config_show.add_argument("--project-path", help="Project directory for config discovery")
    p_config_show.add_argument("--json", dest="as_json", action="store_true", help="Output as JSON")
    p_config_show.add_argument("--sources", action="store_true", help="Show config source files")

    p_config_validate = config_sub.add_parser("validate", help="Validate configuration files")
    p_config_validate.add_argument("--project-path", help="Project directory for config discovery")

    args = ap.parse_args(argv)

    if not args.cmd:
        ap.print_help()
        sys.exit(0)

    if args.cmd == "check":
        from .config_loader import validate_options
        from .lock import MirrorLock
        from refwatch_agent.agent import GitAgent
        from refwatch_agent.events import JsonlEventLog

        project_path = Path(args.project_path) if args.project_path else None
        config = _load_config_or_exit(project_path)

        options: dict = {}
        if args.watch:
            watch = config.get_watch(args.watch)
            if watch is None:
                print(f"❌ Unknown watch: {args.watch}", file=sys.stderr)
                sys.exit(1)
            options.update(watch.model_dump())
        if args.repository:
            options["repository"] = args.repository
        if args.path:
            options["path"] = args.path
        if args.max_log:
            options["max_log_entries"] = args.max_log

        errors = validate_options(options)
        if errors:
            for error in errors:
                print(f"❌ {error}", file=sys.stderr)
            sys.exit(2)

        sink = JsonlEventLog(_events_file(args.events, config), source=args.watch or "check")
        agent = GitAgent(args.watch or "check", options, sink)

        mirror_path = Path(str(options["path"]).strip()).expanduser()
        if mirror_path.parent.is_dir():
            lock_timeout = args.lock_timeout if args.lock_timeout is not None else config.schedule.lock_timeout
            lock = MirrorLock(mirror_path, timeout=lock_timeout)
            if not lock.acquire():
                print(f"❌ Mirror is busy: {lock.path}", file=sys.stderr)
                sys.exit(1)
            try:
                payload = agent.check()
            finally:
                lock.release()
        else:
            # Let the agent report the bad path
            payload = agent.check()
        if payload is None:
            print(f"❌ {agent.orchestrator.last_error}", file=sys.stderr)
            sys.exit(1)

        if args.as_json:
            print(json.dumps(payload, indent=2))
        else:
            _print_summary(payload)
        sys.exit(0)

    if args.cmd == "watch":
        import threading

        from .config_schema import parse_duration
        from refwatch_agent.agent import GitAgent
        from refwatch_agent.events import JsonlEventLog
        from refwatch_agent.observability import configure_logging
        from refwatch_agent.scheduler import Scheduler

        project_path = Path(args.project_path) if args.project_path else None
        config = _load_config_or_exit(project_path)
        configure_logging(config.logging)

        if not config.watches:
            print("No watches configured. Add [watches.<name>] tables to config.toml.", file=sys.stderr)
            sys.exit(1)

        events_file = _events_file(args.events, config)
        agents = [
            GitAgent.from_watch(name, watch, JsonlEventLog(events_file, source=name))
            for name, watch in config.watches.items()
        ]
        try:
            interval = parse_duration(args.interval) if args.interval else config.schedule.interval
        except ValueError as e:
            print(f"❌ {e}", file=sys.stderr)
            sys.exit(2)

        scheduler = Scheduler(agents, interval, lock_timeout=config.schedule.lock_timeout)
        if args.once:
            scheduler.run_pending()
            failed = [a.name for a in scheduler.agents if not a.working]
            for name, info in scheduler.stats().items():
                mark = "✓" if info["working"] else "✗"
                print(f"  {mark} {name}")
            sys.exit(1 if failed else 0)

        stop = threading.Event()
        print(f"Watching {len(agents)} repositories every {interval:g}s (Ctrl-C to stop)")
        try:
            scheduler.run_forever(stop)
        except KeyboardInterrupt:
            stop.set()
        sys.exit(0)

    if args.cmd == "config":
        import shutil

        if not args.config_cmd:
            print("Usage: refwatch config {init|show|validate}")
            sys.exit(0)

        if args.config_cmd == "init":
            from .config_loader import ensure_config_dir, CONFIG_FILENAME

            template_path = Path(__file__).parent / "templates" / "config.example.toml"
            if not template_path.exists():
                print(f"❌ Template not found: {template_path}", file=sys.stderr)
                sys.exit(1)

            if args.project:
                config_dir = ensure_config_dir(user=False, project_path=Path.cwd())
                location = "project"
            else:
                config_dir = ensure_config_dir(user=True)
                location = "user"
            target_path = config_dir / CONFIG_FILENAME

            if target_path.exists() and not args.force:
                print(f"❌ Config already exists: {target_path}", file=sys.stderr)
                print("Use --force to overwrite.", file=sys.stderr)
                sys.exit(1)

            shutil.copy(template_path, target_path)
            print(f"✅ Created {location} config: {target_path}")
            sys.exit(0)

        if args.config_cmd == "show":
            from .config_loader import get_config_paths

            project_path = Path(args.project_path) if args.project_path else None

            if args.sources:
                print("Config sources (in priority order):")
                for name, path in get_config_paths(project_path).items():
                    if path and path.exists():
                        print(f"  ✓ {name}: {path}")
                    elif path:
                        print(f"  ✗ {name}: {path} (not found)")
                    else:
                        print(f"  - {name}: (not applicable)")
                print()
                print("Environment variables override all file configs.")
                sys.exit(0)

            config = _load_config_or_exit(project_path)
            if args.as_json:
                print(json.dumps(config.model_dump(), indent=2))
            else:
                import tomlkit

                doc = tomlkit.document()
                doc.add(tomlkit.comment(" refwatch configuration (resolved)"))
                doc.add(tomlkit.nl())
                config_dict = config.model_dump(exclude_none=True)
                for section, values in config_dict.items():
                    if isinstance(values, dict):
                        table = tomlkit.table()
                        for key, val in values.items():
                            if isinstance(val, dict):
                                subtable = tomlkit.table()
                                for subkey, subval in val.items():
                                    subtable.add(subkey, subval)
                                table.add(key, subtable)
                            else:
                                table.add(key, val)
                        doc.add(section, table)
                    else:
                        doc.add(section, values)
                print(tomlkit.dumps(doc))
            sys.exit(0)

        if args.config_cmd == "validate":
            import warnings as warnings_module

            from .config_loader import load_config, get_config_paths, ConfigError

            project_path = Path(args.project_path) if args.project_path else None
            found_any = False
            for name, path in get_config_paths(project_path).items():
                if path and path.exists():
                    found_any = True
                    print(f"  ✓ Found: {path}")
            if not found_any:
                print("  ! No config files found. Using defaults.")

            with warnings_module.catch_warnings(record=True) as caught:
                warnings_module.simplefilter("always")
                try:
                    config = load_config(project_path)
                except ConfigError as e:
                    print(f"❌ {e}", file=sys.stderr)
                    sys.exit(1)
            for w in caught:
                print(f"  ! {w.message}")
            print()
            print(f"✓ Configuration is valid ({len(config.watches)} watches).")
            sys.exit(0)

    ap.print_help()
    sys.exit(1)


if __name__ == "__main__":
    main()
