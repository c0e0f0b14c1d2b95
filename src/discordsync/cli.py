"""
Command-line interface for discordsync.

Usage (examples):
  - Plan only (reads from Discord, no changes, state untouched):
      dsync apply --declarations ./resources.yml --state ./discordsync.state.json --dry-run

  - Real apply:
      dsync apply --declarations ./resources.yml --token "$DISCORD_TOKEN"

  - Data sources:
      dsync members --server-id 123
      dsync channel --server-id 123 --name general
"""

from __future__ import annotations

import argparse
import json
import sys
from typing import Any, Dict, Iterable, List

from .core.applier import STATUS_ORDER, Applier, ApplyResult
from .core.config import AppConfig, load_config
from .core.data_sources import DataSourceError, find_channel, list_members
from .core.declarations import DeclarationError, load_declarations
from .core.directory import DiscordDirectory
from .core.discord_client import DiscordClient
from .core.logging_setup import build_logger
from .core.state_store import StateError, StateStore


def _summarize_counts(counts: Dict[str, int]) -> str:
    # stable order for readability
    return " | ".join(f"{k}={counts.get(k, 0)}" for k in STATUS_ORDER)


def _exit_code_from_counts(counts: Dict[str, int]) -> int:
    if counts.get("ERROR", 0) or counts.get("EXCEPTION", 0):
        return 2
    return 0


def _print_results(results: List[ApplyResult]) -> None:
    for r in results:
        if r.status == "UNCHANGED":
            continue
        line = f"{r.status:<9} {r.address}"
        if r.detail:
            line += f"  ({r.detail})"
        if r.error:
            line += f"  error: {r.error}"
        print(line)


def _add_connection_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default=None, help="Config YAML (default: ./discordsync.yml and friends)")
    p.add_argument("--base-url", default="", help="Discord API base URL")
    p.add_argument("--token", default="", help="Discord bot token")
    p.add_argument("--verify-tls", default=None, choices=["true", "false"], help="Verify TLS")
    p.add_argument("--timeout-sec", type=int, default=None, help="HTTP timeout seconds")
    p.add_argument("--retries", type=int, default=None, help="HTTP retries (5xx/network)")

    p.add_argument("--logs-dir", default="", help="Logs base directory")
    p.add_argument("--console-level", default="", help="Console log level (INFO..CRITICAL)")
    p.add_argument("--file-level", default="", help="File log level (DEBUG..CRITICAL)")


def _build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="dsync", description="Declarative Discord server reconciliation")

    sub = p.add_subparsers(dest="cmd", required=True)

    a = sub.add_parser("apply", help="Converge Discord to the declarations file")
    a.add_argument("--declarations", default="", help="Declarations YAML file")
    a.add_argument("--state", default="", help="State JSON file")
    a.add_argument("--dry-run", action="store_true", help="Plan only, no changes")
    _add_connection_args(a)

    m = sub.add_parser("members", help="List all members of a server as JSON")
    m.add_argument("--server-id", required=True, help="Server (guild) ID")
    _add_connection_args(m)

    c = sub.add_parser("channel", help="Show one channel as JSON")
    c.add_argument("--server-id", required=True, help="Server (guild) ID")
    c.add_argument("--channel-id", default="", help="Channel ID")
    c.add_argument("--name", default="", help="Channel name")
    _add_connection_args(c)

    return p


def _cli_overrides(args: argparse.Namespace) -> Dict[str, Any]:
    """Only flags actually given override file/env configuration."""
    def pick(section: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in section.items() if v not in (None, "")}

    return {
        "app": pick({"dry_run": True if getattr(args, "dry_run", False) else None}),
        "discord": pick({
            "base_url": args.base_url,
            "token": args.token,
            "verify_tls": args.verify_tls,
            "timeout_sec": args.timeout_sec,
            "retries": args.retries,
        }),
        "inputs": pick({
            "declarations_path": getattr(args, "declarations", ""),
            "state_path": getattr(args, "state", ""),
        }),
        "logging": pick({
            "base_dir": args.logs_dir,
            "console_level": args.console_level,
            "file_level": args.file_level,
        }),
    }


def _load(args: argparse.Namespace) -> AppConfig:
    if args.config:
        return load_config(_cli_overrides(args), files=(args.config,))
    return load_config(_cli_overrides(args))


def _client(cfg: AppConfig, logger) -> DiscordClient:
    return DiscordClient(
        cfg.discord.token,
        base_url=cfg.discord.base_url,
        token_type=cfg.discord.token_type,
        verify_tls=bool(cfg.discord.verify_tls),
        timeout_sec=int(cfg.discord.timeout_sec),
        retries=int(cfg.discord.retries),
        logger=logger,
    )


def _logger(cfg: AppConfig, action: str, extra: Dict[str, Any]):
    return build_logger(
        run_id=cfg.run_id,
        action=action,
        base_dir=cfg.logging.base_dir,
        console_level=cfg.logging.console_level,
        file_level=cfg.logging.file_level,
        extra=extra,
    )


def _apply_cmd(args: argparse.Namespace) -> int:
    cfg = _load(args)
    logger = _logger(cfg, "apply", {"declarations": cfg.inputs.declarations_path})
    logger.info("Starting dsync apply (dry_run=%s)", cfg.app.dry_run)

    try:
        declarations = load_declarations(cfg.inputs.declarations_path)
        state = StateStore.load(cfg.inputs.state_path)
    except (DeclarationError, StateError, FileNotFoundError) as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    logger.info("Loaded %s declarations and %s state entries", len(declarations), len(state))

    client = _client(cfg, logger)
    try:
        applier = Applier(DiscordDirectory(client, logger=logger), state, dry_run=cfg.app.dry_run, logger=logger)
        results, counts = applier.apply(declarations)
    finally:
        client.close()

    summary = _summarize_counts(counts)
    logger.info("%s summary: %s", "Dry-run" if cfg.app.dry_run else "Apply", summary)
    _print_results(results)
    print(summary)
    return _exit_code_from_counts(counts)


def _members_cmd(args: argparse.Namespace) -> int:
    cfg = _load(args)
    logger = _logger(cfg, "members", {"server": args.server_id})
    client = _client(cfg, logger)
    try:
        rows = list_members(DiscordDirectory(client, logger=logger), args.server_id)
    except DataSourceError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    finally:
        client.close()
    print(json.dumps(rows, indent=2))
    return 0


def _channel_cmd(args: argparse.Namespace) -> int:
    cfg = _load(args)
    logger = _logger(cfg, "channel", {"server": args.server_id})
    client = _client(cfg, logger)
    try:
        row = find_channel(
            DiscordDirectory(client, logger=logger),
            args.server_id,
            channel_id=args.channel_id or None,
            name=args.name or None,
        )
    except DataSourceError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 2
    finally:
        client.close()
    print(json.dumps(row, indent=2))
    return 0


_COMMANDS = {
    "apply": _apply_cmd,
    "members": _members_cmd,
    "channel": _channel_cmd,
}


def main(argv: Iterable[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)

    handler = _COMMANDS.get(args.cmd)
    if handler is None:  # pragma: no cover
        parser.error("Unknown command")
    try:
        return handler(args)
    except ValueError as e:
        # configuration errors (missing token, bad YAML shape)
        print(f"error: {e}", file=sys.stderr)
        return 2


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
