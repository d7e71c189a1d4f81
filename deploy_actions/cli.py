"""CLI for deploy_actions."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Literal

from dotenv import load_dotenv

from deploy_actions.decoder import load_actions
from deploy_actions.deploy import Deploy, link_actions
from deploy_actions.errors import ActionDecodeError
from deploy_actions.executors.base import ActionResult
from deploy_actions.variants import Action
from utils.settings_store import get_settings

OutputFormat = Literal["text", "json"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run declarative deploy actions.")
    parser.add_argument("config", help="Path to a YAML or JSON file listing actions.")
    parser.add_argument(
        "--folder",
        default=None,
        help="Deploy folder used when copy/move omit 'to' (default: settings deploy_folder).",
    )
    parser.add_argument("--start", default=None, help="Name of the action to start from.")
    parser.add_argument(
        "--format",
        choices=["text", "json"],
        default="text",
        help="Summary format.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging.")
    return parser


def _configure_logging(verbose: bool, level_name: str) -> None:
    level = logging.DEBUG if verbose else getattr(logging, level_name.upper(), logging.INFO)
    logging.basicConfig(level=level, format="%(message)s", stream=sys.stderr)


def _load_env_files() -> None:
    """Load .env files from the working directory; existing variables win."""
    cwd = Path.cwd()
    for path in (cwd / "env/.env", cwd / ".env"):
        if path.exists():
            load_dotenv(dotenv_path=str(path), override=False)


def _render_text(actions: list[Action], results: list[ActionResult]) -> str:
    lines = []
    for action, result in zip(actions, results):
        status = "ok" if result.ok else f"error: {result.error}"
        lines.append(f"{action.name} ({action.action_type}): {status}")
    return "\n".join(lines)


def _render_json(actions: list[Action], results: list[ActionResult]) -> str:
    payload = [
        {"action": action.to_dict(), **result.to_dict()}
        for action, result in zip(actions, results)
    ]
    return json.dumps(payload, ensure_ascii=False, indent=2)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    _load_env_files()
    settings = get_settings()
    _configure_logging(args.verbose, str(settings.get("log_level", "INFO")))
    logger = logging.getLogger("deploy_actions")

    try:
        actions = list(link_actions(load_actions(args.config)))
    except (OSError, ActionDecodeError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    folder = args.folder or str(settings.get("deploy_folder") or ".")
    logger.debug("Loaded %d action(s) from %s, deploy folder %s", len(actions), args.config, folder)

    try:
        deploy = Deploy(folder)
        results = deploy.run(actions, start=args.start)
    except ActionDecodeError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    processed = deploy.processed
    fmt: OutputFormat = args.format
    if fmt == "json":
        print(_render_json(processed, results))
    elif processed:
        # stdout carries the replayed program output, keep the summary off it.
        print(_render_text(processed, results), file=sys.stderr)

    return 0 if all(result.ok for result in results) else 1


if __name__ == "__main__":
    raise SystemExit(main())
