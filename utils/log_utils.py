"""Timestamped logging helpers.

Lines go to stderr so they never interleave with subprocess output that the
run executor replays onto stdout.
"""

from __future__ import annotations

import re
import sys
import time
from typing import Any, TextIO


LEVELS = ("DEEP", "DEBUG", "INFO", "WARN", "ERROR")
_TAG_RE = re.compile(r"\s*\[([^\[\]]*)\]")


def _split_tags(message: str) -> tuple[list[str], str]:
    """Peel leading ``[TAG]`` groups off ``message``."""
    tags: list[str] = []
    pos = 0
    while (match := _TAG_RE.match(message, pos)) and match.group(1).strip():
        tags.append(match.group(1).strip())
        pos = match.end()
    return tags, message[pos:].strip()


def format_message(message: str) -> str:
    """Normalize ``[LEVEL][SYSTEM] text`` and ``[SYSTEM][LEVEL] text`` to the latter."""
    tags, remaining = _split_tags(message)
    if not tags:
        return f"[DEPLOY] {remaining}" if remaining else "[DEPLOY]"
    if tags[0].upper() in LEVELS:
        level = tags[0].upper()
        system = tags[1] if len(tags) > 1 else "DEPLOY"
        extra = tags[2:]
    else:
        system = tags[0]
        level = tags[1].upper() if len(tags) > 1 else None
        extra = tags[2:]
    head = f"[{system}][{level}]" if level else f"[{system}]"
    if extra:
        head += f" [{' '.join(extra)}]"
    return f"{head} {remaining}" if remaining else head


def tprint(*args: Any, file: TextIO | None = None) -> None:
    """Print with a timestamp prefix and normalized tag order."""
    timestamp = time.strftime("%Y-%m-%d %H:%M:%S")
    message = " ".join(str(arg) for arg in args)
    print(f"[{timestamp}]{format_message(message)}", file=file or sys.stderr, flush=True)

