"""Minimal .env loader for sandbox credentials and LLM keys."""

from __future__ import annotations

import os
import re
from pathlib import Path

_ENV_LOADED = False

# KEY=value with an optional leading ``export``; the value may be quoted.
_ASSIGNMENT = re.compile(
    r"""^(?:export\s+)?(?P<key>[^=\s#][^=]*?)\s*=\s*(?P<value>.*?)\s*$"""
)
_QUOTES = ("'", '"')


def load_dotenv(*, override: bool = False, start: Path | None = None) -> Path | None:
    """Load the nearest .env at or above *start* (default: cwd).

    Existing variables win unless *override* is set. Returns the file that
    was applied, or ``None`` when nothing was read or loading already ran.
    """
    global _ENV_LOADED
    if _ENV_LOADED and not override:
        return None
    _ENV_LOADED = True

    origin = start or Path.cwd()
    env_path = next(
        (base / ".env" for base in (origin, *origin.parents) if (base / ".env").is_file()),
        None,
    )
    if env_path is None:
        return None

    assignments = parse_env_lines(env_path.read_text(encoding="utf-8"))
    os.environ.update(
        {key: value for key, value in assignments if override or key not in os.environ}
    )
    return env_path


def parse_env_lines(text: str) -> list[tuple[str, str]]:
    """``(key, value)`` pairs in file order; comments and junk lines are skipped."""
    pairs = []
    for line in text.splitlines():
        match = _ASSIGNMENT.match(line.strip())
        if match is None:
            continue
        value = match["value"]
        if len(value) >= 2 and value[0] in _QUOTES and value[-1] == value[0]:
            value = value[1:-1]
        pairs.append((match["key"], value))
    return pairs
