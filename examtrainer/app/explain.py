from __future__ import annotations

"""Explain mode: one-line traces at exam and backup milestones.

Off by default; the CLI turns it on with `--explain`. Lines look like
`[EXPLAIN] exam_finished :: {"score":80,...}`.
"""

import json
import sys
from typing import Any, Callable, Dict, Optional

_ENABLED = False
_SINK: Optional[Callable[[str], None]] = None


def enable(flag: bool = True, sink: Optional[Callable[[str], None]] = None) -> None:
    """Turn tracing on or off. `sink` receives each line instead of stdout."""
    global _ENABLED, _SINK
    _ENABLED = bool(flag)
    _SINK = sink


def enabled() -> bool:
    return _ENABLED


def _emit(line: str) -> None:
    if _SINK is not None:
        _SINK(line)
    else:
        print(line, file=sys.stdout)


def trace(event: str, payload: Dict[str, Any] | None = None) -> None:
    if not _ENABLED:
        return
    try:
        body = json.dumps(payload or {}, separators=(",", ":"), default=str)
    except (TypeError, ValueError):
        _emit(f"[EXPLAIN] {event}")
        return
    _emit(f"[EXPLAIN] {event} :: {body}")
