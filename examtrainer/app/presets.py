from __future__ import annotations

"""Named exam presets: a mode and a question count picked in one word.

Explicit `--mode`/`--count` flags override a preset.
"""

from typing import Any, Dict

EXAM_PRESETS: Dict[str, Dict[str, Any]] = {
    "quick": {"mode": "random", "count": "10"},
    "standard": {"mode": "random", "count": "20"},
    "long": {"mode": "random", "count": "30"},
    "full": {"mode": "all", "count": "all"},
    "review": {"mode": "wrong", "count": "all"},
    "drill": {"mode": "frequently-wrong", "count": "all"},
    "fresh": {"mode": "unattempted", "count": "all"},
    "starred": {"mode": "important", "count": "all"},
}


def resolve_preset(name: str | None, exam_cfg: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """Merge config defaults -> preset -> explicit overrides (None values ignored)."""
    params = {"mode": exam_cfg.get("mode", "random"), "count": str(exam_cfg.get("count", "10"))}
    if name:
        if name not in EXAM_PRESETS:
            raise KeyError(f"Unknown preset '{name}'. Choose from: {', '.join(EXAM_PRESETS)}")
        params.update(EXAM_PRESETS[name])
    params.update({k: str(v) for k, v in overrides.items() if v is not None})
    return params
