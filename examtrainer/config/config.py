from __future__ import annotations

"""Configuration loading and validation for examtrainer.

This module loads YAML configuration, applies defaults, and validates
that enumerations and numeric settings are sane for the CLI.
"""

from pathlib import Path
from typing import Any, Dict, Optional

import sys

import yaml


ALLOWED_EXAM_MODES = {"all", "random", "wrong", "unattempted", "important", "frequently-wrong"}
ALLOWED_COUNTS = {"10", "20", "30", "all"}
ALLOWED_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR"}


def _load_yaml(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}
    except FileNotFoundError:
        print(f"ERROR: Config file not found: {path}", file=sys.stderr)
        sys.exit(1)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load configuration from YAML or defaults.

    Args:
        path: Optional path to a YAML config. If None, use package defaults.

    Returns:
        A dictionary with configuration values.
    """
    if path:
        cfg = _load_yaml(Path(path))
    else:
        default_path = Path(__file__).with_name("defaults.yml")
        cfg = _load_yaml(default_path)
    return cfg


def validate_config(cfg: Dict[str, Any]) -> Dict[str, Any]:
    """Apply defaults and validate configuration values.

    Unsupported enum values produce a warning and fall back to the default.

    Args:
        cfg: The raw configuration dictionary.

    Returns:
        The validated and merged configuration dictionary.
    """
    # Shallow defaults for missing sections
    for section in ("storage", "questions", "exam", "backup", "analytics", "logging"):
        if not isinstance(cfg.get(section), dict):
            cfg[section] = {}

    storage = cfg["storage"]
    questions = cfg["questions"]
    exam = cfg["exam"]
    backup = cfg["backup"]
    analytics = cfg["analytics"]
    log = cfg["logging"]

    storage.setdefault("data_dir", "./examtrainer-data")

    questions.setdefault("default_source", None)
    questions.setdefault("fetch_timeout_s", 10)

    exam.setdefault("mode", "all")
    exam.setdefault("count", "10")
    exam.setdefault("show_explanations", True)

    backup.setdefault("compression_level", 6)

    analytics.setdefault("smoothing_span", 5)
    analytics.setdefault("weak_accuracy", 0.6)

    log.setdefault("level", "WARNING")

    # Enum validations
    mode = exam.get("mode")
    if mode not in ALLOWED_EXAM_MODES:
        print(f"WARNING: Unsupported exam mode '{mode}', using 'all'.")
        exam["mode"] = "all"

    count = str(exam.get("count")).lower()
    if count not in ALLOWED_COUNTS:
        print(f"WARNING: Unsupported question count '{exam.get('count')}', using 10.")
        count = "10"
    exam["count"] = count

    level = str(log.get("level", "")).upper()
    if level not in ALLOWED_LOG_LEVELS:
        print(f"WARNING: Unsupported logging level '{log.get('level')}', using 'WARNING'.")
        level = "WARNING"
    log["level"] = level

    try:
        lvl = int(backup.get("compression_level"))
    except (TypeError, ValueError):
        lvl = 6
    if not (0 <= lvl <= 9):
        print(f"WARNING: compression_level must be 0..9, got {lvl}; using 6.")
        lvl = 6
    backup["compression_level"] = lvl

    try:
        questions["fetch_timeout_s"] = float(questions.get("fetch_timeout_s"))
    except (TypeError, ValueError):
        questions["fetch_timeout_s"] = 10.0

    storage["data_dir"] = str(storage["data_dir"])
    exam["show_explanations"] = bool(exam.get("show_explanations"))

    return cfg
