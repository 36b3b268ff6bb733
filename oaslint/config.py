"""Configuration loader for oaslint.

Configuration is resolved in priority order: **project > user > defaults**.

1. **Project-level**: ``.oaslint.yml`` in (or above) the linted file's
   directory, up to the enclosing ``.git`` root.
2. **User-level**: ``~/.oaslint/config.yml``.
3. **Built-in defaults**: ``ruleset: recommended``, ``fail_on: error``, etc.

Both files share the same format::

    # .oaslint.yml  or  ~/.oaslint/config.yml
    lint:
      ruleset: ./my-ruleset.yaml
      fail_on: error
      timeout_seconds: 5
      lookup_timeout_ms: 500
      ignore_file: ./oaslint-ignore.yaml
      skip_document_check: false
      allow_lookup: false
      ignore_circular_array_ref: false
      ignore_circular_polymorphic_ref: false
      extract_references_from_extensions: false
      base: ""

Project-level values override user-level values.  CLI flags override both.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path

import yaml

from oaslint.models import IgnoreList

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".oaslint.yml"
USER_CONFIG_DIR = Path.home() / ".oaslint"
USER_CONFIG_PATH = USER_CONFIG_DIR / "config.yml"

DEFAULT_RULESET = "recommended"
DEFAULT_FAIL_ON = "error"


# ---------------------------------------------------------------------------
# Data classes
# ---------------------------------------------------------------------------


@dataclass
class LintConfig:
    """The ``lint`` section."""

    ruleset: str = DEFAULT_RULESET
    fail_on: str = DEFAULT_FAIL_ON
    timeout_seconds: float = 5.0
    lookup_timeout_ms: int = 500
    ignore_file: str = ""
    skip_document_check: bool = False
    allow_lookup: bool = False
    ignore_circular_array_ref: bool = False
    ignore_circular_polymorphic_ref: bool = False
    extract_references_from_extensions: bool = False
    base: str = ""

    # Where the effective config was loaded from (None = defaults only).
    project_config_path: str | None = None
    user_config_path: str | None = None

    @property
    def lookup_timeout(self) -> float:
        """Lookup budget in seconds."""
        return self.lookup_timeout_ms / 1000.0


# ---------------------------------------------------------------------------
# Public loaders
# ---------------------------------------------------------------------------


def load_config(
    spec_path: str | None = None,
    config_path: str | Path | None = None,
) -> LintConfig:
    """Load merged configuration (project > user > defaults).

    Parameters
    ----------
    spec_path:
        The document being linted; ``.oaslint.yml`` is searched from its
        directory upward.  When *None*, only the user-level file (and
        defaults) are considered.
    config_path:
        Explicit config file path.  When given, *only* this file is
        loaded (no project/user search).
    """
    if config_path is not None:
        raw = _load_yaml(Path(config_path))
        cfg = _raw_to_config(raw)
        cfg.project_config_path = str(config_path) if raw else None
        return cfg

    user_raw = _load_yaml(USER_CONFIG_PATH)
    user_source = str(USER_CONFIG_PATH) if user_raw else None

    project_raw: dict | None = None
    project_source: str | None = None
    if spec_path is not None:
        project_path = _find_project_config(spec_path)
        if project_path is not None:
            project_raw = _load_yaml(project_path)
            project_source = str(project_path) if project_raw else None

    cfg = _raw_to_config(_merge_raw(project_raw, user_raw))
    cfg.project_config_path = project_source
    cfg.user_config_path = user_source
    return cfg


def load_ignore_file(path: str | Path) -> IgnoreList:
    """Read an ignore list file: ``{rule-id: [canonical-path, ...]}``.

    A missing or malformed file yields an empty list and a warning.
    """
    raw = _load_yaml(Path(path))
    if raw is None:
        logger.warning("ignore file '%s' is missing or not a mapping, ignoring it", path)
        return {}
    ignore: IgnoreList = {}
    for rule_id, paths in raw.items():
        entries = _as_list(paths)
        if entries:
            ignore[str(rule_id)] = entries
    return ignore


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _find_project_config(spec_path: str) -> Path | None:
    """Search for ``.oaslint.yml`` beside *spec_path* and in its ancestors."""
    p = Path(spec_path).expanduser().resolve()
    start = p if p.is_dir() else p.parent
    candidates = [start / CONFIG_FILENAME]
    if not (start / ".git").exists():
        for parent in start.parents:
            candidates.append(parent / CONFIG_FILENAME)
            if (parent / ".git").exists():
                break
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _load_yaml(path: Path) -> dict | None:
    """Load a YAML file, returning *None* on missing/invalid files."""
    path = path.expanduser()
    if not path.is_file():
        return None
    try:
        raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        logger.warning("unable to read config '%s': %s", path, exc)
        return None
    return raw if isinstance(raw, dict) else None


def _merge_raw(project: dict | None, user: dict | None) -> dict:
    """Merge project and user raw dicts (project wins, per key)."""
    base: dict = {}
    if user and isinstance(user.get("lint"), dict):
        base["lint"] = dict(user["lint"])
    if project and isinstance(project.get("lint"), dict):
        base.setdefault("lint", {})
        base["lint"].update(project["lint"])
    return base


def _raw_to_config(raw: dict | None) -> LintConfig:
    """Convert a raw YAML dict to a ``LintConfig``."""
    if not raw:
        return LintConfig()
    lint_raw = raw.get("lint", {})
    if not isinstance(lint_raw, dict):
        lint_raw = {}

    return LintConfig(
        ruleset=str(lint_raw.get("ruleset") or DEFAULT_RULESET),
        fail_on=str(lint_raw.get("fail_on", DEFAULT_FAIL_ON)).lower(),
        timeout_seconds=float(lint_raw.get("timeout_seconds", 5.0)),
        lookup_timeout_ms=int(lint_raw.get("lookup_timeout_ms", 500)),
        ignore_file=str(lint_raw.get("ignore_file") or ""),
        skip_document_check=bool(lint_raw.get("skip_document_check", False)),
        allow_lookup=bool(lint_raw.get("allow_lookup", False)),
        ignore_circular_array_ref=bool(lint_raw.get("ignore_circular_array_ref", False)),
        ignore_circular_polymorphic_ref=bool(
            lint_raw.get("ignore_circular_polymorphic_ref", False)
        ),
        extract_references_from_extensions=bool(
            lint_raw.get("extract_references_from_extensions", False)
        ),
        base=str(lint_raw.get("base") or ""),
    )


def _as_list(val: object) -> list[str]:
    """Coerce a value to a list of strings."""
    if isinstance(val, list):
        return [str(v) for v in val]
    if isinstance(val, str):
        return [val]
    return []
