"""
Configuration helpers for the statistics engine.
"""
from __future__ import annotations

import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import yaml

from .exceptions import RatingConfigError

_ENV_LOADED = False

ENV_PREFIX = "COURTSTATS_"
DEFAULT_DATA_DIR = ".cache/matches"
DEFAULT_WEIGHTS_PATH = Path("config/rating_weights.yml")


def _env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(f"{ENV_PREFIX}{name}", default)


def _env_file_candidates() -> List[Path]:
    candidates: List[Path] = []
    explicit = _env("ENV_FILE")
    if explicit:
        candidates.append(Path(explicit))
    cwd_env = Path.cwd() / ".env"
    candidates.append(cwd_env)
    repo_env = Path(__file__).resolve().parents[1] / ".env"
    if repo_env != cwd_env:
        candidates.append(repo_env)
    return candidates


def _read_env_file(path: Path) -> Dict[str, str]:
    """
    Return the ``COURTSTATS_*`` assignments of a .env file.

    Other keys are ignored so a .env shared with other tools does not leak
    into this process.
    """
    values: Dict[str, str] = {}
    for line in path.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped.startswith("export "):
            stripped = stripped[len("export "):].lstrip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        if key.startswith(ENV_PREFIX):
            values[key] = value.strip().strip('"').strip("'")
    return values


def _ensure_env_loaded() -> None:
    """
    Load ``COURTSTATS_*`` variables from a .env file if present.

    Variables already set in the environment win over file values.
    """
    global _ENV_LOADED  # noqa: PLW0603 - intentional module level state
    if _ENV_LOADED:
        return

    for path in _env_file_candidates():
        if not path.exists():
            continue
        try:
            values = _read_env_file(path)
        except (OSError, UnicodeDecodeError):
            continue
        for key, value in values.items():
            os.environ.setdefault(key, value)

    _ENV_LOADED = True


def _to_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


@dataclass(frozen=True)
class StatsSettings:
    """
    Runtime configuration for the match store and aggregation facade.
    """

    data_dir: str
    rating_weights_path: str
    prefetch_workers: int = 4

    @classmethod
    def from_env(cls) -> "StatsSettings":
        """
        Construct settings using environment variables with sensible defaults.
        """
        _ensure_env_loaded()
        return cls(
            data_dir=_env("DATA_DIR", DEFAULT_DATA_DIR),
            rating_weights_path=_env("RATING_WEIGHTS", str(DEFAULT_WEIGHTS_PATH)),
            prefetch_workers=max(1, _to_int(_env("PREFETCH_WORKERS"), 4)),
        )


@dataclass(frozen=True)
class RatingWeights:
    """
    Signed weight per rating category.

    Field names match the category names used in weight files, lowercased.
    """

    goal: float
    miss: float
    assist: float
    steal: float
    block: float
    earned_7m: float
    good_id: float
    turnover: float
    yellow: float
    two_min: float
    red: float
    blue: float
    save: float
    goal_conceded: float

    @classmethod
    def categories(cls) -> tuple[str, ...]:
        return tuple(f.name.upper() for f in fields(cls))

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any]) -> "RatingWeights":
        """
        Build weights from a ``{"GOAL": 4, ...}`` mapping.

        Every category must be present and numeric. Keys are matched
        case-insensitively; unknown keys are ignored.
        """
        if not isinstance(mapping, Mapping):
            raise RatingConfigError(
                f"Rating weights must be a mapping, got {type(mapping).__name__}"
            )
        normalised = {str(key).strip().upper(): value for key, value in mapping.items()}
        missing = tuple(name for name in cls.categories() if name not in normalised)
        if missing:
            raise RatingConfigError(
                "Missing rating weights for: " + ", ".join(missing),
                missing=missing,
            )
        values: Dict[str, float] = {}
        for name in cls.categories():
            raw = normalised[name]
            if isinstance(raw, bool):
                raise RatingConfigError(f"Rating weight {name} must be numeric")
            try:
                values[name.lower()] = float(raw)
            except (TypeError, ValueError) as exc:
                raise RatingConfigError(
                    f"Rating weight {name} must be numeric, got {raw!r}"
                ) from exc
        return cls(**values)

    def as_dict(self) -> Dict[str, float]:
        return {f.name.upper(): getattr(self, f.name) for f in fields(self)}


def resolve_weights_path(path: Optional[Path] = None) -> Path:
    """
    Resolve the rating weights path using the provided override or environment variable.
    """
    if path is not None:
        return path
    override = _env("RATING_WEIGHTS")
    if override:
        return Path(override)
    return DEFAULT_WEIGHTS_PATH


def load_rating_weights(path: Optional[Path] = None) -> RatingWeights:
    """
    Parse a YAML weight table into ``RatingWeights``.

    The file holds either a flat mapping or a mapping under a top level
    ``rating_weights`` key.
    """
    weights_path = resolve_weights_path(path)
    if not weights_path.exists():
        raise FileNotFoundError(f"Rating weights file not found at {weights_path}")
    with weights_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if isinstance(raw, Mapping) and "rating_weights" in raw:
        raw = raw["rating_weights"] or {}
    return RatingWeights.from_mapping(raw)
