# katreview/common/config.py
"""Typed configuration.

Configuration lives in a JSON file with two sections, ``engine`` and
``annotate``. Each section becomes a frozen dataclass via ``from_dict``: missing
keys take defaults and values of the wrong type fall back to the default
instead of failing. Values that parse but make no sense (a threshold of 5, a
negative variation count) are rejected by ``validate``.

Usage:
    config = load_config("katreview.json")
    config.engine.model
    config.annotate.threshold
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from typing import Any

from katreview.core.constants import (
    COLOR_SOURCE_RECORD,
    COLOR_SOURCES,
    DEFAULT_ANALYSIS_THREADS,
    DEFAULT_BOARD_SIZE,
    DEFAULT_INPUT_PATH,
    DEFAULT_KOMI,
    DEFAULT_MAX_VARIATIONS,
    DEFAULT_OUTPUT_PATH,
    DEFAULT_QUERY_ID,
    DEFAULT_RESULTS_PATH,
    DEFAULT_RULES,
    DEFAULT_SWING_THRESHOLD,
    MAX_BOARD_SIZE,
)
from katreview.core.errors import ConfigError

logger = logging.getLogger(__name__)


# =============================================================================
# Helper Functions
# =============================================================================


def safe_int(value: Any, default: int) -> int:
    """int conversion. None, bool, float or unparsable values give default.

    bool is a subclass of int, but True -> 1 is never what a config file means.
    float is refused to avoid silent truncation.
    """
    if value is None or isinstance(value, (bool, float)):
        return default
    if isinstance(value, int):
        return value
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def safe_float(value: Any, default: float) -> float:
    """float conversion. None, bool or unparsable values give default."""
    if value is None or isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def safe_optional_float(value: Any, default: float | None = None) -> float | None:
    """Like safe_float, but an explicit null (or "none") means no value."""
    if value is None or (isinstance(value, str) and value.strip().lower() == "none"):
        return None
    if isinstance(value, bool):
        return default
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def safe_optional_int(value: Any, default: int | None = None) -> int | None:
    if value is None:
        return None
    result = safe_int(value, -1)
    return default if result == -1 else result


def safe_bool(value: Any, default: bool = False) -> bool:
    """bool conversion. Unrecognized strings (typos) give default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value != 0
    if isinstance(value, str):
        lower = value.strip().lower()
        if lower in ("true", "1", "yes"):
            return True
        if lower in ("false", "0", "no"):
            return False
    return default


def safe_str(value: Any, default: str) -> str:
    """str conversion. None, empty or non-str values give default (avoids str(None) == "None")."""
    if not isinstance(value, str) or not value:
        return default
    return value


def normalize_path(value: Any) -> str | None:
    """Path normalization. None, blank or non-str values give None, ~ is expanded."""
    if not isinstance(value, str) or not value.strip():
        return None
    return os.path.expanduser(value)


ENGINE_PATH_FIELDS = ("katago", "model", "config")
ANNOTATE_PATH_FIELDS = ("input_path", "output_path", "results_path")


def _normalized_changes(changes: dict[str, Any] | None, path_fields: tuple[str, ...]) -> dict[str, Any]:
    result = {}
    for key, value in (changes or {}).items():
        if key in path_fields:
            value = normalize_path(value)
        if value is not None:
            result[key] = value
    return result


# =============================================================================
# Config sections
# =============================================================================


@dataclass(frozen=True)
class EngineConfig:
    """KataGo engine settings (``engine`` section).

    Attributes:
        katago: KataGo executable, searched in PATH when it has no directory part
        altcommand: Full command line replacing katago/model/config/threads
        model: Network weights file
        config: Analysis config file
        analysis_threads: Value of -analysis-threads
        timeout: Seconds to wait for KataGo, None waits forever
        max_visits: Visit limit put in the query, None keeps the config file's
        override_settings: KataGo overrideSettings put in the query
    """

    katago: str | None = None
    altcommand: str | None = None
    model: str | None = None
    config: str | None = None
    analysis_threads: int = DEFAULT_ANALYSIS_THREADS
    timeout: float | None = None
    max_visits: int | None = None
    override_settings: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "EngineConfig":
        override_settings = d.get("override_settings")
        return cls(
            katago=normalize_path(d.get("katago")),
            altcommand=safe_str(d.get("altcommand"), "") or None,
            model=normalize_path(d.get("model")),
            config=normalize_path(d.get("config")),
            analysis_threads=safe_int(d.get("analysis_threads"), DEFAULT_ANALYSIS_THREADS),
            timeout=safe_optional_float(d.get("timeout")),
            max_visits=safe_optional_int(d.get("max_visits")),
            override_settings=dict(override_settings) if isinstance(override_settings, dict) else {},
        )


@dataclass(frozen=True)
class AnnotateConfig:
    """Annotation run settings (``annotate`` section)."""

    input_path: str = DEFAULT_INPUT_PATH
    output_path: str = DEFAULT_OUTPUT_PATH
    results_path: str = DEFAULT_RESULTS_PATH
    query_id: str = DEFAULT_QUERY_ID
    rules: str = DEFAULT_RULES
    komi: float = DEFAULT_KOMI
    board_size: int = DEFAULT_BOARD_SIZE
    threshold: float = DEFAULT_SWING_THRESHOLD
    max_variations: int = DEFAULT_MAX_VARIATIONS
    color_source: str = COLOR_SOURCE_RECORD
    rules_from_record: bool = False
    reuse_analysis: bool = False

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "AnnotateConfig":
        return cls(
            input_path=normalize_path(d.get("input_path")) or DEFAULT_INPUT_PATH,
            output_path=normalize_path(d.get("output_path")) or DEFAULT_OUTPUT_PATH,
            results_path=normalize_path(d.get("results_path")) or DEFAULT_RESULTS_PATH,
            query_id=safe_str(d.get("query_id"), DEFAULT_QUERY_ID),
            rules=safe_str(d.get("rules"), DEFAULT_RULES),
            komi=safe_float(d.get("komi"), DEFAULT_KOMI),
            board_size=safe_int(d.get("board_size"), DEFAULT_BOARD_SIZE),
            threshold=safe_float(d.get("threshold"), DEFAULT_SWING_THRESHOLD),
            max_variations=safe_int(d.get("max_variations"), DEFAULT_MAX_VARIATIONS),
            color_source=safe_str(d.get("color_source"), COLOR_SOURCE_RECORD),
            rules_from_record=safe_bool(d.get("rules_from_record"), False),
            reuse_analysis=safe_bool(d.get("reuse_analysis"), False),
        )

    def validate(self) -> "AnnotateConfig":
        """Raises ConfigError for values outside their meaningful range, returns self otherwise."""
        if not 0.0 < self.threshold <= 1.0:
            raise ConfigError(f"threshold must be in (0, 1], got {self.threshold}", context={"threshold": self.threshold})
        if self.max_variations < 0:
            raise ConfigError(
                f"max_variations must not be negative, got {self.max_variations}",
                context={"max_variations": self.max_variations},
            )
        if not 2 <= self.board_size <= MAX_BOARD_SIZE:
            raise ConfigError(
                f"board_size must be in 2..{MAX_BOARD_SIZE}, got {self.board_size}",
                context={"board_size": self.board_size},
            )
        if self.color_source not in COLOR_SOURCES:
            raise ConfigError(
                f"color_source must be one of {', '.join(COLOR_SOURCES)}, got {self.color_source!r}",
                context={"color_source": self.color_source},
            )
        return self


@dataclass(frozen=True)
class Config:
    engine: EngineConfig = field(default_factory=EngineConfig)
    annotate: AnnotateConfig = field(default_factory=AnnotateConfig)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Config":
        sections = {}
        for name in ("engine", "annotate"):
            raw = d.get(name)
            if raw is not None and not isinstance(raw, dict):
                logger.warning("Config section %s is not a dict (got %s), using defaults", name, type(raw).__name__)
            sections[name] = dict(raw) if isinstance(raw, dict) else {}
        return cls(
            engine=EngineConfig.from_dict(sections["engine"]),
            annotate=AnnotateConfig.from_dict(sections["annotate"]),
        )

    def with_overrides(self, engine: dict[str, Any] | None = None, annotate: dict[str, Any] | None = None) -> "Config":
        """Returns a copy with the given non-None field values replaced (command line flags).

        Path fields are normalized the same way as in ``from_dict``.
        """
        engine_changes = _normalized_changes(engine, ENGINE_PATH_FIELDS)
        annotate_changes = _normalized_changes(annotate, ANNOTATE_PATH_FIELDS)
        return Config(
            engine=replace(self.engine, **engine_changes),
            annotate=replace(self.annotate, **annotate_changes),
        )


def load_config(filename: str | None) -> Config:
    """Load a config file. A missing file gives defaults.

    Raises:
        ConfigError: If the file exists but cannot be read or is not a JSON object.
    """
    if not filename or not os.path.exists(filename):
        logger.debug("No config file at %s, using defaults", filename)
        return Config()
    try:
        with open(filename, encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"Corrupt config file {filename}: {e}", context={"filename": filename}) from e
    if not isinstance(data, dict):
        raise ConfigError(f"Config file {filename} must hold a JSON object", context={"filename": filename})
    logger.debug("Loaded config from %s", filename)
    return Config.from_dict(data)
