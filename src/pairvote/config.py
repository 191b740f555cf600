"""Configuration loading and validation."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

import yaml

from .labels import TieBreak

LOGGER = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("~/.config/pairvote/config.yaml")
DEFAULT_ROOT_DIR = Path("~/.local/lib/pairvote")
DEFAULT_MODEL_DIR = Path("SVM_Model_Dir")
DEFAULT_RESULT_DIR = Path("SVM_Classification_Results")
DEFAULT_LOG_LEVEL = "info"
DEFAULT_GATEWAY = "sklearn"
DEFAULT_SVM_CLASSIFY = "svm_classify"
DEFAULT_SORT_MEMORY = 64 * 1024 * 1024
DEFAULT_MAX_FAN_IN = 64
DEFAULT_DISK_VOTE_THRESHOLD = 5_000_000

GATEWAYS = ("sklearn", "svm_light")
CONSOLIDATION_MODES = ("memory", "disk", "auto")
GAMMA_KEYWORDS = ("none", "inverse")

_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([kmg]?b?)\s*$", re.IGNORECASE)
_SIZE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
}


class ConfigError(ValueError):
    """Raised when configuration is invalid or missing."""


@dataclass(frozen=True)
class LoggingConfig:
    """Logging-related configuration."""

    level: str = DEFAULT_LOG_LEVEL
    debug_file: bool = False


@dataclass(frozen=True)
class SvmLightConfig:
    """Settings for the ``svm_classify`` subprocess backend."""

    classify_binary: str = DEFAULT_SVM_CLASSIFY
    timeout: float | None = None


@dataclass(frozen=True)
class ConsolidationConfig:
    """How vote tallies are turned into rankings."""

    mode: str = "auto"
    disk_vote_threshold: int = DEFAULT_DISK_VOTE_THRESHOLD
    sort_memory: int = DEFAULT_SORT_MEMORY
    max_fan_in: int = DEFAULT_MAX_FAN_IN
    memory_tie_break: TieBreak = TieBreak.SMALLEST
    disk_tie_break: TieBreak = TieBreak.LARGEST


@dataclass(frozen=True)
class Config:
    """Fully parsed configuration."""

    root_dir: Path = DEFAULT_ROOT_DIR.expanduser()
    model_dir: Path = DEFAULT_MODEL_DIR
    result_dir: Path = DEFAULT_RESULT_DIR
    gateway: str = DEFAULT_GATEWAY
    svm_light: SvmLightConfig = field(default_factory=SvmLightConfig)
    gamma: str | float = "none"
    workers: int = 1
    consolidation: ConsolidationConfig = field(default_factory=ConsolidationConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def with_overrides(self, **overrides: Any) -> Config:
        """Return a copy with CLI overrides applied; ``None`` values are ignored."""

        consolidation = self.consolidation
        mode = overrides.pop("mode", None)
        if mode is not None:
            consolidation = replace(
                consolidation,
                mode=_parse_choice(mode, "consolidation.mode", CONSOLIDATION_MODES),
            )
        workers = overrides.pop("workers", None)
        values = {key: value for key, value in overrides.items() if value is not None}
        if workers is not None:
            values["workers"] = _parse_positive_int(workers, "aggregation.workers")
        for key in ("model_dir", "result_dir"):
            if key in values:
                values[key] = Path(values[key]).expanduser()
        return replace(self, consolidation=consolidation, **values)


def load_config(path: Path | str | None = None) -> Config:
    """Load and validate configuration from YAML."""

    config_path = _resolve_config_path(path)
    if not config_path.exists():
        raise ConfigError(f"Config file not found: {config_path}")

    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}

    if not isinstance(raw, dict):
        raise ConfigError("Configuration root must be a mapping.")

    return _parse_config(raw)


def resolve_config_path(explicit: Path | str | None) -> Path:
    """Return the config path that ``load_config`` would read."""

    return _resolve_config_path(explicit)


def _resolve_config_path(explicit: Path | str | None) -> Path:
    if explicit:
        return Path(explicit).expanduser()
    env_path = os.environ.get("PAIRVOTE_CONFIG")
    if env_path:
        return Path(env_path).expanduser()
    return DEFAULT_CONFIG_PATH.expanduser()


def _parse_config(raw: dict[str, Any]) -> Config:
    root_dir = Path(raw.get("rootdir") or raw.get("root_dir") or DEFAULT_ROOT_DIR).expanduser()
    model_dir = _parse_path(raw.get("model_dir"), "model_dir", DEFAULT_MODEL_DIR)
    result_dir = _parse_path(raw.get("result_dir"), "result_dir", DEFAULT_RESULT_DIR)
    gateway = _parse_choice(raw.get("gateway", DEFAULT_GATEWAY), "gateway", GATEWAYS)
    features = _section(raw, "features")
    aggregation = _section(raw, "aggregation")
    return Config(
        root_dir=root_dir,
        model_dir=model_dir,
        result_dir=result_dir,
        gateway=gateway,
        svm_light=_parse_svm_light(raw.get("svm_light")),
        gamma=_parse_gamma(features.get("gamma", "none")),
        workers=_parse_positive_int(aggregation.get("workers", 1), "aggregation.workers"),
        consolidation=_parse_consolidation(raw.get("consolidation")),
        logging=_parse_logging(raw.get("logging")),
    )


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise ConfigError(f"{name} must be a mapping.")
    return value


def _parse_path(value: Any, field_name: str, default: Path) -> Path:
    if value is None:
        return default
    if not isinstance(value, (str, Path)) or not str(value).strip():
        raise ConfigError(f"{field_name} must be a non-empty path.")
    return Path(value).expanduser()


def _parse_choice(value: Any, field_name: str, choices: tuple[str, ...]) -> str:
    normalized = str(value).strip().lower()
    if normalized not in choices:
        raise ConfigError(f"{field_name} must be one of {', '.join(choices)}; got '{value}'.")
    return normalized


def _parse_positive_int(value: Any, field_name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"{field_name} must be a positive integer.")
    return value


def _parse_gamma(value: Any) -> str | float:
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in GAMMA_KEYWORDS:
            return normalized
        raise ConfigError(f"features.gamma must be 'none', 'inverse' or a number; got '{value}'.")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError("features.gamma must be 'none', 'inverse' or a number.")
    if not 0.0 <= float(value) < 1.0:
        raise ConfigError("features.gamma must be in the range [0, 1).")
    return float(value)


def _parse_size(value: Any, field_name: str) -> int:
    if isinstance(value, bool):
        raise ConfigError(f"{field_name} must be a byte count.")
    if isinstance(value, int):
        size = value
    elif isinstance(value, str):
        match = _SIZE_PATTERN.match(value)
        if not match:
            raise ConfigError(f"{field_name} must look like '64MB'; got '{value}'.")
        size = int(match.group(1)) * _SIZE_UNITS[match.group(2).lower()]
    else:
        raise ConfigError(f"{field_name} must be a byte count.")
    if size <= 0:
        raise ConfigError(f"{field_name} must be positive.")
    return size


def _parse_tie_break(value: Any, field_name: str, default: TieBreak) -> TieBreak:
    if value is None:
        return default
    try:
        return TieBreak(str(value).strip().lower())
    except ValueError as exc:
        raise ConfigError(f"{field_name} must be 'smallest' or 'largest'; got '{value}'.") from exc


def _parse_svm_light(value: Any) -> SvmLightConfig:
    if value is None:
        return SvmLightConfig()
    if not isinstance(value, dict):
        raise ConfigError("svm_light must be a mapping.")
    binary = value.get("classify_binary", DEFAULT_SVM_CLASSIFY)
    if not isinstance(binary, str) or not binary.strip():
        raise ConfigError("svm_light.classify_binary must be a non-empty string.")
    timeout = value.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError("svm_light.timeout must be a positive number of seconds.")
        timeout = float(timeout)
    return SvmLightConfig(classify_binary=binary, timeout=timeout)


def _parse_consolidation(value: Any) -> ConsolidationConfig:
    if value is None:
        return ConsolidationConfig()
    if not isinstance(value, dict):
        raise ConfigError("consolidation must be a mapping.")
    defaults = ConsolidationConfig()
    mode = _parse_choice(
        value.get("mode", defaults.mode), "consolidation.mode", CONSOLIDATION_MODES
    )
    threshold = _parse_positive_int(
        value.get("disk_vote_threshold", defaults.disk_vote_threshold),
        "consolidation.disk_vote_threshold",
    )
    sort_memory = _parse_size(
        value.get("sort_memory", defaults.sort_memory), "consolidation.sort_memory"
    )
    max_fan_in = _parse_positive_int(
        value.get("max_fan_in", defaults.max_fan_in), "consolidation.max_fan_in"
    )
    if max_fan_in < 2:
        raise ConfigError("consolidation.max_fan_in must be at least 2.")
    if mode == "memory" and "disk_tie_break" in value:
        LOGGER.warning("consolidation.disk_tie_break has no effect when mode is 'memory'.")
    return ConsolidationConfig(
        mode=mode,
        disk_vote_threshold=threshold,
        sort_memory=sort_memory,
        max_fan_in=max_fan_in,
        memory_tie_break=_parse_tie_break(
            value.get("memory_tie_break"),
            "consolidation.memory_tie_break",
            defaults.memory_tie_break,
        ),
        disk_tie_break=_parse_tie_break(
            value.get("disk_tie_break"), "consolidation.disk_tie_break", defaults.disk_tie_break
        ),
    )


def _parse_logging(value: Any) -> LoggingConfig:
    if value is None:
        return LoggingConfig()
    if not isinstance(value, dict):
        raise ConfigError("logging must be a mapping.")
    level = str(value.get("level", DEFAULT_LOG_LEVEL)).lower()
    debug_file = bool(value.get("debug_file", False))
    return LoggingConfig(level=level, debug_file=debug_file)


__all__ = [
    "Config",
    "ConfigError",
    "ConsolidationConfig",
    "LoggingConfig",
    "SvmLightConfig",
    "load_config",
    "resolve_config_path",
]
