"""Load, validate, and hot-reload the analysis configuration.

The config lives in ``analysis_config.yaml`` alongside this module, or at
``Settings.analysis_config_path`` when set.  It is loaded once and cached;
call ``reload_analysis_config()`` to re-read it from disk.

Only call defaults live here (sleep target, trend period, window sizes).
Scoring weights and thresholds are fixed in the analyzers.

Usage::

    from vitalscore.config_loader import get_analysis_config

    config = get_analysis_config()
    config.sleep.target_minutes      # 480
    config.trends.period_days        # 14
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from vitalscore.config import get_settings

logger = logging.getLogger("vitalscore.config")

# Path to the YAML file sitting next to this module
_CONFIG_PATH = Path(__file__).parent / "analysis_config.yaml"


# ---------------------------------------------------------------------------
# Typed config sections
# ---------------------------------------------------------------------------


@dataclass
class SleepConfig:
    """Sleep debt settings."""

    target_minutes: int = 480


@dataclass
class TrendConfig:
    """Trend, moving-average and anomaly defaults."""

    period_days: int = 14
    moving_average_window: int = 7
    anomaly_std_dev_threshold: float = 2.0


@dataclass
class ReportConfig:
    """Report pipeline settings."""

    lookback_days: int = 14


@dataclass
class AnalysisConfig:
    """Complete, validated analysis configuration.

    Attributes:
        version: Config schema version string.
        sleep:   Sleep debt settings.
        trends:  Trend analysis defaults.
        report:  Report pipeline settings.
    """

    version: str = "1.0"
    sleep: SleepConfig = field(default_factory=SleepConfig)
    trends: TrendConfig = field(default_factory=TrendConfig)
    report: ReportConfig = field(default_factory=ReportConfig)
    _raw: dict = field(default_factory=dict, repr=False)


# ---------------------------------------------------------------------------
# Loader / validation
# ---------------------------------------------------------------------------


class ConfigValidationError(ValueError):
    """Raised when the analysis config fails validation."""


def _load_yaml(path: Path) -> dict:
    """Read and parse a YAML file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ConfigValidationError: If the YAML is malformed or not a mapping.
    """
    if not path.exists():
        raise FileNotFoundError(f"Analysis config not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = yaml.safe_load(fh) or {}
        except yaml.YAMLError as exc:
            raise ConfigValidationError(f"YAML parse error in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigValidationError(f"{path} must contain a mapping at the top level")
    return data


def _validate_and_build(raw: dict) -> AnalysisConfig:
    """Validate the raw YAML dict and construct an AnalysisConfig.

    Missing keys take their defaults.  All problems are collected and
    reported together.

    Raises:
        ConfigValidationError: If any value has the wrong type or range.
    """
    errors: list[str] = []

    def _section(name: str) -> dict:
        value = raw.get(name) or {}
        if not isinstance(value, dict):
            errors.append(f"'{name}' must be a mapping")
            return {}
        return value

    def _number(section: dict, path: str, key: str, default: float, cast: type, minimum: float) -> float:
        value = section.get(key, default)
        try:
            number = cast(value)
        except (TypeError, ValueError):
            errors.append(f"{path}.{key} must be a number, got {value!r}")
            return default
        if number < minimum:
            errors.append(f"{path}.{key} = {number} must be >= {minimum}")
        return number

    version = str(raw.get("version", "1.0"))

    # ── Sleep ──
    sleep_raw = _section("sleep")
    sleep = SleepConfig(
        target_minutes=_number(sleep_raw, "sleep", "target_minutes", 480, int, 0),
    )

    # ── Trends ──
    trends_raw = _section("trends")
    trends = TrendConfig(
        period_days=_number(trends_raw, "trends", "period_days", 14, int, 1),
        moving_average_window=_number(trends_raw, "trends", "moving_average_window", 7, int, 1),
        anomaly_std_dev_threshold=_number(
            trends_raw, "trends", "anomaly_std_dev_threshold", 2.0, float, 0.1
        ),
    )

    # ── Report ──
    report_raw = _section("report")
    report = ReportConfig(
        lookback_days=_number(report_raw, "report", "lookback_days", 14, int, 1),
    )

    if errors:
        raise ConfigValidationError(
            f"analysis config has {len(errors)} validation error(s):\n"
            + "\n".join(f"  • {e}" for e in errors)
        )

    return AnalysisConfig(
        version=version,
        sleep=sleep,
        trends=trends,
        report=report,
        _raw=raw,
    )


def load_analysis_config(path: Path | None = None) -> AnalysisConfig:
    """Load and validate the analysis config from disk.

    Args:
        path: Override path to YAML.  Falls back to
              ``Settings.analysis_config_path``, then the bundled file.

    Returns:
        Validated AnalysisConfig instance.
    """
    if path is None:
        configured = get_settings().analysis_config_path
        path = Path(configured) if configured else _CONFIG_PATH
    raw = _load_yaml(path)
    config = _validate_and_build(raw)
    logger.info("Loaded analysis config v%s from %s", config.version, path)
    return config


# ---------------------------------------------------------------------------
# Global singleton with hot-reload support
# ---------------------------------------------------------------------------

_config: AnalysisConfig | None = None
_config_lock = threading.Lock()


def get_analysis_config() -> AnalysisConfig:
    """Return the global AnalysisConfig, loading it on first call.  Thread-safe."""
    global _config
    if _config is None:
        with _config_lock:
            if _config is None:  # double-checked locking
                _config = load_analysis_config()
    return _config


def reload_analysis_config(path: Path | None = None) -> AnalysisConfig:
    """Reload the config from disk and replace the global singleton.

    If validation fails the old config is kept and the error re-raised.

    Raises:
        ConfigValidationError: If the new config is invalid.
        FileNotFoundError:     If the config file is missing.
    """
    global _config
    new_config = load_analysis_config(path)  # validate before acquiring lock
    with _config_lock:
        old_version = _config.version if _config else "none"
        _config = new_config
    logger.info("Reloaded analysis config: %s → %s", old_version, new_config.version)
    return new_config
