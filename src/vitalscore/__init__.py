"""vitalscore — health telemetry normalization and scoring.

Vendor data (sleep, heart rate, HRV, activity, readiness) is normalized
into one schema, then scored for training readiness, recovery, sleep
quality and trends.

Subpackages:
    adapters/  — Vendor drivers (Oura, WHOOP)
    analysis/  — Sleep, readiness, recovery and trend analyzers

Core modules:
    base          — HealthDriver ABC and normalized data models
    config        — Environment settings and logging setup
    config_loader — Load/validate/hot-reload analysis_config.yaml
    report        — Concurrent fetch + full analyzer run per driver
"""

from vitalscore.adapters import ADAPTER_REGISTRY, get_driver
from vitalscore.analysis import (
    create_readiness_analyzer,
    create_recovery_analyzer,
    create_sleep_analyzer,
    create_trend_analyzer,
)
from vitalscore.base import DateRange, HealthDriver
from vitalscore.config_loader import AnalysisConfig, get_analysis_config
from vitalscore.report import (
    HealthBatch,
    HealthReport,
    analyze_configured_drivers,
    analyze_driver,
    build_health_report,
)

__version__ = "0.1.0"

__all__ = [
    "HealthDriver",
    "DateRange",
    "ADAPTER_REGISTRY",
    "get_driver",
    "create_sleep_analyzer",
    "create_readiness_analyzer",
    "create_recovery_analyzer",
    "create_trend_analyzer",
    "AnalysisConfig",
    "get_analysis_config",
    "HealthBatch",
    "HealthReport",
    "build_health_report",
    "analyze_driver",
    "analyze_configured_drivers",
]
