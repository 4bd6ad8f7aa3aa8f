"""Seismos configuration.

Loads from config.yaml if present, with environment variable overrides.
Environment variables use the pattern: SEISMOS_<SECTION>_<KEY> (uppercase).

All pipeline constants live here as tunables. The INSD thresholds have no
defaults: until every one of them is configured, silence detection never
overrides a node's status.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field, fields
from pathlib import Path

import yaml


@dataclass
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000
    env: str = "dev"  # "dev" or "prod"


@dataclass
class LoggingConfig:
    level: str = "info"
    format: str = "console"  # "console" or "json"


@dataclass
class FilterConfig:
    ma_window_size: int = 5
    hp_cutoff_hz: float = 0.5
    hp_sample_rate_hz: float = 100.0


@dataclass
class FrequencyConfig:
    window_size: int = 50
    min_samples: int = 10
    default_hz: float = 5.0
    sample_rate_hz: float = 20.0
    min_hz: float = 0.5
    max_hz: float = 20.0


@dataclass
class FeatureConfig:
    abnormal_threshold_g: float = 0.5
    duration_window_ms: int = 10_000
    max_samples: int = 200
    energy_ceiling_g: float = 2.0
    baseline_frequency_hz: float = 5.0


@dataclass
class DamageConfig:
    weight_frequency_shift: float = 0.50
    weight_peak_energy: float = 0.35
    weight_duration: float = 0.15
    scale_frequency_shift: float = 4.0
    scale_peak_energy: float = 50.0
    scale_duration: float = 10.0
    safe_below: int = 30
    risky_below: int = 60
    legacy_stable_below: int = 15
    legacy_anomaly_below: int = 30
    legacy_warning_below: int = 50
    legacy_critical_below: int = 70


@dataclass
class CorrelationConfig:
    threshold_g: float = 0.5
    window_ms: int = 500
    max_age_ms: int = 5000


@dataclass
class StatusConfig:
    """Raw magnitude cutoffs (g) for the threshold status."""
    stable_below: float = 0.2
    anomaly_below: float = 0.5
    warning_below: float = 1.0


@dataclass
class InsdConfig:
    n_min: int | None = None
    event_threshold_g: float | None = None
    heartbeat_timeout_ms: int | None = None
    anomaly_threshold: float | None = None
    neighbor_radius_m: float = 250.0
    stiffness_shift_pct: float = 10.0
    silence_grace_ms: int = 1000

    @property
    def is_configured(self) -> bool:
        return None not in (
            self.n_min,
            self.event_threshold_g,
            self.heartbeat_timeout_ms,
            self.anomaly_threshold,
        )


@dataclass
class SimulatorConfig:
    node_count: int = 80
    background_interval_ms: int = 100
    earthquake_tick_ms: int = 50
    background_noise_g: float = 0.001
    seed: int | None = None
    # Balat district bounding box.
    min_lat: float = 41.0260
    max_lat: float = 41.0320
    min_lng: float = 28.9420
    max_lng: float = 28.9520


@dataclass
class AppConfig:
    server: ServerConfig = field(default_factory=ServerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    filters: FilterConfig = field(default_factory=FilterConfig)
    frequency: FrequencyConfig = field(default_factory=FrequencyConfig)
    features: FeatureConfig = field(default_factory=FeatureConfig)
    damage: DamageConfig = field(default_factory=DamageConfig)
    correlation: CorrelationConfig = field(default_factory=CorrelationConfig)
    status: StatusConfig = field(default_factory=StatusConfig)
    insd: InsdConfig = field(default_factory=InsdConfig)
    simulator: SimulatorConfig = field(default_factory=SimulatorConfig)


def _apply_env_overrides(config: AppConfig) -> None:
    """Override config values from environment variables.

    Every field of every section is reachable as SEISMOS_<SECTION>_<KEY>.
    Values are coerced to the type of the current default; fields that
    default to None are parsed as numbers.
    """
    for section_field in fields(config):
        section = getattr(config, section_field.name)
        for f in fields(section):
            env_key = f"SEISMOS_{section_field.name}_{f.name}".upper()
            val = os.environ.get(env_key)
            if val is None:
                continue
            setattr(section, f.name, _coerce(val, getattr(section, f.name)))


def _coerce(raw: str, current: object) -> object:
    if isinstance(current, bool):
        return raw.lower() in ("1", "true", "yes", "on")
    if isinstance(current, int):
        value = float(raw)
        if not value.is_integer():
            raise ValueError(f"expected an integer, got {raw!r}")
        return int(value)
    if isinstance(current, float):
        return float(raw)
    if current is None:
        value = float(raw)
        return int(value) if value.is_integer() else value
    return raw


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load configuration from YAML file + environment overrides."""
    config = AppConfig()

    if config_path is None:
        config_path = Path("config.yaml")
    else:
        config_path = Path(config_path)

    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

        for section_field in fields(config):
            section = getattr(config, section_field.name)
            known = {f.name for f in fields(section)}
            for k, v in (raw.get(section_field.name) or {}).items():
                if k in known:
                    setattr(section, k, v)

    # Environment overrides always win
    _apply_env_overrides(config)
    return config
