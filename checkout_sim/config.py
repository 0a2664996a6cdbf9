# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# config.py
# -----------------------------------------------------------------------------
# Purpose:
#   Load the YAML configuration and turn it into the typed objects the
#   engine consumes: SimulationParams (what to simulate) and Tuning (the
#   hand-tuned behavioural constants).
#
# Design notes:
#   - Every threshold used by routing, balking and scoring is a named Tuning
#     field; a `tuning:` block in YAML overrides any subset of them.
#   - Times in YAML follow the engine: seconds for service, minutes for the
#     simulated horizon, customers per hour for arrivals.
#
# Usage:
#   cfg = load_cfg()
#   params = SimulationParams.from_cfg(cfg); tuning = Tuning.from_cfg(cfg)
# -----------------------------------------------------------------------------

from __future__ import annotations
import copy, os
from dataclasses import dataclass, field, fields
from typing import Dict, Optional, Tuple

import yaml

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
# installed as package data next to this module
DEFAULT_CONFIG = os.path.join(os.path.dirname(os.path.abspath(__file__)), "baseline.yaml")
DAY_TYPES = ("weekday", "weekend")


def load_cfg(path: Optional[str] = None) -> Dict:
    with open(path or DEFAULT_CONFIG, "r") as f:
        return yaml.safe_load(f) or {}


def apply_overrides(cfg: Dict, overrides: Dict) -> Dict:
    """Apply scenario overrides (recursive merge) on top of the base config."""
    new = copy.deepcopy(cfg)

    def _merge(dst: Dict, src: Dict):
        for key, val in src.items():
            if isinstance(val, dict) and isinstance(dst.get(key), dict):
                _merge(dst[key], val)
            else:
                dst[key] = copy.deepcopy(val)

    _merge(new, overrides)
    return new


@dataclass
class SimulationParams:
    arrival_rate: float = 26.0           # customers per hour
    service_time_regular: float = 82.0   # mean seconds
    service_time_kiosk: float = 98.4
    day_type: str = "weekday"            # 'weekday' | 'weekend'
    simulation_duration: float = 60.0    # minutes
    max_customers: int = 100

    def __post_init__(self):
        if self.day_type not in DAY_TYPES:
            raise ValueError(f"day_type must be one of {DAY_TYPES}, got {self.day_type!r}")
        if self.arrival_rate < 0:
            raise ValueError("arrival_rate must be >= 0")

    @property
    def duration_seconds(self) -> float:
        return self.simulation_duration * 60.0

    @classmethod
    def from_cfg(cls, cfg: Dict) -> "SimulationParams":
        sim = cfg.get("sim", {})
        return cls(
            arrival_rate=float(sim.get("arrival_rate", cls.arrival_rate)),
            service_time_regular=float(sim.get("service_time_regular", cls.service_time_regular)),
            service_time_kiosk=float(sim.get("service_time_kiosk", cls.service_time_kiosk)),
            day_type=str(sim.get("day_type", cls.day_type)),
            simulation_duration=float(sim.get("duration_minutes", cls.simulation_duration)),
            max_customers=int(sim.get("max_customers", cls.max_customers)),
        )


@dataclass
class Tuning:
    """Behavioural constants of the checkout model (seconds unless noted)."""
    # arrivals
    retry_delay: float = 5.0
    exponential_clip: float = 5.0           # exponential draws capped at this many means
    item_noise: float = 3.0                 # width of the uniform basket noise
    # self-checkout preference
    self_checkout_probability: float = 0.55
    self_checkout_item_limit: int = 5       # strictly fewer items than this
    kiosk_default_max_queue: int = 5
    # routing
    main_queue_batch: int = 3
    redirect_item_limit: int = 15
    redirect_max_kiosk_queue: int = 1
    kiosk_small_basket: int = 10
    kiosk_cash_queue_limit: int = 2
    kiosk_cash_penalty: float = 5.0
    queue_penalty_per_person: float = 30.0
    service_time_baseline: float = 75.0
    service_deviation_weight: float = 0.5
    tie_break_noise: float = 10.0
    rebalance_gap: int = 3
    # balking
    kiosk_balk_occupancy: float = 0.8
    kiosk_balk_probability: float = 0.3
    main_balk_hard_limit: int = 15
    main_balk_soft_limit: int = 10
    main_balk_base: float = 0.7
    main_balk_load_cap: int = 30
    # service times
    kiosk_service_factor: float = 1.2
    payment_factors: Dict[str, float] = field(
        default_factory=lambda: {"cash": 1.4, "card": 1.0, "voucher": 1.6})
    item_factor: float = 0.2
    service_jitter: float = 0.25
    min_service_time: float = 10.0
    max_service_time: float = 360.0
    # metrics
    max_wait_time: float = 1800.0
    utilization_cap: float = 0.99
    queue_pressure_per_customer: float = 0.01
    queue_pressure_cap: float = 0.15
    utilization_smoothing: float = 0.8
    satisfaction_smoothing: float = 0.8
    throughput_warmup_hours: float = 0.05
    throughput_capacity_fraction: float = 0.7
    satisfaction_weights: Tuple[float, float, float, float] = (0.6, 0.2, 0.15, 0.05)
    score_weights: Tuple[float, float, float] = (0.4, 0.3, 0.3)

    @classmethod
    def from_cfg(cls, cfg: Dict) -> "Tuning":
        over = dict(cfg.get("tuning") or {})
        known = {f.name for f in fields(cls)}
        unknown = set(over) - known
        if unknown:
            raise ValueError(f"unknown tuning keys: {sorted(unknown)}")
        for key in ("satisfaction_weights", "score_weights"):
            if key in over:
                over[key] = tuple(over[key])
        if "payment_factors" in over:
            over["payment_factors"] = {**cls().payment_factors, **over["payment_factors"]}
        return cls(**over)
