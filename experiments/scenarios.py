"""
experiments/scenarios.py

Holds scenario definitions (layouts and demand levels) to sweep during
experiments. Each scenario is a set of overrides merged onto
checkout_sim/baseline.yaml.
"""

from __future__ import annotations

BASELINE = {
    "name": "baseline",
    "overrides": {},  # override config keys here per scenario
}

REGULAR_ONLY = {
    "name": "regular_only",
    "overrides": {
        "stations": {"regular": 3, "kiosk": 0},
    },
}

KIOSK_HEAVY = {
    "name": "kiosk_heavy",
    "overrides": {
        "stations": {"regular": 1, "kiosk": 4},
    },
}

WEEKEND_RUSH = {
    "name": "weekend_rush",
    "overrides": {
        "sim": {
            "day_type": "weekend",
            "arrival_rate": 45.0,
            "service_time_regular": 49.0,
            "service_time_kiosk": 58.8,
        },
        "stations": {"regular": 2, "kiosk": 2},
    },
}

PEAK_LOAD = {
    "name": "peak_load",
    "overrides": {
        "sim": {
            "arrival_rate": 70.0,
            "duration_minutes": 120,
        },
    },
}

SCENARIOS = [BASELINE, REGULAR_ONLY, KIOSK_HEAVY, WEEKEND_RUSH, PEAK_LOAD]
