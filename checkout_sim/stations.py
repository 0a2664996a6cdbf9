# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# stations.py
# -----------------------------------------------------------------------------
# Purpose:
#   Build checkout stations (staffed registers and self-service kiosks) from
#   config, and draw per-customer service times.
#
# Design notes:
#   - The station's own service_time is the mean used for routing estimates;
#     the sampled duration comes from the day-type profile, which carries the
#     observed store average.
#   - Durations are exponential around an adjusted mean and clamped to a
#     realistic [min, max] window.
#
# Usage:
#   from checkout_sim.stations import make_stations, draw_service_time
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import Dict, List, Optional

from .config import SimulationParams, Tuning
from .entities import CheckoutStation, Customer, KIOSK, REGULAR, STATION_TYPES
from .store_data import DayProfile
from .variates import RandomVariate


def make_station(station_id: str, kind: str, service_time: float,
                 max_queue_length: Optional[int] = None, is_active: bool = True) -> CheckoutStation:
    if kind not in STATION_TYPES:
        raise ValueError(f"unknown station type {kind!r}")
    return CheckoutStation(station_id, kind, service_time=service_time,
                           is_active=is_active, max_queue_length=max_queue_length)


def make_stations(cfg: Dict, params: Optional[SimulationParams] = None) -> List[CheckoutStation]:
    """
    Create the station list from the `stations:` block of a config.

    Parameters
    ----------
    cfg : dict
        Parsed YAML config. Recognized keys: regular, kiosk (counts) and
        kiosk_max_queue; or an explicit `layout` list of
        {id, type, service_time, max_queue_length, active} entries.
    params : SimulationParams, optional
        Supplies default mean service times per station type.

    Returns
    -------
    list[CheckoutStation]
    """
    params = params or SimulationParams.from_cfg(cfg)
    st_cfg = cfg.get("stations", {})
    defaults = {REGULAR: params.service_time_regular, KIOSK: params.service_time_kiosk}
    kiosk_cap = st_cfg.get("kiosk_max_queue", 5)

    layout = st_cfg.get("layout")
    if layout:
        out = []
        for i, entry in enumerate(layout):
            kind = entry.get("type", REGULAR)
            out.append(make_station(
                str(entry.get("id", f"{kind}_{i + 1}")),
                kind,
                float(entry.get("service_time", defaults.get(kind, params.service_time_regular))),
                max_queue_length=entry.get("max_queue_length", kiosk_cap if kind == KIOSK else None),
                is_active=bool(entry.get("active", True)),
            ))
        return out

    S = [make_station(f"regular_{i + 1}", REGULAR, defaults[REGULAR])
         for i in range(int(st_cfg.get("regular", 1)))]
    S += [make_station(f"kiosk_{i + 1}", KIOSK, defaults[KIOSK], max_queue_length=kiosk_cap)
          for i in range(int(st_cfg.get("kiosk", 0)))]
    return S


def service_mean(station: CheckoutStation, customer: Customer, profile: DayProfile, tuning: Tuning) -> float:
    base = profile.avg_service_time
    if station.is_kiosk:
        base *= tuning.kiosk_service_factor
    mult = tuning.payment_factors.get(customer.payment_method, 1.0)
    mult *= 1.0 + (customer.item_count - 1) * tuning.item_factor
    return base * mult


def draw_service_time(station: CheckoutStation, customer: Customer, profile: DayProfile,
                      rv: RandomVariate, tuning: Tuning) -> float:
    """Exponential draw around the adjusted mean with +/- jitter, clamped."""
    mean = service_mean(station, customer, profile, tuning)
    mean *= rv.uniform(1.0 - tuning.service_jitter, 1.0 + tuning.service_jitter)
    st = rv.bounded_exponential(1.0 / mean, clip=tuning.exponential_clip)
    return max(tuning.min_service_time, min(tuning.max_service_time, st))
