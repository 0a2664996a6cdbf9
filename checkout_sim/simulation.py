# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# simulation.py
# -----------------------------------------------------------------------------
# Purpose:
#   SimulationEngine: the steppable discrete-event model of the checkout
#   floor, plus run_simulation() for a full replication from config.
#
# Design notes:
#   - One event per step() so a caller can interleave steps with rendering;
#     metrics are recomputed after every event.
#   - The engine owns deep copies of the stations it is given; every getter
#     returns a copy, so callers can never mutate simulation state.
#   - reset() rewinds the random stream, so a seeded engine replays the same
#     run after every reset.
#
# Usage:
#   from checkout_sim.simulation import SimulationEngine, run_simulation
#   eng = SimulationEngine(stations, params, seed=7)
#   while eng.step(): pass
# -----------------------------------------------------------------------------

from __future__ import annotations
import copy, logging
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence

from . import queueing
from .arrivals import make_customer, schedule_next_arrival
from .config import SimulationParams, Tuning
from .entities import CheckoutStation, Customer, DataPoint, Metrics
from .metrics import MetricsCollector
from .network import Router
from .queues import ARRIVAL, SERVICE_END, Env, Event
from .stations import make_stations
from .store_data import DayProfile, load_profiles
from .variates import RandomVariate

log = logging.getLogger(__name__)


class SimulationEngine:
    """Single-line checkout floor with regular registers and self-service kiosks."""

    def __init__(self, stations: Sequence[CheckoutStation], params: SimulationParams,
                 tuning: Optional[Tuning] = None, seed: Optional[int] = None,
                 profiles: Optional[Dict[str, DayProfile]] = None):
        self.params = params
        self.tuning = tuning or Tuning()
        self.profiles = profiles if profiles is not None else load_profiles()
        if params.day_type not in self.profiles:
            raise ValueError(f"no day profile for {params.day_type!r}")
        self.profile = self.profiles[params.day_type]

        self.stations: List[CheckoutStation] = copy.deepcopy(list(stations))
        self.rv = RandomVariate(seed)
        self.env = Env()
        self.M = MetricsCollector(params, self.tuning)
        self.router = Router(self.stations, self.profile, self.M, self.rv, self.tuning)
        self.customers: List[Customer] = []
        self._next_customer = 0
        self.reset()

    # ------------------------------------------------------------------
    # state machine
    # ------------------------------------------------------------------

    def reset(self):
        """Back to t = 0 with empty queues and one arrival scheduled."""
        self.env.clear()
        self.rv.reset()
        self.M.reset()
        self.router.reset()
        self.customers = []
        self._next_customer = 0
        self._schedule_arrival()
        self.M.update(0.0, self.stations, self.router.main_queue)
        log.info("engine reset: %d stations, %.1f customers/h, %s, %.0f min",
                 len(self.stations), self.params.arrival_rate,
                 self.params.day_type, self.params.simulation_duration)

    def step(self) -> bool:
        """
        Process the next event.

        Returns
        -------
        bool
            True while events remain and the clock is inside the horizon.
        """
        ev = self.env.pop()
        if ev is None:
            return False
        if ev.kind == ARRIVAL:
            self._on_arrival(ev)
        elif ev.kind == SERVICE_END:
            self.router.on_service_end(self.env, ev)
        self.M.update(self.env.t, self.stations, self.router.main_queue)
        return bool(self.env) and self.env.t < self.params.duration_seconds

    def run(self) -> Metrics:
        while self.step():
            pass
        return self.get_current_metrics()

    def _schedule_arrival(self):
        ev = schedule_next_arrival(self.env, self.params, self.rv, self.tuning,
                                   self.router.in_system(), self._next_customer)
        if ev is not None and ev.customer_id is not None:
            self._next_customer += 1

    def _on_arrival(self, ev: Event):
        if ev.customer_id is None:
            # retry after the store was full
            self._schedule_arrival()
            return
        customer = make_customer(ev.customer_id, self.env.t, self.profile, self.rv, self.tuning)
        self.customers.append(customer)
        log.debug("t=%.1f arrival %s (%d items, %s)", self.env.t, customer.id,
                  customer.item_count, customer.payment_method)
        self.router.on_arrival(self.env, customer)
        self._schedule_arrival()

    # ------------------------------------------------------------------
    # read-only views
    # ------------------------------------------------------------------

    def get_current_time(self) -> float:
        return self.env.t

    def get_current_metrics(self) -> Metrics:
        return self.M.snapshot()

    def get_customers(self) -> List[Customer]:
        return copy.deepcopy(self.customers)

    def get_stations(self) -> List[CheckoutStation]:
        return copy.deepcopy(self.stations)

    def get_main_queue(self) -> List[Customer]:
        return copy.deepcopy(self.router.main_queue)

    def get_history(self) -> List[DataPoint]:
        return list(self.M.history)

    def compare_with_theory(self) -> Dict:
        """M/M/c prediction for the active stations against the current metrics."""
        c = sum(1 for s in self.stations if s.is_active)
        theory = queueing.mmc_metrics(self.params.arrival_rate / 3600.0,
                                      1.0 / self.params.service_time_regular, c)
        m = self.M.metrics
        out = queueing.compare_results(theory, m.average_wait_time, m.average_queue_length, m.utilization)
        out["theory"] = theory
        return out


def run_simulation(cfg: Dict, seed: Optional[int] = None, data_dir: Optional[str] = None) -> Dict:
    """
    Run one replication described by a config to the end of its horizon.

    Returns a flat dict of the final metrics plus run bookkeeping, suitable
    for averaging across replications.
    """
    params = SimulationParams.from_cfg(cfg)
    tuning = Tuning.from_cfg(cfg)
    stations = make_stations(cfg, params)
    if seed is None:
        seed = cfg.get("sim", {}).get("seed")
    eng = SimulationEngine(stations, params, tuning=tuning, seed=seed,
                           profiles=load_profiles(cfg, data_dir))
    metrics = eng.run()
    cmp = eng.compare_with_theory()

    out = asdict(metrics)
    out["seed"] = seed
    out["simulated_minutes"] = eng.get_current_time() / 60.0
    out["customers_generated"] = len(eng.customers)
    out["theory_stable"] = cmp["theory"].stable
    out["theory_accuracy"] = cmp["accuracy"]
    out["history"] = [asdict(p) for p in eng.get_history()]
    log.info("run finished: seed=%s served=%d abandoned=%d score=%.1f",
             seed, metrics.total_customers_served, metrics.total_customers_abandoned, metrics.score)
    return out
