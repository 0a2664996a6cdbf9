# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# metrics.py
# -----------------------------------------------------------------------------
# Purpose:
#   Collect and summarize KPIs after every event: waits, time-weighted queue
#   length and utilization, throughput, satisfaction, and the overall score.
#
# Design notes:
#   - Keep side-effect methods (note_*) for instrumentation from the router.
#   - Time-weighted averages integrate the value held since the previous
#     update (value * dt), then divide by elapsed time.
#   - Published numbers are clamped: utilization <= cap, each wait <= cap.
#
# Usage:
#   M = MetricsCollector(params, tuning); M.update(now, stations, main_queue)
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import asdict, replace
from typing import Dict, List, Optional, Sequence

from . import queueing
from .config import SimulationParams, Tuning
from .entities import CheckoutStation, Customer, DataPoint, Metrics


class MetricsCollector:
    def __init__(self, params: SimulationParams, tuning: Tuning):
        self.params = params
        self.tuning = tuning
        self.reset()

    def reset(self):
        self.metrics = Metrics()
        self.served = 0
        self.abandoned = 0
        self.wait_total = 0.0                 # capped waits of served customers
        self.queue_length_time = 0.0          # sum(queue_length * dt)
        self.utilization_time = 0.0           # sum(utilization * dt)
        self.last_update = 0.0
        self._prev_queue_length = 0
        self._prev_utilization = 0.0
        self.prev_satisfaction: Optional[float] = None
        self.history: List[DataPoint] = []

    # ------------------------------------------------------------------
    # instrumentation hooks
    # ------------------------------------------------------------------

    def note_served(self, customer: Customer):
        self.served += 1
        if customer.wait_time is not None:
            self.wait_total += min(customer.wait_time, self.tuning.max_wait_time)

    def note_abandoned(self, customer: Customer):
        self.abandoned += 1

    def note_queue_length(self, n: int):
        if n > self.metrics.peak_queue_length:
            self.metrics.peak_queue_length = n

    # ------------------------------------------------------------------
    # recomputation
    # ------------------------------------------------------------------

    def instantaneous_utilization(self, stations: Sequence[CheckoutStation], waiting: int) -> float:
        active = [s for s in stations if s.is_active]
        if not active:
            return 0.0
        base = sum(1 for s in active if s.busy) / len(active)
        if waiting > 0:
            pressure = min(self.tuning.queue_pressure_cap, waiting * self.tuning.queue_pressure_per_customer)
            return min(self.tuning.utilization_cap, base + pressure)
        return base

    def throughput(self, now: float, stations: Sequence[CheckoutStation]) -> float:
        hours = now / 3600.0
        tun = self.tuning
        if hours >= tun.throughput_warmup_hours:
            return self.served / hours
        if self.served == 0:
            return 0.0
        # Too early for a stable rate: cap at a fraction of nominal capacity.
        active = sum(1 for s in stations if s.is_active)
        capacity = active / (self.params.service_time_regular / 3600.0)
        return min(capacity * tun.throughput_capacity_fraction,
                   self.served / tun.throughput_warmup_hours)

    def update(self, now: float, stations: Sequence[CheckoutStation], main_queue: Sequence[Customer]) -> Metrics:
        tun = self.tuning
        m = self.metrics
        dt = now - self.last_update
        if dt > 0:
            self.queue_length_time += self._prev_queue_length * dt
            self.utilization_time += self._prev_utilization * dt

        waiting = len(main_queue) + sum(len(s.queue) for s in stations)
        busy = sum(1 for s in stations if s.busy)
        elapsed = max(1.0, now)

        m.average_wait_time = self.wait_total / self.served if self.served else 0.0
        m.average_queue_length = self.queue_length_time / elapsed
        m.peak_queue_length = max(m.peak_queue_length, waiting)

        raw = self.utilization_time / elapsed
        if m.utilization > 0:
            s = tun.utilization_smoothing
            m.utilization = s * m.utilization + (1 - s) * raw
        else:
            m.utilization = raw
        m.utilization = min(tun.utilization_cap, m.utilization)

        m.throughput = self.throughput(now, stations)
        m.total_customers_served = self.served
        m.total_customers_abandoned = self.abandoned
        m.customers_in_system = waiting + busy

        sat = queueing.blended_satisfaction(
            m.average_wait_time / 60.0, waiting, m.utilization,
            self.served, self.abandoned, tun.satisfaction_weights)
        if self.prev_satisfaction is not None:
            s = tun.satisfaction_smoothing
            sat = s * self.prev_satisfaction + (1 - s) * sat
        m.customer_satisfaction = max(0.0, min(100.0, sat))
        self.prev_satisfaction = m.customer_satisfaction

        m.score = queueing.overall_score(
            m.average_wait_time / 60.0, m.utilization, m.throughput,
            self.params.arrival_rate, tun.score_weights)

        if dt > 0:
            self.history.append(DataPoint(now, m.average_wait_time, waiting, m.utilization, m.throughput))
        self._prev_queue_length = waiting
        self._prev_utilization = self.instantaneous_utilization(stations, waiting)
        self.last_update = now
        return m

    def snapshot(self) -> Metrics:
        return replace(self.metrics)

    def summary(self) -> Dict:
        return asdict(self.metrics)
