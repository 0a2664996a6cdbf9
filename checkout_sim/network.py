# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# network.py
# -----------------------------------------------------------------------------
# Purpose:
#   Router for the checkout floor. Decides where customers go on arrival
#   (kiosk queue or the shared main line), feeds idle registers from the
#   main line, applies balking, and starts/ends service.
#
# Design notes:
#   - Kiosks keep their own bounded queues; registers are fed from one
#     centralized main queue, at most a small batch per pass.
#   - Decision rules live in policies.py; this module only moves customers
#     and schedules service-end events.
#   - Events that name an unknown station, an idle station, or a customer
#     other than the one in service are ignored.
#
# Usage:
#   router = Router(stations, profile, metrics, rv, tuning)
#   router.on_arrival(env, customer)
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from typing import Dict, List, Optional

from . import policies
from .config import Tuning
from .entities import CheckoutStation, Customer, KIOSK, REGULAR
from .metrics import MetricsCollector
from .queues import SERVICE_END, Env, Event
from .stations import draw_service_time
from .store_data import DayProfile
from .variates import RandomVariate

log = logging.getLogger(__name__)


class Router:
    def __init__(self, stations: List[CheckoutStation], profile: DayProfile,
                 metrics: MetricsCollector, rv: RandomVariate, tuning: Tuning):
        self.stations = stations
        self.S: Dict[str, CheckoutStation] = {s.id: s for s in stations}
        self.profile = profile
        self.M = metrics
        self.rv = rv
        self.tuning = tuning
        self.main_queue: List[Customer] = []

    def reset(self):
        self.main_queue = []
        for s in self.stations:
            s.clear()

    # ------------------------------------------------------------------
    # views
    # ------------------------------------------------------------------

    def active(self, kind: str) -> List[CheckoutStation]:
        return [s for s in self.stations if s.is_active and s.type == kind]

    def waiting(self) -> int:
        return len(self.main_queue) + sum(len(s.queue) for s in self.stations if s.is_active)

    def in_system(self) -> int:
        return (len(self.main_queue) + sum(len(s.queue) for s in self.stations)
                + sum(1 for s in self.stations if s.busy))

    # ------------------------------------------------------------------
    # station choice
    # ------------------------------------------------------------------

    def best_kiosk(self, customer: Customer) -> Optional[CheckoutStation]:
        """Highest-scoring active kiosk with queue room, or None."""
        open_kiosks = [k for k in self.active(KIOSK) if policies.kiosk_has_room(k, self.tuning)]
        if not open_kiosks:
            return None
        best, best_score = open_kiosks[0], policies.kiosk_score(open_kiosks[0], customer, self.tuning)
        for k in open_kiosks[1:]:
            score = policies.kiosk_score(k, customer, self.tuning)
            if score > best_score:
                best, best_score = k, score
        return best

    def best_regular(self) -> Optional[CheckoutStation]:
        """Lowest-scoring idle active register, or None."""
        idle = [s for s in self.active(REGULAR) if not s.busy]
        if not idle:
            return None
        scored = [(policies.regular_score(s, self.rv.uniform(), self.tuning), s) for s in idle]
        best_score, best = scored[0]
        for score, s in scored[1:]:
            if score < best_score:
                best, best_score = s, score
        return best

    # ------------------------------------------------------------------
    # event handlers
    # ------------------------------------------------------------------

    def on_arrival(self, env: Env, customer: Customer):
        kiosk = self.best_kiosk(customer) if customer.prefers_self_checkout else None
        if kiosk is not None:
            self._join(env, kiosk, customer)
        else:
            customer.in_main_queue = True
            self.main_queue.append(customer)

        self._balk_kiosks(env)
        self._balk_main_queue(env)
        self.process_main_queue(env)

    def on_service_end(self, env: Env, ev: Event) -> Optional[Customer]:
        station = self.S.get(ev.station_id)
        if station is None or station.serving_customer is None:
            return None
        customer = station.serving_customer
        if customer.id != ev.customer_id:
            return None

        customer.finish(env.t)
        self.M.note_served(customer)
        station.serving_customer = None

        if station.queue:
            self.start_service(env, station)
        elif station.type == REGULAR:
            self.process_main_queue(env)
        return customer

    # ------------------------------------------------------------------
    # queue movement
    # ------------------------------------------------------------------

    def _join(self, env: Env, station: CheckoutStation, customer: Customer):
        station.queue.append(customer)
        self.M.note_queue_length(len(station.queue))
        if not station.busy:
            self.start_service(env, station)

    def process_main_queue(self, env: Env):
        """Move up to a batch of main-line customers onto idle registers."""
        batch = min(self.tuning.main_queue_batch, len(self.main_queue))
        moved = 0
        while self.main_queue and moved < batch:
            register = self.best_regular()
            if register is None:
                break
            customer = self.main_queue.pop(0)
            customer.in_main_queue = False

            # Last look for a short kiosk line before taking the register
            kiosk = self.best_kiosk(customer) if customer.prefers_self_checkout else None
            if policies.can_redirect_to_kiosk(customer, kiosk, self.tuning):
                self._join(env, kiosk, customer)
            else:
                self._join(env, register, customer)
            moved += 1

        self.balance_regular_queues(env)

    def balance_regular_queues(self, env: Env):
        regulars = self.active(REGULAR)
        if len(regulars) <= 1:
            return
        by_len = sorted(regulars, key=lambda s: len(s.queue), reverse=True)
        longest, shortest = by_len[0], by_len[-1]
        if policies.needs_rebalance(longest, shortest, self.tuning):
            customer = longest.queue.pop()
            shortest.queue.insert(0, customer)
            log.debug("t=%.1f moved %s from %s to %s", env.t, customer.id, longest.id, shortest.id)
            self.start_service(env, shortest)

    def start_service(self, env: Env, station: CheckoutStation) -> Optional[Event]:
        if not station.queue or station.busy:
            return None
        customer = station.queue.pop(0)
        station.serving_customer = customer
        customer.start_service(env.t, self.tuning.max_wait_time)
        st = draw_service_time(station, customer, self.profile, self.rv, self.tuning)
        return env.schedule(SERVICE_END, env.t + st, customer_id=customer.id, station_id=station.id)

    # ------------------------------------------------------------------
    # balking
    # ------------------------------------------------------------------

    def abandon(self, env: Env, customer: Customer):
        customer.in_main_queue = False
        if customer.finish(env.t, abandoned=True):
            self.M.note_abandoned(customer)
            log.debug("t=%.1f %s left without paying", env.t, customer.id)

    def _balk_kiosks(self, env: Env):
        for kiosk in self.active(KIOSK):
            cap = kiosk.queue_capacity(self.tuning.kiosk_default_max_queue)
            if kiosk.queue and policies.kiosk_should_balk(len(kiosk.queue), cap, self.rv.uniform(), self.tuning):
                self.abandon(env, kiosk.queue.pop())

    def _balk_main_queue(self, env: Env):
        u = self.rv.uniform()
        if self.main_queue and policies.main_queue_should_balk(len(self.main_queue), self.waiting(), u, self.tuning):
            self.abandon(env, self.main_queue.pop())
