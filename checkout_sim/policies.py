# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# policies.py
# -----------------------------------------------------------------------------
# Purpose:
#   Pure decision rules used by the Router: self-checkout preference,
#   station scoring, and balking triggers.
#
# Design notes:
#   - Keep pure functions to ease testing (inputs + uniform draw -> decision).
#     Randomness is passed in as an already-drawn u in [0, 1).
#
# Usage:
#   from checkout_sim.policies import prefers_self_checkout, kiosk_score
# -----------------------------------------------------------------------------

from __future__ import annotations
from typing import Optional

from .config import Tuning
from .entities import CheckoutStation, Customer


def prefers_self_checkout(payment_method: str, item_count: int, u: float, tuning: Tuning) -> bool:
    """Cash always queues at a register; small card/voucher baskets split toward kiosks."""
    if payment_method == "cash":
        return False
    if item_count < tuning.self_checkout_item_limit:
        return u < tuning.self_checkout_probability
    return False


def kiosk_has_room(station: CheckoutStation, tuning: Tuning) -> bool:
    return len(station.queue) < station.queue_capacity(tuning.kiosk_default_max_queue)


def kiosk_score(station: CheckoutStation, customer: Customer, tuning: Tuning) -> float:
    """Higher is better: queue-length preference minus estimated wait (minutes)."""
    q = len(station.queue)
    est_wait = (q + (1 if station.busy else 0)) * station.service_time
    pref = -2.0 * q if customer.item_count <= tuning.kiosk_small_basket else -float(q)
    if customer.payment_method == "cash" and q > tuning.kiosk_cash_queue_limit:
        pref -= tuning.kiosk_cash_penalty
    return pref - est_wait / 60.0


def regular_score(station: CheckoutStation, u: float, tuning: Tuning) -> float:
    """Lower is better: estimated wait, per-person penalty, speed deviation, jitter."""
    q = len(station.queue)
    score = q * station.service_time + q * tuning.queue_penalty_per_person
    score += (station.service_time - tuning.service_time_baseline) * tuning.service_deviation_weight
    return score + u * tuning.tie_break_noise


def kiosk_should_balk(queue_len: int, capacity: int, u: float, tuning: Tuning) -> bool:
    return queue_len > capacity * tuning.kiosk_balk_occupancy and u < tuning.kiosk_balk_probability


def main_queue_should_balk(main_len: int, total_waiting: int, u: float, tuning: Tuning) -> bool:
    """Hard limit, or a draw above the load-dependent threshold, once the line is long."""
    if main_len <= tuning.main_balk_soft_limit:
        return False
    threshold = tuning.main_balk_base + min(total_waiting, tuning.main_balk_load_cap) / 100.0
    return main_len > tuning.main_balk_hard_limit or u > threshold


def needs_rebalance(longest: CheckoutStation, shortest: CheckoutStation, tuning: Tuning) -> bool:
    gap = len(longest.queue) - len(shortest.queue)
    return gap > tuning.rebalance_gap and not shortest.busy


def can_redirect_to_kiosk(customer: Customer, kiosk: Optional[CheckoutStation], tuning: Tuning) -> bool:
    if not customer.prefers_self_checkout or customer.item_count > tuning.redirect_item_limit:
        return False
    return kiosk is not None and len(kiosk.queue) <= tuning.redirect_max_kiosk_queue
