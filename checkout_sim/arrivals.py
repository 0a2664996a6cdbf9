# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# arrivals.py
# -----------------------------------------------------------------------------
# Purpose:
#   Poisson arrival process and customer generation for the checkout model.
#
# Design notes:
#   - Inter-arrival gaps are exponential with rate arrival_rate / 3600 per
#     second, clipped at a multiple of the mean.
#   - When the store is full (max_customers in system) a retry arrival with
#     no customer attached is scheduled a few seconds later.
#   - Customers draw basket size and payment method from the day profile.
#
# Usage:
#   from checkout_sim.arrivals import schedule_next_arrival, make_customer
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging
from typing import Optional

from .config import SimulationParams, Tuning
from .entities import Customer, PAYMENT_METHODS
from .policies import prefers_self_checkout
from .queues import ARRIVAL, Env, Event
from .store_data import DayProfile
from .variates import RandomVariate

log = logging.getLogger(__name__)


def interarrival_time(params: SimulationParams, rv: RandomVariate, tuning: Tuning) -> float:
    return rv.bounded_exponential(params.arrival_rate / 3600.0, clip=tuning.exponential_clip)


def schedule_next_arrival(env: Env, params: SimulationParams, rv: RandomVariate, tuning: Tuning,
                          in_system: int, next_customer: int) -> Optional[Event]:
    """
    Put the next arrival on the FEL.

    Parameters
    ----------
    in_system : int
        Customers currently waiting or in service.
    next_customer : int
        Index used to build the id of the next real customer.

    Returns
    -------
    Event or None
        None when the next arrival would fall outside the simulated horizon.
    """
    horizon = params.duration_seconds
    if in_system >= params.max_customers:
        t = env.t + tuning.retry_delay
        if t >= horizon:
            return None
        log.debug("store full (%d in system), retry at %.1f", in_system, t)
        return env.schedule(ARRIVAL, t)

    t = env.t + interarrival_time(params, rv, tuning)
    if t >= horizon:
        return None
    return env.schedule(ARRIVAL, t, customer_id=f"customer_{next_customer}")


def make_customer(customer_id: str, now: float, profile: DayProfile,
                  rv: RandomVariate, tuning: Tuning) -> Customer:
    """Draw basket size, payment method, purchase value and checkout preference."""
    noise = (rv.uniform() - 0.5) * tuning.item_noise
    items = max(1, round(profile.avg_items + noise))
    payment = rv.weighted_choice(PAYMENT_METHODS, profile.payment_weights())
    value = 25.0 + rv.uniform() * 100.0
    value += (items - 1) * (15.0 + rv.uniform() * 25.0)
    prefers = prefers_self_checkout(payment, items, rv.uniform(), tuning)
    return Customer(customer_id, now, items, payment,
                    prefers_self_checkout=prefers, total_value=value)
