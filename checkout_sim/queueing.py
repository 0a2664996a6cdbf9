# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# queueing.py
# -----------------------------------------------------------------------------
# Purpose:
#   Closed-form queueing theory for the checkout model: M/M/c steady-state
#   metrics, Little's Law, staffing search, service level, and the
#   satisfaction/score curves the engine publishes.
#
# Design notes:
#   - Pure functions only; units are whatever the caller uses for lam and mu
#     (the engine passes per-second rates, so waits come back in seconds).
#   - rho = lam / (c * mu) >= 1 returns the unstable sentinel instead of
#     raising: infinite wait and queue, zero throughput, zero score.
#
# Usage:
#   from checkout_sim import queueing
#   th = queueing.mmc_metrics(lam=20, mu=15, c=2)
# -----------------------------------------------------------------------------

from __future__ import annotations
import math
from dataclasses import dataclass
from typing import Dict, List, Sequence

MAX_ACCEPTABLE_WAIT = 300.0  # seconds
MIN_STABLE_SCORE = 5.0


@dataclass(frozen=True)
class TheoreticalMetrics:
    utilization: float
    p0: float = 0.0
    lq: float = math.inf
    ls: float = math.inf
    wq: float = math.inf
    ws: float = math.inf
    throughput: float = 0.0
    customer_satisfaction: float = 0.0
    score: float = 0.0
    stable: bool = False

    @property
    def average_wait_time(self) -> float:
        return self.ws

    @property
    def average_queue_length(self) -> float:
        return self.ls


def factorial(n: int) -> int:
    return math.factorial(n) if n > 1 else 1


def p0_mmc(offered_load: float, c: int, rho: float) -> float:
    """Probability of an empty system: finite sum plus the geometric tail."""
    s = sum(offered_load ** n / factorial(n) for n in range(c))
    s += offered_load ** c / factorial(c) / (1.0 - rho)
    return 1.0 / s


def unstable(utilization: float) -> TheoreticalMetrics:
    return TheoreticalMetrics(utilization=utilization)


def mmc_metrics(lam: float, mu: float, c: int) -> TheoreticalMetrics:
    """Steady-state M/M/c metrics.

    Args:
        lam: arrival rate.
        mu: service rate of one server (same time unit as lam).
        c: number of parallel servers.
    """
    if c <= 0 or mu <= 0:
        return unstable(math.inf)
    a = lam / mu                       # offered load
    rho = a / c
    if rho >= 1:
        return unstable(rho)
    if lam <= 0:
        return TheoreticalMetrics(utilization=0.0, p0=1.0, lq=0.0, ls=0.0, wq=0.0,
                                  ws=1.0 / mu, throughput=0.0, customer_satisfaction=1.0,
                                  score=100.0, stable=True)
    p0 = p0_mmc(a, c, rho)
    lq = p0 * a ** c * rho / (factorial(c) * (1.0 - rho) ** 2)
    ls = lq + a
    wq = littles_law_w(lq, lam)
    ws = littles_law_w(ls, lam)
    sat = wait_satisfaction_fraction(ws)
    return TheoreticalMetrics(
        utilization=rho, p0=p0, lq=lq, ls=ls, wq=wq, ws=ws,
        throughput=lam, customer_satisfaction=sat,
        score=max(sat * 100.0, MIN_STABLE_SCORE), stable=True,
    )


def littles_law_l(lam: float, w: float) -> float:
    return lam * w


def littles_law_w(l: float, lam: float) -> float:
    return l / lam if lam > 0 else 0.0


def wait_satisfaction_fraction(wait: float, max_acceptable: float = MAX_ACCEPTABLE_WAIT) -> float:
    return max(0.0, 1.0 - wait / max_acceptable)


def optimal_servers(lam: float, mu: float, target_utilization: float, search: int = 10) -> int:
    """Smallest c (from the stability minimum) whose utilization meets the target."""
    min_servers = max(1, math.ceil(lam / mu))
    for c in range(min_servers, min_servers + search + 1):
        if lam / (c * mu) <= target_utilization:
            return c
    return min_servers + search


def service_level(actual_wait: float, target_wait: float) -> float:
    if actual_wait <= target_wait:
        return 1.0
    return max(0.0, 1.0 - (actual_wait - target_wait) / target_wait)


def relative_difference(expected: float, observed: float) -> float:
    """|expected - observed| / expected; a zero expectation only matches zero."""
    if expected > 0:
        return abs(expected - observed) / expected
    return 0.0 if observed == 0 else math.inf


def compare_results(theory: TheoreticalMetrics, average_wait_time: float,
                    average_queue_length: float, utilization: float) -> Dict[str, float]:
    """
    Relative differences between theory and a simulated run, plus an
    accuracy in [0, 1] (1 - mean of the three differences).

    The simulated wait and queue length count waiting customers only, so
    they are compared with Wq and Lq.
    """
    if not theory.stable:
        return {"wait_time_difference": math.inf, "queue_length_difference": math.inf,
                "utilization_difference": math.inf, "accuracy": 0.0}
    wait_diff = relative_difference(theory.wq, average_wait_time)
    queue_diff = relative_difference(theory.lq, average_queue_length)
    util_diff = relative_difference(theory.utilization, utilization)
    accuracy = 1.0 - (wait_diff + queue_diff + util_diff) / 3.0
    return {
        "wait_time_difference": wait_diff,
        "queue_length_difference": queue_diff,
        "utilization_difference": util_diff,
        "accuracy": max(0.0, accuracy),
    }


def cost_efficiency(servers: int, staff_cost_per_hour: float, satisfaction_pct: float,
                    revenue_per_customer: float, customers_per_hour: float) -> Dict[str, float]:
    total_cost = servers * staff_cost_per_hour
    revenue = customers_per_hour * revenue_per_customer * (satisfaction_pct / 100.0)
    net = revenue - total_cost
    return {
        "total_cost": total_cost,
        "total_revenue": revenue,
        "net_benefit": net,
        "cost_efficiency": net / total_cost if total_cost > 0 else 0.0,
    }


HOURLY_MULTIPLIERS = {
    "weekday": [0.1, 0.1, 0.1, 0.1, 0.1, 0.2,
                0.3, 0.5, 0.7, 0.8, 0.9, 1.2,
                1.5, 1.3, 1.1, 1.0, 1.2, 1.8,
                2.0, 1.6, 1.2, 0.8, 0.5, 0.3],
    "weekend": [0.1, 0.1, 0.1, 0.1, 0.1, 0.1,
                0.2, 0.3, 0.5, 0.8, 1.2, 1.5,
                1.8, 2.0, 1.9, 1.7, 1.5, 1.6,
                1.8, 1.6, 1.3, 1.0, 0.7, 0.4],
}


def arrival_pattern(day_type: str, base_rate: float) -> List[float]:
    """Hour-of-day arrival rates (index 0 = midnight)."""
    return [base_rate * m for m in HOURLY_MULTIPLIERS[day_type]]


# ---------------------------------------------------------------------------
# Satisfaction curves (percent)
# ---------------------------------------------------------------------------

def wait_time_satisfaction(wait_minutes: float) -> float:
    w = wait_minutes
    if w <= 1:
        return 100.0
    if w <= 2:
        return 90.0 - (w - 1) * 10
    if w <= 3:
        return 80.0 - (w - 2) * 20
    if w <= 5:
        return 60.0 - (w - 3) * 15
    if w <= 10:
        return 30.0 - (w - 5) * 4
    return max(5.0, 10.0 - (w - 10) * 0.5)


def queue_length_satisfaction(waiting: float) -> float:
    n = waiting
    if n <= 5:
        return 100.0
    if n <= 10:
        return 100.0 - (n - 5) * 10
    if n <= 20:
        return 50.0 - (n - 10) * 3
    return max(10.0, 20.0 - (n - 20) * 0.5)


def efficiency_satisfaction(utilization: float) -> float:
    if 0.6 <= utilization <= 0.85:
        return 100.0
    if utilization < 0.6:
        return 70.0 + utilization / 0.6 * 30
    return max(40.0, 100.0 - (utilization - 0.85) * 200)


def abandonment_satisfaction(served: int, abandoned: int) -> float:
    total = served + abandoned
    if total <= 0:
        return 100.0
    return max(50.0, 100.0 - abandoned / total * 200)


def blended_satisfaction(wait_minutes: float, waiting: float, utilization: float,
                         served: int, abandoned: int,
                         weights: Sequence[float] = (0.6, 0.2, 0.15, 0.05)) -> float:
    parts = (
        wait_time_satisfaction(wait_minutes),
        queue_length_satisfaction(waiting),
        efficiency_satisfaction(utilization),
        abandonment_satisfaction(served, abandoned),
    )
    return sum(p * w for p, w in zip(parts, weights))


# ---------------------------------------------------------------------------
# Performance score components (0-100)
# ---------------------------------------------------------------------------

def wait_time_score(wait_minutes: float) -> float:
    for limit, score in ((1, 100.0), (2, 90.0), (3, 75.0), (5, 50.0), (7, 25.0)):
        if wait_minutes <= limit:
            return score
    return 0.0


def utilization_score(u: float) -> float:
    """Peak between 70% and 85% busy."""
    if 0.7 <= u <= 0.85:
        return 100.0
    if 0.6 <= u < 0.7:
        return 70.0 + (u - 0.6) * 300
    if 0.85 < u <= 0.95:
        return 100.0 - (u - 0.85) * 500
    if u < 0.6:
        return u * 100 / 0.6
    return max(0.0, 50.0 - (u - 0.95) * 1000)


def throughput_score(throughput: float, target_per_hour: float) -> float:
    eff = throughput / max(1.0, target_per_hour)
    if eff >= 0.95:
        return 100.0
    if eff >= 0.8:
        return 80.0 + (eff - 0.8) * 133
    if eff >= 0.6:
        return 60.0 + (eff - 0.6) * 100
    return eff * 100


def overall_score(wait_minutes: float, utilization: float, throughput: float,
                  target_per_hour: float, weights: Sequence[float] = (0.4, 0.3, 0.3)) -> float:
    w_wait, w_util, w_tp = weights
    return (wait_time_score(wait_minutes) * w_wait
            + utilization_score(utilization) * w_util
            + throughput_score(throughput, target_per_hour) * w_tp)
