# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# entities.py
# -----------------------------------------------------------------------------
# Purpose:
#   Entity definitions for the checkout DES: Customer, CheckoutStation and
#   the Metrics snapshot published after every event.
#
# Design notes:
#   - Customers keep payment method, basket size and self-checkout
#     preference; timestamps are filled in by the engine as they move.
#   - Stations hold their own FIFO queue; the centralized main queue lives in
#     the Router (network.py).
#
# Usage:
#   from checkout_sim.entities import Customer, CheckoutStation, Metrics
# -----------------------------------------------------------------------------

from __future__ import annotations
from dataclasses import dataclass, field
from typing import List, Optional

REGULAR = "regular"
KIOSK = "kiosk"
STATION_TYPES = (REGULAR, KIOSK)
PAYMENT_METHODS = ("cash", "card", "voucher")


@dataclass
class Customer:
    id: str
    arrival_time: float
    item_count: int
    payment_method: str              # 'cash' | 'card' | 'voucher'
    prefers_self_checkout: bool = False
    total_value: float = 0.0
    service_start_time: Optional[float] = None
    service_end_time: Optional[float] = None
    wait_time: Optional[float] = None
    in_main_queue: bool = False
    abandoned: bool = False

    @property
    def done(self) -> bool:
        return self.service_end_time is not None

    def start_service(self, now: float, max_wait: float):
        self.service_start_time = now
        self.wait_time = min(now - self.arrival_time, max_wait)

    def finish(self, now: float, abandoned: bool = False) -> bool:
        """Stamp the end time once; later calls are ignored."""
        if self.service_end_time is not None:
            return False
        self.service_end_time = now
        self.abandoned = abandoned
        return True


@dataclass
class CheckoutStation:
    id: str
    type: str                        # 'regular' | 'kiosk'
    service_time: float = 82.0       # mean seconds, used for routing estimates
    is_active: bool = True
    max_queue_length: Optional[int] = None
    queue: List[Customer] = field(default_factory=list)
    serving_customer: Optional[Customer] = None

    @property
    def is_kiosk(self) -> bool:
        return self.type == KIOSK

    @property
    def busy(self) -> bool:
        return self.serving_customer is not None

    def queue_capacity(self, default: int) -> int:
        return self.max_queue_length if self.max_queue_length else default

    def clear(self):
        self.queue = []
        self.serving_customer = None


@dataclass
class Metrics:
    """Aggregate system snapshot; recomputed by the engine after each event."""
    average_wait_time: float = 0.0
    average_queue_length: float = 0.0
    utilization: float = 0.0
    throughput: float = 0.0
    total_customers_served: int = 0
    total_customers_abandoned: int = 0
    peak_queue_length: int = 0
    customers_in_system: int = 0
    customer_satisfaction: float = 100.0
    score: float = 0.0

    @property
    def server_utilization(self) -> float:
        return self.utilization


@dataclass(frozen=True)
class DataPoint:
    """One chart sample (time in seconds)."""
    time: float
    average_wait_time: float
    queue_length: int
    utilization: float
    throughput: float
