# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# queues.py
# -----------------------------------------------------------------------------
# Purpose:
#   Minimal discrete-event primitives: Event and Env (clock + future event
#   list). The checkout engine pops one event per step().
#
# Design notes:
#   - The FEL is a binary heap ordered by (time, insertion sequence), so
#     events scheduled for the same instant come out in FIFO order.
#   - Env never dispatches by itself; dispatch lives in the engine so an
#     external driver can interleave steps with rendering.
#
# Usage:
#   from checkout_sim.queues import Env, Event
# -----------------------------------------------------------------------------

from __future__ import annotations
import heapq, itertools
from typing import List, Optional

ARRIVAL = "arrival"
SERVICE_END = "service_end"


class Event:
    """Scheduled state transition on the Future Event List (FEL)."""
    __slots__ = ("id", "t", "kind", "customer_id", "station_id", "seq")

    def __init__(self, id: str, t: float, kind: str,
                 customer_id: Optional[str] = None, station_id: Optional[str] = None):
        self.id = id; self.t = t; self.kind = kind
        self.customer_id = customer_id; self.station_id = station_id
        self.seq = 0

    def __lt__(self, other: "Event"):
        return (self.t, self.seq) < (other.t, other.seq)

    def __repr__(self):
        return f"Event({self.id!r}, t={self.t:.2f}, kind={self.kind!r})"


class Env:
    """Simulation clock plus the time-ordered FEL.

    Attributes
    ----------
    t : float
        Simulation time (seconds).
    FEL : list[Event]
        Min-heap of scheduled events.
    """
    def __init__(self):
        self.t: float = 0.0
        self.FEL: List[Event] = []
        self._seq = itertools.count()
        self._ids = itertools.count()

    def __len__(self):
        return len(self.FEL)

    def clear(self):
        self.t = 0.0
        self.FEL = []
        self._seq = itertools.count()
        self._ids = itertools.count()

    def next_id(self) -> str:
        return f"event_{next(self._ids)}"

    def schedule(self, kind: str, t: float, customer_id: Optional[str] = None,
                 station_id: Optional[str] = None) -> Event:
        ev = Event(self.next_id(), t, kind, customer_id=customer_id, station_id=station_id)
        ev.seq = next(self._seq)
        heapq.heappush(self.FEL, ev)
        return ev

    def peek(self) -> Optional[Event]:
        return self.FEL[0] if self.FEL else None

    def pop(self) -> Optional[Event]:
        """Remove the earliest event and advance the clock to it."""
        if not self.FEL:
            return None
        ev = heapq.heappop(self.FEL)
        self.t = ev.t
        return ev
