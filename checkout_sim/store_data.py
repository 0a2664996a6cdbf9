# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# store_data.py
# -----------------------------------------------------------------------------
# Purpose:
#   Day-type customer profiles (mean service time, basket size, payment mix)
#   and the parser that derives them from observed checkout transaction logs.
#
# Design notes:
#   - DEFAULT_PROFILES are the store's published day summaries, so the engine
#     runs without reading any file; load_profiles(data_dir=...) swaps in
#     profiles computed from the raw logs.
#   - Log rows labelled "Break" are cashier breaks, not customers.
#
# Usage:
#   profile = profile_from_csv("data/weekday.csv", "weekday")
# -----------------------------------------------------------------------------

from __future__ import annotations
import csv, os
from dataclasses import asdict, dataclass, replace
from typing import Dict, Iterable, List, Optional

# Log labels -> model payment methods
PAYMENT_LABELS = {
    "cash": "cash",
    "card": "card",
    "voucher & card": "voucher",
    "voucher": "voucher",
}

OPERATING_MINUTES = 480  # one 8-hour trading day


@dataclass
class DayProfile:
    day_type: str
    avg_service_time: float
    avg_items: float
    payment_distribution: Dict[str, float]
    total_customers: int = 0
    cashier_breaks: int = 0
    staff_count: int = 1

    def payment_weights(self) -> List[float]:
        return [self.payment_distribution.get(m, 0.0) for m in ("cash", "card", "voucher")]


@dataclass
class Transaction:
    customer: int
    items: float
    service_time: float
    payment_method: str
    cashier: str = ""
    notes: str = ""
    is_break: bool = False


DEFAULT_PROFILES: Dict[str, DayProfile] = {
    "weekday": DayProfile(
        "weekday", avg_service_time=82, avg_items=3.6,
        payment_distribution={"cash": 0.23, "card": 0.59, "voucher": 0.18},
        total_customers=22, cashier_breaks=2, staff_count=1,
    ),
    "weekend": DayProfile(
        "weekend", avg_service_time=49, avg_items=1.5,
        payment_distribution={"cash": 0.08, "card": 0.89, "voucher": 0.03},
        total_customers=37, cashier_breaks=0, staff_count=2,
    ),
}


def parse_transactions(rows: Iterable[Dict[str, str]]) -> List[Transaction]:
    """Turn csv.DictReader rows into Transactions; malformed rows are skipped."""
    out: List[Transaction] = []
    for row in rows:
        label = (row.get("Customer") or "").strip()
        svc_raw = (row.get("Service Time (s)") or "").strip()
        if label == "Break" or not label:
            out.append(Transaction(0, 0.0, float(svc_raw or 0), "card",
                                   cashier=(row.get("Cashier") or "").strip(),
                                   notes=(row.get("Notes") or "Break").strip(),
                                   is_break=True))
            continue
        try:
            cust = int(label)
            items = float(row.get("Items Bought") or "")
            svc = float(svc_raw)
        except ValueError:
            continue
        method = PAYMENT_LABELS.get((row.get("Payment Method") or "").strip().lower(), "card")
        out.append(Transaction(cust, items, svc, method,
                               cashier=(row.get("Cashier") or "").strip(),
                               notes=(row.get("Notes") or "").strip()))
    return out


def summarize(transactions: List[Transaction], day_type: str) -> DayProfile:
    sales = [t for t in transactions if not t.is_break]
    breaks = [t for t in transactions if t.is_break]
    if not sales:
        raise ValueError(f"no customer transactions for {day_type}")
    n = len(sales)
    counts = {m: 0 for m in ("cash", "card", "voucher")}
    for t in sales:
        counts[t.payment_method] += 1
    return DayProfile(
        day_type=day_type,
        avg_service_time=float(round(sum(t.service_time for t in sales) / n)),
        avg_items=round(sum(t.items for t in sales) / n, 1),
        payment_distribution={m: c / n for m, c in counts.items()},
        total_customers=n,
        cashier_breaks=len(breaks),
        staff_count=len({t.cashier for t in sales}),
    )


def profile_from_csv(path: str, day_type: str) -> DayProfile:
    with open(path, newline="", encoding="utf-8") as f:
        return summarize(parse_transactions(csv.DictReader(f)), day_type)


def profile_to_params(profile: DayProfile, operating_minutes: float = OPERATING_MINUTES) -> Dict[str, float]:
    """Observed day -> simulation inputs (arrival rate per hour, mean service)."""
    return {
        "arrival_rate": profile.total_customers / operating_minutes * 60.0,
        "service_time_regular": profile.avg_service_time,
    }


def load_profiles(cfg: Optional[dict] = None, data_dir: Optional[str] = None) -> Dict[str, DayProfile]:
    """Built-in profiles, replaced by logs in data_dir and then cfg overrides."""
    profiles = {k: replace(v, payment_distribution=dict(v.payment_distribution))
                for k, v in DEFAULT_PROFILES.items()}
    if data_dir:
        for day_type in profiles:
            path = os.path.join(data_dir, f"{day_type}.csv")
            if os.path.exists(path):
                profiles[day_type] = profile_from_csv(path, day_type)
    for day_type, over in ((cfg or {}).get("day_profiles") or {}).items():
        base = profiles.get(day_type) or DayProfile(day_type, 82.0, 1.0, {"card": 1.0})
        merged = {**asdict(base), **over}
        merged["day_type"] = day_type
        profiles[day_type] = DayProfile(**merged)
    return profiles
