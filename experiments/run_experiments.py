"""
experiments/run_experiments.py

Experiment harness that loads the baseline config, applies scenario overrides,
runs multiple seeded replications, and reports KPIs with confidence intervals,
the M/M/c prediction for the same layout, and (optionally) the learning
agent's layout advice.
"""

from __future__ import annotations
import argparse, copy, logging, math, os
from statistics import mean, stdev
from typing import Callable, Dict, List, Optional, Tuple

import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from scipy.stats import t

from checkout_sim import queueing
from checkout_sim.agent import QLearningAgent, QState
from checkout_sim.config import SimulationParams, Tuning, apply_overrides, load_cfg
from checkout_sim.logger import setup_logger
from checkout_sim.simulation import SimulationEngine, run_simulation
from checkout_sim.stations import make_stations
from checkout_sim.store_data import load_profiles

from experiments.scenarios import SCENARIOS

ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
OUT_DIR = os.path.join(ROOT, "experiments", "output")

log = logging.getLogger("checkout_sim.experiments")


def mean_ci(values: List[float], confidence_level: float) -> Tuple[float, float]:
    """Return (mean, half-width) using a Student t critical value with df = n-1."""
    if not values:
        return 0.0, 0.0
    mu = mean(values)
    n = len(values)
    if n < 2:
        return mu, 0.0
    level = min(max(confidence_level, 0.0), 0.999999)
    alpha = 1.0 - level
    tcrit = t.ppf(1 - alpha / 2.0, n - 1)
    half = tcrit * (stdev(values) / math.sqrt(n))
    return mu, half


def sample_stddev(values: List[float]) -> float:
    """Return sample standard deviation or 0 if insufficient data."""
    if len(values) < 2:
        return 0.0
    return stdev(values)


def series(results: List[Dict], extractor: Callable[[Dict], float]) -> List[float]:
    """Collect a numeric series from each replication result."""
    return [float(extractor(res)) for res in results]


def theory_for(cfg: Dict):
    """M/M/c prediction for the active stations of a config (rates per second)."""
    params = SimulationParams.from_cfg(cfg)
    c = sum(1 for s in make_stations(cfg, params) if s.is_active)
    return queueing.mmc_metrics(params.arrival_rate / 3600.0, 1.0 / params.service_time_regular, c)


def _value_at(history: List[Dict], minute: float, key: str) -> float:
    """Last sampled value at or before the given minute (0 before the first sample)."""
    val = 0.0
    for pt in history:
        if pt["time"] / 60.0 > minute:
            break
        val = pt[key]
    return float(val)


def aggregate_history(results: List[Dict], horizon_minutes: float, interval_minutes: float = 1.0) -> List[Dict[str, float]]:
    """
    Average the per-replication step series (queue length, utilization) on a
    fixed minute grid so replications can be plotted as one curve.
    """
    if not results:
        return []
    if interval_minutes <= 0:
        interval_minutes = 1.0
    steps = int(math.ceil(horizon_minutes / interval_minutes))
    out = []
    for i in range(steps + 1):
        minute = i * interval_minutes
        q = [_value_at(r.get("history", []), minute, "queue_length") for r in results]
        u = [_value_at(r.get("history", []), minute, "utilization") for r in results]
        out.append({"time_minutes": minute, "queue_length": mean(q), "utilization": mean(u)})
    return out


def plot_history(agg: List[Dict[str, float]], scenario_name: str) -> Optional[str]:
    """Persist a PNG with waiting customers and utilization over the run."""
    if not agg:
        return None
    x = [pt["time_minutes"] for pt in agg]
    fig, ax_q = plt.subplots(figsize=(9, 5))
    ax_q.plot(x, [pt["queue_length"] for pt in agg], color="#2563eb", label="Customers waiting")
    ax_q.set_xlabel("Time (minutes)")
    ax_q.set_ylabel("Customers waiting")
    ax_u = ax_q.twinx()
    ax_u.plot(x, [pt["utilization"] * 100.0 for pt in agg], color="#d97706", label="Utilization (%)")
    ax_u.set_ylabel("Utilization (%)")
    ax_u.set_ylim(0, 100)
    ax_q.set_xlim(left=0)
    ax_q.grid(True, linestyle="--", alpha=0.4)
    lines = ax_q.get_lines() + ax_u.get_lines()
    ax_q.legend(lines, [ln.get_label() for ln in lines], loc="upper left")
    ax_q.set_title(f"{scenario_name}: mean over replications")
    os.makedirs(OUT_DIR, exist_ok=True)
    out_path = os.path.join(OUT_DIR, f"{scenario_name.lower().replace(' ', '_')}_history.png")
    fig.tight_layout()
    fig.savefig(out_path, dpi=160)
    plt.close(fig)
    return out_path


def advise(cfg: Dict, seed: Optional[int] = None, hour: float = 12):
    """Run one replication, train the agent on its end state, return advice."""
    params = SimulationParams.from_cfg(cfg)
    eng = SimulationEngine(make_stations(cfg, params), params, tuning=Tuning.from_cfg(cfg),
                           seed=seed, profiles=load_profiles(cfg))
    eng.run()
    stations = eng.get_stations()
    state = QState.from_stations(stations, params.day_type, hour)
    agent = QLearningAgent.from_cfg(cfg, seed=seed)
    agent.start_learning(state, stations, background=False)
    return agent, agent.generate_recommendations(state, stations)


def run_scenario(cfg: Dict, scenario: Dict, replications: int) -> List[Dict]:
    sc_cfg = apply_overrides(cfg, scenario["overrides"])
    base_seed = int(sc_cfg.get("sim", {}).get("seed", 0))
    results = []
    for rep in range(replications):
        run_cfg = copy.deepcopy(sc_cfg)
        # Advance the seed per replication so replications remain iid.
        results.append(run_simulation(run_cfg, seed=base_seed + rep))
    return results


def main(argv: Optional[List[str]] = None):
    """Entry point: drive all scenarios, replications, and report KPIs."""
    ap = argparse.ArgumentParser(description="Checkout layout experiments")
    ap.add_argument("--config", default=None, help="YAML config (default: checkout_sim/baseline.yaml)")
    ap.add_argument("--replications", type=int, default=None)
    ap.add_argument("--no-plots", action="store_true")
    ap.add_argument("--no-advice", action="store_true")
    ap.add_argument("--log-level", default="WARNING")
    ap.add_argument("--log-file", action="store_true", help="also write a DEBUG log under logs/")
    args = ap.parse_args(argv)

    setup_logger(level=getattr(logging, args.log_level.upper(), logging.WARNING),
                 log_to_file=args.log_file, log_dir=os.path.join(ROOT, "logs"))
    cfg = load_cfg(args.config)
    exp_cfg = cfg.get("experiments", {})
    replications = max(1, int(args.replications or exp_cfg.get("replications", 1)))
    confidence = float(exp_cfg.get("confidence_level", 0.95))
    do_advice = bool(exp_cfg.get("advise", True)) and not args.no_advice
    level_pct = confidence * 100.0

    for sc in SCENARIOS:
        sc_cfg = apply_overrides(cfg, sc["overrides"])
        results = run_scenario(cfg, sc, replications)
        seeds = [r["seed"] for r in results]

        wait = mean_ci(series(results, lambda r: r["average_wait_time"] / 60.0), confidence)
        queue = mean_ci(series(results, lambda r: r["average_queue_length"]), confidence)
        util = mean_ci(series(results, lambda r: r["utilization"] * 100.0), confidence)
        tput = mean_ci(series(results, lambda r: r["throughput"]), confidence)
        served = mean_ci(series(results, lambda r: r["total_customers_served"]), confidence)
        abandoned = mean_ci(series(results, lambda r: r["total_customers_abandoned"]), confidence)
        sat = mean_ci(series(results, lambda r: r["customer_satisfaction"]), confidence)
        score = mean_ci(series(results, lambda r: r["score"]), confidence)
        score_sd = sample_stddev(series(results, lambda r: r["score"]))
        th = theory_for(sc_cfg)

        print(f"Scenario: {sc['name']} (replications={replications}, {level_pct:.1f}% CI, seeds {seeds[0]}-{seeds[-1]})")
        print("  Score by seed:")
        for r in results:
            print(f"    seed {r['seed']}: {r['score']:.1f}")
        print(f"  Score std dev: {score_sd:.2f}")
        print(f"  Score: {score[0]:.1f} ± {score[1]:.1f}")
        print(f"  Avg wait: {wait[0]:.2f} ± {wait[1]:.2f} min")
        print(f"  Avg customers waiting: {queue[0]:.2f} ± {queue[1]:.2f}")
        print(f"  Utilization: {util[0]:.1f}% ± {util[1]:.1f}%")
        print(f"  Throughput: {tput[0]:.1f} ± {tput[1]:.1f} customers/h")
        print(f"  Served: {served[0]:.1f} ± {served[1]:.1f}   Abandoned: {abandoned[0]:.1f} ± {abandoned[1]:.1f}")
        print(f"  Satisfaction: {sat[0]:.1f} ± {sat[1]:.1f}")
        if th.stable:
            print(f"  M/M/c theory: rho={th.utilization:.3f}  Wq={th.wq / 60.0:.2f} min  Lq={th.lq:.2f}")
            print(f"  Theory agreement (mean accuracy): {mean(series(results, lambda r: r['theory_accuracy'])):.2f}")
        else:
            print(f"  M/M/c theory: unstable (rho={th.utilization:.3f})")

        if not args.no_plots:
            horizon = SimulationParams.from_cfg(sc_cfg).simulation_duration
            path = plot_history(aggregate_history(results, horizon), sc["name"])
            if path:
                print(f"  Plot: {os.path.relpath(path, ROOT)}")

        if do_advice:
            agent, recs = advise(sc_cfg, seed=seeds[0])
            stats = agent.get_q_table_stats()
            print(f"  Agent: {agent.get_episode_count()} episodes, {stats['state_count']} states, "
                  f"epsilon={agent.get_exploration_rate():.3f}")
            for rec in recs:
                print(f"    [{rec.priority}] {rec.description} "
                      f"(confidence {rec.confidence:.0%}, expected +{rec.expected_improvement:.1f})")
        print()


if __name__ == "__main__":
    main()
