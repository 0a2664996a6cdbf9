import os

import pytest

from checkout_sim.config import apply_overrides, load_cfg
from experiments import run_experiments as rx
from experiments.scenarios import SCENARIOS


def test_mean_ci_uses_student_t():
    mu, half = rx.mean_ci([1.0, 2.0, 3.0], 0.95)
    assert mu == 2.0
    # t(0.975, df=2) = 4.3027; s = 1; n = 3
    assert half == pytest.approx(4.3027 / 3 ** 0.5, rel=1e-3)


def test_mean_ci_degenerate_inputs():
    assert rx.mean_ci([], 0.95) == (0.0, 0.0)
    assert rx.mean_ci([5.0], 0.95) == (5.0, 0.0)
    assert rx.sample_stddev([1.0]) == 0.0


def test_aggregate_history_steps_and_averages():
    results = [
        {"history": [{"time": 60.0, "queue_length": 2, "utilization": 0.5}]},
        {"history": [{"time": 120.0, "queue_length": 4, "utilization": 1.0}]},
    ]
    agg = rx.aggregate_history(results, horizon_minutes=2, interval_minutes=1)
    assert [pt["time_minutes"] for pt in agg] == [0, 1, 2]
    assert agg[0]["queue_length"] == 0.0
    assert agg[1]["queue_length"] == pytest.approx(1.0)
    assert agg[2]["queue_length"] == pytest.approx(3.0)
    assert agg[2]["utilization"] == pytest.approx(0.75)


def test_scenarios_build_valid_configs():
    cfg = load_cfg()
    names = [sc["name"] for sc in SCENARIOS]
    assert len(set(names)) == len(names)
    for sc in SCENARIOS:
        th = rx.theory_for(apply_overrides(cfg, sc["overrides"]))
        assert th.utilization > 0


def test_run_scenario_advances_seed_per_replication():
    cfg = load_cfg()
    cfg = apply_overrides(cfg, {"sim": {"duration_minutes": 15}})
    results = rx.run_scenario(cfg, SCENARIOS[0], replications=3)
    base = cfg["sim"]["seed"]
    assert [r["seed"] for r in results] == [base, base + 1, base + 2]


def test_advise_trains_agent_and_returns_recommendations():
    cfg = apply_overrides(load_cfg(), {"sim": {"duration_minutes": 15}, "agent": {"max_episodes": 50}})
    agent, recs = rx.advise(cfg, seed=1)
    assert agent.get_episode_count() == 50
    assert not agent.is_learning()
    assert len(recs) <= 3


def test_plot_history_writes_png(tmp_path, monkeypatch):
    monkeypatch.setattr(rx, "OUT_DIR", str(tmp_path))
    agg = [{"time_minutes": 0.0, "queue_length": 0.0, "utilization": 0.0},
           {"time_minutes": 1.0, "queue_length": 2.0, "utilization": 0.5}]
    path = rx.plot_history(agg, "Unit Test")
    assert path == os.path.join(str(tmp_path), "unit_test_history.png")
    assert os.path.exists(path)
    assert rx.plot_history([], "empty") is None
