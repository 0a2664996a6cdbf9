import random
import threading

import pytest

from checkout_sim import agent as ag
from checkout_sim.agent import QLearningAgent, QState
from checkout_sim.entities import KIOSK, REGULAR
from checkout_sim.stations import make_station


class _NoArrivals(random.Random):
    """Draws that never pass an arrival or exploration check."""
    def random(self):
        return 0.99


def _stations(regular=1, kiosk=0):
    S = [make_station(f"regular_{i + 1}", REGULAR, 82.0) for i in range(regular)]
    S += [make_station(f"kiosk_{i + 1}", KIOSK, 98.4, max_queue_length=5) for i in range(kiosk)]
    return S


def test_state_key_buckets_queues_and_time():
    s = QState([0, 2, 5, 9], 4, "weekday", 12)
    assert s.key == "empty|short|medium|long|4|weekday|lunch"


@pytest.mark.parametrize("hour,label", [
    (8, "morning"), (9, "midmorning"), (13.5, "lunch"),
    (16, "afternoon"), (19, "evening"), (22, "night"),
])
def test_time_categories(hour, label):
    assert ag.time_category(hour) == label


def test_state_from_stations():
    S = _stations(2, 1)
    S[1].is_active = False
    s = QState.from_stations(S, "weekend", 10)
    assert s.queue_lengths == [0, 0, 0]
    assert s.active_stations == 2
    assert s.key.endswith("|2|weekend|midmorning")


def test_q_update_law():
    a = QLearningAgent(seed=1)
    assert a.update_q_value("s", "add_kiosk", 1.0, "s2") == pytest.approx(0.1)
    a.update_q_value("s2", "no_change", 10.0, "s3")          # Q(s2, no_change) = 1.0
    old = a.get_q_value("s", "add_kiosk")
    new = a.update_q_value("s", "add_kiosk", 1.0, "s2")
    assert new == pytest.approx(old + 0.1 * (1.0 + 0.9 * 1.0 - old))
    assert a.get_last_reward() == 1.0
    assert a.get_cumulative_reward() == pytest.approx(12.0)
    assert len(a.get_action_history()) == 3


def test_max_next_q_of_unvisited_state_is_zero():
    a = QLearningAgent(seed=1)
    a.update_q_value("s", "no_change", 2.0, "never_seen")
    assert a.get_q_value("s", "no_change") == pytest.approx(0.2)


def test_greedy_choice_breaks_ties_by_first_action():
    a = QLearningAgent(seed=1, exploration_rate=0.0)
    actions = ["no_change", "add_regular", "add_kiosk"]
    assert a.choose_action("s", actions) == "no_change"
    a.update_q_value("s", "add_kiosk", 5.0, "x")
    assert a.choose_action("s", actions) == "add_kiosk"


def test_available_actions_respect_layout():
    assert ag.available_actions(_stations(1, 0)) == [
        "no_change", "add_regular", "add_kiosk", "convert_to_kiosk", "optimize_layout"]
    full = ag.available_actions(_stations(6, 4))
    assert "add_regular" not in full and "add_kiosk" not in full
    assert {"remove_station", "convert_to_kiosk", "convert_to_regular"} <= set(full)


def test_reward():
    assert ag.reward(QState([0, 0], 2)) == pytest.approx(2.8)
    assert ag.reward(QState([2, 2], 2)) == pytest.approx(6.8)
    assert ag.reward(QState([], 0)) == pytest.approx(3.0)


def test_transition_model_works_on_copies():
    a = QLearningAgent(rng=_NoArrivals())
    state = QState([4, 1], 2, "weekday", 12)
    sketch = ag._sketch(_stations(2, 0))
    nxt, nxt_sketch = a.simulate_action("add_kiosk", state, sketch)
    assert state.queue_lengths == [4, 1] and len(sketch) == 2
    assert nxt.queue_lengths == [3, 0, 0]
    assert nxt.active_stations == 3
    assert [s.type for s in nxt_sketch] == [REGULAR, REGULAR, KIOSK]


def test_transition_model_actions():
    a = QLearningAgent(rng=_NoArrivals())
    sketch = ag._sketch(_stations(2, 0))
    nxt, _ = a.simulate_action("optimize_layout", QState([10, 0], 2), sketch)
    assert nxt.queue_lengths == [8, 0]
    nxt, s2 = a.simulate_action("remove_station", QState([5, 1], 2), sketch)
    assert nxt.queue_lengths == [0] and nxt.active_stations == 1
    assert [s.is_active for s in s2] == [True, False]
    nxt, s3 = a.simulate_action("convert_to_kiosk", QState([5, 2], 2), sketch)
    assert nxt.queue_lengths == [3, 1]
    assert s3[0].type == KIOSK


def test_optimize_layout_rounds_halves_up():
    a = QLearningAgent(rng=_NoArrivals())
    sketch = ag._sketch(_stations(2, 0))
    # 0.8 * 5 + 0.2 * 2.5 = 4.5 -> 5, then one served
    nxt, _ = a.simulate_action("optimize_layout", QState([5, 0], 2), sketch)
    assert nxt.queue_lengths == [4, 0]


def test_inline_training_reaches_episode_cap():
    a = QLearningAgent(seed=4)
    S = _stations(2, 1)
    a.start_learning(QState.from_stations(S, "weekday", 12), S, background=False)
    assert a.get_episode_count() == 1000
    assert a.get_learning_progress() == 100.0
    assert not a.is_learning()
    assert a.get_exploration_rate() == pytest.approx(0.3 * 0.995 ** 100)
    stats = a.get_q_table_stats()
    assert stats["state_count"] > 0 and stats["action_count"] >= stats["state_count"]
    assert len(a.get_action_history()) == 100


def test_progress_is_percent_of_episode_cap():
    a = QLearningAgent(seed=4)
    S = _stations(1, 1)
    a.train_batch(QState.from_stations(S, "weekday", 9), S)
    assert a.get_episode_count() == 10
    assert a.get_learning_progress() == pytest.approx(1.0)


def test_train_batch_needs_a_state():
    with pytest.raises(ValueError):
        QLearningAgent(seed=1).train_batch()


def test_background_training_finishes():
    a = QLearningAgent(seed=2)
    S = _stations(2, 2)
    a.start_learning(QState.from_stations(S, "weekend", 18), S, interval=0.0)
    assert a.wait_until_done(timeout=60)
    assert not a.is_learning()
    assert a.get_episode_count() == 1000


def test_stop_learning_cancels_training():
    a = QLearningAgent(seed=2)
    S = _stations(2, 2)
    a.start_learning(QState.from_stations(S, "weekday", 12), S, interval=0.5)
    a.stop_learning()
    assert not a.is_learning()
    assert a.get_episode_count() < 1000
    assert a.get_episode_count() % 10 == 0


def test_recommendations_from_untrained_agent():
    a = QLearningAgent(seed=1)
    S = _stations(1, 0)
    recs = a.generate_recommendations(QState.from_stations(S, "weekday", 12), S)
    # no_change (Q = 0) is withheld; the next two actions are proposed
    assert [r.new_type for r in recs] == [REGULAR, KIOSK]
    assert all(r.confidence == 0.5 and r.priority == "low" for r in recs)
    assert recs[0].expected_improvement == 5.0
    assert recs[0].action.type == "openStation"


def test_recommendations_rank_and_filter_by_q():
    a = QLearningAgent(seed=1)
    S = _stations(1, 0)
    state = QState.from_stations(S, "weekday", 12)
    a.update_q_value(state.key, "optimize_layout", 100.0, "x")   # Q = 10
    a.update_q_value(state.key, "add_regular", -100.0, "x")      # Q = -10
    recs = a.generate_recommendations(state, S)
    assert recs[0].description == "Optimize checkout layout"
    assert recs[0].priority == "high"
    assert recs[0].confidence == 0.95
    assert recs[0].expected_improvement == pytest.approx(60.0)
    assert all(r.description != "Add regular checkout station" for r in recs)


def test_no_change_surfaces_only_when_clearly_good():
    a = QLearningAgent(seed=1)
    S = _stations(1, 0)
    state = QState.from_stations(S, "weekday", 12)
    a.update_q_value(state.key, "no_change", 40.0, "x")          # Q = 4
    recs = a.generate_recommendations(state, S)
    assert recs[0].description == "Current layout is optimal"
    assert recs[0].priority == "low"
    assert recs[0].expected_improvement == 0.0


def test_empty_q_table_stats():
    assert QLearningAgent().get_q_table_stats() == {
        "state_count": 0, "action_count": 0, "max_q_value": 0.0, "min_q_value": 0.0}


def test_from_cfg_reads_hyperparameters():
    a = QLearningAgent.from_cfg({"agent": {"learning_rate": 0.2, "max_episodes": 50, "seed": 3}})
    params = a.get_learning_parameters()
    assert params["learning_rate"] == 0.2
    assert a.max_episodes == 50


def test_restart_waits_for_a_slow_previous_run():
    a = QLearningAgent(seed=2)
    S = _stations(2, 1)
    state = QState.from_stations(S, "weekday", 12)
    real_batch = a.train_batch
    entered, gate = threading.Event(), threading.Event()

    def slow_batch(*args):
        entered.set()
        gate.wait(5)
        return real_batch(*args)

    a.train_batch = slow_batch
    a.start_learning(state, S, interval=0.0)
    assert entered.wait(5)
    first = a._thread
    a.stop_learning(timeout=0.01)
    assert first.is_alive()
    assert not a.is_learning()

    a.train_batch = real_batch
    threading.Timer(0.2, gate.set).start()
    a.start_learning(state, S, interval=0.0)
    assert not first.is_alive()
    assert a.wait_until_done(timeout=60)
    assert a.get_episode_count() == 1000
    assert not a.is_learning()
