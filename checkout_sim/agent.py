# Copyright (c) 2025
# MIT License
# -----------------------------------------------------------------------------
# agent.py
# -----------------------------------------------------------------------------
# Purpose:
#   Tabular Q-learning advisor that learns layout changes (add, remove or
#   convert stations) on a simplified queue model, then turns its Q-values
#   into ranked recommendations for the current floor.
#
# Design notes:
#   - The agent never touches engine objects: it trains on copies of queue
#     lengths and on a light sketch of the stations (type, active flag).
#   - The Q-table is a flat dict keyed by (state_key, action); entries are
#     created lazily at 0 and never deleted. Actions of a state keep the
#     order they were first seen, which is also the greedy tie-break order.
#   - Training runs in batches; start_learning() drives them from a daemon
#     thread that waits on a stop Event between ticks. A lock guards the
#     Q-table so recommendations can be read while a batch runs.
#
# Usage:
#   agent = QLearningAgent(seed=1)
#   agent.start_learning(QState.from_stations(stations, "weekday", 12), stations)
#   agent.wait_until_done(); recs = agent.generate_recommendations(state, stations)
# -----------------------------------------------------------------------------

from __future__ import annotations
import logging, math, random, threading
from collections import deque
from dataclasses import dataclass, replace
from typing import Deque, Dict, List, Optional, Sequence, Tuple

from .entities import KIOSK, REGULAR
from .variates import RandomVariate

log = logging.getLogger(__name__)

NO_CHANGE = "no_change"
ADD_REGULAR = "add_regular"
ADD_KIOSK = "add_kiosk"
REMOVE_STATION = "remove_station"
CONVERT_TO_KIOSK = "convert_to_kiosk"
CONVERT_TO_REGULAR = "convert_to_regular"
OPTIMIZE_LAYOUT = "optimize_layout"
ACTIONS = (NO_CHANGE, ADD_REGULAR, ADD_KIOSK, REMOVE_STATION,
           CONVERT_TO_KIOSK, CONVERT_TO_REGULAR, OPTIMIZE_LAYOUT)

MAX_STATIONS = 10
HISTORY_SIZE = 100

ARRIVAL_PROBABILITY = {
    "morning": 0.3,
    "midmorning": 0.5,
    "lunch": 0.8,
    "afternoon": 0.6,
    "evening": 0.7,
    "night": 0.2,
}


def queue_bucket(n: int) -> str:
    if n == 0:
        return "empty"
    if n < 3:
        return "short"
    if n < 7:
        return "medium"
    return "long"


def time_category(hour: float) -> str:
    if hour < 9:
        return "morning"
    if hour < 12:
        return "midmorning"
    if hour < 14:
        return "lunch"
    if hour < 17:
        return "afternoon"
    if hour < 20:
        return "evening"
    return "night"


@dataclass
class QState:
    """Agent observation of the floor."""
    queue_lengths: List[int]
    active_stations: int
    day_type: str = "weekday"
    time_of_day: float = 12

    def copy(self) -> "QState":
        return replace(self, queue_lengths=list(self.queue_lengths))

    @property
    def key(self) -> str:
        buckets = [queue_bucket(n) for n in self.queue_lengths]
        return "|".join(buckets + [str(self.active_stations), self.day_type, time_category(self.time_of_day)])

    @classmethod
    def from_stations(cls, stations: Sequence, day_type: str, hour: float) -> "QState":
        return cls([len(s.queue) for s in stations],
                   sum(1 for s in stations if s.is_active), day_type, hour)


@dataclass
class _StationSketch:
    type: str
    is_active: bool = True


@dataclass(frozen=True)
class AgentAction:
    type: str                        # 'openStation' | 'closeStation' | 'adjustLayout' | 'none'
    value: Optional[int] = None


@dataclass
class Recommendation:
    id: str
    type: str                        # 'layout' | 'staffing' | 'breaks'
    description: str
    confidence: float
    priority: str                    # 'low' | 'medium' | 'high'
    impact: str
    expected_improvement: float
    action: AgentAction
    new_type: Optional[str] = None


# action -> (category, description, impact, improvement multiplier, action, new station type)
_RECOMMENDATIONS: Dict[str, Tuple] = {
    ADD_REGULAR: ("layout", "Add regular checkout station",
                  "Reduce wait time by increasing service capacity", 5,
                  AgentAction("openStation", 1), REGULAR),
    ADD_KIOSK: ("layout", "Add self-service kiosk",
                "Increase throughput for customers with few items", 5,
                AgentAction("openStation", 1), KIOSK),
    REMOVE_STATION: ("layout", "Remove underutilized checkout station",
                     "Improve resource efficiency and reduce costs", 4,
                     AgentAction("closeStation"), None),
    CONVERT_TO_KIOSK: ("staffing", "Convert regular checkout to self-service kiosk",
                       "Better serve customers with few items", 3,
                       AgentAction("adjustLayout", 0), KIOSK),
    CONVERT_TO_REGULAR: ("staffing", "Convert self-service kiosk to regular checkout",
                         "Better serve customers with many items", 3,
                         AgentAction("adjustLayout", 0), REGULAR),
    OPTIMIZE_LAYOUT: ("layout", "Optimize checkout layout",
                      "Improve customer flow and reduce congestion", 6,
                      AgentAction("adjustLayout", 0), None),
}


def available_actions(stations: Sequence) -> List[str]:
    """Feasible actions for a station list (engine stations or sketches)."""
    actions = [NO_CHANGE]
    if len(stations) < MAX_STATIONS:
        actions += [ADD_REGULAR, ADD_KIOSK]
    if sum(1 for s in stations if s.is_active) > 1:
        actions.append(REMOVE_STATION)
    if any(s.type == REGULAR for s in stations):
        actions.append(CONVERT_TO_KIOSK)
    if any(s.type == KIOSK for s in stations):
        actions.append(CONVERT_TO_REGULAR)
    actions.append(OPTIMIZE_LAYOUT)
    return actions


def reward(state: QState) -> float:
    """High utilization, short and even queues, few stations."""
    q = state.queue_lengths
    n = len(q)
    avg = sum(q) / n if n else 0.0
    utilization = sum(1 for x in q if x > 0) / n if n else 0.0
    variance = sum((x - avg) ** 2 for x in q) / n if n else 0.0
    balance = 1.0 / (1.0 + variance)
    return utilization * 5 - avg * 0.5 + balance * 3 - state.active_stations * 0.1


class QLearningAgent:
    def __init__(self, seed: Optional[int] = None, learning_rate: float = 0.1,
                 discount_factor: float = 0.9, exploration_rate: float = 0.3,
                 exploration_decay: float = 0.995, min_exploration_rate: float = 0.01,
                 episodes_per_batch: int = 10, steps_per_episode: int = 10,
                 max_episodes: int = 1000, rng: Optional[random.Random] = None):
        self.rv = RandomVariate(seed, rng=rng)
        self.learning_rate = learning_rate
        self.discount_factor = discount_factor
        self.initial_exploration_rate = exploration_rate
        self.exploration_rate = exploration_rate
        self.exploration_decay = exploration_decay
        self.min_exploration_rate = min_exploration_rate
        self.episodes_per_batch = episodes_per_batch
        self.steps_per_episode = steps_per_episode
        self.max_episodes = max_episodes

        self._q: Dict[Tuple[str, str], float] = {}
        self._actions_by_state: Dict[str, List[str]] = {}
        self.episodes = 0
        self.learning_progress = 0.0
        self.last_reward = 0.0
        self.cumulative_reward = 0.0
        self.action_history: Deque[Dict] = deque(maxlen=HISTORY_SIZE)

        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._learning = False
        self._initial_state: Optional[QState] = None
        self._initial_stations: List[_StationSketch] = []

    @classmethod
    def from_cfg(cls, cfg: Dict, seed: Optional[int] = None) -> "QLearningAgent":
        over = dict(cfg.get("agent") or {})
        cfg_seed = over.pop("seed", None)
        return cls(seed=seed if seed is not None else cfg_seed, **over)

    # ------------------------------------------------------------------
    # Q-table
    # ------------------------------------------------------------------

    def get_q_value(self, state_key: str, action: str) -> float:
        key = (state_key, action)
        if key not in self._q:
            self._q[key] = 0.0
            self._actions_by_state.setdefault(state_key, []).append(action)
        return self._q[key]

    def max_q(self, state_key: str) -> float:
        actions = self._actions_by_state.get(state_key)
        if not actions:
            return 0.0
        return max(self._q[(state_key, a)] for a in actions)

    def update_q_value(self, state_key: str, action: str, r: float, next_state_key: str) -> float:
        """One tabular Q-learning update; returns the new Q(s, a)."""
        current = self.get_q_value(state_key, action)
        target = r + self.discount_factor * self.max_q(next_state_key)
        new_q = current + self.learning_rate * (target - current)
        self._q[(state_key, action)] = new_q
        self.last_reward = r
        self.cumulative_reward += r
        self.action_history.append({"state": state_key, "action": action, "reward": r})
        return new_q

    def choose_action(self, state_key: str, actions: Sequence[str]) -> str:
        """Epsilon-greedy; the greedy pick keeps the first action among ties."""
        if self.rv.chance(self.exploration_rate):
            return actions[self.rv.randrange(len(actions))]
        best = actions[0]
        best_q = self.get_q_value(state_key, best)
        for a in actions[1:]:
            q = self.get_q_value(state_key, a)
            if q > best_q:
                best, best_q = a, q
        return best

    # ------------------------------------------------------------------
    # private transition model
    # ------------------------------------------------------------------

    def simulate_action(self, action: str, state: QState,
                        stations: Sequence[_StationSketch]) -> Tuple[QState, List[_StationSketch]]:
        nxt = state.copy()
        sketch = [replace(s) for s in stations]
        q = nxt.queue_lengths

        if action in (ADD_REGULAR, ADD_KIOSK):
            nxt.active_stations += 1
            q.append(0)
            sketch.append(_StationSketch(REGULAR if action == ADD_REGULAR else KIOSK))
        elif action == REMOVE_STATION:
            if nxt.active_stations > 1 and q:
                nxt.active_stations -= 1
                q.pop(q.index(max(q)))
                for s in reversed(sketch):
                    if s.is_active:
                        s.is_active = False
                        break
        elif action == CONVERT_TO_KIOSK:
            nxt.queue_lengths = q = [n - 1 if n > 3 else n for n in q]
            _convert(sketch, REGULAR, KIOSK)
        elif action == CONVERT_TO_REGULAR:
            nxt.queue_lengths = q = [n - 1 if n > 0 else n for n in q]
            _convert(sketch, KIOSK, REGULAR)
        elif action == OPTIMIZE_LAYOUT:
            avg = sum(q) / len(q) if q else 0.0
            nxt.queue_lengths = q = [max(0, math.floor(n * 0.8 + avg * 0.2 + 0.5)) for n in q]

        p = ARRIVAL_PROBABILITY[time_category(nxt.time_of_day)]
        for i in range(len(q)):
            if q[i] > 0:
                q[i] -= 1
            if self.rv.chance(p):
                q[i] += 1
        return nxt, sketch

    # ------------------------------------------------------------------
    # training
    # ------------------------------------------------------------------

    def run_episode(self, initial_state: QState, stations: Sequence[_StationSketch]):
        state, sketch = initial_state.copy(), list(stations)
        for _ in range(self.steps_per_episode):
            key = state.key
            action = self.choose_action(key, available_actions(sketch))
            state, sketch = self.simulate_action(action, state, sketch)
            self.update_q_value(key, action, reward(state), state.key)

    def train_batch(self, initial_state: Optional[QState] = None, stations: Optional[Sequence] = None) -> bool:
        """
        Run one batch of episodes and decay exploration.

        Returns True while more batches are needed to reach max_episodes.
        """
        if initial_state is not None:
            self._initial_state = initial_state.copy()
        if stations is not None:
            self._initial_stations = _sketch(stations)
        if self._initial_state is None:
            raise ValueError("train_batch needs an initial state")

        with self._lock:
            for _ in range(self.episodes_per_batch):
                self.run_episode(self._initial_state, self._initial_stations)
            self.episodes += self.episodes_per_batch
            self.learning_progress = min(100.0, self.episodes / self.max_episodes * 100.0)
            self.exploration_rate = max(self.min_exploration_rate,
                                        self.exploration_rate * self.exploration_decay)
            done = self.episodes >= self.max_episodes
            if done:
                self.learning_progress = 100.0
        return not done

    def start_learning(self, initial_state: QState, stations: Sequence,
                       interval: float = 0.1, background: bool = True):
        """Train from scratch counters up to max_episodes, one batch per tick."""
        # the previous run must be gone before its counters are reused
        self.stop_learning(timeout=None)
        with self._lock:
            self.episodes = 0
            self.learning_progress = 0.0
            self.cumulative_reward = 0.0
            self._initial_state = initial_state.copy()
            self._initial_stations = _sketch(stations)
        stop = threading.Event()
        self._stop_event = stop
        self._learning = True
        log.info("learning started: state %s, %d stations", initial_state.key, len(stations))

        if not background:
            self._learning_loop(stop, 0.0)
            return
        self._thread = threading.Thread(target=self._learning_loop, args=(stop, interval), daemon=True)
        self._thread.start()

    def _learning_loop(self, stop: threading.Event, interval: float):
        try:
            while not stop.is_set():
                if not self.train_batch():
                    log.info("learning finished after %d episodes (epsilon=%.3f)",
                             self.episodes, self.exploration_rate)
                    break
                if interval > 0:
                    stop.wait(interval)
        finally:
            # a superseded run must not clear the flag of its successor
            if self._stop_event is stop:
                self._learning = False

    def stop_learning(self, timeout: Optional[float] = 1.0):
        """Signal the current run to stop and join its thread.

        With a finite timeout a thread still inside a batch is kept, so a
        later start_learning() can finish joining it.
        """
        self._stop_event.set()
        t = self._thread
        if t and t.is_alive() and t is not threading.current_thread():
            t.join(timeout=timeout)
        if self._learning:
            log.info("learning stopped at %d episodes", self.episodes)
        self._learning = False
        if t is None or not t.is_alive():
            self._thread = None

    def wait_until_done(self, timeout: Optional[float] = None) -> bool:
        """Block until background training ends; True if it has."""
        t = self._thread
        if t is not None:
            t.join(timeout=timeout)
            return not t.is_alive()
        return not self._learning

    # ------------------------------------------------------------------
    # recommendations
    # ------------------------------------------------------------------

    def generate_recommendations(self, state: QState, stations: Sequence, limit: int = 3) -> List[Recommendation]:
        key = state.key
        with self._lock:
            scored = [(a, self.get_q_value(key, a)) for a in available_actions(stations)]
        scored.sort(key=lambda av: av[1], reverse=True)

        out = []
        for action, q in scored[:limit]:
            if q < -5:
                continue
            rec = self.action_to_recommendation(action, q)
            if rec is not None:
                out.append(rec)
        return out

    def action_to_recommendation(self, action: str, q: float) -> Optional[Recommendation]:
        confidence = min(0.95, max(0.5, (q + 10) / 20))
        if q > 5:
            priority = "high"
        elif q > 0:
            priority = "medium"
        else:
            priority = "low"
        rec_id = f"{action}_{len(self.action_history)}_{self.episodes}"

        if action == NO_CHANGE:
            if q <= 3:
                return None
            return Recommendation(rec_id, "breaks", "Current layout is optimal", confidence, "low",
                                  "Maintain current performance", 0.0, AgentAction("none", 0))
        category, desc, impact, mult, act, new_type = _RECOMMENDATIONS[action]
        improvement = q * mult if q > 0 else float(mult)
        return Recommendation(rec_id, category, desc, confidence, priority, impact,
                              improvement, act, new_type)

    # ------------------------------------------------------------------
    # introspection
    # ------------------------------------------------------------------

    def get_learning_progress(self) -> float:
        return self.learning_progress

    def is_learning(self) -> bool:
        return self._learning

    def get_exploration_rate(self) -> float:
        return self.exploration_rate

    def get_episode_count(self) -> int:
        return self.episodes

    def get_last_reward(self) -> float:
        return self.last_reward

    def get_cumulative_reward(self) -> float:
        return self.cumulative_reward

    def get_action_history(self) -> List[Dict]:
        with self._lock:
            return list(self.action_history)

    def get_q_table_stats(self) -> Dict[str, float]:
        with self._lock:
            values = list(self._q.values())
            states = len(self._actions_by_state)
        return {
            "state_count": states,
            "action_count": len(values),
            "max_q_value": max(values) if values else 0.0,
            "min_q_value": min(values) if values else 0.0,
        }

    def get_learning_parameters(self) -> Dict[str, float]:
        return {
            "learning_rate": self.learning_rate,
            "discount_factor": self.discount_factor,
            "exploration_rate": self.exploration_rate,
            "exploration_decay": self.exploration_decay,
            "min_exploration_rate": self.min_exploration_rate,
        }


def _sketch(stations: Sequence) -> List[_StationSketch]:
    return [_StationSketch(s.type, s.is_active) for s in stations]


def _convert(sketch: List[_StationSketch], src: str, dst: str):
    for s in sketch:
        if s.type == src:
            s.type = dst
            return
