from checkout_sim.config import SimulationParams, Tuning
from checkout_sim.entities import Customer, KIOSK, REGULAR
from checkout_sim.queues import SERVICE_END
from checkout_sim.simulation import SimulationEngine
from checkout_sim.stations import make_station


def _layout(regular=2, kiosk=2):
    S = [make_station(f"regular_{i + 1}", REGULAR, 82.0) for i in range(regular)]
    S += [make_station(f"kiosk_{i + 1}", KIOSK, 98.4, max_queue_length=5) for i in range(kiosk)]
    return S


def _customers(*ids, items=3, payment="card", prefers=False):
    return [Customer(i, 0.0, items, payment, prefers_self_checkout=prefers) for i in ids]


def test_rebalance_moves_last_in_line_to_idle_register():
    eng = SimulationEngine(_layout(2, 0), SimulationParams(), seed=1)
    busy, idle = eng.stations
    busy.serving_customer = Customer("x", 0.0, 2, "card")
    busy.queue = _customers("a", "b", "c", "d", "e")

    eng.router.balance_regular_queues(eng.env)

    assert [c.id for c in busy.queue] == ["a", "b", "c", "d"]
    assert idle.queue == []
    assert idle.serving_customer.id == "e"
    assert any(ev.kind == SERVICE_END and ev.customer_id == "e" and ev.station_id == idle.id
               for ev in eng.env.FEL)


def test_small_gap_is_not_rebalanced():
    eng = SimulationEngine(_layout(2, 0), SimulationParams(), seed=1)
    busy, idle = eng.stations
    busy.serving_customer = Customer("x", 0.0, 2, "card")
    busy.queue = _customers("a", "b", "c")
    eng.router.balance_regular_queues(eng.env)
    assert len(busy.queue) == 3 and not idle.busy


def test_main_line_head_redirects_to_short_kiosk_line():
    eng = SimulationEngine(_layout(1, 1), SimulationParams(), seed=1)
    register, kiosk = eng.stations
    kiosk.serving_customer = Customer("k0", 0.0, 1, "card")
    kiosk.queue = _customers("k1")
    fan = Customer("fan", 0.0, 3, "card", prefers_self_checkout=True, in_main_queue=True)
    eng.router.main_queue = [fan]

    eng.router.process_main_queue(eng.env)

    assert [c.id for c in kiosk.queue] == ["k1", "fan"]
    assert not fan.in_main_queue
    assert register.serving_customer is None
    assert eng.router.main_queue == []


def test_large_basket_keeps_the_register():
    eng = SimulationEngine(_layout(1, 1), SimulationParams(), seed=1)
    register, kiosk = eng.stations
    big = Customer("big", 0.0, 20, "card", prefers_self_checkout=True, in_main_queue=True)
    eng.router.main_queue = [big]
    eng.router.process_main_queue(eng.env)
    assert register.serving_customer.id == "big"
    assert kiosk.queue == [] and not kiosk.busy


def test_overlong_main_line_loses_the_newcomer():
    eng = SimulationEngine([], SimulationParams(), seed=1)
    eng.router.main_queue = _customers(*[f"c{i}" for i in range(15)])
    eng.env.t = 120.0
    late = Customer("late", 100.0, 2, "card")

    eng.router.on_arrival(eng.env, late)

    assert len(eng.router.main_queue) == 15
    assert late.abandoned
    assert late.service_end_time == 120.0
    assert not late.in_main_queue
    assert eng.M.abandoned == 1 and eng.M.served == 0


def test_crowded_kiosk_drops_its_last_customer():
    tuning = Tuning(kiosk_balk_probability=1.0)
    eng = SimulationEngine(_layout(0, 1), SimulationParams(), tuning=tuning, seed=1)
    kiosk = eng.stations[0]
    kiosk.serving_customer = Customer("k0", 0.0, 1, "card")
    kiosk.queue = _customers("k1", "k2", "k3", "k4", "k5")
    eng.env.t = 30.0

    eng.router._balk_kiosks(eng.env)

    assert [c.id for c in kiosk.queue] == ["k1", "k2", "k3", "k4"]
    assert eng.M.abandoned == 1


def test_kiosk_queues_stay_within_capacity_under_load():
    eng = SimulationEngine(_layout(1, 2), SimulationParams(arrival_rate=240.0, simulation_duration=30), seed=9)
    longest = 0
    while True:
        more = eng.step()
        for s in eng.stations:
            if s.type == KIOSK:
                assert len(s.queue) <= s.max_queue_length
                longest = max(longest, len(s.queue))
        if not more:
            break
    assert longest > 0
