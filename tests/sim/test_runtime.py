import asyncio

from chansim.core import Snapshot
from chansim.params import ParameterError
from chansim.runtime import ChannelSimulation, PeriodicTimer
import numpy as np
import pytest


def _live_tasks(name):
    return [t for t in asyncio.all_tasks() if t.get_name() == name and not t.done()]


def test_timer_needs_running_loop():
    with pytest.raises(RuntimeError):
        PeriodicTimer(10, lambda: None)


def test_timer_fires_until_cancelled():
    calls = []

    async def main():
        timer = PeriodicTimer(10, lambda: calls.append(1), name="counter")
        await asyncio.sleep(0.1)
        timer.cancel()
        assert not timer.running
        n = len(calls)
        await asyncio.sleep(0.05)
        return n

    n = asyncio.run(main())
    assert n >= 3
    assert len(calls) == n


def test_start_stop_lifecycle():

    async def main():
        sim = ChannelSimulation({"speed": 10}, seed=0)
        assert not sim.running
        sim.start()
        assert set(sim.timers) == {"gate", "walk"}
        with pytest.raises(RuntimeError):
            sim.start()
        await asyncio.sleep(0.1)
        sim.stop()
        await asyncio.sleep(0)
        assert sim.timers == {}
        assert _live_tasks("walk") == []
        assert _live_tasks("gate") == []
        return sim

    sim = asyncio.run(main())
    assert sim.walk_ticks >= 3


def test_run_returns_snapshot():
    sim = ChannelSimulation({"speed": 10, "gate_interval": 30}, seed=1)
    snap = asyncio.run(sim.run(200))

    assert isinstance(snap, Snapshot)
    assert not sim.running
    assert sim.gate_ticks >= 2
    assert sim.walk_ticks >= 5
    assert snap == sim.snapshot()


def test_parameter_changes_never_stack_timers():

    async def main():
        sim = ChannelSimulation({"speed": 10}, seed=0)
        sim.start()
        for _ in range(5):
            sim.set_speed(20)
            sim.set_speed(10)
            sim.set_p_right(0.5)
            sim.set_p_right(0.6)
            sim.set_membrane_potential(-40)
            sim.set_membrane_potential(-70)
        await asyncio.sleep(0)
        walks, gates = len(_live_tasks("walk")), len(_live_tasks("gate"))
        sim.stop()
        return walks, gates

    assert asyncio.run(main()) == (1, 1)


def test_update_reschedules_only_affected_timer():

    async def main():
        sim = ChannelSimulation(seed=0)
        sim.start()
        gate, walk = sim.timers["gate"], sim.timers["walk"]

        sim.set_membrane_potential(-20)
        assert sim.timers["gate"] is not gate
        assert sim.timers["walk"] is walk
        assert not gate.running

        gate = sim.timers["gate"]
        sim.set_p_stay(0.2)
        assert sim.timers["gate"] is gate
        assert sim.timers["walk"] is not walk

        # unchanged value: nothing is rescheduled
        walk = sim.timers["walk"]
        sim.update(speed=100, membrane_potential=-20)
        assert sim.timers["gate"] is gate
        assert sim.timers["walk"] is walk
        sim.stop()
        return sim

    sim = asyncio.run(main())
    assert sim.state.membrane_potential == -20
    assert sim.state.p_stay == 0.2
    assert sim.params["p_stay"] == 0.2


def test_rejected_update_leaves_state_untouched():

    async def main():
        sim = ChannelSimulation({"p_stay": 0.5, "p_right": 0.5}, seed=0)
        sim.start()
        timers = sim.timers
        with pytest.raises(ParameterError):
            sim.set_p_right(0.9)
        with pytest.raises(ParameterError):
            sim.set_membrane_potential(float("nan"))
        with pytest.raises(ParameterError):
            sim.update(channel_position=3)
        with pytest.raises(ParameterError):
            sim.set_speed(5)
        assert sim.timers == timers
        sim.stop()
        return sim

    sim = asyncio.run(main())
    assert sim.state.p_right == 0.5
    assert sim.state.membrane_potential == -70.0
    assert sim.state.speed == 100


def test_update_while_stopped_only_writes_state():
    sim = ChannelSimulation(seed=0)
    sim.update(speed=50, membrane_potential=-10)

    assert sim.timers == {}
    assert sim.state.speed == 50
    assert sim.snapshot().open_probability > 0.98


def test_gate_flip_recreates_walk_timer(constant_rng):

    async def main():
        sim = ChannelSimulation({"gate_interval": 20, "speed": 200},
                                gate_rng=constant_rng(0.0),
                                walk_rng=np.random.default_rng(0))
        sim.start()
        walk = sim.timers["walk"]
        await asyncio.sleep(0.05)
        # first gate tick opened the channel
        assert sim.state.channel_open
        assert sim.timers["walk"] is not walk

        # further ticks keep it open, no flip, no reschedule
        walk = sim.timers["walk"]
        await asyncio.sleep(0.08)
        assert sim.gate_ticks >= 3
        assert sim.timers["walk"] is walk
        sim.stop()

    asyncio.run(main())


def test_invalid_constructor_params_rejected():
    with pytest.raises(ParameterError):
        ChannelSimulation({"speed": "fast"})
    with pytest.raises(ParameterError):
        ChannelSimulation({"initial_position": 0})


def test_numeric_strings_become_floats():
    sim = ChannelSimulation({"speed": "50"}, seed=0)
    assert sim.state.speed == 50.0
    sim.update(membrane_potential="-40")
    assert sim.state.membrane_potential == -40.0

    snap = asyncio.run(sim.run(120))
    assert sim.walk_ticks >= 1
    assert snap.membrane_potential == -40.0


def test_ion_held_at_closed_gate():
    sim = ChannelSimulation({"speed": 10, "gate_interval": 10000}, seed=0)
    # move the ion onto the gate before starting
    sim.state.ion_position = 0
    snap = asyncio.run(sim.run(150))

    assert sim.walk_ticks >= 3
    assert sim.gate_ticks == 0
    assert snap.ion_position == 0
    assert not snap.channel_open


def test_subscribers_see_every_tick():
    seen = []

    async def main():
        sim = ChannelSimulation({"speed": 10, "gate_interval": 25}, seed=2)
        unsubscribe = sim.subscribe(seen.append)
        await sim.run(150)
        n = len(seen)
        unsubscribe()
        unsubscribe()
        await sim.run(50)
        return sim, n

    sim, n = asyncio.run(main())
    assert n > 0
    assert len(seen) == n
    assert all(isinstance(s, Snapshot) for s in seen)
    assert sim.gate_ticks + sim.walk_ticks > n


def test_failing_subscriber_does_not_stop_timers():

    def crash(snap):
        raise RuntimeError("renderer crashed")

    async def main():
        sim = ChannelSimulation({"speed": 10, "gate_interval": 20}, seed=0)
        seen = []
        sim.subscribe(crash)
        sim.subscribe(seen.append)
        sim.start()
        await asyncio.sleep(0.1)
        walks, gates = sim.walk_ticks, sim.gate_ticks
        await asyncio.sleep(0.1)
        timers = set(sim.timers)
        running = sim.running
        sim.stop()
        return sim, walks, gates, timers, running, seen

    sim, walks, gates, timers, running, seen = asyncio.run(main())
    assert timers == {"gate", "walk"}
    assert running
    assert sim.walk_ticks > walks
    assert sim.gate_ticks > gates
    # later subscribers still see every tick
    assert len(seen) == sim.walk_ticks + sim.gate_ticks


def test_running_follows_live_timers():

    async def main():
        sim = ChannelSimulation(seed=0)
        sim.start()
        sim.timers["gate"].cancel()
        sim.timers["walk"].cancel()
        assert not sim.running
        # restart is allowed once no timer is alive
        sim.start()
        assert set(sim.timers) == {"gate", "walk"}
        sim.stop()

    asyncio.run(main())


def test_async_context_manager():

    async def main():
        async with ChannelSimulation({"speed": 10}, seed=0) as sim:
            assert sim.running
            await asyncio.sleep(0.05)
        assert not sim.running
        return sim

    assert asyncio.run(main()).walk_ticks >= 1
