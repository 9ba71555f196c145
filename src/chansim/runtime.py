"""
Wall-clock runtime: gate and walk processes on two asyncio timers.

Both timers live on one event loop, so state is only ever touched from a
single thread. A timer period is never changed in place: when one of its
inputs changes the timer is cancelled and a new one is created.
"""
from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional

import numpy as np
from .core import (WALK_KEYS, GateProcess, SimulationState, Snapshot,
                   WalkProcess, make_rngs)
from .params import (RUNTIME_PARAMS, ParameterError, check_value, make_params,
                     validate_params)

log = logging.getLogger(__name__)


class PeriodicTimer:
    """Call ``callback`` every ``interval_ms`` until cancelled.

    The first call happens one full period after creation. Must be created
    from inside a running event loop.
    """

    def __init__(self, interval_ms: float, callback: Callable[[], None],
                 name: Optional[str] = None):
        self.interval_ms = interval_ms
        self.callback = callback
        self.name = name
        self._cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._run(),
                                                            name=name)
        self._task.add_done_callback(self._on_done)

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_ms / 1000.0)
            self.callback()

    def _on_done(self, task: asyncio.Task):
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            log.error("Timer %r stopped by %r", self.name, exc)

    @property
    def running(self) -> bool:
        return not self._cancelled and not self._task.done()

    def cancel(self):
        self._cancelled = True
        self._task.cancel()


class ChannelSimulation:
    """
    Live simulation driven by the running asyncio loop.

    ``update`` (and the ``set_*`` shortcuts) is the parameter interface;
    ``snapshot`` and ``subscribe`` are the read side for renderers.
    """

    def __init__(self, params: Optional[dict] = None, seed=None,
                 gate_rng: Optional[np.random.Generator] = None,
                 walk_rng: Optional[np.random.Generator] = None):
        self.params = make_params(**(params or {}))
        self.state = SimulationState.from_params(self.params)

        if gate_rng is None or walk_rng is None:
            _gate_rng, _walk_rng = make_rngs(seed)
            gate_rng = gate_rng if gate_rng is not None else _gate_rng
            walk_rng = walk_rng if walk_rng is not None else _walk_rng
        self.gate = GateProcess(self.state, gate_rng)
        self.walk = WalkProcess(self.state, walk_rng)

        self.gate_ticks = 0
        self.walk_ticks = 0
        self._gate_timer: Optional[PeriodicTimer] = None
        self._walk_timer: Optional[PeriodicTimer] = None
        self._subscribers = []

    # ------------------------------------------------------------ lifecycle
    @property
    def running(self) -> bool:
        return bool(self.timers)

    @property
    def timers(self) -> dict:
        """Live timers keyed by process name."""
        return {name: timer for name, timer in
                (("gate", self._gate_timer), ("walk", self._walk_timer))
                if timer is not None and timer.running}

    def start(self):
        if self.running:
            raise RuntimeError("Simulation is already running")
        self._schedule_gate()
        self._schedule_walk()
        log.info("Simulation started (V=%s mV, speed=%s ms)",
                 self.state.membrane_potential, self.state.speed)

    def stop(self):
        for timer in (self._gate_timer, self._walk_timer):
            if timer is not None:
                timer.cancel()
        self._gate_timer = self._walk_timer = None
        log.info("Simulation stopped after %d gate / %d walk ticks",
                 self.gate_ticks, self.walk_ticks)

    async def run(self, duration_ms: float) -> Snapshot:
        """Start, let the loop run for ``duration_ms``, stop."""
        self.start()
        try:
            await asyncio.sleep(duration_ms / 1000.0)
        finally:
            self.stop()
        return self.snapshot()

    async def __aenter__(self):
        self.start()
        return self

    async def __aexit__(self, *exc):
        self.stop()

    # ------------------------------------------------------------ parameters
    def update(self, **changes):
        """Validate and apply parameter changes, rescheduling affected timers."""
        unknown = set(changes) - set(RUNTIME_PARAMS)
        if unknown:
            raise ParameterError(
                f"Only {RUNTIME_PARAMS} can change at runtime, got {sorted(unknown)}")
        changes = {key: check_value(key, value) for key, value in changes.items()}
        merged = dict(self.params)
        merged.update(changes)
        merged = validate_params(merged)

        changed = {key for key, value in changes.items()
                   if getattr(self.state, key) != value}
        self.params = merged
        for key in changed:
            setattr(self.state, key, changes[key])
        if changed:
            log.debug("Parameters updated: %s",
                      {key: changes[key] for key in changed})

        if not self.running:
            return
        if "membrane_potential" in changed:
            self._schedule_gate()
        if changed.intersection(WALK_KEYS):
            self._schedule_walk()

    def set_speed(self, speed):
        self.update(speed=speed)

    def set_p_right(self, p_right):
        self.update(p_right=p_right)

    def set_p_stay(self, p_stay):
        self.update(p_stay=p_stay)

    def set_membrane_potential(self, v):
        self.update(membrane_potential=v)

    # ------------------------------------------------------------ render side
    def snapshot(self) -> Snapshot:
        return self.state.snapshot()

    def subscribe(self, callback: Callable[[Snapshot], None]):
        """Call ``callback(snapshot)`` after every tick; returns an unsubscribe."""
        self._subscribers.append(callback)

        def unsubscribe():
            if callback in self._subscribers:
                self._subscribers.remove(callback)
        return unsubscribe

    def _notify(self):
        if not self._subscribers:
            return
        snap = self.snapshot()
        for callback in list(self._subscribers):
            try:
                callback(snap)
            except Exception:
                log.exception("Subscriber %r failed", callback)

    # ------------------------------------------------------------ timers
    def _schedule_gate(self):
        if self._gate_timer is not None:
            self._gate_timer.cancel()
        self._gate_timer = PeriodicTimer(self.state.gate_interval,
                                         self._on_gate_tick, name="gate")
        log.debug("Gate timer (re)scheduled every %s ms", self.state.gate_interval)

    def _schedule_walk(self):
        if self._walk_timer is not None:
            self._walk_timer.cancel()
        self._walk_timer = PeriodicTimer(self.state.speed,
                                         self._on_walk_tick, name="walk")
        log.debug("Walk timer (re)scheduled every %s ms", self.state.speed)

    def _on_gate_tick(self):
        was_open = self.state.channel_open
        self.gate.tick()
        self.gate_ticks += 1
        if self.state.channel_open != was_open and self.running:
            self._schedule_walk()
        self._notify()

    def _on_walk_tick(self):
        self.walk.tick()
        self.walk_ticks += 1
        self._notify()
