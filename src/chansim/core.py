"""
Core stochastic engine for the gated-channel model.
Gate and walk processes act on an injected state container; no plotting here.
"""
from __future__ import annotations
import logging
from dataclasses import dataclass, asdict
from typing import Optional

import numpy as np
from scipy.special import expit
from .params import (DEFAULT_PARAMS, RUNTIME_PARAMS, ParameterError,
                     check_value, validate_params)

log = logging.getLogger(__name__)

WALK_KEYS = ("speed", "p_right", "p_stay")


# ------------------------------------------------------------------ helpers
def open_probability(V, threshold: float = -55.0, k: float = 0.1):
    """
    Channel open probability (logistic in membrane potential).
    Strictly inside (0, 1) until k*|V - threshold| passes ~745, where the
    double-precision result saturates.
    """
    P = expit(k * (np.asarray(V, dtype=float) - threshold))
    if P.ndim == 0:
        return float(P)
    return P


def choose_step(u: float, p_right: float, p_stay: float) -> int:
    """
    Map a uniform draw onto a ternary step.

    [0, p_right) -> +1, [p_right, p_right + p_stay) -> 0, rest -> -1.
    p_right is checked first, so an oversized p_stay only eats into the
    left branch.
    """
    if u < p_right:
        return 1
    if u < p_right + p_stay:
        return 0
    return -1


def make_rngs(seed=None):
    """Two independent generators (gate, walk) spawned from one seed."""
    if not isinstance(seed, np.random.SeedSequence):
        seed = np.random.SeedSequence(seed)
    gate_ss, walk_ss = seed.spawn(2)
    return np.random.default_rng(gate_ss), np.random.default_rng(walk_ss)


# --------------------------- shared state ---------------------------------
@dataclass(frozen=True)
class Snapshot:
    """Read-only view handed to renderers."""
    ion_position: float
    channel_open: bool
    membrane_potential: float
    open_probability: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class SimulationState:
    channel_open: bool = False
    ion_position: float = -15
    membrane_potential: float = -70.0
    p_right: float = 0.6
    p_stay: float = 0.1
    speed: float = 100
    gate_interval: float = 1000
    channel_position: float = 0
    threshold_potential: float = -55.0
    k: float = 0.1

    @classmethod
    def from_params(cls, params: dict = DEFAULT_PARAMS) -> "SimulationState":
        p = dict(DEFAULT_PARAMS)
        p.update(params)
        return cls(ion_position=p["initial_position"],
                   membrane_potential=p["membrane_potential"],
                   p_right=p["p_right"],
                   p_stay=p["p_stay"],
                   speed=p["speed"],
                   gate_interval=p["gate_interval"],
                   channel_position=p["channel_position"],
                   threshold_potential=p["threshold_potential"],
                   k=p["k"])

    @property
    def p_left(self) -> float:
        return max(0.0, 1.0 - self.p_right - self.p_stay)

    @property
    def open_probability(self) -> float:
        return open_probability(self.membrane_potential,
                                self.threshold_potential, self.k)

    def snapshot(self) -> Snapshot:
        return Snapshot(ion_position=self.ion_position,
                        channel_open=self.channel_open,
                        membrane_potential=self.membrane_potential,
                        open_probability=self.open_probability)


# --------------------------- processes ------------------------------------
class GateProcess:
    """Memoryless gate: a fresh Bernoulli(P_open) trial on every tick."""

    def __init__(self, state: SimulationState, rng: np.random.Generator):
        self.state = state
        self.rng = rng

    def tick(self) -> bool:
        P_open = self.state.open_probability
        self.state.channel_open = bool(self.rng.random() < P_open)
        return self.state.channel_open


class WalkProcess:
    """Biased ternary random walk that is held at a closed gate."""

    def __init__(self, state: SimulationState, rng: np.random.Generator):
        self.state = state
        self.rng = rng

    def is_blocked(self) -> bool:
        s = self.state
        return s.ion_position >= s.channel_position and not s.channel_open

    def tick(self) -> int:
        """Advance the ion once; returns the step taken (0 when blocked)."""
        if self.is_blocked():
            return 0
        s = self.state
        step = choose_step(self.rng.random(), s.p_right, s.p_stay)
        s.ion_position += step
        return step


# --------------------------- virtual-clock driver -------------------------
def _check_protocol(params: dict, protocol) -> list:
    """Sort the protocol and validate the parameter set after every change."""
    checked = []
    running = dict(params)
    for t, changes in sorted(protocol or [], key=lambda item: item[0]):
        if t < 0:
            raise ParameterError(f"Protocol time must be >= 0, got {t}")
        unknown = set(changes) - set(RUNTIME_PARAMS)
        if unknown:
            raise ParameterError(
                f"Protocol may only change {RUNTIME_PARAMS}, got {sorted(unknown)}")
        changes = {key: check_value(key, value) for key, value in changes.items()}
        running.update(changes)
        validate_params(running)
        checked.append((float(t), changes))
    return checked


def run_simulation(params: dict = DEFAULT_PARAMS, *,
                   t_max: Optional[float] = None,
                   seed=None,
                   gate_rng: Optional[np.random.Generator] = None,
                   walk_rng: Optional[np.random.Generator] = None,
                   protocol=None) -> dict:
    """
    Play the gate and walk timers against a simulated millisecond clock.

    Events are handled one at a time in time order; at equal times a
    protocol change goes first, then the gate tick, then the walk tick.
    A gate flip, or a change to speed / p_right / p_stay, restarts the walk
    period; a potential change restarts the gate period.

    Returns a dict of numpy arrays (walk ticks: ``t``, ``position``,
    ``step``, ``channel_open``, ``blocked``; gate ticks: ``gate_t``,
    ``gate_open``, ``gate_p_open``) plus ``initial_position``.
    """
    p = dict(DEFAULT_PARAMS)
    p.update(params)
    p = validate_params(p)
    protocol = _check_protocol(p, protocol)
    t_max = p["t_max"] if t_max is None else t_max

    if gate_rng is None or walk_rng is None:
        _gate_rng, _walk_rng = make_rngs(seed)
        gate_rng = gate_rng if gate_rng is not None else _gate_rng
        walk_rng = walk_rng if walk_rng is not None else _walk_rng

    state = SimulationState.from_params(p)
    gate = GateProcess(state, gate_rng)
    walk = WalkProcess(state, walk_rng)

    next_gate = state.gate_interval
    next_walk = state.speed
    i_change = 0

    t_arr, pos, steps, ch_open, blocked = [], [], [], [], []
    gate_t, gate_open, gate_p = [], [], []

    while True:
        next_change = protocol[i_change][0] if i_change < len(protocol) else np.inf
        now = min(next_change, next_gate, next_walk)
        if now > t_max:
            break

        if now == next_change:
            changes = protocol[i_change][1]
            i_change += 1
            old_v = state.membrane_potential
            old_walk = tuple(getattr(state, key) for key in WALK_KEYS)
            for key, value in changes.items():
                setattr(state, key, value)
            if state.membrane_potential != old_v:
                next_gate = now + state.gate_interval
            if tuple(getattr(state, key) for key in WALK_KEYS) != old_walk:
                next_walk = now + state.speed
            log.debug("t=%.1f ms: applied %s", now, changes)

        elif now == next_gate:
            was_open = state.channel_open
            gate_p.append(state.open_probability)
            gate_open.append(gate.tick())
            gate_t.append(now)
            next_gate = now + state.gate_interval
            if state.channel_open != was_open:
                next_walk = now + state.speed

        else:
            blocked.append(walk.is_blocked())
            ch_open.append(state.channel_open)
            steps.append(walk.tick())
            pos.append(state.ion_position)
            t_arr.append(now)
            next_walk = now + state.speed

    log.debug("Virtual run finished: %d walk ticks, %d gate ticks",
              len(t_arr), len(gate_t))

    return {
        "t": np.asarray(t_arr, dtype=float),
        "position": np.asarray(pos, dtype=float),
        "step": np.asarray(steps, dtype=int),
        "channel_open": np.asarray(ch_open, dtype=bool),
        "blocked": np.asarray(blocked, dtype=bool),
        "gate_t": np.asarray(gate_t, dtype=float),
        "gate_open": np.asarray(gate_open, dtype=bool),
        "gate_p_open": np.asarray(gate_p, dtype=float),
        "initial_position": float(p["initial_position"]),
    }
