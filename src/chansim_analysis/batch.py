"""Run many Monte-Carlo repeats of the model."""
from __future__ import annotations
import numpy as np
from chansim.params import DEFAULT_PARAMS
from chansim.core   import run_simulation
from chansim_analysis.stats import first_passage_time, open_fraction


def resample_position(res: dict, t_grid: np.ndarray) -> np.ndarray:
    """Sample-and-hold the walk trace of one run onto ``t_grid``."""
    idx = np.searchsorted(res["t"], t_grid, side="right") - 1
    padded = np.concatenate(([res["initial_position"]], res["position"]))
    return padded[idx + 1]


def run_batch(N=20, *, seed=0, params: dict = DEFAULT_PARAMS,
              t_max=None, protocol=None, dt=None):
    """
    Return (t_grid, summary) where summary holds

        "position":         (mean, std) over runs on t_grid
        "first_passage":    per-run time to reach the channel (nan if never)
        "open_fraction":    per-run fraction of open gate ticks
        "blocked_fraction": per-run fraction of walk ticks held at the gate
    """
    p = dict(DEFAULT_PARAMS)
    p.update(params)
    t_max = p["t_max"] if t_max is None else t_max
    dt = p["speed"] if dt is None else dt
    t_grid = np.arange(0.0, t_max + dt / 2, dt)

    children = np.random.SeedSequence(seed).spawn(N)
    traces, fpt, f_open, f_blocked = [], [], [], []
    for child in children:
        res = run_simulation(p, t_max=t_max, seed=child, protocol=protocol)
        traces.append(resample_position(res, t_grid))
        fpt.append(first_passage_time(res["t"], res["position"],
                                      p["channel_position"]))
        f_open.append(open_fraction(res["gate_open"]))
        f_blocked.append(res["blocked"].mean() if res["blocked"].size else np.nan)

    traces = np.stack(traces)
    summary = {
        "position": (traces.mean(0), traces.std(0)),
        "first_passage": np.array(fpt),
        "open_fraction": np.array(f_open),
        "blocked_fraction": np.array(f_blocked),
    }
    return t_grid, summary
