"""Summary statistics on the traces returned by run_simulation."""
from __future__ import annotations
import numpy as np
from scipy.stats import chisquare, expon


def step_frequencies(steps, blocked=None):
    """
    Return (f_plus, f_zero, f_minus) over the ticks where the ion was free.
    Blocked ticks are dropped since they draw nothing.
    """
    steps = np.asarray(steps)
    if blocked is not None:
        steps = steps[~np.asarray(blocked, dtype=bool)]
    n = len(steps)
    if n == 0:
        return (np.nan, np.nan, np.nan)
    return (np.count_nonzero(steps == 1) / n,
            np.count_nonzero(steps == 0) / n,
            np.count_nonzero(steps == -1) / n)


def step_chisquare(steps, p_right, p_stay, blocked=None):
    """Chi-square goodness of fit of observed steps vs (p_right, p_stay, p_left)."""
    steps = np.asarray(steps)
    if blocked is not None:
        steps = steps[~np.asarray(blocked, dtype=bool)]
    observed = np.array([np.count_nonzero(steps == s) for s in (1, 0, -1)])
    probs = np.array([p_right, p_stay, max(0.0, 1.0 - p_right - p_stay)])
    keep = probs > 0          # empty categories carry no information
    expected = probs[keep] / probs[keep].sum() * observed[keep].sum()
    return chisquare(observed[keep], expected)


def open_fraction(gate_open) -> float:
    gate_open = np.asarray(gate_open, dtype=bool)
    if gate_open.size == 0:
        return np.nan
    return float(gate_open.mean())


def first_passage_time(t, position, target=0.0) -> float:
    """Time of the first sample at or beyond ``target``; nan if never reached."""
    hits = np.flatnonzero(np.asarray(position) >= target)
    if hits.size == 0:
        return np.nan
    return float(np.asarray(t)[hits[0]])


def blocked_dwell_times(t, blocked, dt=None):
    """
    Durations of contiguous runs of blocked walk ticks.

    A run of n blocked ticks lasts n * dt; ``dt`` defaults to the median
    spacing of ``t``.
    """
    t = np.asarray(t, dtype=float)
    blocked = np.asarray(blocked, dtype=bool)
    if blocked.size == 0:
        return np.array([])
    if dt is None:
        dt = float(np.median(np.diff(t))) if t.size > 1 else 0.0

    # rising / falling edges of the blocked mask
    padded = np.concatenate(([False], blocked, [False])).astype(int)
    edges = np.diff(padded)
    starts = np.flatnonzero(edges == 1)
    ends = np.flatnonzero(edges == -1)
    return (ends - starts) * dt


def fit_dwell_times(durations) -> float:
    """Exponential rate (1/ms) fitted to dwell times, location fixed at 0."""
    durations = np.asarray(durations, dtype=float)
    if durations.size == 0:
        return np.nan
    _, scale = expon.fit(durations, floc=0)
    return 1.0 / scale
