"""Reusable plotting helpers."""
import numpy as np
import matplotlib.pyplot as plt
from scipy.stats import expon

from chansim.core import open_probability
from chansim.params import DEFAULT_PARAMS, PARAM_RANGES


def plot_run(res: dict, *, params: dict = DEFAULT_PARAMS,
             title: str = "Single run", out_path=None):
    """Ion position (top) and gate state (bottom) of one run."""
    t = np.concatenate(([0.0], res["t"]))
    pos = np.concatenate(([res["initial_position"]], res["position"]))

    fig, axs = plt.subplots(2, 1, figsize=(12, 6), sharex=True,
                            gridspec_kw={"height_ratios": [3, 1]})
    fig.suptitle(title, fontsize=12)

    ax = axs[0]
    ax.step(t, pos, where="post", color="tab:blue", label="ion")
    ax.axhline(params["channel_position"], color="k", ls="--", lw=0.8,
               label="channel")
    if res["blocked"].any():
        ax.fill_between(res["t"], pos.min(), pos.max(), where=res["blocked"],
                        step="post", color="tab:red", alpha=0.15,
                        label="held at gate")
    ax.set_ylabel("Position")
    ax.legend(fontsize=8, loc="upper left")

    ax = axs[1]
    if res["gate_t"].size:
        gt = np.concatenate(([0.0], res["gate_t"]))
        go = np.concatenate(([False], res["gate_open"])).astype(int)
        ax.step(gt, go, where="post", color="tab:green")
    ax.set_yticks([0, 1])
    ax.set_yticklabels(["closed", "open"])
    ax.set_xlabel("Time (ms)")

    plt.tight_layout()
    if out_path:
        fig.savefig(out_path, dpi=300)
    return fig


def plot_open_probability_curve(params: dict = DEFAULT_PARAMS, *, ax=None,
                                out_path=None):
    """Logistic open probability over the slider range of the potential."""
    lo, hi = PARAM_RANGES["membrane_potential"]
    V = np.linspace(lo, hi, 261)
    P = open_probability(V, params["threshold_potential"], params["k"])

    if ax is None:
        fig, ax = plt.subplots(figsize=(6, 4))
    else:
        fig = ax.figure
    ax.plot(V, P, color="k")
    ax.axvline(params["threshold_potential"], color="grey", ls=":", lw=0.8)
    v_now = params["membrane_potential"]
    p_now = open_probability(v_now, params["threshold_potential"], params["k"])
    ax.plot([v_now], [p_now], "o", color="tab:red",
            label=f"V={v_now:g} mV, P={p_now:.2f}")
    ax.set_xlabel("Membrane potential (mV)")
    ax.set_ylabel("P(open)")
    ax.set_ylim(0, 1)
    ax.legend(fontsize=8, loc="upper left")

    if out_path:
        fig.savefig(out_path, dpi=300)
    return fig


def plot_batch(t: np.ndarray, summary: dict, *,
               title: str, out_path=None, N_runs=None):
    """Mean ± SD position plus the first-passage histogram."""
    fig, axs = plt.subplots(1, 2, figsize=(14, 5),
                            gridspec_kw={"width_ratios": [2, 1]})
    subtitle = f"{title}\n(mean ± 1 SD"
    subtitle += f", N={N_runs})" if N_runs is not None else ")"
    fig.suptitle(subtitle, fontsize=12)

    mean, sd = summary["position"]
    ax = axs[0]
    ax.plot(t, mean, color="tab:blue", label="position")
    ax.fill_between(t, mean - sd, mean + sd, color="tab:blue", alpha=0.3)
    ax.axhline(0, color="k", ls="--", lw=0.8)
    ax.set_xlabel("Time (ms)")
    ax.set_ylabel("Position")
    ax.legend(fontsize=8, loc="upper left")

    ax = axs[1]
    fpt = summary["first_passage"]
    fpt = fpt[np.isfinite(fpt)]
    if fpt.size:
        ax.hist(fpt, bins=20, color="skyblue", edgecolor="black", alpha=0.7)
    ax.set_xlabel("First passage (ms)")
    ax.set_ylabel("Runs")

    plt.tight_layout()
    if out_path:
        fig.savefig(out_path, dpi=300)
    return fig


def plot_dwell_times(durations, rate=None, *, out_path=None):
    """Histogram of blocked dwell times with an optional exponential fit."""
    durations = np.asarray(durations, dtype=float)
    fig, ax = plt.subplots(figsize=(6, 4))
    if durations.size:
        counts, bins, _ = ax.hist(durations, bins=30, density=True,
                                  color="skyblue", edgecolor="black", alpha=0.7)
        if rate is not None and np.isfinite(rate):
            x = np.linspace(0, bins[-1], 200)
            ax.plot(x, expon.pdf(x, scale=1 / rate), "r-",
                    label=f"exp fit, rate={rate:.2e} /ms")
            ax.legend(fontsize=8)
    ax.set_xlabel("Dwell time at closed gate (ms)")
    ax.set_ylabel("Density")

    if out_path:
        fig.savefig(out_path, dpi=300)
    return fig
