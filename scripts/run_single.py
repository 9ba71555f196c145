#!/usr/bin/env python3
"""
Quick visual sanity check – one seeded run plus the open-probability curve.
"""
import argparse
import logging
from pathlib import Path
import matplotlib.pyplot as plt
from chansim.params import make_params
from chansim.core   import run_simulation
from chansim_analysis.stats import (blocked_dwell_times, first_passage_time,
                                    open_fraction, step_frequencies)
from chansim_analysis.viz   import plot_open_probability_curve, plot_run

if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--seed", type=int, default=0, help="RNG seed")
    ap.add_argument("--potential", type=float, default=-70.0, help="membrane potential (mV)")
    ap.add_argument("--t-max", type=float, default=30000.0, help="simulated time (ms)")
    ap.add_argument("--out", type=str, default=None, help="save figure instead of showing it")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    params = make_params(membrane_potential=args.potential, t_max=args.t_max)
    res = run_simulation(params, seed=args.seed)

    f_plus, f_zero, f_minus = step_frequencies(res["step"], res["blocked"])
    print(f"walk ticks      : {len(res['t'])}")
    print(f"step freq +/0/- : {f_plus:.3f} / {f_zero:.3f} / {f_minus:.3f}")
    print(f"gate open frac  : {open_fraction(res['gate_open']):.3f}")
    print(f"first passage   : {first_passage_time(res['t'], res['position']):.0f} ms")
    print(f"blocked spells  : {len(blocked_dwell_times(res['t'], res['blocked']))}")

    fig = plot_run(res, params=params,
                   title=f"V = {args.potential:g} mV, seed {args.seed}")
    curve = plot_open_probability_curve(params)
    if args.out:
        out_path = Path(args.out)
        out_path.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out_path, dpi=300)
        curve.savefig(out_path.with_name(out_path.stem + "_p_open" + out_path.suffix), dpi=300)
        print(f"✓ saved → {out_path}")
    else:
        plt.show()
