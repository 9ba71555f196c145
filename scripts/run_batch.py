#!/usr/bin/env python3
"""
Monte-Carlo batch driver – mean ± SD shading.
Usage:
    python scripts/run_batch.py -N 50 --seed 42 --out figs/batch_50.png
"""
from pathlib import Path
import argparse
import logging
import numpy as np
from chansim.params import make_params
from chansim_analysis.batch import run_batch
from chansim_analysis.viz   import plot_batch

if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("-N", "--num-runs", type=int, default=20, help="number of repeats")
    ap.add_argument("--seed", type=int, default=0, help="RNG seed")
    ap.add_argument("--potential", type=float, default=-70.0, help="membrane potential (mV)")
    ap.add_argument("--t-max", type=float, default=30000.0, help="simulated time per run (ms)")
    ap.add_argument("--out", type=str, default="figs/batch.png", help="output figure")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)

    params = make_params(membrane_potential=args.potential, t_max=args.t_max)
    t, summary = run_batch(args.num_runs, seed=args.seed, params=params)

    fpt = summary["first_passage"]
    print(f"reached channel : {np.isfinite(fpt).sum()} / {args.num_runs}")
    print(f"first passage   : {np.nanmean(fpt):.0f} ± {np.nanstd(fpt):.0f} ms")
    print(f"gate open frac  : {summary['open_fraction'].mean():.3f}")

    out_path = Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    plot_batch(t, summary,
               title=f"Gated channel, V = {args.potential:g} mV",
               out_path=out_path,
               N_runs=args.num_runs)
    print(f"✓ saved → {out_path}")
