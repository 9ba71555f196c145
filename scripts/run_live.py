#!/usr/bin/env python3
"""
Wall-clock run on the asyncio loop, one text frame per tick.
Usage:
    python scripts/run_live.py --duration 10 --potential -40
"""
import argparse
import asyncio
import logging
from chansim.runtime import ChannelSimulation

X_EXTENT = (-20, 20)


def render(snap) -> str:
    lo, hi = X_EXTENT
    cells = ["-"] * (hi - lo + 1)
    cells[-lo] = "|" if snap.channel_open else "X"
    x = int(round(snap.ion_position))
    if lo <= x <= hi:
        cells[x - lo] = "o"
    return (f"{''.join(cells)}  pos={snap.ion_position:+4.0f}  "
            f"V={snap.membrane_potential:+4.0f} mV  P={snap.open_probability:.2f}")


async def main(args):
    sim = ChannelSimulation({"membrane_potential": args.potential,
                             "speed": args.speed}, seed=args.seed)
    sim.subscribe(lambda snap: print(render(snap), end="\r", flush=True))
    snap = await sim.run(args.duration * 1000.0)
    print()
    print(f"final position {snap.ion_position:+.0f} after "
          f"{sim.walk_ticks} walk / {sim.gate_ticks} gate ticks")


if __name__ == "__main__":
    ap = argparse.ArgumentParser()
    ap.add_argument("--duration", type=float, default=10.0, help="seconds of wall time")
    ap.add_argument("--potential", type=float, default=-70.0, help="membrane potential (mV)")
    ap.add_argument("--speed", type=int, default=100, help="walk period (ms)")
    ap.add_argument("--seed", type=int, default=None, help="RNG seed")
    ap.add_argument("-v", "--verbose", action="store_true")
    args = ap.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG)
    asyncio.run(main(args))
