"""CLI entry point for DMRG-Jax benchmarks.

Usage::

    python -m benchmarks.run --backend cpu --size small --trials 1
    python -m benchmarks.run --size medium --sweeps-table schedule.txt --noise 0
    python -m benchmarks.run --model ising --cutoff 1e-12 --write-rank 32 -o ising.json

A sweeps table has a header naming any of ``maxm minm cutoff niter noise`` and
one row per sweep (see ``Sweeps.from_table``).
"""

from __future__ import annotations

import argparse
import datetime
import os
import sys

_PLATFORMS = {"cpu": "cpu", "cuda": "cuda", "gpu": "cuda", "tpu": "tpu"}
_SIZES = ["small", "medium", "large"]


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="DMRG-Jax benchmark suite",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--backend", "-b",
        default="auto",
        choices=[*_PLATFORMS, "auto"],
        help="JAX platform (default: auto)",
    )
    parser.add_argument(
        "--size", "-s",
        nargs="+",
        default=["all"],
        choices=[*_SIZES, "all"],
        help="Chain sizes: small (L=20) | medium (L=40) | large (L=80) | all",
    )
    parser.add_argument(
        "--model", "-m",
        default="heisenberg",
        choices=["heisenberg", "ising"],
        help="Hamiltonian (default: heisenberg)",
    )
    parser.add_argument(
        "--sweeps-table",
        metavar="FILE",
        default=None,
        help="Sweep schedule table used for every size instead of the built-in ramp",
    )
    parser.add_argument("--noise", type=float, default=None, help="Noise for every sweep")
    parser.add_argument("--cutoff", type=float, default=None, help="Cutoff for every sweep")
    parser.add_argument(
        "--max-iter", type=int, default=None, help="Davidson iterations for every sweep"
    )
    parser.add_argument(
        "--write-rank",
        type=int,
        default=None,
        help="Page tensors to disk once a sweep's max_rank reaches this value",
    )
    parser.add_argument("--write-dir", default=None, help="Paging directory (default: tmp)")
    parser.add_argument(
        "--trials", "-n",
        type=int,
        default=3,
        help="Number of timed trials per case (default: 3)",
    )
    parser.add_argument(
        "--output", "-o",
        default=None,
        help="JSON output path (default: benchmarks/results/<platform>_<timestamp>.json)",
    )
    return parser.parse_args()


def _select_platform(backend: str) -> None:
    """Set the JAX platform env vars; must run before jax is imported."""
    os.environ.setdefault("JAX_ENABLE_X64", "1")
    if backend != "auto":
        os.environ["JAX_PLATFORMS"] = _PLATFORMS[backend]


def main() -> None:
    args = _parse_args()
    _select_platform(args.backend)

    import jax

    from dmrgjax import ConfigurationError, Sweeps

    from benchmarks.bench_dmrg import get_cases
    from benchmarks.results import print_summary_table, save_results_json
    from benchmarks.runner import time_case

    devices = jax.devices()
    platform = devices[0].platform
    print(f"Platform: {platform} | device: {devices[0].device_kind} (x{len(devices)})")

    try:
        sweeps = None
        if args.sweeps_table:
            with open(args.sweeps_table) as f:
                sweeps = Sweeps.from_table(f.read())
        cases = get_cases(
            _SIZES if "all" in args.size else args.size,
            model=args.model,
            sweeps=sweeps,
            noise=args.noise,
            cutoff=args.cutoff,
            max_iter=args.max_iter,
            write_rank=args.write_rank,
            write_dir=args.write_dir,
        )
    except ConfigurationError as err:
        print(f"Invalid schedule: {err}")
        sys.exit(2)

    print(f"\nRunning {len(cases)} case(s), {args.trials} trial(s) each...\n")

    timings = []
    for i, case in enumerate(cases, 1):
        print(f"[{i}/{len(cases)}] {case.model} L={case.L} ...", end=" ", flush=True)
        timing = time_case(case, num_trials=args.trials)
        if timing.error:
            print("ERROR")
        else:
            print(f"{timing.mean_s:.3f}s (min={timing.min_s:.3f}s)")
        timings.append(timing)

    print_summary_table(timings)

    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    save_results_json(
        timings, args.output or f"benchmarks/results/{platform}_{timestamp}.json", platform
    )


if __name__ == "__main__":
    main()
