"""JSON output and summary table for DMRG benchmark timings."""

from __future__ import annotations

import json
import os
from dataclasses import asdict

from benchmarks.runner import DMRGTiming


def save_results_json(timings: list[DMRGTiming], path: str, platform: str) -> None:
    """Write one record per case, with derived timings, under a platform header."""
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    runs = [
        {**asdict(t), "mean_s": t.mean_s, "min_s": t.min_s, "energy_per_site": t.energy_per_site}
        for t in timings
    ]
    with open(path, "w") as f:
        json.dump({"platform": platform, "runs": runs}, f, indent=2)
    print(f"Results saved to {path}")


def print_summary_table(timings: list[DMRGTiming]) -> None:
    header = (
        f"{'Model':<11} {'L':>4} {'Sweeps':>6} {'Status':<10} {'E':>18} {'E/L':>14} "
        f"{'chi':>5} {'max err':>9} {'Warmup(s)':>10} {'Mean(s)':>9} {'Min(s)':>9}"
    )
    sep = "-" * len(header)
    print()
    print(sep)
    print(header)
    print(sep)
    for t in timings:
        if t.error:
            print(f"{t.model:<11} {t.L:>4} {'':>6} {'ERROR':<10} {t.error}")
            continue
        print(
            f"{t.model:<11} {t.L:>4} {t.n_sweeps:>6} {t.status:<10} {t.energy:>18.12f} "
            f"{t.energy_per_site:>14.10f} {t.max_bond_dim:>5} {t.max_truncation_error:>9.1E} "
            f"{t.warmup_s:>10.3f} {t.mean_s:>9.3f} {t.min_s:>9.3f}"
        )
    print(sep)
    print()
