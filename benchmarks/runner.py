"""Timing of DMRG benchmark cases."""

from __future__ import annotations

import dataclasses
import statistics
import time
from dataclasses import dataclass, field

import jax.numpy as jnp

from dmrgjax import DMRGError, dmrg

from benchmarks.bench_dmrg import DMRGCase


@dataclass
class DMRGTiming:
    """Wall times and physics of one case. ``error`` is set instead when the run failed."""

    size_label: str
    model: str
    L: int
    schedule: list[dict]
    write_rank: int | None = None
    warmup_s: float = 0.0
    times_s: list[float] = field(default_factory=list)
    energy: float = float("nan")
    energies_per_sweep: list[float] = field(default_factory=list)
    status: str = ""
    n_sweeps: int = 0
    max_bond_dim: int = 0
    max_truncation_error: float = 0.0
    error: str | None = None

    @property
    def mean_s(self) -> float:
        return statistics.fmean(self.times_s) if self.times_s else float("nan")

    @property
    def min_s(self) -> float:
        return min(self.times_s, default=float("nan"))

    @property
    def energy_per_site(self) -> float:
        return self.energy / self.L


def _sync() -> None:
    """Block until device computation completes."""
    jnp.zeros(1).block_until_ready()


def _timed_run(case: DMRGCase):
    # DMRG optimizes the MPS in place, so every trial starts from fresh inputs
    psi, H, config = case.setup()
    _sync()
    t0 = time.perf_counter()
    result = dmrg(psi, H, case.sweeps, config=config)
    _sync()
    return result, time.perf_counter() - t0


def time_case(case: DMRGCase, num_trials: int = 3) -> DMRGTiming:
    """Warmup run (includes JIT compilation) followed by ``num_trials`` timed runs.

    Configuration and paging failures are recorded on the timing; anything
    else propagates.
    """
    timing = DMRGTiming(
        size_label=case.size_label,
        model=case.model,
        L=case.L,
        schedule=[dataclasses.asdict(row) for row in case.sweeps],
        write_rank=case.write_rank,
    )
    try:
        result, timing.warmup_s = _timed_run(case)
        timing.times_s = [_timed_run(case)[1] for _ in range(num_trials)]
    except (DMRGError, OSError) as err:
        timing.error = f"{type(err).__name__}: {err}"
        return timing

    timing.energy = result.energy
    timing.energies_per_sweep = list(result.energies_per_sweep)
    timing.status = result.status.value
    timing.n_sweeps = result.n_sweeps
    timing.max_bond_dim = result.mps.max_bond_dim()
    timing.max_truncation_error = max(result.truncation_errors, default=0.0)
    return timing
