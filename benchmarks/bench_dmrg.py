"""DMRG benchmark cases: spin chains of increasing length with ramped schedules."""

from __future__ import annotations

import dataclasses
import tempfile
from dataclasses import dataclass

from dmrgjax import (
    DMRGConfig,
    Sweeps,
    build_mpo_heisenberg,
    build_mpo_transverse_ising,
    build_random_mps,
)

_SIZES = {
    "small": {"L": 20, "max_rank": [10, 20, 32], "n_sweeps": 5, "init_bond_dim": 8},
    "medium": {"L": 40, "max_rank": [16, 32, 64], "n_sweeps": 5, "init_bond_dim": 16},
    "large": {"L": 80, "max_rank": [32, 64, 128], "n_sweeps": 3, "init_bond_dim": 16},
}

_MODELS = {
    "heisenberg": lambda L: build_mpo_heisenberg(L, Jz=1.0, Jxy=1.0),
    "ising": lambda L: build_mpo_transverse_ising(L, J=1.0, h=1.0),
}

MODELS = tuple(_MODELS)
SIZES = tuple(_SIZES)


@dataclass(frozen=True)
class DMRGCase:
    """One chain, one schedule. ``setup`` builds fresh inputs for every trial."""

    size_label: str
    model: str
    L: int
    init_bond_dim: int
    sweeps: Sweeps
    write_rank: int | None = None
    write_dir: str = tempfile.gettempdir()

    def setup(self):
        H = _MODELS[self.model](self.L)
        psi = build_random_mps(self.L, bond_dim=self.init_bond_dim, seed=7)
        config = DMRGConfig(
            quiet=True,
            write_rank=self.write_rank,
            write_dir=self.write_dir,
            eigen_tol=1e-8,
        )
        return psi, H, config


def default_schedule(n_sweeps: int, max_rank: list[int]) -> Sweeps:
    return Sweeps(n_sweeps, cutoff=1e-10, max_rank=max_rank, noise=[1e-6, 1e-8, 0.0], max_iter=2)


def override_schedule(
    sweeps: Sweeps,
    noise: float | None = None,
    cutoff: float | None = None,
    max_iter: int | None = None,
) -> Sweeps:
    """Replace one column of every row; ``None`` keeps the schedule's value."""
    changes = {
        k: v for k, v in (("noise", noise), ("cutoff", cutoff), ("max_iter", max_iter))
        if v is not None
    }
    if not changes:
        return sweeps
    return Sweeps.from_rows([dataclasses.replace(row, **changes) for row in sweeps])


def get_cases(
    sizes=SIZES,
    model: str = "heisenberg",
    sweeps: Sweeps | None = None,
    noise: float | None = None,
    cutoff: float | None = None,
    max_iter: int | None = None,
    write_rank: int | None = None,
    write_dir: str | None = None,
) -> list[DMRGCase]:
    """Benchmark cases for the requested chain sizes.

    A ``sweeps`` table, when given, replaces the per-size ramp for every size.
    ``noise``, ``cutoff`` and ``max_iter`` then override single columns.
    """
    if model not in _MODELS:
        raise ValueError(f"Unknown model {model!r}. Choose from: {', '.join(MODELS)}")
    cases = []
    for size_label in sizes:
        p = _SIZES[size_label]
        schedule = sweeps if sweeps is not None else default_schedule(p["n_sweeps"], p["max_rank"])
        cases.append(
            DMRGCase(
                size_label=size_label,
                model=model,
                L=p["L"],
                init_bond_dim=p["init_bond_dim"],
                sweeps=override_schedule(schedule, noise, cutoff, max_iter),
                write_rank=write_rank,
                write_dir=write_dir or tempfile.gettempdir(),
            )
        )
    return cases
