"""Finite-size two-site DMRG.

DMRG finds the ground state of a 1D Hamiltonian given as a Matrix Product
Operator (MPO) by optimizing a Matrix Product State (MPS) two sites at a time.

Architecture decisions:

- The outer sweep loop is a Python for-loop (not ``jax.lax.scan``) because bond
  dimensions change after each truncation, preventing JIT across sweeps.
- The effective Hamiltonian matvec is ``@jax.jit`` compiled (``local_ops``).
- The effective operator is one of three interchangeable classes; the sweep
  engine (``dmrg_worker``) only relies on the ``EffectiveOperator`` protocol.
- Environments are updated incrementally as the window moves; each bond costs
  one environment update instead of a rebuild.

Sweep order (one sweep = two half-sweeps)::

    half-sweep 1 (forward):   bonds 0, 1, ..., N-2
    half-sweep 2 (backward):  bonds N-2, ..., 1, 0

Typical use::

    H = build_mpo_heisenberg(20)
    psi = build_random_mps(20, bond_dim=8)
    sweeps = Sweeps(5, max_rank=[10, 20, 100], cutoff=1e-10)
    result = dmrg(psi, H, sweeps)
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

from dmrgjax.algorithms.bond_update import svd_bond
from dmrgjax.algorithms.davidson import davidson
from dmrgjax.algorithms.local_ops import (
    EffectiveOperator,
    LocalMPO,
    LocalMPOProjected,
    LocalMPOSet,
)
from dmrgjax.algorithms.observer import BondContext, DMRGObserver, Observer
from dmrgjax.algorithms.sweeps import Sweeps, sweep_bonds
from dmrgjax.contraction.contractor import contract
from dmrgjax.errors import ConfigurationError
from dmrgjax.network.mpo import MPO
from dmrgjax.network.mps import MPS


@dataclass(frozen=True)
class DMRGConfig:
    """Run-wide options of a DMRG calculation.

    Per-sweep parameters (ranks, cutoff, noise, Davidson iterations) live in
    ``Sweeps``; this holds everything else.

    Attributes:
        quiet:       Suppress all progress output.
        debug_level: Verbosity. None resolves to 0 when ``quiet`` else 1.
                     1 prints one line per sweep, 2 adds one line per bond,
                     3 adds Davidson iterations.
        write_rank:  Page MPS, MPO and environments to disk once a sweep's
                     ``max_rank`` reaches this value (None never pages).
        write_dir:   Directory under which paging files are created.
        weight:      Penalty weight for reference states (excited states).
        eigen_tol:   Davidson residual goal.
        energy_tol:  Energy convergence goal of the default observer.
    """

    quiet: bool = False
    debug_level: int | None = None
    write_rank: int | None = None
    write_dir: str = "./"
    weight: float | None = None
    eigen_tol: float = 1e-4
    energy_tol: float | None = None

    def __post_init__(self) -> None:
        if self.write_rank is not None and self.write_rank < 1:
            raise ConfigurationError(f"write_rank must be >= 1, got {self.write_rank}")
        if self.eigen_tol <= 0:
            raise ConfigurationError(f"eigen_tol must be positive, got {self.eigen_tol}")

    @property
    def level(self) -> int:
        """Effective debug level."""
        if self.quiet:
            return 0
        return 1 if self.debug_level is None else self.debug_level


class DMRGStatus(Enum):
    """Lifecycle of a ``dmrg_worker`` run."""

    IDLE = "idle"
    SWEEPING = "sweeping"
    CONVERGED = "converged"
    EXHAUSTED = "exhausted"


class DMRGResult(NamedTuple):
    """Result of a DMRG run.

    Attributes:
        energy:             Energy of the last bond optimization.
        energies_per_sweep: Energy at the end of each completed sweep.
        mps:                The optimized, normalized MPS (same object as the
                            input state).
        truncation_errors:  Truncation error of every bond update, in order.
        converged:          True if the observer stopped the run early.
        status:             ``CONVERGED`` or ``EXHAUSTED``.
        n_sweeps:           Number of sweeps performed.
    """

    energy: float
    energies_per_sweep: list[float]
    mps: MPS
    truncation_errors: list[float]
    converged: bool
    status: DMRGStatus
    n_sweeps: int


def _per_mpo(value, n: int, name: str) -> list:
    if value is None:
        return [None] * n
    if isinstance(value, (list, tuple)):
        if len(value) != n:
            raise ConfigurationError(f"{name} needs one entry per MPO ({n}), got {len(value)}")
        return list(value)
    return [value] * n


def dmrg(
    psi: MPS,
    H: MPO | Sequence[MPO],
    sweeps: Sweeps,
    observer: Observer | None = None,
    *,
    references: Sequence[MPS] | None = None,
    left_boundary: jax.Array | Sequence[jax.Array | None] | None = None,
    right_boundary: jax.Array | Sequence[jax.Array | None] | None = None,
    config: DMRGConfig | None = None,
) -> DMRGResult:
    """Optimize ``psi`` towards the lowest eigenstate of ``H``.

    Dispatch:

    - ``H`` an ``MPO``: ``LocalMPO``
    - ``H`` a sequence of ``MPO``: ``LocalMPOSet`` (sum of the operators)
    - ``H`` an ``MPO`` and ``references``: ``LocalMPOProjected``, i.e. the
      lowest state orthogonal to the references, with penalty
      ``config.weight``

    Args:
        psi:            Initial state; optimized in place.
        H:              Hamiltonian MPO or list of MPOs to be summed.
        sweeps:         Sweep schedule.
        observer:       Measurement hooks; default ``DMRGObserver``.
        references:     States to orthogonalize against.
        left_boundary:  Left environment terminator (one per MPO for a set).
        right_boundary: Right environment terminator (one per MPO for a set).
        config:         Run-wide options.

    Returns:
        DMRGResult with energy, sweep history, optimized MPS and diagnostics.

    Raises:
        ConfigurationError: Invalid combination of inputs (see
                            ``dmrg_worker`` and the effective operators).
    """
    config = config if config is not None else DMRGConfig()

    if isinstance(H, MPO):
        if references:
            local_op = LocalMPOProjected(
                H, references, config.weight, left_boundary, right_boundary
            )
        else:
            local_op = LocalMPO(H, left_boundary, right_boundary)
    else:
        Hs = list(H)
        if references:
            raise ConfigurationError("reference states are only supported with a single MPO")
        local_op = LocalMPOSet(
            Hs,
            _per_mpo(left_boundary, len(Hs), "left_boundary"),
            _per_mpo(right_boundary, len(Hs), "right_boundary"),
        )

    return dmrg_worker(psi, local_op, sweeps, observer, config)


def dmrg_worker(
    psi: MPS,
    local_op: EffectiveOperator,
    sweeps: Sweeps,
    observer: Observer | None = None,
    config: DMRGConfig | None = None,
) -> DMRGResult:
    """Run the sweep schedule with a prepared effective operator.

    Args:
        psi:      Initial state; optimized in place.
        local_op: Effective operator (``LocalMPO``, ``LocalMPOSet`` or
                  ``LocalMPOProjected``).
        sweeps:   Sweep schedule.
        observer: Measurement hooks; default ``DMRGObserver``.
        config:   Run-wide options.

    Returns:
        DMRGResult.

    Raises:
        ConfigurationError: Chain shorter than two sites, operator length or
                            physical dimensions different from the state's,
                            or an unusable boundary. Raised before ``psi`` is
                            touched.
        OSError:            Paging failure; paging switched on by this call
                            is switched off again before it propagates.
    """
    config = config if config is not None else DMRGConfig()
    debug = config.level
    N = len(psi)
    if N < 2:
        raise ConfigurationError(f"two-site DMRG needs at least 2 sites, got {N}")
    if local_op.n_sites != N:
        raise ConfigurationError(
            f"operator acts on {local_op.n_sites} sites, state has {N}"
        )
    if len(sweeps) < 1:
        raise ConfigurationError("the sweep schedule is empty")
    local_op.check(psi)
    if observer is None:
        observer = DMRGObserver(energy_tol=config.energy_tol, quiet=debug < 1)

    energy = float("nan")
    energies_per_sweep: list[float] = []
    truncation_errors: list[float] = []
    n_done = 0
    context = None
    paged_psi = False

    try:
        local_op.reset()
        psi.position(0)

        status = DMRGStatus.SWEEPING
        for sw, params in enumerate(sweeps, start=1):
            if (
                config.write_rank is not None
                and params.max_rank >= config.write_rank
                and not local_op.does_write
            ):
                if debug >= 1:
                    print(f"Turning on write to disk, write_dir = {config.write_dir}")
                if not psi.does_write:
                    psi.do_write(True, config.write_dir)
                    paged_psi = True
                local_op.do_write(True, config.write_dir)

            for b, direction in sweep_bonds(N):
                local_op.position(b, psi)

                if debug >= 2:
                    print(f"Sweep={sw}, HS={int(direction)}, Bond=({b},{b + 1})")

                theta = contract("apb,bqc->apqc", psi[b], psi[b + 1])
                energy, theta = davidson(
                    local_op,
                    theta,
                    max_iter=params.max_iter,
                    err_goal=config.eigen_tol,
                    dim=local_op.size,
                    debug_level=debug,
                )

                report = svd_bond(
                    psi,
                    b,
                    theta,
                    direction,
                    cutoff=params.cutoff,
                    min_rank=params.min_rank,
                    max_rank=params.max_rank,
                    noise=params.noise,
                    local_op=local_op,
                )
                truncation_errors.append(report.truncation_error)

                if debug >= 2:
                    print(
                        f"    Truncated to Cutoff={params.cutoff:.1E}, "
                        f"Min_m={params.min_rank}, Max_m={params.max_rank}"
                    )
                    print(
                        f"    Trunc. err={report.truncation_error:.1E}, "
                        f"States kept: {report.kept_rank}, E={energy:.14f}"
                    )

                context = BondContext(
                    sweep=sw,
                    n_sweeps=len(sweeps),
                    half_sweep=int(direction),
                    bond=b,
                    n_sites=N,
                    energy=energy,
                    truncation=report,
                    params=params,
                )
                observer.measure(context)

            energies_per_sweep.append(energy)
            n_done = sw
            if observer.check_done(context):
                status = DMRGStatus.CONVERGED
                break
        else:
            status = DMRGStatus.EXHAUSTED

        psi.normalize()
    except Exception:
        # a failed run hands the state back in memory
        if paged_psi and psi.does_write:
            psi.do_write(False)
        raise
    finally:
        if local_op.does_write:
            local_op.do_write(False)

    return DMRGResult(
        energy=float(energy),
        energies_per_sweep=energies_per_sweep,
        mps=psi,
        truncation_errors=truncation_errors,
        converged=status == DMRGStatus.CONVERGED,
        status=status,
        n_sweeps=n_done,
    )


def energy_expectation(psi: MPS, H: MPO) -> float:
    """``<psi|H|psi> / <psi|psi>`` by a left-to-right transfer contraction.

    Requires boundary MPO and MPS bonds of dimension 1.
    """
    dtype = jnp.result_type(psi.dtype, H[0].dtype)
    E = jnp.ones((1, 1, 1), dtype=dtype)
    norm = jnp.ones((1, 1), dtype=dtype)
    for i in range(len(psi)):
        A = psi[i]
        E = contract("abc,apd,bxpe,cxf->def", E, A, H[i], A.conj())
        norm = contract("ac,apd,cpf->df", norm, A, A.conj())
    return float(np.real(E.reshape(-1)[0]) / np.real(norm.reshape(-1)[0]))
