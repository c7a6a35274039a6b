"""Measurement and convergence hooks called by the sweep engine.

``dmrg_worker`` calls ``observer.measure(context)`` after every bond update
and ``observer.check_done(context)`` after every full sweep. Any object with
these two methods can be passed; ``DMRGObserver`` is the default.
"""

from __future__ import annotations

import os
from typing import NamedTuple, Protocol, runtime_checkable

from dmrgjax.algorithms.bond_update import TruncationReport
from dmrgjax.algorithms.sweeps import SweepDirection, SweepParams


class BondContext(NamedTuple):
    """Snapshot of the engine state handed to an observer.

    Attributes:
        sweep:       1-based sweep number.
        n_sweeps:    Length of the schedule.
        half_sweep:  1 (forward) or 2 (backward).
        bond:        Bond index ``b`` of the window ``{b, b+1}``.
        n_sites:     Chain length.
        energy:      Eigenvalue found at this bond (last bond of the sweep for
                     ``check_done``).
        truncation:  Report of the last truncation.
        params:      Schedule entry of the current sweep.
    """

    sweep: int
    n_sweeps: int
    half_sweep: int
    bond: int
    n_sites: int
    energy: float
    truncation: TruncationReport
    params: SweepParams

    @property
    def direction(self) -> SweepDirection:
        return SweepDirection(self.half_sweep)


@runtime_checkable
class Observer(Protocol):
    def measure(self, context: BondContext) -> None: ...

    def check_done(self, context: BondContext) -> bool: ...


class DMRGObserver:
    """Default observer: per-sweep energy bookkeeping and stop conditions.

    Args:
        energy_tol: Stop once the energy changes by less than this between two
                    consecutive sweeps (None disables the check).
        quiet:      Suppress the per-sweep summary line.
        stop_file:  Stop (and remove the file) when a file of this name exists
                    in the working directory. None disables the check.
    """

    def __init__(
        self,
        energy_tol: float | None = None,
        quiet: bool = False,
        stop_file: str | None = "STOP_DMRG",
    ) -> None:
        self.energy_tol = energy_tol
        self.quiet = quiet
        self.stop_file = stop_file
        self.energies: list[float] = []
        self.max_truncation_errors: list[float] = []
        self.max_ranks: list[int] = []
        self.last_energy: float | None = None
        self._sweep_trunc = 0.0
        self._sweep_rank = 0

    def measure(self, context: BondContext) -> None:
        self.last_energy = context.energy
        self._sweep_trunc = max(self._sweep_trunc, context.truncation.truncation_error)
        self._sweep_rank = max(self._sweep_rank, context.truncation.kept_rank)

    def check_done(self, context: BondContext) -> bool:
        energy = context.energy
        previous = self.energies[-1] if self.energies else None
        self.energies.append(energy)
        self.max_truncation_errors.append(self._sweep_trunc)
        self.max_ranks.append(self._sweep_rank)
        self._sweep_trunc = 0.0
        self._sweep_rank = 0

        if not self.quiet:
            print(
                f"Sweep {context.sweep}/{context.n_sweeps}: E = {energy:.12f}, "
                f"max truncation error = {self.max_truncation_errors[-1]:.2E}, "
                f"max bond dim = {self.max_ranks[-1]}"
            )

        if self.stop_file is not None and os.path.isfile(self.stop_file):
            if not self.quiet:
                print(f"File {self.stop_file} found, stopping DMRG after sweep {context.sweep}")
            os.remove(self.stop_file)
            return True

        if self.energy_tol is not None and context.sweep > 1 and previous is not None:
            if abs(energy - previous) < self.energy_tol:
                if not self.quiet:
                    print(
                        f"Energy difference less than {self.energy_tol:.1E}, "
                        f"stopping DMRG after sweep {context.sweep}"
                    )
                return True
        return False
