"""Sweep schedule and bond traversal order.

A ``Sweeps`` object is an immutable table with one ``SweepParams`` row per
sweep. Every parameter may be given as a scalar (same value every sweep) or
as a sequence; a sequence shorter than the number of sweeps keeps repeating
its last value, so ``max_rank=[10, 20, 100]`` over 5 sweeps means
``10, 20, 100, 100, 100``.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from enum import IntEnum

from dmrgjax.errors import ConfigurationError


class SweepDirection(IntEnum):
    """Direction of a half-sweep; the value is the 1-based half-sweep index."""

    FORWARD = 1
    BACKWARD = 2


@dataclass(frozen=True)
class SweepParams:
    """Parameters of a single sweep.

    Attributes:
        cutoff:   Largest discarded weight accepted by a truncation.
        min_rank: Smallest bond dimension kept after a truncation.
        max_rank: Largest bond dimension kept after a truncation.
        noise:    Density-matrix perturbation amplitude (0 disables it).
        max_iter: Maximum number of Davidson iterations per bond.
    """

    cutoff: float = 1e-8
    min_rank: int = 1
    max_rank: int = 100
    noise: float = 0.0
    max_iter: int = 2

    def __post_init__(self) -> None:
        if self.cutoff < 0:
            raise ConfigurationError(f"cutoff must be >= 0, got {self.cutoff}")
        if self.min_rank < 1:
            raise ConfigurationError(f"min_rank must be >= 1, got {self.min_rank}")
        if self.max_rank < self.min_rank:
            raise ConfigurationError(
                f"max_rank ({self.max_rank}) must be >= min_rank ({self.min_rank})"
            )
        if self.noise < 0:
            raise ConfigurationError(f"noise must be >= 0, got {self.noise}")
        if self.max_iter < 1:
            raise ConfigurationError(f"max_iter must be >= 1, got {self.max_iter}")


def _expand(name: str, value, n: int) -> list:
    if isinstance(value, (str, bytes)) or not isinstance(value, Sequence):
        return [value] * n
    if len(value) == 0:
        raise ConfigurationError(f"{name} sequence must not be empty")
    values = list(value[:n])
    return values + [values[-1]] * (n - len(values))


class Sweeps:
    """Immutable per-sweep parameter table.

    Args:
        n_sweeps: Number of sweeps (>= 1).
        cutoff:   Truncation cutoff, scalar or per-sweep sequence.
        min_rank: Minimum kept rank, scalar or per-sweep sequence.
        max_rank: Maximum kept rank, scalar or per-sweep sequence.
        noise:    Noise amplitude, scalar or per-sweep sequence.
        max_iter: Davidson iterations, scalar or per-sweep sequence.

    Raises:
        ConfigurationError: If ``n_sweeps < 1`` or any row is invalid.

    Example:
        >>> sweeps = Sweeps(5, max_rank=[10, 20, 100], noise=[1e-6, 1e-8, 0.0])
        >>> sweeps[4].max_rank
        100
    """

    def __init__(
        self,
        n_sweeps: int,
        cutoff: float | Sequence[float] = 1e-8,
        min_rank: int | Sequence[int] = 1,
        max_rank: int | Sequence[int] = 100,
        noise: float | Sequence[float] = 0.0,
        max_iter: int | Sequence[int] = 2,
    ) -> None:
        if n_sweeps < 1:
            raise ConfigurationError(f"a schedule needs at least one sweep, got {n_sweeps}")
        columns = zip(
            _expand("cutoff", cutoff, n_sweeps),
            _expand("min_rank", min_rank, n_sweeps),
            _expand("max_rank", max_rank, n_sweeps),
            _expand("noise", noise, n_sweeps),
            _expand("max_iter", max_iter, n_sweeps),
        )
        self._rows: tuple[SweepParams, ...] = tuple(
            SweepParams(float(c), int(mn), int(mx), float(ns), int(it))
            for c, mn, mx, ns, it in columns
        )

    @classmethod
    def from_rows(cls, rows: Sequence[SweepParams]) -> Sweeps:
        """Build a schedule from explicit ``SweepParams`` rows."""
        if not rows:
            raise ConfigurationError("a schedule needs at least one sweep, got 0")
        return cls(
            len(rows),
            cutoff=[r.cutoff for r in rows],
            min_rank=[r.min_rank for r in rows],
            max_rank=[r.max_rank for r in rows],
            noise=[r.noise for r in rows],
            max_iter=[r.max_iter for r in rows],
        )

    _COLUMN_ALIASES = {
        "maxm": "max_rank",
        "max_rank": "max_rank",
        "minm": "min_rank",
        "min_rank": "min_rank",
        "cutoff": "cutoff",
        "niter": "max_iter",
        "max_iter": "max_iter",
        "noise": "noise",
    }

    @classmethod
    def from_table(cls, text: str) -> Sweeps:
        """Parse a whitespace-separated table, one sweep per row.

        The first non-empty line is a header naming any subset of
        ``maxm minm cutoff niter noise`` (or ``max_rank min_rank cutoff
        max_iter noise``); missing columns keep their defaults. Lines starting
        with ``#`` are ignored.

        Example::

            maxm  minm  cutoff  niter  noise
            20    10    1E-8    4      1E-7
            80    20    1E-10   3      1E-8
            200   20    1E-12   2      0
        """
        lines = [
            ln.split() for ln in text.strip().splitlines()
            if ln.strip() and not ln.lstrip().startswith("#")
        ]
        if not lines:
            raise ConfigurationError("empty sweep table")
        header, body = lines[0], lines[1:]
        try:
            fields = [cls._COLUMN_ALIASES[h.lower()] for h in header]
        except KeyError as err:
            raise ConfigurationError(f"unknown sweep table column {err.args[0]!r}") from None
        rows = []
        for lineno, row in enumerate(body, start=2):
            if len(row) != len(fields):
                raise ConfigurationError(
                    f"sweep table line {lineno}: expected {len(fields)} values, got {len(row)}"
                )
            kwargs = {}
            for field, raw in zip(fields, row):
                kwargs[field] = int(float(raw)) if field in ("min_rank", "max_rank", "max_iter") else float(raw)
            rows.append(SweepParams(**kwargs))
        return cls.from_rows(rows)

    def __len__(self) -> int:
        return len(self._rows)

    @property
    def n_sweeps(self) -> int:
        return len(self._rows)

    def __getitem__(self, sweep: int) -> SweepParams:
        return self._rows[sweep]

    def __iter__(self) -> Iterator[SweepParams]:
        return iter(self._rows)

    def __repr__(self) -> str:
        body = "\n".join(
            f"  {i + 1:3d}: max_rank={r.max_rank} min_rank={r.min_rank} "
            f"cutoff={r.cutoff:.1E} max_iter={r.max_iter} noise={r.noise:.1E}"
            for i, r in enumerate(self._rows)
        )
        return f"Sweeps(n_sweeps={len(self)})\n{body}"


def sweep_bonds(n_sites: int) -> Iterator[tuple[int, SweepDirection]]:
    """Serpentine bond order of one full sweep.

    Yields ``(b, direction)`` for ``b = 0 .. N-2`` forward, then
    ``b = N-2 .. 0`` backward. The turning bond ``N-2`` is visited once in
    each half-sweep.
    """
    if n_sites < 2:
        raise ConfigurationError(f"two-site sweeps need at least 2 sites, got {n_sites}")
    for b in range(n_sites - 1):
        yield b, SweepDirection.FORWARD
    for b in range(n_sites - 2, -1, -1):
        yield b, SweepDirection.BACKWARD
