"""Tests for the sweep schedule and bond traversal."""

import dataclasses

import pytest

from dmrgjax.algorithms.sweeps import SweepDirection, SweepParams, Sweeps, sweep_bonds
from dmrgjax.errors import ConfigurationError


class TestSweepParams:
    def test_defaults(self):
        p = SweepParams()
        assert p.cutoff == 1e-8
        assert p.min_rank == 1
        assert p.max_rank == 100
        assert p.noise == 0.0
        assert p.max_iter == 2

    def test_frozen(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            SweepParams().max_rank = 5

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"cutoff": -1.0},
            {"min_rank": 0},
            {"min_rank": 10, "max_rank": 5},
            {"noise": -1e-3},
            {"max_iter": 0},
        ],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ConfigurationError):
            SweepParams(**kwargs)


class TestSweeps:
    def test_scalar_broadcast(self):
        sweeps = Sweeps(3, max_rank=20, cutoff=1e-10)
        assert len(sweeps) == 3
        assert all(p.max_rank == 20 for p in sweeps)
        assert all(p.cutoff == 1e-10 for p in sweeps)

    def test_short_sequence_repeats_last(self):
        sweeps = Sweeps(5, max_rank=[10, 20, 100])
        assert [p.max_rank for p in sweeps] == [10, 20, 100, 100, 100]

    def test_long_sequence_is_cut(self):
        sweeps = Sweeps(2, noise=[1e-6, 1e-7, 1e-8])
        assert [p.noise for p in sweeps] == [1e-6, 1e-7]

    def test_indexing(self):
        sweeps = Sweeps(2, max_iter=[4, 2])
        assert sweeps[0].max_iter == 4
        assert sweeps[1].max_iter == 2
        assert sweeps.n_sweeps == 2

    def test_zero_sweeps_raise(self):
        with pytest.raises(ConfigurationError):
            Sweeps(0)

    def test_empty_sequence_raises(self):
        with pytest.raises(ConfigurationError):
            Sweeps(2, max_rank=[])

    def test_invalid_row_raises(self):
        with pytest.raises(ConfigurationError):
            Sweeps(3, min_rank=[1, 1, 50], max_rank=10)

    def test_from_rows(self):
        rows = [SweepParams(max_rank=4), SweepParams(max_rank=8, noise=1e-7)]
        sweeps = Sweeps.from_rows(rows)
        assert list(sweeps) == rows

    def test_repr_lists_rows(self):
        text = repr(Sweeps(2, max_rank=[4, 8]))
        assert "max_rank=4" in text
        assert "max_rank=8" in text


class TestFromTable:
    def test_parse(self):
        table = """
            maxm  minm  cutoff  niter  noise
            20    10    1E-8    4      1E-7
            80    20    1E-10   3      1E-8
            200   20    1E-12   2      0
        """
        sweeps = Sweeps.from_table(table)
        assert len(sweeps) == 3
        assert sweeps[0] == SweepParams(cutoff=1e-8, min_rank=10, max_rank=20, noise=1e-7, max_iter=4)
        assert sweeps[2].max_rank == 200
        assert sweeps[2].noise == 0.0

    def test_missing_columns_keep_defaults(self):
        sweeps = Sweeps.from_table("max_rank\n8\n16\n")
        assert [p.max_rank for p in sweeps] == [8, 16]
        assert sweeps[0].cutoff == SweepParams().cutoff

    def test_comments_ignored(self):
        sweeps = Sweeps.from_table("# schedule\nmaxm cutoff\n# warmup\n10 1e-6\n")
        assert len(sweeps) == 1

    def test_unknown_column(self):
        with pytest.raises(ConfigurationError, match="unknown"):
            Sweeps.from_table("maxm bogus\n10 1\n")

    def test_ragged_row(self):
        with pytest.raises(ConfigurationError, match="expected 2 values"):
            Sweeps.from_table("maxm cutoff\n10\n")

    def test_header_only(self):
        with pytest.raises(ConfigurationError):
            Sweeps.from_table("maxm cutoff\n")


class TestSweepBonds:
    def test_serpentine_order(self):
        order = list(sweep_bonds(4))
        assert order == [
            (0, SweepDirection.FORWARD),
            (1, SweepDirection.FORWARD),
            (2, SweepDirection.FORWARD),
            (2, SweepDirection.BACKWARD),
            (1, SweepDirection.BACKWARD),
            (0, SweepDirection.BACKWARD),
        ]

    def test_visits_per_sweep(self):
        for N in [2, 3, 7]:
            assert len(list(sweep_bonds(N))) == 2 * (N - 1)

    def test_consecutive_bonds_adjacent(self):
        order = [b for b, _ in sweep_bonds(8)]
        assert all(abs(a - b) <= 1 for a, b in zip(order, order[1:]))

    def test_half_sweep_values(self):
        assert int(SweepDirection.FORWARD) == 1
        assert int(SweepDirection.BACKWARD) == 2

    def test_too_short_chain(self):
        with pytest.raises(ConfigurationError):
            list(sweep_bonds(1))
