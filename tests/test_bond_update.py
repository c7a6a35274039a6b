"""Tests for the two-site factorization and MPS write-back."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from dmrgjax.algorithms.bond_update import TruncationReport, factorize_two_site, svd_bond
from dmrgjax.algorithms.local_ops import LocalMPO
from dmrgjax.algorithms.sweeps import SweepDirection
from dmrgjax.network.mpo import build_mpo_heisenberg
from dmrgjax.network.mps import build_random_mps

FWD = SweepDirection.FORWARD
BWD = SweepDirection.BACKWARD


def _merge(left, right):
    return jnp.einsum("apk,kqc->apqc", left, right)


class TestFactorizeTwoSite:
    @pytest.mark.parametrize("direction", [FWD, BWD])
    def test_exact_reconstruction(self, direction, rng):
        theta = jax.random.normal(rng, (2, 2, 2, 3))
        left, right, report = factorize_two_site(
            theta, direction, cutoff=0.0, min_rank=1, max_rank=100
        )
        np.testing.assert_allclose(_merge(left, right), theta, atol=1e-12)
        assert report.truncation_error == 0.0

    def test_forward_left_is_isometric(self, rng):
        theta = jax.random.normal(rng, (3, 2, 2, 3))
        left, _, _ = factorize_two_site(theta, FWD, cutoff=0.0, min_rank=1, max_rank=100)
        M = left.reshape(-1, left.shape[2])
        np.testing.assert_allclose(M.T @ M, jnp.eye(M.shape[1]), atol=1e-12)

    def test_backward_right_is_isometric(self, rng):
        theta = jax.random.normal(rng, (3, 2, 2, 3))
        _, right, _ = factorize_two_site(theta, BWD, cutoff=0.0, min_rank=1, max_rank=100)
        M = right.reshape(right.shape[0], -1)
        np.testing.assert_allclose(M @ M.T, jnp.eye(M.shape[0]), atol=1e-12)

    def test_rank_bounds_win_over_cutoff(self, theta_rank2):
        left, right, report = factorize_two_site(
            theta_rank2, FWD, cutoff=0.0, min_rank=4, max_rank=4
        )
        assert report.kept_rank == 4
        assert report.truncation_error == 0.0
        assert left.shape == (2, 2, 4)
        assert right.shape == (4, 2, 2)

    def test_cutoff_drops_zero_weights(self, theta_rank2):
        _, _, report = factorize_two_site(theta_rank2, FWD, cutoff=1e-14, min_rank=1, max_rank=100)
        assert report.kept_rank == 2

    def test_max_rank_truncates(self, rng):
        theta = jax.random.normal(rng, (4, 2, 2, 4))
        left, right, report = factorize_two_site(theta, BWD, cutoff=0.0, min_rank=1, max_rank=3)
        assert report.kept_rank == 3
        assert report.truncation_error > 0.0
        assert left.shape[2] == right.shape[0] == 3

    def test_eigs_are_normalized_kept_spectrum(self, rng):
        theta = jax.random.normal(rng, (2, 2, 2, 2))
        _, _, report = factorize_two_site(theta, FWD, cutoff=0.0, min_rank=1, max_rank=2)
        assert isinstance(report, TruncationReport)
        assert len(report.eigs) == 2
        assert report.eigs[0] >= report.eigs[1]
        assert float(np.sum(report.eigs)) == pytest.approx(1.0)

    def test_idempotent_redecomposition(self, rng):
        theta = jax.random.normal(rng, (3, 2, 2, 3))
        left, right, first = factorize_two_site(theta, FWD, cutoff=0.0, min_rank=1, max_rank=3)
        truncated = _merge(left, right)
        left2, right2, second = factorize_two_site(
            truncated, FWD, cutoff=0.0, min_rank=1, max_rank=3
        )
        assert second.kept_rank == first.kept_rank
        assert second.truncation_error == pytest.approx(0.0, abs=1e-20)
        np.testing.assert_allclose(_merge(left2, right2), truncated, atol=1e-12)

    @pytest.mark.parametrize("direction", [FWD, BWD])
    def test_noise_without_perturbation_is_plain_svd(self, direction, rng):
        theta = jax.random.normal(rng, (2, 2, 2, 2))
        a = factorize_two_site(theta, direction, cutoff=0.0, min_rank=1, max_rank=8)
        b = factorize_two_site(theta, direction, cutoff=0.0, min_rank=1, max_rank=8, noise=1e-3)
        np.testing.assert_allclose(_merge(a[0], a[1]), _merge(b[0], b[1]), atol=1e-12)

    @pytest.mark.parametrize("direction", [FWD, BWD])
    def test_noisy_factorization(self, direction, rng):
        psi = build_random_mps(4, bond_dim=2, seed=1)
        psi.position(0)
        op = LocalMPO(build_mpo_heisenberg(4))
        op.position(0, psi)
        theta = jnp.einsum("apb,bqc->apqc", psi[0], psi[1])
        theta = theta / jnp.linalg.norm(theta)
        left, right, report = factorize_two_site(
            theta,
            direction,
            cutoff=0.0,
            min_rank=1,
            max_rank=8,
            noise=1e-4,
            perturbation=op.perturbation,
        )
        assert left.shape[2] == right.shape[0] == report.kept_rank
        # untruncated projection reproduces theta
        np.testing.assert_allclose(_merge(left, right), theta, atol=1e-10)
        if direction == FWD:
            M = left.reshape(-1, left.shape[2])
            np.testing.assert_allclose(M.T @ M, jnp.eye(M.shape[1]), atol=1e-10)
        else:
            M = right.reshape(right.shape[0], -1)
            np.testing.assert_allclose(M @ M.T, jnp.eye(M.shape[0]), atol=1e-10)


class TestSvdBond:
    def test_forward_moves_center_right(self):
        psi = build_random_mps(5, bond_dim=3, seed=2)
        psi.position(1)
        theta = jnp.einsum("apb,bqc->apqc", psi[1], psi[2])
        report = svd_bond(psi, 1, theta, FWD, cutoff=0.0, min_rank=1, max_rank=10)
        assert psi.center == 2
        assert psi.spectrum(1) is report
        assert psi.norm() == pytest.approx(1.0)
        assert psi[1].shape[2] == psi[2].shape[0] == report.kept_rank

    def test_backward_moves_center_left(self):
        psi = build_random_mps(5, bond_dim=3, seed=2)
        psi.position(2)
        theta = jnp.einsum("apb,bqc->apqc", psi[2], psi[3])
        svd_bond(psi, 2, theta, BWD, cutoff=0.0, min_rank=1, max_rank=10)
        assert psi.center == 2
        assert psi.norm() == pytest.approx(1.0)

    def test_state_preserved_up_to_norm(self):
        psi = build_random_mps(4, bond_dim=2, seed=4)
        psi.position(0)
        before = np.asarray(psi.to_dense())
        before = before / np.linalg.norm(before)
        theta = jnp.einsum("apb,bqc->apqc", psi[0], psi[1])
        svd_bond(psi, 0, theta, FWD, cutoff=0.0, min_rank=1, max_rank=10)
        after = np.asarray(psi.to_dense())
        np.testing.assert_allclose(after, before, atol=1e-10)

    def test_bond_dimension_consistency(self):
        psi = build_random_mps(6, bond_dim=4, seed=5)
        psi.position(2)
        theta = jnp.einsum("apb,bqc->apqc", psi[2], psi[3])
        svd_bond(psi, 2, theta, FWD, cutoff=0.0, min_rank=1, max_rank=2)
        dims = psi.bond_dims()
        for i in range(len(psi) - 1):
            assert psi[i].shape[2] == psi[i + 1].shape[0] == dims[i]
        assert dims[2] == 2
