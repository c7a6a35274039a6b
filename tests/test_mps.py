"""Tests for the MPS container and builders."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from dmrgjax.errors import ConfigurationError, NumericalDegeneracyError
from dmrgjax.network.mps import MPS, build_product_mps, build_random_mps, inner


def _is_left_orthogonal(A) -> bool:
    M = A.reshape(-1, A.shape[2])
    return np.allclose(M.conj().T @ M, np.eye(M.shape[1]), atol=1e-10)


def _is_right_orthogonal(B) -> bool:
    M = B.reshape(B.shape[0], -1)
    return np.allclose(M @ M.conj().T, np.eye(M.shape[0]), atol=1e-10)


class TestBuildRandomMPS:
    def test_site_count(self):
        for L in [2, 4, 6]:
            assert len(build_random_mps(L)) == L

    def test_bond_dimensions(self):
        mps = build_random_mps(5, bond_dim=8)
        assert mps.bond_dims() == [8, 8, 8, 8]
        assert mps[0].shape[0] == 1
        assert mps[4].shape[2] == 1

    def test_physical_dimension(self):
        mps = build_random_mps(4, physical_dim=3)
        assert mps.physical_dims == [3, 3, 3, 3]

    def test_seed_is_reproducible(self):
        a = build_random_mps(4, seed=11)
        b = build_random_mps(4, seed=11)
        for i in range(4):
            np.testing.assert_array_equal(a[i], b[i])

    def test_no_orthogonality_claim(self):
        mps = build_random_mps(4)
        assert mps.left_lim == -1
        assert mps.right_lim == 4
        assert not mps.is_ortho


class TestBuildProductMPS:
    def test_dense_state(self):
        mps = build_product_mps([0, 1, 1])
        vec = np.asarray(mps.to_dense())
        expected = np.zeros(8)
        expected[0b011] = 1.0
        np.testing.assert_array_equal(vec, expected)

    def test_is_canonical(self):
        mps = build_product_mps([0, 1, 0, 1])
        assert mps.is_ortho
        assert mps.norm() == pytest.approx(1.0)

    def test_invalid_state_raises(self):
        with pytest.raises(ConfigurationError):
            build_product_mps([0, 2], physical_dim=2)


class TestValidation:
    def test_empty_raises(self):
        with pytest.raises(ConfigurationError):
            MPS([])

    def test_wrong_rank_raises(self):
        with pytest.raises(ConfigurationError, match="3 legs"):
            MPS([jnp.ones((1, 2))])

    def test_bond_mismatch_raises(self):
        with pytest.raises(ConfigurationError, match="mismatch"):
            MPS([jnp.ones((1, 2, 3)), jnp.ones((2, 2, 1))])


class TestGauge:
    def test_position_makes_mixed_canonical(self):
        mps = build_random_mps(6, bond_dim=4, seed=1)
        mps.position(2)
        assert mps.center == 2
        for i in range(2):
            assert _is_left_orthogonal(mps[i])
        for i in range(3, 6):
            assert _is_right_orthogonal(mps[i])

    def test_position_preserves_state(self):
        mps = build_random_mps(5, bond_dim=3, seed=2)
        before = np.asarray(mps.to_dense())
        mps.position(3)
        np.testing.assert_allclose(np.asarray(mps.to_dense()), before, atol=1e-12)
        mps.position(0)
        np.testing.assert_allclose(np.asarray(mps.to_dense()), before, atol=1e-12)

    def test_position_out_of_range(self):
        with pytest.raises(IndexError):
            build_random_mps(3).position(3)

    def test_norm_matches_dense(self):
        mps = build_random_mps(4, bond_dim=3, seed=4)
        expected = float(np.linalg.norm(np.asarray(mps.to_dense())))
        assert mps.norm() == pytest.approx(expected)
        mps.position(1)
        assert mps.norm() == pytest.approx(expected)

    def test_normalize(self):
        mps = build_random_mps(4, bond_dim=3, seed=5)
        mps.position(0)
        old = mps.normalize()
        assert old > 0
        assert mps.norm() == pytest.approx(1.0)
        assert np.linalg.norm(np.asarray(mps.to_dense())) == pytest.approx(1.0)

    def test_normalize_zero_raises(self):
        mps = MPS([jnp.zeros((1, 2, 1)), jnp.zeros((1, 2, 1))])
        with pytest.raises(NumericalDegeneracyError):
            mps.normalize()


class TestInner:
    def test_matches_dense(self):
        a = build_random_mps(4, bond_dim=3, seed=8)
        b = build_random_mps(4, bond_dim=2, seed=9)
        expected = float(np.vdot(np.asarray(a.to_dense()), np.asarray(b.to_dense())))
        assert inner(a, b) == pytest.approx(expected)

    def test_complex(self, rng):
        keys = jax.random.split(rng, 3)
        tensors = [
            jax.random.normal(keys[0], (1, 2, 2)) + 1j * jax.random.normal(keys[1], (1, 2, 2)),
            jax.random.normal(keys[2], (2, 2, 1)) + 0j,
        ]
        psi = MPS(tensors)
        vec = np.asarray(psi.to_dense())
        assert inner(psi, psi) == pytest.approx(np.vdot(vec, vec))

    def test_length_mismatch(self):
        with pytest.raises(ConfigurationError):
            inner(build_random_mps(3), build_random_mps(4))


class TestCopyAndPaging:
    def test_copy_is_independent(self):
        mps = build_random_mps(4, seed=3)
        clone = mps.copy()
        clone[0] = jnp.zeros_like(clone[0])
        assert float(jnp.linalg.norm(mps[0])) > 0

    def test_paging_preserves_tensors(self, tmp_path):
        mps = build_random_mps(4, bond_dim=3, seed=6)
        before = np.asarray(mps.to_dense())
        mps.do_write(True, str(tmp_path))
        assert mps.does_write
        mps.position(2)
        after = np.asarray(mps.to_dense())
        mps.do_write(False)
        assert not mps.does_write
        np.testing.assert_allclose(after, before, atol=1e-12)

    def test_repr(self):
        assert "MPS" in repr(build_random_mps(3))
