"""Shared fixtures for the DMRG-Jax test suite."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from dmrgjax.algorithms.sweeps import Sweeps
from dmrgjax.network.mpo import build_mpo_heisenberg
from dmrgjax.network.mps import build_random_mps

# ------------------------------------------------------------------ #
# Random key fixtures                                                  #
# ------------------------------------------------------------------ #


@pytest.fixture
def rng():
    return jax.random.PRNGKey(42)


@pytest.fixture
def rng2():
    return jax.random.PRNGKey(99)


# ------------------------------------------------------------------ #
# Exact diagonalization helpers                                        #
# ------------------------------------------------------------------ #


def heisenberg_matrix(L: int, Jz: float = 1.0, Jxy: float = 1.0, hz: float = 0.0) -> np.ndarray:
    """Build the L-site XXZ Hamiltonian matrix (OBC) using Kronecker products.

    H = Jz * sum_i Sz_i Sz_{i+1} + Jxy/2 * sum_i (S+_i S-_{i+1} + S-_i S+_{i+1})
        + hz * sum_i Sz_i

    Site 0 is the most significant factor, matching ``MPS.to_dense``.
    """
    Sz = np.array([[0.5, 0.0], [0.0, -0.5]])
    Sp = np.array([[0.0, 1.0], [0.0, 0.0]])
    Sm = np.array([[0.0, 0.0], [1.0, 0.0]])
    I2 = np.eye(2)

    def kron_product(ops: list) -> np.ndarray:
        result = ops[0]
        for op in ops[1:]:
            result = np.kron(result, op)
        return result

    def placed(at: dict) -> np.ndarray:
        ops = [I2] * L
        for i, op in at.items():
            ops[i] = op
        return kron_product(ops)

    dim = 2**L
    H = np.zeros((dim, dim))
    for i in range(L - 1):
        H += Jz * placed({i: Sz, i + 1: Sz})
        H += (Jxy / 2) * placed({i: Sp, i + 1: Sm})
        H += (Jxy / 2) * placed({i: Sm, i + 1: Sp})
    for i in range(L):
        H += hz * placed({i: Sz})
    return H


@pytest.fixture
def heisenberg_ed():
    """``heisenberg_ed(L, **couplings) -> ascending eigenvalues``."""

    def _eigs(L: int, **couplings) -> np.ndarray:
        return np.linalg.eigvalsh(heisenberg_matrix(L, **couplings))

    return _eigs


# ------------------------------------------------------------------ #
# Chain fixtures                                                       #
# ------------------------------------------------------------------ #


@pytest.fixture
def heisenberg_l4():
    return build_mpo_heisenberg(4)


@pytest.fixture
def heisenberg_l6():
    return build_mpo_heisenberg(6)


@pytest.fixture
def random_mps_l4():
    return build_random_mps(4, physical_dim=2, bond_dim=4, seed=7)


@pytest.fixture
def random_mps_l6():
    return build_random_mps(6, physical_dim=2, bond_dim=4, seed=3)


@pytest.fixture
def exact_sweeps():
    """Schedule that is exact for chains of up to 8 spin-1/2 sites."""
    return Sweeps(6, max_rank=16, cutoff=1e-14, max_iter=4)


@pytest.fixture
def theta_rank2():
    """A (2, 2, 2, 2) two-site tensor whose (4, 4) matricization has rank 2."""
    a = jnp.array([1.0, 0.5, -0.3, 0.2])
    b = jnp.array([0.4, -1.0, 0.1, 0.7])
    c = jnp.array([0.0, 0.3, 0.9, -0.2])
    d = jnp.array([0.6, 0.0, -0.5, 1.0])
    M = jnp.outer(a, b) + 0.5 * jnp.outer(c, d)
    return M.reshape(2, 2, 2, 2)
