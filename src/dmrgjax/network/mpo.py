"""Matrix Product Operator container and builders.

Site tensors are dense JAX arrays with a fixed leg order::

    H[i]: (w_{i-1,i}, d_out, d_in, w_{i,i+1})

``H[i][wl, :, :, wr]`` is an ordinary operator matrix ``<out|O|in>``. The
builders use the lower-triangular W-matrix convention: the left boundary
selects the last row of the bulk W-matrix and the right boundary its first
column, so open chains have boundary MPO bonds of dimension 1.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import jax
import jax.numpy as jnp

from dmrgjax.contraction.contractor import contract
from dmrgjax.errors import ConfigurationError
from dmrgjax.network.storage import TensorStore


class MPO:
    """Finite Matrix Product Operator.

    Args:
        tensors: Site tensors, each of shape ``(w_l, d_out, d_in, w_r)``.
        name:    Optional human-readable name.

    Raises:
        ConfigurationError: If a tensor is not 4-leg or neighbouring MPO bond
                            dimensions disagree.
    """

    def __init__(self, tensors: Sequence[jax.Array], name: str = "MPO") -> None:
        tensors = [jnp.asarray(t) for t in tensors]
        if not tensors:
            raise ConfigurationError("MPO needs at least one site tensor")
        for i, W in enumerate(tensors):
            if W.ndim != 4:
                raise ConfigurationError(
                    f"MPO site {i} must have 4 legs (w_l, d_out, d_in, w_r), got shape {W.shape}"
                )
        for i in range(len(tensors) - 1):
            if tensors[i].shape[3] != tensors[i + 1].shape[0]:
                raise ConfigurationError(
                    f"MPO bond ({i},{i + 1}) dimension mismatch: "
                    f"{tensors[i].shape[3]} != {tensors[i + 1].shape[0]}"
                )
        self.name = name
        self._sites = TensorStore(tensors, prefix="mpo")

    def __len__(self) -> int:
        return len(self._sites)

    def __getitem__(self, i: int) -> jax.Array:
        return self._sites[i]

    def __repr__(self) -> str:
        dims = [int(self[i].shape[3]) for i in range(len(self) - 1)]
        return f"MPO(name={self.name!r}, L={len(self)}, bond_dims={dims})"

    @property
    def physical_dims(self) -> list[int]:
        return [int(self[i].shape[2]) for i in range(len(self))]

    @property
    def does_write(self) -> bool:
        return self._sites.writes

    def do_write(self, flag: bool, write_dir: str = "./") -> None:
        """Toggle paging of the operator tensors to ``write_dir``."""
        if flag:
            self._sites.enable_write(write_dir)
        else:
            self._sites.disable_write()

    def to_dense(self) -> jax.Array:
        """Contract the chain into the full ``(D, D)`` operator matrix.

        Only meaningful for small chains with boundary MPO bonds of
        dimension 1 (exact diagonalization reference in tests).
        """
        T = self[0]
        if T.shape[0] != 1 or self[len(self) - 1].shape[3] != 1:
            raise ConfigurationError("to_dense() requires MPO boundary bonds of dimension 1")
        for i in range(1, len(self)):
            W = self[i]
            T = contract("aoiw,wpqe->aopiqe", T, W)
            a, o, p, i_, q, e = T.shape
            T = T.reshape(a, o * p, i_ * q, e)
        return T[0, :, :, 0]


# ------------------------------------------------------------------ #
# Builders                                                            #
# ------------------------------------------------------------------ #


def _chain_from_bulk(bulk: Sequence[jax.Array], name: str) -> MPO:
    """Cut the lower-triangular bulk W-matrices down to an open chain."""
    L = len(bulk)
    tensors = []
    for i, W in enumerate(bulk):
        D_w = W.shape[0]
        if i == 0:
            W = W[D_w - 1 : D_w, :, :, :]
        if i == L - 1:
            W = W[:, :, :, 0:1]
        tensors.append(W)
    return MPO(tensors, name=name)


def build_mpo_heisenberg(
    L: int,
    Jz: float = 1.0,
    Jxy: float = 1.0,
    hz: float = 0.0,
    dtype: Any = jnp.float64,
) -> MPO:
    """Build the MPO for the spin-1/2 XXZ Heisenberg chain.

    H = Jz * sum_i Sz_i Sz_{i+1} + Jxy/2 * sum_i (S+_i S-_{i+1} + S-_i S+_{i+1})
        + hz * sum_i Sz_i

    Uses the standard 5x5 W-matrix (I, S+, S-, Sz, I boundaries).

    Args:
        L:      Chain length (number of sites).
        Jz:     Ising coupling strength.
        Jxy:    XY coupling strength.
        hz:     Longitudinal magnetic field.
        dtype:  JAX dtype for MPO tensors.

    Returns:
        MPO with boundary bonds of dimension 1 and bulk bond dimension 5.
    """
    d = 2
    Sp = jnp.array([[0, 1], [0, 0]], dtype=dtype)  # S+ = |up><down|
    Sm = jnp.array([[0, 0], [1, 0]], dtype=dtype)  # S- = |down><up|
    Sz = 0.5 * jnp.array([[1, 0], [0, -1]], dtype=dtype)
    I2 = jnp.eye(d, dtype=dtype)

    # W = [[I,    0,        0,        0,     0],
    #      [S+,   0,        0,        0,     0],
    #      [S-,   0,        0,        0,     0],
    #      [Sz,   0,        0,        0,     0],
    #      [h*Sz, Jxy/2*S-, Jxy/2*S+, Jz*Sz, I]]
    D_w = 5
    W = jnp.zeros((D_w, d, d, D_w), dtype=dtype)
    W = W.at[0, :, :, 0].set(I2)
    W = W.at[1, :, :, 0].set(Sp)
    W = W.at[2, :, :, 0].set(Sm)
    W = W.at[3, :, :, 0].set(Sz)
    W = W.at[4, :, :, 0].set(hz * Sz)
    W = W.at[4, :, :, 1].set((Jxy / 2) * Sm)
    W = W.at[4, :, :, 2].set((Jxy / 2) * Sp)
    W = W.at[4, :, :, 3].set(Jz * Sz)
    W = W.at[4, :, :, 4].set(I2)

    return _chain_from_bulk([W] * L, name=f"Heisenberg_MPO_L{L}")


def build_mpo_transverse_ising(
    L: int,
    J: float = 1.0,
    h: float = 1.0,
    dtype: Any = jnp.float64,
) -> MPO:
    """Build the MPO for H = -J sum_i X_i X_{i+1} - h sum_i Z_i (Pauli matrices)."""
    d = 2
    X = jnp.array([[0, 1], [1, 0]], dtype=dtype)
    Z = jnp.array([[1, 0], [0, -1]], dtype=dtype)
    I2 = jnp.eye(d, dtype=dtype)

    D_w = 3
    W = jnp.zeros((D_w, d, d, D_w), dtype=dtype)
    W = W.at[0, :, :, 0].set(I2)
    W = W.at[1, :, :, 0].set(X)
    W = W.at[2, :, :, 0].set(-h * Z)
    W = W.at[2, :, :, 1].set(-J * X)
    W = W.at[2, :, :, 2].set(I2)

    return _chain_from_bulk([W] * L, name=f"TFIM_MPO_L{L}")


def build_mpo_onsite(ops: Sequence[jax.Array], dtype: Any = None) -> MPO:
    """Build the MPO of a sum of on-site operators, H = sum_i O_i.

    Bond dimension 2: ``W_i = [[I, 0], [O_i, I]]``.

    Args:
        ops:   One ``(d_i, d_i)`` matrix per site.
        dtype: Data type (default: promoted dtype of ``ops``).
    """
    ops = [jnp.asarray(op) for op in ops]
    if not ops:
        raise ConfigurationError("build_mpo_onsite needs at least one operator")
    if dtype is None:
        dtype = jnp.result_type(*ops)
    bulk = []
    for op in ops:
        d = op.shape[0]
        W = jnp.zeros((2, d, d, 2), dtype=dtype)
        W = W.at[0, :, :, 0].set(jnp.eye(d, dtype=dtype))
        W = W.at[1, :, :, 0].set(op.astype(dtype))
        W = W.at[1, :, :, 1].set(jnp.eye(d, dtype=dtype))
        bulk.append(W)
    return _chain_from_bulk(bulk, name=f"onsite_MPO_L{len(ops)}")
