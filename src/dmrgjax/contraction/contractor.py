r"""Dense tensor algebra used by the sweep engine.

Primary API::

    contract(subscripts, \*arrays, optimize="auto") -> jax.Array

Contractions are described with einsum subscripts. The contraction path is
found by opt_einsum and executed with the JAX backend.

Decompositions::

    truncated_svd(matrix, cutoff, min_rank, max_rank) -> (U, s, Vh, n_keep, err)
    truncated_eigh(rho, cutoff, min_rank, max_rank)   -> (V, w, n_keep, err)
    qr_decompose(tensor, n_left) -> (Q, R)
    lq_decompose(tensor, n_left) -> (L, Q)

Rank selection is shared by both truncated decompositions and lives in
``truncation_rank``.
"""

from __future__ import annotations

from collections.abc import Sequence

import jax
import jax.numpy as jnp
import numpy as np
import opt_einsum

# ---------- Contraction ----------


def contract(subscripts: str, *arrays: jax.Array, optimize: str = "auto") -> jax.Array:
    """Contract dense arrays using opt_einsum with the JAX backend.

    Calls ``opt_einsum.contract_path`` first (Python-level, no JAX tracing),
    then executes the contraction with ``backend="jax"``.

    Args:
        subscripts: Einsum subscript string (e.g., ``"ij,jk->ik"``).
        *arrays:    Operands, one per comma-separated term.
        optimize:   opt_einsum optimizer ('auto', 'greedy', 'dp', etc.).

    Returns:
        The contracted array.

    Raises:
        ValueError: If no operands are given.
    """
    if not arrays:
        raise ValueError("contract() requires at least one array")
    _, path_info = opt_einsum.contract_path(subscripts, *arrays, optimize=optimize)
    return opt_einsum.contract(subscripts, *arrays, optimize=path_info.path, backend="jax")


# ---------- Rank selection ----------


def truncation_rank(
    weights: np.ndarray,
    cutoff: float,
    min_rank: int = 1,
    max_rank: int | None = None,
) -> tuple[int, float]:
    """Choose how many of the leading weights to keep.

    ``weights`` are non-negative and sorted in descending order (squared
    singular values or density-matrix eigenvalues). They are normalized by
    their sum; the smallest ``n`` whose discarded weight ``sum(p[n:])`` is
    ``<= cutoff`` is selected and then clamped to ``[min_rank, max_rank]``
    and to ``len(weights)``. The rank bounds take precedence over the
    cutoff, so a conflict between them is never an error.

    Args:
        weights:  1-D array of weights in descending order.
        cutoff:   Largest acceptable discarded weight (relative).
        min_rank: Lower bound on the kept rank.
        max_rank: Upper bound on the kept rank (None = unbounded).

    Returns:
        ``(n_keep, discarded_weight)`` for the final ``n_keep``.
    """
    p = np.clip(np.asarray(weights, dtype=np.float64), 0.0, None)
    n_avail = len(p)
    if n_avail == 0:
        return 0, 0.0
    total = float(np.sum(p))
    if total <= 0.0:
        n_keep = max(1, min(min_rank, n_avail))
        if max_rank is not None:
            n_keep = max(1, min(n_keep, max_rank))
        return n_keep, 0.0

    p = p / total
    # tail[n] = weight discarded when keeping n values
    tail = np.concatenate([np.cumsum(p[::-1])[::-1], [0.0]])
    n_keep = int(np.argmax(tail[1:] <= cutoff)) + 1

    n_keep = max(n_keep, min_rank)
    if max_rank is not None:
        n_keep = min(n_keep, max_rank)
    n_keep = max(1, min(n_keep, n_avail))
    return n_keep, float(tail[n_keep])


# ---------- Truncated decompositions ----------


def truncated_svd(
    matrix: jax.Array,
    cutoff: float = 0.0,
    min_rank: int = 1,
    max_rank: int | None = None,
) -> tuple[jax.Array, jax.Array, jax.Array, int, float]:
    """SVD of a matrix truncated by ``truncation_rank``.

    Note:
        Not JIT-able as a whole because the kept rank depends on the
        singular values (dynamic shape). Call this at Python level.

    Args:
        matrix:   2-D array to decompose.
        cutoff:   Largest acceptable discarded weight.
        min_rank: Lower bound on the kept rank.
        max_rank: Upper bound on the kept rank.

    Returns:
        ``(U, s, Vh, n_keep, discarded_weight)`` with ``U`` of shape
        ``(m, n_keep)``, ``s`` of shape ``(n_keep,)`` and ``Vh`` of shape
        ``(n_keep, n)``.
    """
    U, s, Vh = jnp.linalg.svd(matrix, full_matrices=False)
    s_np = np.asarray(s)
    n_keep, err = truncation_rank(s_np**2, cutoff, min_rank, max_rank)
    return U[:, :n_keep], s[:n_keep], Vh[:n_keep, :], n_keep, err


def truncated_eigh(
    rho: jax.Array,
    cutoff: float = 0.0,
    min_rank: int = 1,
    max_rank: int | None = None,
) -> tuple[jax.Array, jax.Array, int, float]:
    """Eigendecomposition of a Hermitian PSD matrix, leading part only.

    Returns:
        ``(V, w, n_keep, discarded_weight)``: the ``n_keep`` eigenvectors of
        largest eigenvalue as columns of ``V`` and their eigenvalues ``w``,
        both in descending order.
    """
    w, V = jnp.linalg.eigh(rho)
    w = w[::-1]
    V = V[:, ::-1]
    n_keep, err = truncation_rank(np.asarray(w), cutoff, min_rank, max_rank)
    return V[:, :n_keep], w[:n_keep], n_keep, err


# ---------- QR / LQ ----------


def _split_shape(shape: Sequence[int], n_left: int) -> tuple[tuple, tuple, int, int]:
    left_shape = tuple(shape[:n_left])
    right_shape = tuple(shape[n_left:])
    return left_shape, right_shape, int(np.prod(left_shape)), int(np.prod(right_shape))


def qr_decompose(tensor: jax.Array, n_left: int) -> tuple[jax.Array, jax.Array]:
    """QR decomposition grouping the first ``n_left`` axes as rows.

    Returns:
        ``(Q, R)`` with ``Q`` of shape ``left_shape + (k,)`` (isometric,
        ``Q^dag Q = I``) and ``R`` of shape ``(k,) + right_shape``.
    """
    left_shape, right_shape, m, n = _split_shape(tensor.shape, n_left)
    Q, R = jnp.linalg.qr(tensor.reshape(m, n))
    k = Q.shape[1]
    return Q.reshape(left_shape + (k,)), R.reshape((k,) + right_shape)


def lq_decompose(tensor: jax.Array, n_left: int) -> tuple[jax.Array, jax.Array]:
    """LQ decomposition grouping the first ``n_left`` axes as rows.

    Computed as the QR decomposition of the conjugate transpose.

    Returns:
        ``(L, Q)`` with ``L`` of shape ``left_shape + (k,)`` and ``Q`` of
        shape ``(k,) + right_shape`` with orthonormal rows.
    """
    left_shape, right_shape, m, n = _split_shape(tensor.shape, n_left)
    Qt, Rt = jnp.linalg.qr(tensor.reshape(m, n).conj().T)
    k = Qt.shape[1]
    L = Rt.conj().T
    Q = Qt.conj().T
    return L.reshape(left_shape + (k,)), Q.reshape((k,) + right_shape)
