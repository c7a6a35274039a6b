"""Two-site tensor factorization and write-back into the MPS.

After the eigensolver returns the optimized two-site tensor
``theta[a, p, q, c]`` of bond ``b``, it is split back into two site tensors.
The isometric factor stays behind and the weights travel with the sweep:

- forward  (center moves to ``b+1``): ``psi[b] = U``,     ``psi[b+1] = S Vh``
- backward (center moves to ``b``):   ``psi[b] = U S``,   ``psi[b+1] = Vh``

Without noise this is a truncated SVD. With noise the reduced density matrix
of the kept side is perturbed by the effective operator's correction term
(White, PRB 72, 180403) and diagonalized instead; the kept eigenvectors give
the isometric factor and the other factor is obtained by projection.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import TYPE_CHECKING, NamedTuple

import jax
import jax.numpy as jnp
import numpy as np

from dmrgjax.algorithms.sweeps import SweepDirection
from dmrgjax.contraction.contractor import truncated_eigh, truncated_svd

if TYPE_CHECKING:
    from dmrgjax.network.mps import MPS


class TruncationReport(NamedTuple):
    """Outcome of one bond truncation.

    Attributes:
        kept_rank:        Bond dimension after truncation.
        truncation_error: Discarded weight relative to the total weight.
        eigs:             Kept density-matrix eigenvalues (normalized squared
                          singular values), in descending order.
    """

    kept_rank: int
    truncation_error: float
    eigs: np.ndarray


Perturbation = Callable[[jax.Array, SweepDirection], jax.Array]


def factorize_two_site(
    theta: jax.Array,
    direction: SweepDirection,
    *,
    cutoff: float,
    min_rank: int,
    max_rank: int,
    noise: float = 0.0,
    perturbation: Perturbation | None = None,
) -> tuple[jax.Array, jax.Array, TruncationReport]:
    """Split a two-site tensor into two truncated site tensors.

    Args:
        theta:        Two-site tensor of shape ``(chi_l, d_l, d_r, chi_r)``.
        direction:    Sweep direction; decides which factor is isometric.
        cutoff:       Largest acceptable discarded weight.
        min_rank:     Lower bound on the kept rank (wins over cutoff).
        max_rank:     Upper bound on the kept rank (wins over cutoff).
        noise:        Amplitude of the density-matrix perturbation.
        perturbation: ``perturbation(theta, direction)`` returning the PSD
                      correction matrix on the kept side; required for noise
                      to have any effect.

    Returns:
        ``(left, right, report)`` with ``left`` of shape ``(chi_l, d_l, k)``
        and ``right`` of shape ``(k, d_r, chi_r)``.
    """
    chi_l, d_l, d_r, chi_r = theta.shape
    M = theta.reshape(chi_l * d_l, d_r * chi_r)
    forward = direction == SweepDirection.FORWARD

    if noise > 0.0 and perturbation is not None:
        if forward:
            rho = M @ M.conj().T
        else:
            rho = M.T @ M.conj()
        rho = rho / jnp.trace(rho).real
        drho = perturbation(theta, direction)
        tr = float(jnp.trace(drho).real)
        if tr > 0.0:
            rho = rho + noise * drho / tr
        V, w, n_keep, err = truncated_eigh(rho, cutoff, min_rank, max_rank)
        if forward:
            U = V
            Vh = U.conj().T @ M
        else:
            # rho = M^T M* has eigenvectors Vh^T
            Vh = V.T
            U = M @ V.conj()
        weights = np.asarray(w)
    else:
        U, s, Vh, n_keep, err = truncated_svd(M, cutoff, min_rank, max_rank)
        if forward:
            Vh = s[:, None] * Vh
        else:
            U = U * s[None, :]
        weights = np.asarray(s) ** 2

    total = float(np.sum(weights))
    eigs = weights / total if total > 0.0 else weights
    left = U.reshape(chi_l, d_l, n_keep)
    right = Vh.reshape(n_keep, d_r, chi_r)
    return left, right, TruncationReport(int(n_keep), float(err), eigs)


def svd_bond(
    psi: MPS,
    b: int,
    theta: jax.Array,
    direction: SweepDirection,
    *,
    cutoff: float,
    min_rank: int,
    max_rank: int,
    noise: float = 0.0,
    local_op=None,
    normalize: bool = True,
) -> TruncationReport:
    """Factorize ``theta`` and commit it to sites ``b`` and ``b+1`` of ``psi``.

    The orthogonality center moves to ``b+1`` for a forward step and to ``b``
    for a backward step; the report is stored as ``psi.spectrum(b)``.

    Args:
        psi:       MPS, modified in place.
        b:         Bond index (left site of the window).
        theta:     Optimized two-site tensor.
        direction: Sweep direction.
        cutoff, min_rank, max_rank: Truncation policy.
        noise:     Density-matrix perturbation amplitude.
        local_op:  Effective operator providing ``perturbation`` for noise.
        normalize: Rescale the new center tensor to unit norm.

    Returns:
        The ``TruncationReport`` of this bond.
    """
    perturbation = local_op.perturbation if local_op is not None else None
    left, right, report = factorize_two_site(
        theta,
        direction,
        cutoff=cutoff,
        min_rank=min_rank,
        max_rank=max_rank,
        noise=noise,
        perturbation=perturbation,
    )

    if normalize:
        if direction == SweepDirection.FORWARD:
            right = right / jnp.linalg.norm(right)
        else:
            left = left / jnp.linalg.norm(left)

    psi[b] = left
    psi[b + 1] = right
    if direction == SweepDirection.FORWARD:
        psi.left_lim = b
        psi.right_lim = b + 2
    else:
        psi.left_lim = b - 1
        psi.right_lim = b + 1
    psi.set_spectrum(b, report)
    return report
