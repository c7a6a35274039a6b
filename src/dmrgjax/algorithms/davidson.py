"""Davidson eigensolver for the lowest eigenpair of an implicit operator.

The effective Hamiltonian of a two-site window is never formed as a matrix;
the solver only needs ``op.apply(x)`` on tensors shaped like the start vector.

Each iteration:

1. apply the operator to the newest basis vector,
2. project the operator into the subspace (``V^dag A V``) and diagonalize the
   small Hermitian matrix with ``jnp.linalg.eigh``,
3. form the Ritz vector ``x`` and residual ``r = A x - lambda x``,
4. stop on ``|r| < err_goal`` or when the iteration budget is spent, else
   orthogonalize ``r`` against the basis (twice, to keep the basis orthonormal
   in finite precision) and append it.

The outer loop is a Python for-loop like the other sweep solvers in this
package: the subspace grows, so shapes change every iteration.
"""

from __future__ import annotations

from typing import Protocol

import jax
import jax.numpy as jnp
import numpy as np

from dmrgjax.errors import DegenerateStartError


class LinearOperator(Protocol):
    def apply(self, x: jax.Array) -> jax.Array: ...


def _orthogonalize(q: jax.Array, basis: jax.Array) -> jax.Array:
    """Remove the components of ``q`` along the rows of ``basis`` (twice)."""
    for _ in range(2):
        q = q - basis.T @ (basis.conj() @ q)
    return q


def davidson(
    op: LinearOperator,
    phi: jax.Array,
    *,
    max_iter: int = 2,
    err_goal: float = 1e-4,
    dim: int | None = None,
    debug_level: int = 0,
) -> tuple[float, jax.Array]:
    """Lowest eigenpair of a Hermitian operator by Davidson iteration.

    Args:
        op:          Object with ``apply(x)`` acting on arrays shaped like phi.
        phi:         Start vector (any shape, need not be normalized).
        max_iter:    Maximum number of Ritz steps (operator applications).
        err_goal:    Residual norm at which the iteration stops.
        dim:         Dimension of the space ``op`` acts on (the largest useful
                     subspace); defaults to ``phi.size``.
        debug_level: ``>= 3`` prints the residual at every iteration.

    Returns:
        ``(eigenvalue, eigenvector)``; the eigenvector is normalized and has
        the shape of ``phi``.

    Raises:
        DegenerateStartError: If ``phi`` has zero norm or non-finite entries.
    """
    shape = phi.shape
    v = phi.ravel()
    nrm = float(jnp.linalg.norm(v))
    if not np.isfinite(nrm) or nrm == 0.0:
        raise DegenerateStartError(f"Davidson start vector has norm {nrm}")
    v = v / nrm
    dim = v.size if dim is None else min(dim, v.size)

    def matvec(x: jax.Array) -> jax.Array:
        return op.apply(x.reshape(shape)).ravel()

    basis = [v]
    images = [matvec(v)]
    eigenvalue = 0.0
    x = v

    for it in range(max(1, max_iter)):
        V = jnp.stack(basis)  # (k, n)
        AV = jnp.stack(images)  # (k, n)
        M = V.conj() @ AV.T
        M = 0.5 * (M + M.conj().T)

        evals, evecs = jnp.linalg.eigh(M)
        coefs = evecs[:, 0]
        eigenvalue = float(evals[0])
        x = coefs @ V
        r = coefs @ AV - eigenvalue * x
        rnorm = float(jnp.linalg.norm(r))

        if debug_level >= 3:
            print(f"    Davidson: iter={it + 1}, q={rnorm:.2E}, E={eigenvalue:.14f}")

        if rnorm < err_goal or len(basis) >= dim or it == max_iter - 1:
            break

        q = _orthogonalize(r, V)
        qnorm = float(jnp.linalg.norm(q))
        if qnorm < 1e-12 * max(1.0, rnorm):
            # subspace is invariant under op: the Ritz pair is exact
            break
        q = q / qnorm
        basis.append(q)
        images.append(matvec(q))

    x = x / jnp.linalg.norm(x)
    return eigenvalue, x.reshape(shape)
