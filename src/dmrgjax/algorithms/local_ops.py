"""Effective (local) operators of a two-site window.

Three interchangeable implementations of the ``EffectiveOperator`` protocol:

- ``LocalMPO``:          a single MPO, ``H_eff = L . W_b . W_{b+1} . R``
- ``LocalMPOSet``:       a lazily summed list of MPOs (never added together)
- ``LocalMPOProjected``: an MPO plus penalty projectors onto reference states,
                         ``H_eff + w * sum_i |v_i><v_i|``

Environment conventions::

    operator environment L[k]: (ket, mpo, bra), contraction of sites 0 .. k-1
    operator environment R[k]: (ket, mpo, bra), contraction of sites k .. N-1
    overlap  environment L[k]: (ref, bra),      <psi|phi> over sites 0 .. k-1
    overlap  environment R[k]: (ref, bra),      <psi|phi> over sites k .. N-1

Window ``{b, b+1}`` needs ``L[b]`` and ``R[b+2]``. Environments are updated
incrementally as the window moves: moving by one bond costs one environment
update, and only the first ``position`` after construction or ``reset``
builds them from the boundaries.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

import jax
import jax.numpy as jnp

from dmrgjax.algorithms.sweeps import SweepDirection
from dmrgjax.contraction.contractor import contract
from dmrgjax.errors import ConfigurationError
from dmrgjax.network.mpo import MPO
from dmrgjax.network.mps import MPS
from dmrgjax.network.storage import TensorStore


@runtime_checkable
class EffectiveOperator(Protocol):
    """What the sweep engine needs from an effective operator."""

    @property
    def n_sites(self) -> int: ...

    @property
    def size(self) -> int:
        """Dimension of the two-site space of the current window (0 before ``position``)."""
        ...

    @property
    def does_write(self) -> bool: ...

    def check(self, psi: MPS) -> None:
        """Raise ``ConfigurationError`` if ``psi`` cannot be used. Modifies nothing."""
        ...

    def position(self, b: int, psi: MPS) -> None: ...

    def apply(self, theta: jax.Array) -> jax.Array: ...

    def perturbation(self, theta: jax.Array, direction: SweepDirection) -> jax.Array: ...

    def reset(self) -> None: ...

    def do_write(self, flag: bool, write_dir: str = "./") -> None: ...


# ------------------------------------------------------------------ #
# Environment bookkeeping                                             #
# ------------------------------------------------------------------ #

EnvUpdate = Callable[[jax.Array, int, MPS], jax.Array]


class _EnvironmentCache:
    """Left/right environment blocks kept valid around a moving window.

    ``left_lim`` is the largest k with a valid ``L[k]``; ``right_lim`` the
    smallest k with a valid ``R[k]``. ``window`` is the bond the blocks were
    last positioned for (None before the first ``position``).
    """

    def __init__(
        self,
        n_sites: int,
        update_left: EnvUpdate,
        update_right: EnvUpdate,
        left_boundary: Callable[[MPS], jax.Array],
        right_boundary: Callable[[MPS], jax.Array],
        prefix: str,
    ) -> None:
        self.n_sites = n_sites
        self._update_left = update_left
        self._update_right = update_right
        self._left_boundary = left_boundary
        self._right_boundary = right_boundary
        self._left = TensorStore([None] * (n_sites + 1), prefix=f"{prefix}_L")
        self._right = TensorStore([None] * (n_sites + 1), prefix=f"{prefix}_R")
        self.left_lim = -1
        self.right_lim = n_sites + 1
        self.window: int | None = None
        self.updates = 0

    def reset(self) -> None:
        self._left.clear()
        self._right.clear()
        self.left_lim = -1
        self.right_lim = self.n_sites + 1
        self.window = None

    def check(self, psi: MPS) -> None:
        """Validate the chain length and build both boundaries without storing them."""
        if len(psi) != self.n_sites:
            raise ConfigurationError(f"MPS has {len(psi)} sites, operator has {self.n_sites}")
        self._left_boundary(psi)
        self._right_boundary(psi)

    def position(self, b: int, psi: MPS) -> None:
        N = self.n_sites
        if len(psi) != N:
            raise ConfigurationError(f"MPS has {len(psi)} sites, operator has {N}")
        if not 0 <= b <= N - 2:
            raise IndexError(f"bond {b} out of range for {N} sites")
        assert self.window is None or abs(b - self.window) <= 1, (
            f"environments valid for bond {self.window} cannot jump to bond {b}"
        )

        if self.left_lim < 0:
            self._left[0] = self._left_boundary(psi)
            self.left_lim = 0
        if self.right_lim > N:
            self._right[N] = self._right_boundary(psi)
            self.right_lim = N

        while self.left_lim < b:
            k = self.left_lim
            self._left[k + 1] = self._update_left(self._left[k], k, psi)
            self.left_lim = k + 1
            self.updates += 1
        self.left_lim = b

        while self.right_lim > b + 2:
            k = self.right_lim
            self._right[k - 1] = self._update_right(self._right[k], k - 1, psi)
            self.right_lim = k - 1
            self.updates += 1
        self.right_lim = b + 2

        self.window = b

    def left(self, b: int) -> jax.Array:
        return self._left[b]

    def right(self, k: int) -> jax.Array:
        return self._right[k]

    @property
    def does_write(self) -> bool:
        return self._left.writes

    def do_write(self, flag: bool, write_dir: str = "./") -> None:
        for store in (self._left, self._right):
            if flag:
                store.enable_write(write_dir)
            else:
                store.disable_write()


def _check_physical_dims(psi: MPS, H: MPO) -> None:
    for i in range(len(H)):
        d = int(psi[i].shape[1])
        d_out, d_in = int(H[i].shape[1]), int(H[i].shape[2])
        if d != d_in or d != d_out:
            raise ConfigurationError(
                f"site {i}: MPS physical dimension {d} does not match the MPO's ({d_out}, {d_in})"
            )


def _identity_boundary(chi: int, w: int, dtype, side: str, given: jax.Array | None) -> jax.Array:
    if given is not None:
        given = jnp.asarray(given)
        if given.shape != (chi, w, chi):
            raise ConfigurationError(
                f"{side} boundary must have shape {(chi, w, chi)}, got {given.shape}"
            )
        return given
    if w != 1:
        raise ConfigurationError(
            f"MPO {side} boundary bond has dimension {w}; a {side}_boundary tensor is required"
        )
    return jnp.eye(chi, dtype=dtype)[:, None, :]


# ------------------------------------------------------------------ #
# Dense kernels                                                       #
# ------------------------------------------------------------------ #


def _update_left_env(L: jax.Array, A: jax.Array, W: jax.Array) -> jax.Array:
    """new_L[d, e, f] = L[a, b, c] A[a, p, d] W[b, x, p, e] A*[c, x, f]"""
    return contract("abc,apd,bxpe,cxf->def", L, A, W, jnp.conj(A))


def _update_right_env(R: jax.Array, B: jax.Array, W: jax.Array) -> jax.Array:
    """new_R[d, e, f] = R[a, b, c] B[d, p, a] W[e, x, p, b] B*[f, x, c]"""
    return contract("abc,dpa,expb,fxc->def", R, B, W, jnp.conj(B))


def _two_site_matvec(
    theta: jax.Array,
    L_env: jax.Array,
    W_l: jax.Array,
    W_r: jax.Array,
    R_env: jax.Array,
) -> jax.Array:
    """Apply H_eff = L * W_l * W_r * R to a two-site tensor.

    Indices:
        a, c = left bond (ket, bra)      p, s = left physical (in, out)
        b    = left MPO bond             q, t = right physical (in, out)
        e    = middle MPO bond           d, g = right bond (ket, bra)
        f    = right MPO bond
    """
    return jnp.einsum(
        "abc,apqd,bspe,etqf,dfg->cstg",
        L_env,
        theta,
        W_l,
        W_r,
        R_env,
    )


_matvec_jit = jax.jit(_two_site_matvec)


# ------------------------------------------------------------------ #
# Single MPO                                                          #
# ------------------------------------------------------------------ #


class LocalMPO:
    """Effective operator of a single MPO on the current two-site window.

    Args:
        H:              The MPO.
        left_boundary:  Optional ``(chi_l0, w_l0, chi_l0)`` left terminator.
        right_boundary: Optional ``(chi_rN, w_rN, chi_rN)`` right terminator.
    """

    def __init__(
        self,
        H: MPO,
        left_boundary: jax.Array | None = None,
        right_boundary: jax.Array | None = None,
    ) -> None:
        self.H = H
        self._envs = _EnvironmentCache(
            len(H),
            update_left=lambda L, k, psi: _update_left_env(L, psi[k], self.H[k]),
            update_right=lambda R, k, psi: _update_right_env(R, psi[k], self.H[k]),
            left_boundary=lambda psi: _identity_boundary(
                psi[0].shape[0], self.H[0].shape[0], psi.dtype, "left", left_boundary
            ),
            right_boundary=lambda psi: _identity_boundary(
                psi[len(psi) - 1].shape[2], self.H[len(self.H) - 1].shape[3],
                psi.dtype, "right", right_boundary,
            ),
            prefix="env",
        )
        self._b: int | None = None
        self._L: jax.Array | None = None
        self._R: jax.Array | None = None

    @property
    def n_sites(self) -> int:
        return len(self.H)

    @property
    def window(self) -> int | None:
        """Bond the environments are valid for."""
        return self._envs.window

    @property
    def env_updates(self) -> int:
        """Number of incremental environment updates performed so far."""
        return self._envs.updates

    def check(self, psi: MPS) -> None:
        self._envs.check(psi)
        _check_physical_dims(psi, self.H)

    @property
    def size(self) -> int:
        if self._b is None:
            return 0
        b = self._b
        return (
            self._L.shape[0] * self.H[b].shape[2] * self.H[b + 1].shape[2] * self._R.shape[0]
        )

    def position(self, b: int, psi: MPS) -> None:
        self._envs.position(b, psi)
        self._b = b
        self._L = self._envs.left(b)
        self._R = self._envs.right(b + 2)

    def _operands(self) -> tuple[jax.Array, jax.Array, jax.Array, jax.Array]:
        if self._b is None:
            raise RuntimeError("position() must be called before apply()")
        return self._L, self.H[self._b], self.H[self._b + 1], self._R

    def apply(self, theta: jax.Array) -> jax.Array:
        L, W_l, W_r, R = self._operands()
        return _matvec_jit(theta, L, W_l, W_r, R)

    def perturbation(self, theta: jax.Array, direction: SweepDirection) -> jax.Array:
        """Density-matrix correction ``sum_w (H_w theta)(H_w theta)^dag``.

        Forward: reduced on the left index ``(bra bond, out physical)``;
        backward: reduced on the right index ``(out physical, bra bond)``.
        """
        L, W_l, W_r, R = self._operands()
        if direction == SweepDirection.FORWARD:
            X = contract("abc,apqd,bspe->csqde", L, theta, W_l)
            n = X.shape[0] * X.shape[1]
            X = X.reshape(n, -1)
        else:
            X = contract("apqd,etqf,dfg->tgape", theta, W_r, R)
            n = X.shape[0] * X.shape[1]
            X = X.reshape(n, -1)
        return X @ X.conj().T

    def reset(self) -> None:
        self._envs.reset()
        self._b = self._L = self._R = None

    @property
    def does_write(self) -> bool:
        return self._envs.does_write

    def do_write(self, flag: bool, write_dir: str = "./") -> None:
        self._envs.do_write(flag, write_dir)
        if flag != self.H.does_write:
            self.H.do_write(flag, write_dir)


# ------------------------------------------------------------------ #
# Lazily summed MPOs                                                  #
# ------------------------------------------------------------------ #


class LocalMPOSet:
    """Effective operator of ``H_0 + H_1 + ...`` without summing the MPOs.

    Args:
        Hs:               Non-empty sequence of MPOs of equal length.
        left_boundaries:  Optional per-MPO left terminators.
        right_boundaries: Optional per-MPO right terminators.

    Raises:
        ConfigurationError: If ``Hs`` is empty or lengths differ.
    """

    def __init__(
        self,
        Hs: Sequence[MPO],
        left_boundaries: Sequence[jax.Array | None] | None = None,
        right_boundaries: Sequence[jax.Array | None] | None = None,
    ) -> None:
        Hs = list(Hs)
        if not Hs:
            raise ConfigurationError("LocalMPOSet needs at least one MPO")
        lengths = {len(H) for H in Hs}
        if len(lengths) != 1:
            raise ConfigurationError(f"MPOs in a set must have equal lengths, got {sorted(lengths)}")
        lb = list(left_boundaries) if left_boundaries is not None else [None] * len(Hs)
        rb = list(right_boundaries) if right_boundaries is not None else [None] * len(Hs)
        if len(lb) != len(Hs) or len(rb) != len(Hs):
            raise ConfigurationError("one boundary tensor (or None) per MPO is required")
        self._ops = [LocalMPO(H, l, r) for H, l, r in zip(Hs, lb, rb)]

    def __len__(self) -> int:
        return len(self._ops)

    @property
    def n_sites(self) -> int:
        return self._ops[0].n_sites

    @property
    def size(self) -> int:
        return self._ops[0].size

    @property
    def window(self) -> int | None:
        return self._ops[0].window

    def check(self, psi: MPS) -> None:
        for op in self._ops:
            op.check(psi)

    def position(self, b: int, psi: MPS) -> None:
        for op in self._ops:
            op.position(b, psi)

    def apply(self, theta: jax.Array) -> jax.Array:
        result = self._ops[0].apply(theta)
        for op in self._ops[1:]:
            result = result + op.apply(theta)
        return result

    def perturbation(self, theta: jax.Array, direction: SweepDirection) -> jax.Array:
        drho = self._ops[0].perturbation(theta, direction)
        for op in self._ops[1:]:
            drho = drho + op.perturbation(theta, direction)
        return drho

    def reset(self) -> None:
        for op in self._ops:
            op.reset()

    @property
    def does_write(self) -> bool:
        return self._ops[0].does_write

    def do_write(self, flag: bool, write_dir: str = "./") -> None:
        for op in self._ops:
            op.do_write(flag, write_dir)


# ------------------------------------------------------------------ #
# MPO plus penalty projectors                                         #
# ------------------------------------------------------------------ #


def _update_left_overlap(E: jax.Array, ref: jax.Array, A: jax.Array) -> jax.Array:
    """new_E[c, f] = E[a, e] ref[a, p, c] A*[e, p, f]"""
    return contract("ae,apc,epf->cf", E, ref, jnp.conj(A))


def _update_right_overlap(E: jax.Array, ref: jax.Array, B: jax.Array) -> jax.Array:
    """new_E[d, f] = E[a, e] ref[d, p, a] B*[f, p, e]"""
    return contract("ae,dpa,fpe->df", E, ref, jnp.conj(B))


def _overlap_boundary(chi_ref: int, chi_psi: int, dtype) -> jax.Array:
    if chi_ref != chi_psi:
        raise ConfigurationError(
            f"reference boundary bond ({chi_ref}) does not match the state's ({chi_psi})"
        )
    return jnp.eye(chi_ref, dtype=dtype)


class LocalMPOProjected:
    """Effective operator of ``H + w * sum_i |phi_i><phi_i|``.

    Used to target the lowest state orthogonal to the references ``phi_i``
    (excited states): with a weight larger than the gap, the optimized state
    is pushed out of the span of the references.

    Args:
        H:              The MPO.
        references:     Reference MPS, each with as many sites as ``H``.
        weight:         Penalty weight ``w > 0``.
        left_boundary:  Optional left terminator for ``H``.
        right_boundary: Optional right terminator for ``H``.

    Raises:
        ConfigurationError: If ``weight`` is missing or not positive, or a
                            reference has the wrong length.
    """

    def __init__(
        self,
        H: MPO,
        references: Sequence[MPS],
        weight: float | None,
        left_boundary: jax.Array | None = None,
        right_boundary: jax.Array | None = None,
    ) -> None:
        if weight is None:
            raise ConfigurationError("a penalty weight is required when reference states are given")
        if not weight > 0:
            raise ConfigurationError(f"penalty weight must be positive, got {weight}")
        references = list(references)
        for i, ref in enumerate(references):
            if len(ref) != len(H):
                raise ConfigurationError(
                    f"reference {i} has {len(ref)} sites, operator has {len(H)}"
                )
        self.weight = float(weight)
        self.references = references
        self._op = LocalMPO(H, left_boundary, right_boundary)
        self._overlaps = [self._make_overlap(ref, i) for i, ref in enumerate(references)]
        self._vectors: list[jax.Array] = []

    @staticmethod
    def _make_overlap(ref: MPS, i: int) -> _EnvironmentCache:
        return _EnvironmentCache(
            len(ref),
            update_left=lambda E, k, psi: _update_left_overlap(E, ref[k], psi[k]),
            update_right=lambda E, k, psi: _update_right_overlap(E, ref[k], psi[k]),
            left_boundary=lambda psi: _overlap_boundary(
                ref[0].shape[0], psi[0].shape[0], psi.dtype
            ),
            right_boundary=lambda psi: _overlap_boundary(
                ref[len(ref) - 1].shape[2], psi[len(psi) - 1].shape[2], psi.dtype
            ),
            prefix=f"ovl{i}",
        )

    @property
    def n_sites(self) -> int:
        return self._op.n_sites

    @property
    def size(self) -> int:
        return self._op.size

    @property
    def window(self) -> int | None:
        return self._op.window

    def check(self, psi: MPS) -> None:
        self._op.check(psi)
        for i, (ref, envs) in enumerate(zip(self.references, self._overlaps)):
            if ref.physical_dims != psi.physical_dims:
                raise ConfigurationError(
                    f"reference {i} has physical dimensions {ref.physical_dims}, "
                    f"the state has {psi.physical_dims}"
                )
            envs.check(psi)

    def position(self, b: int, psi: MPS) -> None:
        self._op.position(b, psi)
        self._vectors = []
        for ref, envs in zip(self.references, self._overlaps):
            envs.position(b, psi)
            # the reference projected onto the window basis, recomputed per window
            v = contract(
                "ae,apx,xqc,cf->epqf",
                envs.left(b),
                ref[b],
                ref[b + 1],
                envs.right(b + 2),
            )
            self._vectors.append(v)

    def apply(self, theta: jax.Array) -> jax.Array:
        result = self._op.apply(theta)
        for v in self._vectors:
            result = result + self.weight * jnp.vdot(v, theta) * v
        return result

    def perturbation(self, theta: jax.Array, direction: SweepDirection) -> jax.Array:
        return self._op.perturbation(theta, direction)

    def reset(self) -> None:
        self._op.reset()
        for envs in self._overlaps:
            envs.reset()
        self._vectors = []

    @property
    def does_write(self) -> bool:
        return self._op.does_write

    def do_write(self, flag: bool, write_dir: str = "./") -> None:
        self._op.do_write(flag, write_dir)
        for envs in self._overlaps:
            envs.do_write(flag, write_dir)
        for ref in self.references:
            if flag != ref.does_write:
                ref.do_write(flag, write_dir)
