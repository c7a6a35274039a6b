"""Matrix Product State container.

Site tensors are dense JAX arrays with a fixed leg order::

    psi[i]: (chi_{i-1,i}, d_i, chi_{i,i+1})

Open chains carry boundary bonds of dimension 1 at both ends; a chain cut out
of a larger system may carry wider boundary bonds (see the ``left_boundary``
and ``right_boundary`` arguments of ``dmrg``).

The MPS tracks its orthogonality limits the usual way:

- ``left_lim``:  sites ``0 .. left_lim`` are left-orthogonal
                 (``sum_{a,p} conj(A[a,p,c]) A[a,p,c'] = delta``),
- ``right_lim``: sites ``right_lim .. N-1`` are right-orthogonal.

When ``right_lim - left_lim == 2`` the state is in mixed canonical form with
its orthogonality center at ``left_lim + 1``. A freshly built MPS makes no
orthogonality claim (``left_lim = -1``, ``right_lim = N``).
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import jax
import jax.numpy as jnp
import numpy as np

from dmrgjax.contraction.contractor import contract, lq_decompose, qr_decompose
from dmrgjax.errors import ConfigurationError, NumericalDegeneracyError
from dmrgjax.network.storage import TensorStore

if TYPE_CHECKING:
    from dmrgjax.algorithms.bond_update import TruncationReport


class MPS:
    """Finite Matrix Product State.

    Args:
        tensors: Site tensors, each of shape ``(chi_l, d, chi_r)``.
        name:    Optional human-readable name.

    Raises:
        ConfigurationError: If a tensor is not 3-leg or neighbouring bond
                            dimensions disagree.
    """

    def __init__(self, tensors: Sequence[jax.Array], name: str = "MPS") -> None:
        tensors = [jnp.asarray(t) for t in tensors]
        if not tensors:
            raise ConfigurationError("MPS needs at least one site tensor")
        for i, t in enumerate(tensors):
            if t.ndim != 3:
                raise ConfigurationError(
                    f"MPS site {i} must have 3 legs (chi_l, d, chi_r), got shape {t.shape}"
                )
        for i in range(len(tensors) - 1):
            if tensors[i].shape[2] != tensors[i + 1].shape[0]:
                raise ConfigurationError(
                    f"Bond ({i},{i + 1}) dimension mismatch: "
                    f"{tensors[i].shape[2]} != {tensors[i + 1].shape[0]}"
                )
        self.name = name
        self._sites = TensorStore(tensors, prefix="mps")
        self.left_lim = -1
        self.right_lim = len(tensors)
        self._spectra: dict[int, TruncationReport] = {}

    # ------------------------------------------------------------------ #
    # Site access                                                         #
    # ------------------------------------------------------------------ #

    def __len__(self) -> int:
        return len(self._sites)

    def __getitem__(self, i: int) -> jax.Array:
        return self._sites[i]

    def __setitem__(self, i: int, tensor: jax.Array) -> None:
        """Replace a site tensor.

        The orthogonality limits are not touched; callers that write a
        non-orthogonal tensor are responsible for updating them.
        """
        self._sites[i] = jnp.asarray(tensor)

    def __repr__(self) -> str:
        return (
            f"MPS(name={self.name!r}, L={len(self)}, bond_dims={self.bond_dims()}, "
            f"left_lim={self.left_lim}, right_lim={self.right_lim})"
        )

    @property
    def physical_dims(self) -> list[int]:
        return [int(self[i].shape[1]) for i in range(len(self))]

    @property
    def dtype(self) -> Any:
        return self[0].dtype

    def bond_dims(self) -> list[int]:
        """Dimensions of the internal bonds ``(0,1) .. (N-2,N-1)``."""
        return [int(self[i].shape[2]) for i in range(len(self) - 1)]

    def max_bond_dim(self) -> int:
        dims = self.bond_dims()
        return max(dims) if dims else 1

    @property
    def is_ortho(self) -> bool:
        """True when the state has a single orthogonality center."""
        return self.right_lim - self.left_lim == 2

    @property
    def center(self) -> int | None:
        """Index of the orthogonality center, or None outside canonical form."""
        return self.left_lim + 1 if self.is_ortho else None

    def copy(self) -> MPS:
        """Return an in-memory copy sharing no mutable state with this MPS."""
        out = MPS([self[i] for i in range(len(self))], name=self.name)
        out.left_lim = self.left_lim
        out.right_lim = self.right_lim
        out._spectra = dict(self._spectra)
        return out

    # ------------------------------------------------------------------ #
    # Truncation spectra                                                  #
    # ------------------------------------------------------------------ #

    def spectrum(self, b: int) -> TruncationReport | None:
        """The report of the last truncation performed on bond ``b``."""
        return self._spectra.get(b)

    def set_spectrum(self, b: int, report: TruncationReport) -> None:
        self._spectra[b] = report

    # ------------------------------------------------------------------ #
    # Paging                                                              #
    # ------------------------------------------------------------------ #

    @property
    def does_write(self) -> bool:
        return self._sites.writes

    def do_write(self, flag: bool, write_dir: str = "./") -> None:
        """Toggle paging of the site tensors to ``write_dir``."""
        if flag:
            self._sites.enable_write(write_dir)
        else:
            self._sites.disable_write()

    # ------------------------------------------------------------------ #
    # Gauge                                                               #
    # ------------------------------------------------------------------ #

    def _shift_center_right(self, k: int) -> None:
        """Make site ``k`` left-orthogonal, pushing R into site ``k+1``."""
        Q, R = qr_decompose(self[k], n_left=2)
        self[k] = Q
        self[k + 1] = contract("ab,bpc->apc", R, self[k + 1])
        self.left_lim = k
        self.right_lim = max(self.right_lim, k + 2)

    def _shift_center_left(self, k: int) -> None:
        """Make site ``k`` right-orthogonal, pushing L into site ``k-1``."""
        L, Q = lq_decompose(self[k], n_left=1)
        self[k] = Q
        self[k - 1] = contract("apb,bc->apc", self[k - 1], L)
        self.right_lim = k
        self.left_lim = min(self.left_lim, k - 2)

    def position(self, i: int) -> None:
        """Move the orthogonality center to site ``i``.

        Only the sites between the current limits and ``i`` are touched, so
        moving an already canonical state by one site costs one QR.
        """
        if not 0 <= i < len(self):
            raise IndexError(f"position {i} out of range for MPS of length {len(self)}")
        while self.left_lim < i - 1:
            self._shift_center_right(self.left_lim + 1)
        while self.right_lim > i + 1:
            self._shift_center_left(self.right_lim - 1)

    def norm(self) -> float:
        """Norm of the state. Cheap (one site) when in canonical form."""
        if self.is_ortho:
            return float(jnp.linalg.norm(self[self.left_lim + 1]))
        return float(np.sqrt(abs(inner(self, self))))

    def normalize(self) -> float:
        """Scale the state to unit norm and return the previous norm.

        Raises:
            NumericalDegeneracyError: If the state has zero norm.
        """
        nrm = self.norm()
        if not np.isfinite(nrm) or nrm == 0.0:
            raise NumericalDegeneracyError(f"cannot normalize MPS with norm {nrm}")
        site = self.left_lim + 1 if self.is_ortho else 0
        self[site] = self[site] / nrm
        return nrm

    # ------------------------------------------------------------------ #
    # Dense export (small systems)                                        #
    # ------------------------------------------------------------------ #

    def to_dense(self) -> jax.Array:
        """Contract the chain into a full state vector.

        Returns a 1-D array of length ``prod(d_i)`` (site 0 most significant)
        when both boundary bonds have dimension 1, otherwise the array of
        shape ``(chi_left, prod(d_i), chi_right)``.
        """
        T = self[0]
        for i in range(1, len(self)):
            A = self[i]
            T = contract("asb,btc->astc", T, A)
            T = T.reshape(T.shape[0], T.shape[1] * T.shape[2], T.shape[3])
        if T.shape[0] == 1 and T.shape[2] == 1:
            return T.reshape(-1)
        return T


def inner(phi: MPS, psi: MPS) -> complex | float:
    """Overlap ``<phi|psi>`` by a left-to-right transfer contraction.

    Boundary bonds of both states are traced together, so both chains must
    share their boundary bond dimensions.
    """
    if len(phi) != len(psi):
        raise ConfigurationError(f"length mismatch: {len(phi)} != {len(psi)}")
    E = jnp.eye(phi[0].shape[0], psi[0].shape[0], dtype=jnp.result_type(phi.dtype, psi.dtype))
    for i in range(len(psi)):
        # E[a, e] : a = phi bond (conj), e = psi bond
        E = contract("ae,apc,epf->cf", E, jnp.conj(phi[i]), psi[i])
    val = jnp.trace(E)
    if jnp.iscomplexobj(val):
        return complex(val)
    return float(val)


# ------------------------------------------------------------------ #
# Builders                                                            #
# ------------------------------------------------------------------ #


def build_random_mps(
    L: int,
    physical_dim: int = 2,
    bond_dim: int = 4,
    dtype: Any = jnp.float64,
    seed: int = 0,
) -> MPS:
    """Build a random MPS for use as initial state in DMRG.

    Args:
        L:            Chain length.
        physical_dim: Physical dimension per site.
        bond_dim:     Virtual bond dimension (boundary bonds are 1).
        dtype:        Data type.
        seed:         Random seed.

    Returns:
        MPS with normalized random site tensors.
    """
    tensors = []
    for i in range(L):
        key = jax.random.PRNGKey(seed + i)
        chi_l = 1 if i == 0 else bond_dim
        chi_r = 1 if i == L - 1 else bond_dim
        data = jax.random.normal(key, (chi_l, physical_dim, chi_r), dtype=dtype)
        tensors.append(data / jnp.linalg.norm(data))
    return MPS(tensors, name=f"random_MPS_L{L}")


def build_product_mps(
    states: Sequence[int],
    physical_dim: int = 2,
    dtype: Any = jnp.float64,
) -> MPS:
    """Build the product state ``|s_0 s_1 ... s_{N-1}>`` with bond dimension 1."""
    tensors = []
    for i, s in enumerate(states):
        if not 0 <= s < physical_dim:
            raise ConfigurationError(f"site {i}: state {s} outside [0, {physical_dim})")
        data = jnp.zeros((1, physical_dim, 1), dtype=dtype).at[0, s, 0].set(1.0)
        tensors.append(data)
    mps = MPS(tensors, name=f"product_MPS_L{len(tensors)}")
    # A normalized product state is canonical about every site
    mps.left_lim = -1
    mps.right_lim = 1
    return mps
