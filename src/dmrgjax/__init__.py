"""DMRG-Jax: finite-size two-site DMRG on dense JAX tensors.

.. note::
    Importing ``dmrgjax`` enables JAX 64-bit mode (``jax_enable_x64``).
    All tensors and algorithms default to ``float64``.

Quick start::

    from dmrgjax import Sweeps, build_mpo_heisenberg, build_random_mps, dmrg

    H = build_mpo_heisenberg(L=20)
    psi = build_random_mps(L=20, bond_dim=8)
    sweeps = Sweeps(5, max_rank=[10, 20, 50, 100], cutoff=1e-10, noise=[1e-6, 1e-8, 0.0])
    result = dmrg(psi, H, sweeps)
    print(result.energy)
"""

import jax

jax.config.update("jax_enable_x64", True)

from dmrgjax.algorithms.bond_update import TruncationReport, factorize_two_site, svd_bond
from dmrgjax.algorithms.davidson import davidson
from dmrgjax.algorithms.dmrg import (
    DMRGConfig,
    DMRGResult,
    DMRGStatus,
    dmrg,
    dmrg_worker,
    energy_expectation,
)
from dmrgjax.algorithms.local_ops import (
    EffectiveOperator,
    LocalMPO,
    LocalMPOProjected,
    LocalMPOSet,
)
from dmrgjax.algorithms.observer import BondContext, DMRGObserver, Observer
from dmrgjax.algorithms.sweeps import SweepDirection, SweepParams, Sweeps, sweep_bonds
from dmrgjax.contraction.contractor import (
    contract,
    lq_decompose,
    qr_decompose,
    truncated_eigh,
    truncated_svd,
    truncation_rank,
)
from dmrgjax.errors import (
    ConfigurationError,
    DegenerateStartError,
    DMRGError,
    NumericalDegeneracyError,
)
from dmrgjax.network.mpo import (
    MPO,
    build_mpo_heisenberg,
    build_mpo_onsite,
    build_mpo_transverse_ising,
)
from dmrgjax.network.mps import MPS, build_product_mps, build_random_mps, inner
from dmrgjax.network.storage import TensorStore

__version__ = "0.1.0"

__all__ = [
    # Version
    "__version__",
    # Errors
    "DMRGError",
    "ConfigurationError",
    "NumericalDegeneracyError",
    "DegenerateStartError",
    # Contraction
    "contract",
    "truncated_svd",
    "truncated_eigh",
    "truncation_rank",
    "qr_decompose",
    "lq_decompose",
    # Chains
    "MPS",
    "MPO",
    "TensorStore",
    "inner",
    "build_random_mps",
    "build_product_mps",
    "build_mpo_heisenberg",
    "build_mpo_onsite",
    "build_mpo_transverse_ising",
    # Schedule
    "SweepDirection",
    "SweepParams",
    "Sweeps",
    "sweep_bonds",
    # Effective operators
    "EffectiveOperator",
    "LocalMPO",
    "LocalMPOSet",
    "LocalMPOProjected",
    # Solver and bond update
    "davidson",
    "TruncationReport",
    "factorize_two_site",
    "svd_bond",
    # Observer
    "BondContext",
    "Observer",
    "DMRGObserver",
    # DMRG
    "DMRGConfig",
    "DMRGResult",
    "DMRGStatus",
    "dmrg",
    "dmrg_worker",
    "energy_expectation",
]
