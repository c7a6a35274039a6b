"""Finite two-site DMRG: schedule, effective operators, solver, sweep engine."""

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

__all__ = [
    "DMRGConfig",
    "DMRGResult",
    "DMRGStatus",
    "dmrg",
    "dmrg_worker",
    "energy_expectation",
    "EffectiveOperator",
    "LocalMPO",
    "LocalMPOSet",
    "LocalMPOProjected",
    "davidson",
    "TruncationReport",
    "factorize_two_site",
    "svd_bond",
    "BondContext",
    "Observer",
    "DMRGObserver",
    "SweepDirection",
    "SweepParams",
    "Sweeps",
    "sweep_bonds",
]
