"""Chain containers: MPS, MPO and the paging tensor store."""

from dmrgjax.network.mpo import (
    MPO,
    build_mpo_heisenberg,
    build_mpo_onsite,
    build_mpo_transverse_ising,
)
from dmrgjax.network.mps import MPS, build_product_mps, build_random_mps, inner
from dmrgjax.network.storage import TensorStore

__all__ = [
    "MPS",
    "MPO",
    "TensorStore",
    "inner",
    "build_random_mps",
    "build_product_mps",
    "build_mpo_heisenberg",
    "build_mpo_onsite",
    "build_mpo_transverse_ising",
]
