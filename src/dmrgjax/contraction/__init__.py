"""Dense contraction and decomposition primitives."""

from dmrgjax.contraction.contractor import (
    contract,
    lq_decompose,
    qr_decompose,
    truncated_eigh,
    truncated_svd,
    truncation_rank,
)

__all__ = [
    "contract",
    "truncated_svd",
    "truncated_eigh",
    "truncation_rank",
    "qr_decompose",
    "lq_decompose",
]
