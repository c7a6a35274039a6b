#!/usr/bin/env python
"""Benchmark: SVD vs density-matrix truncation at DMRG-relevant sizes.

Part 1, standalone truncation benchmark:
    Build a random two-site theta tensor (chi, d, d, chi) and compare
    truncated_svd() on the (chi*d, d*chi) matrix with truncated_eigh() on
    the reduced density matrix, the path taken when noise is switched on.

Part 2, end-to-end DMRG comparison:
    Run DMRG on a Heisenberg chain with and without density-matrix noise,
    and compare wall times and final energies.

Usage:
    python benchmarks/bench_svd.py
"""

from __future__ import annotations

import time

import jax
import jax.numpy as jnp

from dmrgjax.contraction.contractor import truncated_eigh, truncated_svd


def _random_theta_matrix(chi: int, d: int, dtype=jnp.float64, seed: int = 42) -> jax.Array:
    """A normalized (chi*d, d*chi) matrix with a decaying spectrum."""
    key = jax.random.PRNGKey(seed)
    theta = jax.random.normal(key, (chi * d, d * chi), dtype=dtype)
    # Damp the columns so truncation has something to cut
    theta = theta * jnp.exp(-0.05 * jnp.arange(d * chi, dtype=dtype))
    return theta / jnp.linalg.norm(theta)


# ---------------------------------------------------------------------------
# Part 1: Standalone truncation benchmark
# ---------------------------------------------------------------------------


def bench_truncation_standalone() -> None:
    """Time truncated_svd against truncated_eigh of rho at various chi."""
    print("=" * 70)
    print("Part 1: Standalone truncation benchmark")
    print("=" * 70)
    print(f"{'chi':>6} {'d':>4} {'svd(ms)':>10} {'eigh(ms)':>10} "
          f"{'ratio':>8} {'kept':>6} {'trunc.err':>10}")
    print("-" * 70)

    d = 2
    n_warmup = 2
    n_iter = 10

    for chi in [16, 32, 64, 128, 256, 512]:
        M = _random_theta_matrix(chi, d)

        def svd_once():
            _, s, _, n_keep, err = truncated_svd(M, cutoff=1e-10, max_rank=chi)
            s.block_until_ready()
            return n_keep, err

        def eigh_once():
            _, w, n_keep, err = truncated_eigh(M @ M.T, cutoff=1e-10, max_rank=chi)
            w.block_until_ready()
            return n_keep, err

        for _ in range(n_warmup):
            svd_once()
            eigh_once()

        t0 = time.perf_counter()
        for _ in range(n_iter):
            n_keep, err = svd_once()
        svd_ms = 1000.0 * (time.perf_counter() - t0) / n_iter

        t0 = time.perf_counter()
        for _ in range(n_iter):
            eigh_once()
        eigh_ms = 1000.0 * (time.perf_counter() - t0) / n_iter

        ratio = eigh_ms / svd_ms if svd_ms > 0 else float("inf")
        print(f"{chi:>6} {d:>4} {svd_ms:>10.2f} {eigh_ms:>10.2f} "
              f"{ratio:>7.2f}x {n_keep:>6} {err:>10.2E}")

    print()


# ---------------------------------------------------------------------------
# Part 2: End-to-end DMRG comparison
# ---------------------------------------------------------------------------


def bench_dmrg_comparison() -> None:
    """Compare wall time and energy for DMRG with and without noise."""
    from dmrgjax import DMRGConfig, Sweeps, build_mpo_heisenberg, build_random_mps, dmrg

    print("=" * 70)
    print("Part 2: End-to-end DMRG comparison (Heisenberg chain)")
    print("=" * 70)

    L = 20
    n_sweeps = 6
    max_rank = [10, 20, 40]

    H = build_mpo_heisenberg(L, Jz=1.0, Jxy=1.0)
    config = DMRGConfig(quiet=True, eigen_tol=1e-8)

    rows = []
    for label, noise in (("SVD", 0.0), ("Noisy rho", [1e-6, 1e-7, 1e-8, 0.0])):
        psi = build_random_mps(L, bond_dim=4, seed=7)
        sweeps = Sweeps(n_sweeps, cutoff=1e-10, max_rank=max_rank, noise=noise, max_iter=4)
        t0 = time.perf_counter()
        result = dmrg(psi, H, sweeps, config=config)
        rows.append((label, result, time.perf_counter() - t0))

    print(f"  Chain length L = {L}, max_rank = {max_rank}, sweeps = {n_sweeps}")
    print()
    print(f"  {'':>20} {'Energy':>16} {'Wall time':>12} {'Max chi':>8}")
    print(f"  {'-' * 60}")
    for label, result, wall in rows:
        print(f"  {label:>20} {result.energy:>16.10f} {wall:>10.3f} s "
              f"{result.mps.max_bond_dim():>8}")

    (_, plain, t_plain), (_, noisy, t_noisy) = rows
    print()
    print(f"  Energy difference:  {abs(plain.energy - noisy.energy):.2e}")
    print(f"  Noisy / SVD time:   {t_noisy / t_plain if t_plain > 0 else float('inf'):.2f}x")
    print()


# ---------------------------------------------------------------------------

if __name__ == "__main__":
    bench_truncation_standalone()
    bench_dmrg_comparison()
