"""List-like tensor container that can page its entries to disk.

MPS sites, MPO sites and environment blocks are all kept in a ``TensorStore``.
In memory mode it behaves like a list of jax arrays. After
``enable_write(write_dir)`` every entry lives in its own ``.npy`` file inside
a private subdirectory of ``write_dir``: writes go straight to disk and reads
load the file back, so only the tensors in active use occupy memory. Paging
round-trips through ``numpy.save``/``numpy.load`` and is bit-exact.

Entries may be ``None`` (for example environment blocks not computed yet).
Any ``OSError`` from the filesystem propagates unchanged.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from collections.abc import Iterable, Iterator

import jax
import jax.numpy as jnp
import numpy as np


class TensorStore:
    """Fixed-length sequence of optional jax arrays with optional disk paging.

    Args:
        tensors: Initial entries.
        prefix:  Name prefix for the paging directory and files.
    """

    def __init__(self, tensors: Iterable[jax.Array | None], prefix: str = "t") -> None:
        self._mem: list[jax.Array | None] = list(tensors)
        self._prefix = prefix
        self._dir: str | None = None
        self._on_disk: set[int] = set()

    def __len__(self) -> int:
        return len(self._mem)

    def __iter__(self) -> Iterator[jax.Array | None]:
        for i in range(len(self)):
            yield self[i]

    def __repr__(self) -> str:
        mode = f"paged to {self._dir!r}" if self.writes else "in memory"
        return f"TensorStore({self._prefix!r}, n={len(self)}, {mode})"

    @property
    def writes(self) -> bool:
        """True when entries are paged to disk."""
        return self._dir is not None

    @property
    def directory(self) -> str | None:
        return self._dir

    def _file(self, directory: str, i: int) -> str:
        return os.path.join(directory, f"{self._prefix}_{i}.npy")

    def _path(self, i: int) -> str:
        assert self._dir is not None
        return self._file(self._dir, i)

    def _index(self, i: int) -> int:
        n = len(self._mem)
        if i < 0:
            i += n
        if not 0 <= i < n:
            raise IndexError(f"{self._prefix} index {i} out of range for length {n}")
        return i

    def __getitem__(self, i: int) -> jax.Array | None:
        i = self._index(i)
        if not self.writes:
            return self._mem[i]
        if i not in self._on_disk:
            return None
        return jnp.asarray(np.load(self._path(i)))

    def __setitem__(self, i: int, tensor: jax.Array | None) -> None:
        i = self._index(i)
        if not self.writes:
            self._mem[i] = tensor
            return
        if tensor is None:
            if i in self._on_disk:
                os.remove(self._path(i))
                self._on_disk.discard(i)
            return
        np.save(self._path(i), np.asarray(tensor))
        self._on_disk.add(i)

    def enable_write(self, write_dir: str = "./") -> None:
        """Move every entry to disk under a fresh subdirectory of ``write_dir``.

        On an ``OSError`` the new subdirectory is removed, the store stays in
        memory with its entries intact and the error is re-raised.
        """
        if self.writes:
            return
        os.makedirs(write_dir, exist_ok=True)
        directory = tempfile.mkdtemp(prefix=f"{self._prefix}_", dir=write_dir)
        on_disk = set()
        try:
            for i, tensor in enumerate(self._mem):
                if tensor is not None:
                    np.save(self._file(directory, i), np.asarray(tensor))
                    on_disk.add(i)
        except OSError:
            shutil.rmtree(directory, ignore_errors=True)
            raise
        self._dir = directory
        self._on_disk = on_disk
        self._mem = [None] * len(self._mem)

    def disable_write(self) -> None:
        """Load every entry back into memory and delete the paging directory."""
        if not self.writes:
            return
        entries = [self[i] for i in range(len(self._mem))]
        shutil.rmtree(self._dir)
        self._dir = None
        self._on_disk.clear()
        self._mem = entries

    def clear(self) -> None:
        """Set every entry to ``None``."""
        for i in range(len(self._mem)):
            self[i] = None
