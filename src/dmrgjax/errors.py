"""Exceptions raised by the DMRG engine.

ConfigurationError subclasses ValueError and NumericalDegeneracyError
subclasses ArithmeticError, so callers catching the builtin types keep working.
Disk failures while paging tensors are not wrapped: the ``OSError`` raised by
numpy propagates unchanged.
"""

from __future__ import annotations


class DMRGError(Exception):
    """Base class for all errors raised by dmrgjax."""


class ConfigurationError(DMRGError, ValueError):
    """Invalid schedule, operator set, boundary or penalty configuration.

    Always raised before the first sweep starts and before the state is modified.
    """


class NumericalDegeneracyError(DMRGError, ArithmeticError):
    """A tensor that must be non-trivial has (numerically) zero norm."""


class DegenerateStartError(NumericalDegeneracyError):
    """The eigensolver was handed a zero-norm or non-finite start vector."""
