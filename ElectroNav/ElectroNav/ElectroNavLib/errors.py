# ElectroNav/ElectroNav/ElectroNavLib/errors.py
"""Exception types raised by the navigation model.

Each class also derives from the closest built-in exception, so callers
that only know about ``ValueError`` or ``IndexError`` still catch them.

A slice request outside a loaded volume is not an exception: it comes
back as a blank ``SliceDescriptor`` with ``valid=False``.
"""

from __future__ import annotations


class ElectroNavError(Exception):
    """Base class for all ElectroNav errors."""


class InvalidArgument(ElectroNavError, ValueError):
    """A caller supplied a value the model cannot accept (e.g. zero contacts)."""


class InvariantViolation(ElectroNavError, RuntimeError):
    """The requested operation would break a model invariant."""


class OutOfRange(ElectroNavError, IndexError):
    """An electrode or contact index is outside the valid range."""


class UnknownElectrodeType(ElectroNavError, KeyError):
    """The electrode-type catalog has no entry for the requested id."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep the plain message
        return str(self.args[0]) if self.args else ""
