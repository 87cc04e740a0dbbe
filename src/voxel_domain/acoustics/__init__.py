"""Acoustic pressure field loading."""

from .loader import (
    AcousticsField,
    ACOUSTICS_DTYPE,
    deinterleave,
    interleave,
    load_acoustics,
)

__all__ = ["AcousticsField", "ACOUSTICS_DTYPE", "deinterleave", "interleave", "load_acoustics"]
