"""Medium volume storage and layout conversion."""

from .store import VolumeStore, load_volume, VOXEL_DTYPE, DET_MASK, MED_MASK
from .layout import row_to_column_major, column_to_row_major

__all__ = [
    "VolumeStore",
    "load_volume",
    "VOXEL_DTYPE",
    "DET_MASK",
    "MED_MASK",
    "row_to_column_major",
    "column_to_row_major",
]
