"""Acoustic pressure field loading.

The acoustics file is raw float32 data made of four channel-planar blocks,
each ``N = dimx * dimy * dimz`` long, in the fixed order Px, Py, Pz,
ultrasound phase. Loading deinterleaves the planes into one record per
voxel, indexed the same way as the medium volume.
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Tuple

import numpy as np

from ..exceptions import DomainIOError, ResourceError
from ..utils.config import validate_dims

logger = logging.getLogger(__name__)

ACOUSTICS_CHANNELS = ("px", "py", "pz", "us_phase")
ACOUSTICS_DTYPE = np.dtype([(name, np.float32) for name in ACOUSTICS_CHANNELS])


@dataclass
class AcousticsField:
    """Per-voxel acoustic pressure records.

    Attributes:
        records: 1-D array with dtype ACOUSTICS_DTYPE in volume storage order
        dims: Grid dimensions (x, y, z)
    """

    records: np.ndarray
    dims: Tuple[int, int, int]

    @property
    def num_voxels(self) -> int:
        return self.records.size

    def pressure_vectors(self) -> np.ndarray:
        """(N, 3) array of (Px, Py, Pz)."""
        return np.stack(
            [self.records["px"], self.records["py"], self.records["pz"]], axis=1
        )

    def pressure_magnitude(self) -> np.ndarray:
        """Per-voxel pressure magnitude |P|."""
        return np.linalg.norm(self.pressure_vectors(), axis=1)

    def to_raw(self) -> np.ndarray:
        """Channel-planar float32 buffer, the inverse of loading."""
        return interleave(self.records)

    def save(self, output_path: Path | str):
        """Write the field back out in the channel-planar file format."""
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            self.to_raw().tofile(output_path)
        except OSError as e:
            raise DomainIOError(f"can not save acoustics to {output_path}: {e}") from e


def deinterleave(raw: np.ndarray, dims: Sequence[int]) -> np.ndarray:
    """Split a channel-planar buffer into per-voxel records.

    Record ``idx`` takes channel ``p`` from ``raw[p * N + idx]``.

    Args:
        raw: Flat float buffer of length 4 * N
        dims: Grid dimensions (x, y, z)

    Returns:
        New 1-D array of N records with dtype ACOUSTICS_DTYPE

    Raises:
        DomainIOError: If the buffer length is not 4 * N
    """
    nx, ny, nz = validate_dims(dims)
    n = nx * ny * nz
    raw = np.asarray(raw, dtype=np.float32).reshape(-1)
    if raw.size != len(ACOUSTICS_CHANNELS) * n:
        raise DomainIOError(
            f"acoustics data has {raw.size} floats, dims {(nx, ny, nz)} need "
            f"{len(ACOUSTICS_CHANNELS) * n}"
        )

    planes = raw.reshape(len(ACOUSTICS_CHANNELS), n)
    try:
        records = np.empty(n, dtype=ACOUSTICS_DTYPE)
    except MemoryError as e:
        raise ResourceError(f"can not allocate {n} acoustics records") from e
    for p, name in enumerate(ACOUSTICS_CHANNELS):
        records[name] = planes[p]
    return records


def interleave(records: np.ndarray) -> np.ndarray:
    """Pack per-voxel records back into a channel-planar float32 buffer."""
    records = np.asarray(records).reshape(-1)
    return np.concatenate([records[name] for name in ACOUSTICS_CHANNELS]).astype(np.float32)


def load_acoustics(file_path: Path | str, dims: Sequence[int]) -> AcousticsField:
    """Load a raw channel-planar acoustics file.

    Args:
        file_path: Path to the acoustics file
        dims: Grid dimensions (x, y, z)

    Returns:
        AcousticsField with one record per voxel

    Raises:
        DomainIOError: If the file is missing or its float count is not 4 * N
    """
    file_path = Path(file_path)
    dims = validate_dims(dims)
    if not file_path.exists():
        raise DomainIOError(f"the specified binary acoustics file does not exist: {file_path}")

    try:
        raw = np.fromfile(file_path, dtype=np.float32)
    except MemoryError as e:
        raise ResourceError(f"can not allocate buffer for {file_path}") from e
    except OSError as e:
        raise DomainIOError(f"failed to read acoustics file {file_path}: {e}") from e

    records = deinterleave(raw, dims)
    logger.info(f"Loaded acoustics {file_path} ({records.size} voxels)")
    return AcousticsField(records=records, dims=dims)
