"""Medium-index volume storage.

Each voxel is kept as a two-field record ``(medium, is_detector)``. The
single-byte wire form ``(is_detector << 7) | medium`` is only produced or
consumed at file boundaries.

Storage order is column-major with x fastest, so the flat index of voxel
(x, y, z) is ``dimx * dimy * z + dimx * y + x`` and ``grid()`` exposes the
data as a ``[z, y, x]`` array.
"""

import logging
from pathlib import Path
from typing import Sequence, Tuple

import numpy as np

from ..exceptions import ConfigError, DomainIOError, ResourceError
from ..utils.config import validate_dims
from .layout import row_to_column_major

logger = logging.getLogger(__name__)

VOXEL_DTYPE = np.dtype([("medium", np.uint8), ("is_detector", np.bool_)])

DET_MASK = 0x80
MED_MASK = 0x7F


class VolumeStore:
    """Owns the medium-index grid of a domain."""

    def __init__(self, data: np.ndarray, dims: Sequence[int]):
        """Wrap an existing record buffer.

        Args:
            data: 1-D array with dtype VOXEL_DTYPE, one record per voxel
            dims: Grid dimensions (x, y, z)

        Raises:
            ConfigError: If dims are invalid or do not match the buffer
        """
        self._dims = validate_dims(dims)
        self._data = self._check_buffer(data)

    @classmethod
    def empty(cls, dims: Sequence[int]) -> "VolumeStore":
        """Create an all-background volume."""
        dims = validate_dims(dims)
        return cls(_allocate(dims[0] * dims[1] * dims[2], VOXEL_DTYPE), dims)

    @classmethod
    def from_media(cls, media: np.ndarray, dims: Sequence[int]) -> "VolumeStore":
        """Create a volume from medium indices in storage order, no detector flags."""
        dims = validate_dims(dims)
        media = np.asarray(media).reshape(-1)
        if np.any(media < 0) or np.any(media > MED_MASK):
            raise ConfigError(f"medium index exceeds {MED_MASK}")
        data = _allocate(media.size, VOXEL_DTYPE)
        data["medium"] = media
        return cls(data, dims)

    @classmethod
    def from_packed(cls, packed: bytes | np.ndarray, dims: Sequence[int]) -> "VolumeStore":
        """Unpack wire-format bytes into a volume.

        Args:
            packed: Raw bytes or uint8 array, ``(flag << 7) | medium`` per voxel
            dims: Grid dimensions (x, y, z)
        """
        dims = validate_dims(dims)
        if isinstance(packed, (bytes, bytearray, memoryview)):
            packed = np.frombuffer(packed, dtype=np.uint8)
        packed = np.asarray(packed, dtype=np.uint8).reshape(-1)
        data = _allocate(packed.size, VOXEL_DTYPE)
        data["medium"] = packed & MED_MASK
        data["is_detector"] = (packed & DET_MASK) != 0
        return cls(data, dims)

    def to_packed(self) -> np.ndarray:
        """Pack records into the single-byte wire format (storage order)."""
        packed = self._data["medium"] & MED_MASK
        packed |= self._data["is_detector"].astype(np.uint8) << 7
        return packed.astype(np.uint8)

    @property
    def dims(self) -> Tuple[int, int, int]:
        """Grid dimensions (x, y, z)."""
        return self._dims

    @property
    def num_voxels(self) -> int:
        return self._data.size

    @property
    def data(self) -> np.ndarray:
        """Flat record buffer in storage order."""
        return self._data

    @property
    def media(self) -> np.ndarray:
        """Flat view of the medium indices."""
        return self._data["medium"]

    @property
    def detector_flags(self) -> np.ndarray:
        """Flat view of the detector flags."""
        return self._data["is_detector"]

    def grid(self) -> np.ndarray:
        """Record buffer viewed as a ``[z, y, x]`` array (no copy)."""
        nx, ny, nz = self._dims
        return self._data.reshape(nz, ny, nx)

    def index(self, x: int, y: int, z: int) -> int:
        """Flat index of voxel (x, y, z)."""
        nx, ny, _ = self._dims
        return nx * ny * z + nx * y + x

    def replace(self, data: np.ndarray) -> np.ndarray:
        """Take ownership of a new record buffer and hand back the old one.

        Raises:
            ConfigError: If the buffer does not match the grid
        """
        data = self._check_buffer(data)
        old, self._data = self._data, data
        return old

    def convert_row_to_column(self):
        """Reinterpret the buffer as z-fastest and reorder it to x-fastest."""
        self.replace(row_to_column_major(self._data, self._dims))

    def occupied_count(self) -> int:
        """Number of non-background voxels."""
        return int(np.count_nonzero(self._data["medium"]))

    def flag_count(self) -> int:
        """Number of voxels carrying the detector flag."""
        return int(np.count_nonzero(self._data["is_detector"]))

    def clear_flags(self):
        self._data["is_detector"] = False

    def save_packed(self, output_path: Path | str):
        """Write the packed bytes in storage order.

        Raises:
            DomainIOError: If the file cannot be written
        """
        output_path = Path(output_path)
        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            self.to_packed().tofile(output_path)
        except OSError as e:
            raise DomainIOError(f"can not save volume to {output_path}: {e}") from e

    def _check_buffer(self, data: np.ndarray) -> np.ndarray:
        data = np.asarray(data)
        if data.dtype != VOXEL_DTYPE:
            raise ConfigError(f"volume buffer must have dtype {VOXEL_DTYPE}, got {data.dtype}")
        data = data.reshape(-1)
        expected = self._dims[0] * self._dims[1] * self._dims[2]
        if data.size != expected:
            raise ConfigError(
                f"volume has {data.size} voxels but dims {self._dims} need {expected}"
            )
        return data


def load_volume(
    file_path: Path | str,
    dims: Sequence[int],
    medium_count: int
) -> VolumeStore:
    """Load a raw medium-index volume file.

    The file holds one unsigned byte per voxel with no header. The bytes are
    read in file order; any row-major to column-major conversion happens
    afterwards.

    Args:
        file_path: Path to the volume file
        dims: Grid dimensions (x, y, z)
        medium_count: Declared number of media including background

    Returns:
        VolumeStore with no detector flags set

    Raises:
        DomainIOError: If the file does not exist or cannot be read
        ConfigError: If the file size does not match dims, or a voxel
            references a medium index >= medium_count
    """
    file_path = Path(file_path)
    dims = validate_dims(dims)
    if not file_path.exists():
        raise DomainIOError(f"the specified binary volume file does not exist: {file_path}")

    expected = dims[0] * dims[1] * dims[2]
    try:
        raw = np.fromfile(file_path, dtype=np.uint8)
    except MemoryError as e:
        raise ResourceError(f"can not allocate {expected} bytes for the volume") from e
    except OSError as e:
        raise DomainIOError(f"failed to read volume file {file_path}: {e}") from e

    if raw.size != expected:
        raise ConfigError(
            f"file size does not match specified dimensions: {file_path} has "
            f"{raw.size} bytes, dims {dims} need {expected}"
        )

    if raw.size and int(raw.max()) >= medium_count:
        raise ConfigError(
            f"medium index {int(raw.max())} exceeds the specified medium types "
            f"({medium_count})"
        )

    logger.info(f"Loaded volume {file_path} with dims {dims}")
    return VolumeStore.from_media(raw, dims)


def _allocate(n: int, dtype: np.dtype) -> np.ndarray:
    try:
        return np.zeros(n, dtype=dtype)
    except MemoryError as e:
        raise ResourceError(f"can not allocate {n} records of {dtype}") from e
