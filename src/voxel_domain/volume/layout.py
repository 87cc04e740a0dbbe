"""Conversion between row-major and column-major grid storage.

Row-major here means z varies fastest (flat index ``x*dimy*dimz + y*dimz + z``),
column-major means x varies fastest (flat index ``z*dimx*dimy + y*dimx + x``).
"""

from typing import Optional, Sequence

import numpy as np

from ..exceptions import ConfigError, ResourceError


def row_to_column_major(
    data: Optional[np.ndarray],
    dims: Sequence[int]
) -> Optional[np.ndarray]:
    """Reorder a flat z-fastest grid into a freshly allocated x-fastest grid.

    Args:
        data: Flat grid in row-major order (any dtype), or None
        dims: Grid dimensions (x, y, z)

    Returns:
        New flat array in column-major order. The input is returned unchanged
        if it is None or any dimension is zero.
    """
    if _is_noop(data, dims):
        return data
    nx, ny, nz = (int(d) for d in dims)
    grid = _as_flat(data, nx * ny * nz).reshape(nx, ny, nz)
    return _copy(grid.transpose(2, 1, 0))


def column_to_row_major(
    data: Optional[np.ndarray],
    dims: Sequence[int]
) -> Optional[np.ndarray]:
    """Reorder a flat x-fastest grid into a freshly allocated z-fastest grid.

    Inverse of :func:`row_to_column_major`.
    """
    if _is_noop(data, dims):
        return data
    nx, ny, nz = (int(d) for d in dims)
    grid = _as_flat(data, nx * ny * nz).reshape(nz, ny, nx)
    return _copy(grid.transpose(2, 1, 0))


def _is_noop(data, dims) -> bool:
    return data is None or len(dims) != 3 or any(int(d) == 0 for d in dims)


def _as_flat(data: np.ndarray, expected: int) -> np.ndarray:
    data = np.asarray(data).reshape(-1)
    if data.size != expected:
        raise ConfigError(f"grid has {data.size} elements, dims need {expected}")
    return data


def _copy(grid: np.ndarray) -> np.ndarray:
    try:
        return grid.copy(order="C").reshape(-1)
    except MemoryError as e:
        raise ResourceError(f"can not allocate {grid.size} elements for layout conversion") from e
