"""Source placement onto the medium."""

import logging

import numpy as np

from ..exceptions import DomainError
from ..utils.config import Source
from ..volume.store import VolumeStore

logger = logging.getLogger(__name__)


def _inside(position: np.ndarray, dims) -> bool:
    return bool(
        np.all(position >= 0.0)
        and np.all(position < np.asarray(dims, dtype=np.float32))
    )


def _voxel_index(position: np.ndarray, dims) -> int:
    nx, ny, _ = dims
    ix, iy, iz = np.floor(position).astype(np.int64)
    return int(iz * ny * nx + iy * nx + ix)


def place_source(source: Source, volume: VolumeStore) -> Source:
    """Move the source onto a non-background voxel.

    If the voxel under the source has medium index 0 the position is advanced
    by the direction vector, one whole vector at a time, until a medium voxel
    is reached.

    Args:
        source: Source with position and direction in grid units
        volume: Column-major volume

    Returns:
        Source whose position lies inside the grid on a non-background voxel.
        The input source is returned unchanged if it already does.

    Raises:
        DomainError: If the initial position is outside the grid, or the walk
            leaves the grid (or stops moving) before reaching a medium voxel
    """
    dims = volume.dims
    position = np.array(source.position, dtype=np.float32)
    if not _inside(position, dims):
        raise DomainError(
            f"source position {position.tolist()} is outside of the volume {dims}"
        )

    media = volume.media
    idx = _voxel_index(position, dims)
    if media[idx] != 0:
        return source

    logger.info(
        f"source {position.tolist()} is located outside the domain, vol[{idx}]={media[idx]}"
    )
    direction = np.array(source.direction, dtype=np.float32)
    while media[idx] == 0:
        moved = position + direction
        if np.array_equal(moved, position):
            raise DomainError(
                f"source direction {direction.tolist()} does not move the source, "
                "searching non-zero voxel failed"
            )
        position = moved
        if not _inside(position, dims):
            raise DomainError("searching non-zero voxel failed along the incident vector")
        idx = _voxel_index(position, dims)

    logger.info(f"fixing source position to {position.tolist()}")
    return Source(position=position, direction=source.direction.copy())
