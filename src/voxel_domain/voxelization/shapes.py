"""Procedural shapes painted onto a medium volume.

Shapes are given in grid units with the same origin as the source and
detectors. A voxel (x, y, z) belongs to a solid shape when its centre
(x + 0.5, y + 0.5, z + 0.5) does. Shapes are painted in list order, so later
shapes overwrite earlier ones.
"""

from dataclasses import dataclass
from typing import List, Sequence, Tuple

import numpy as np
import trimesh

from ..exceptions import ConfigError
from ..volume.store import VolumeStore

AXES = {"x": 0, "y": 1, "z": 2}


def voxel_centers(dims: Sequence[int]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Open-grid voxel centre coordinates broadcastable to a [z, y, x] grid.

    Returns:
        Tuple (zc, yc, xc) of shapes (nz,1,1), (1,ny,1), (1,1,nx)
    """
    nx, ny, nz = dims
    zc, yc, xc = np.ogrid[0:nz, 0:ny, 0:nx]
    return zc + 0.5, yc + 0.5, xc + 0.5


class Shape:
    """Base class for procedural shapes."""

    def tags(self) -> List[int]:
        """Medium indices written by this shape."""
        return [self.tag]

    def mask(self, dims: Sequence[int]) -> np.ndarray:
        """Boolean [z, y, x] array of voxels inside the shape."""
        raise NotImplementedError

    def paint(self, media: np.ndarray):
        """Write this shape's tag into a [z, y, x] medium grid in place."""
        nz, ny, nx = media.shape
        media[self.mask((nx, ny, nz))] = self.tag


@dataclass
class Sphere(Shape):
    """Solid sphere.

    Attributes:
        center: (x, y, z) centre in grid units
        radius: Radius in grid units
        tag: Medium index to paint
    """

    center: Tuple[float, float, float]
    radius: float
    tag: int

    def mask(self, dims: Sequence[int]) -> np.ndarray:
        zc, yc, xc = voxel_centers(dims)
        cx, cy, cz = self.center
        d2 = (xc - cx) ** 2 + (yc - cy) ** 2 + (zc - cz) ** 2
        return d2 <= self.radius * self.radius


@dataclass
class Box(Shape):
    """Axis-aligned box covering [origin, origin + size) on each axis."""

    origin: Tuple[float, float, float]
    size: Tuple[float, float, float]
    tag: int

    def mask(self, dims: Sequence[int]) -> np.ndarray:
        zc, yc, xc = voxel_centers(dims)
        inside = np.ones(tuple(reversed(tuple(dims))), dtype=bool)
        for centers, start, extent in zip((xc, yc, zc), self.origin, self.size):
            inside &= (centers >= start) & (centers < start + extent)
        return inside


@dataclass
class Cylinder(Shape):
    """Finite solid cylinder between two end-cap centres."""

    c0: Tuple[float, float, float]
    c1: Tuple[float, float, float]
    radius: float
    tag: int

    def mask(self, dims: Sequence[int]) -> np.ndarray:
        zc, yc, xc = voxel_centers(dims)
        c0 = np.asarray(self.c0, dtype=np.float64)
        axis = np.asarray(self.c1, dtype=np.float64) - c0
        length2 = float(np.dot(axis, axis))
        if length2 == 0:
            raise ConfigError("cylinder end caps must differ")

        px, py, pz = xc - c0[0], yc - c0[1], zc - c0[2]
        t = (px * axis[0] + py * axis[1] + pz * axis[2]) / length2
        dx = px - t * axis[0]
        dy = py - t * axis[1]
        dz = pz - t * axis[2]
        radial2 = dx * dx + dy * dy + dz * dz
        return (t >= 0.0) & (t <= 1.0) & (radial2 <= self.radius * self.radius)


@dataclass
class Layers(Shape):
    """Slabs perpendicular to one axis.

    Attributes:
        axis: "x", "y" or "z"
        layers: (start, end, tag) voxel ranges, half-open, clipped to the grid
    """

    axis: str
    layers: List[Tuple[int, int, int]]

    def __post_init__(self):
        if self.axis not in AXES:
            raise ConfigError(f"layer axis must be one of x, y, z, got {self.axis!r}")

    def tags(self) -> List[int]:
        return [tag for _, _, tag in self.layers]

    def _slabs(self, shape: Tuple[int, int, int]):
        """Yield ([z, y, x] index, tag) for each non-empty clipped layer."""
        grid_axis = 2 - AXES[self.axis]
        extent = shape[grid_axis]
        for start, end, tag in self.layers:
            start, end = max(int(start), 0), min(int(end), extent)
            if start >= end:
                continue
            index = [slice(None)] * 3
            index[grid_axis] = slice(start, end)
            yield tuple(index), tag

    def mask(self, dims: Sequence[int]) -> np.ndarray:
        """Union of all layers, whatever their tags."""
        nx, ny, nz = dims
        inside = np.zeros((nz, ny, nx), dtype=bool)
        for index, _ in self._slabs(inside.shape):
            inside[index] = True
        return inside

    def paint(self, media: np.ndarray):
        for index, tag in self._slabs(media.shape):
            media[index] = tag


@dataclass
class MeshShape(Shape):
    """Closed triangle mesh, voxelized at unit pitch and filled.

    Attributes:
        mesh: Watertight trimesh in grid units
        tag: Medium index to paint
    """

    mesh: trimesh.Trimesh
    tag: int

    def mask(self, dims: Sequence[int]) -> np.ndarray:
        nx, ny, nz = dims
        inside = np.zeros((nz, ny, nx), dtype=bool)

        # trimesh centres voxels on integer coordinates; ours sit at +0.5
        shifted = self.mesh.copy()
        shifted.apply_translation([-0.5, -0.5, -0.5])
        voxel_grid = shifted.voxelized(pitch=1.0)
        voxel_grid = voxel_grid.fill()

        points = np.round(voxel_grid.points).astype(np.int64)
        if points.size == 0:
            return inside
        keep = np.all((points >= 0) & (points < np.array([nx, ny, nz])), axis=1)
        points = points[keep]
        inside[points[:, 2], points[:, 1], points[:, 0]] = True
        return inside


def paint_shapes(volume: VolumeStore, shapes: Sequence[Shape], medium_count: int):
    """Paint shapes onto a column-major volume in place.

    Args:
        volume: Volume to modify
        shapes: Shapes in painting order
        medium_count: Declared number of media including background

    Raises:
        ConfigError: If a shape writes a medium index outside [0, medium_count)
    """
    for shape in shapes:
        for tag in shape.tags():
            if not 0 <= tag < medium_count:
                raise ConfigError(
                    f"{type(shape).__name__} tag {tag} exceeds the specified "
                    f"medium types ({medium_count})"
                )

    media = volume.grid()["medium"]
    for shape in shapes:
        shape.paint(media)
