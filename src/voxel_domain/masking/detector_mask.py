"""Detector visibility mask.

For every detector, the voxels that lie on an exposed surface (a medium
voxel with at least one of its 26 neighbours outside the medium or outside
the grid) and fall inside the detector's capture sphere receive the
detector flag. The transport kernel then attributes an exiting photon to a
detector with a single lookup of that flag.

The search reproduces the historical mask exactly: the sphere's bounding
cube of half-width ``radius + 1`` is sampled every half voxel, and a voxel
is accepted when the closest of its 8 corners is within the radius, unless
one of its corners lies beyond ``radius + CORNER_SLACK``.
"""

import logging
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Sequence

import numpy as np
from numba import njit
from scipy import ndimage
from tqdm import tqdm

from ..exceptions import DetectorCoverageWarning, DomainIOError, ResourceError
from ..utils.config import Detector
from ..volume.store import VolumeStore

logger = logging.getLogger(__name__)

# Mask arithmetic stays in float32 so masks match stored ones bit for bit;
# 1.7321 is the historical sqrt(3) rounding
CORNER_SLACK = np.float32(1.7321)
SAMPLE_STEP = np.float32(0.5)
VERY_BIG = np.float32(1e10)

VOXEL_CORNERS = np.array([
    [0.0, 0.0, 0.0],
    [1.0, 0.0, 0.0],
    [0.0, 1.0, 0.0],
    [0.0, 0.0, 1.0],
    [1.0, 1.0, 0.0],
    [1.0, 0.0, 1.0],
    [0.0, 1.0, 1.0],
    [1.0, 1.0, 1.0],
], dtype=np.float32)


@dataclass
class MaskResult:
    """Outcome of masking a list of detectors.

    Attributes:
        coverage: Number of distinct voxels flagged for each detector
        flagged_voxels: Total voxels carrying the detector flag afterwards
    """

    coverage: List[int] = field(default_factory=list)
    flagged_voxels: int = 0

    @property
    def uncovered_detectors(self) -> List[int]:
        """Indices of detectors that touch no exposed voxel."""
        return [d for d, count in enumerate(self.coverage) if count == 0]


@njit(cache=True)
def _mark_sample(
    exposed: np.ndarray,
    ix: np.float32, iy: np.float32, iz: np.float32,
    cx: np.float32, cy: np.float32, cz: np.float32,
    radius: np.float32,
    outer2: np.float32,
    corners: np.ndarray,
    footprint: np.ndarray
) -> int:
    """Test the voxel under one in-grid sample point; 1 if newly marked."""
    one = np.float32(1.0)
    vx = int(ix)
    vy = int(iy)
    vz = int(iz)
    fx = np.float32(vx)
    fy = np.float32(vy)
    fz = np.float32(vz)

    mind2 = VERY_BIG
    for c in range(8):
        rx = fx - cx + corners[c, 0]
        ry = fy - cy + corners[c, 1]
        rz = fz - cz + corners[c, 2]
        d2 = rx * rx + ry * ry + rz * rz
        if d2 > outer2:
            return 0
        if d2 < mind2:
            mind2 = d2

    if radius > 0:
        if mind2 >= radius * radius:
            return 0
    elif not (fx <= cx and cx <= fx + one and
              fy <= cy and cy <= fy + one and
              fz <= cz and cz <= fz + one):
        # A point detector covers the cells containing it
        return 0

    # Halo index comes from the shifted sample, not from vx + 1
    if not exposed[int(iz + one), int(iy + one), int(ix + one)]:
        return 0
    if footprint[vz, vy, vx]:
        return 0
    footprint[vz, vy, vx] = True
    return 1


@njit(cache=True)
def _scan_detector(
    exposed: np.ndarray,
    nx: int, ny: int, nz: int,
    cx: np.float32, cy: np.float32, cz: np.float32,
    radius: np.float32,
    corners: np.ndarray,
    footprint: np.ndarray
) -> int:
    """Sample one detector's bounding cube and mark its footprint.

    exposed is the halo-padded exposure mask indexed [z+1, y+1, x+1];
    footprint is indexed [z, y, x]. Sample offsets start at -(radius + 1)
    and accumulate SAMPLE_STEP in float32. Returns the number of voxels
    newly set in footprint.
    """
    one = np.float32(1.0)
    reach = radius + one
    reach2 = reach * reach
    outer = radius + CORNER_SLACK
    outer2 = outer * outer
    start = -radius - one

    count = 0
    z = start
    while z <= reach:
        iz = z + cz
        y = start
        while y <= reach:
            iy = y + cy
            x = start
            while x <= reach:
                ix = x + cx
                inside = not (iz < 0 or ix < 0 or iy < 0 or ix >= nx or iy >= ny or iz >= nz)
                if inside and x * x + y * y + z * z <= reach2:
                    count += _mark_sample(
                        exposed, ix, iy, iz, cx, cy, cz,
                        radius, outer2, corners, footprint
                    )
                x += SAMPLE_STEP
            y += SAMPLE_STEP
        z += SAMPLE_STEP
    return count


class DetectorMasker:
    """Flags the boundary voxels covered by each detector.

    Detectors are independent: each one is scanned into its own scratch
    footprint, which is then OR-ed into the volume's detector flags. Running
    the masker again over the same detectors leaves the flags unchanged.
    """

    def __init__(self, verbose: bool = False):
        """Initialize the masker.

        Args:
            verbose: Show a progress bar over detectors
        """
        self.verbose = verbose

    @staticmethod
    def padded_media(volume: VolumeStore) -> np.ndarray:
        """Copy of the occupancy grid with a one-voxel background halo.

        Returns:
            Boolean array of shape (dimz + 2, dimy + 2, dimx + 2), True
            where the medium index is non-zero
        """
        nx, ny, nz = volume.dims
        try:
            padded = np.zeros((nz + 2, ny + 2, nx + 2), dtype=bool)
        except MemoryError as e:
            raise ResourceError("can not allocate padded volume for detector masking") from e
        padded[1:-1, 1:-1, 1:-1] = volume.grid()["medium"] != 0
        return padded

    @staticmethod
    def exposed_voxels(padded: np.ndarray) -> np.ndarray:
        """Occupied voxels with at least one of their 26 neighbours empty.

        Args:
            padded: Halo-padded occupancy grid from padded_media

        Returns:
            Boolean array with the same shape as padded
        """
        interior = ndimage.binary_erosion(
            padded,
            structure=np.ones((3, 3, 3), dtype=bool),
            border_value=0
        )
        return padded & ~interior

    def compute_footprint(
        self,
        exposed: np.ndarray,
        detector: Detector,
        dims: Sequence[int]
    ) -> np.ndarray:
        """Voxels flagged by a single detector.

        Args:
            exposed: Halo-padded exposure mask from exposed_voxels
            detector: Detector to scan
            dims: Grid dimensions (x, y, z)

        Returns:
            Boolean [z, y, x] array, True on the detector's footprint
        """
        nx, ny, nz = (int(d) for d in dims)
        footprint = np.zeros((nz, ny, nx), dtype=bool)
        cx, cy, cz = (np.float32(v) for v in detector.center)
        _scan_detector(
            np.ascontiguousarray(exposed),
            nx, ny, nz,
            cx, cy, cz,
            np.float32(detector.radius),
            VOXEL_CORNERS,
            footprint
        )
        return footprint

    def apply(self, volume: VolumeStore, detectors: Sequence[Detector]) -> MaskResult:
        """Flag every detector's footprint on the volume in place.

        A detector whose footprint is empty triggers a DetectorCoverageWarning
        and does not stop the run.

        Args:
            volume: Column-major volume, modified in place
            detectors: Detectors to mask

        Returns:
            MaskResult with per-detector coverage
        """
        exposed = self.exposed_voxels(self.padded_media(volume))
        flags = volume.grid()["is_detector"]

        result = MaskResult()
        for d, detector in enumerate(
            tqdm(detectors, desc="Masking detectors", disable=not self.verbose)
        ):
            footprint = self.compute_footprint(exposed, detector, volume.dims)
            count = int(np.count_nonzero(footprint))
            flags |= footprint
            result.coverage.append(count)

            if count == 0:
                message = (
                    f"detector {d + 1} is not located on an interface, "
                    "please check coordinates."
                )
                logger.warning(message)
                warnings.warn(message, DetectorCoverageWarning, stacklevel=2)
            else:
                logger.debug(f"detector {d + 1}: {count} voxels flagged")

        result.flagged_voxels = int(np.count_nonzero(flags))
        return result


def mask_detectors(
    volume: VolumeStore,
    detectors: Sequence[Detector],
    verbose: bool = False
) -> MaskResult:
    """Flag detector footprints on a volume in place.

    Convenience wrapper around :class:`DetectorMasker`.
    """
    return DetectorMasker(verbose=verbose).apply(volume, detectors)


def dump_mask(volume: VolumeStore, output_path: Path | str) -> Path:
    """Write the flagged volume in packed byte form.

    Args:
        volume: Volume after masking
        output_path: Destination, conventionally ``<session>.mask``

    Returns:
        Path written

    Raises:
        DomainIOError: If the mask file can not be saved
    """
    output_path = Path(output_path)
    try:
        volume.save_packed(output_path)
    except DomainIOError as e:
        raise DomainIOError(f"can not save mask file {output_path}") from e
    logger.info(f"Saved detector mask to {output_path}")
    return output_path
