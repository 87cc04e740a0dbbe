"""Configuration for simulation domain preparation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

import numpy as np

from ..exceptions import ConfigError

# Medium indices share a byte with the detector flag, leaving 7 bits
MAX_MEDIA = 128
MAX_DETECTORS = 256


@dataclass
class Source:
    """Photon source in grid coordinates.

    Attributes:
        position: (x, y, z) launch position in grid units
        direction: (x, y, z) launch direction, not necessarily unit length
    """

    position: np.ndarray
    direction: np.ndarray = field(
        default_factory=lambda: np.array([0.0, 0.0, 1.0], dtype=np.float32)
    )

    def __post_init__(self):
        self.position = _as_float3(self.position, "source position")
        self.direction = _as_float3(self.direction, "source direction")

    def voxel(self) -> Tuple[int, int, int]:
        """Integer voxel containing the source position (per-axis floor)."""
        ix, iy, iz = np.floor(self.position).astype(int)
        return int(ix), int(iy), int(iz)


@dataclass
class Detector:
    """Spherical detector in grid coordinates.

    Attributes:
        center: (x, y, z) detector center in grid units
        radius: Capture radius in grid units
    """

    center: np.ndarray
    radius: float = 1.0

    def __post_init__(self):
        self.center = _as_float3(self.center, "detector center")
        self.radius = np.float32(self.radius)
        if not np.isfinite(self.radius) or self.radius < 0:
            raise ConfigError(f"detector radius must be >= 0, got {self.radius}")


@dataclass
class DomainConfig:
    """Everything needed to prepare a domain for the transport kernel.

    Attributes:
        dims: Grid dimensions (x, y, z) in voxels
        medium_count: Number of media including background (index 0)
        source: Photon source
        detectors: Detectors to mask onto the volume
        volume_path: Raw medium-index volume file (one byte per voxel)
        acoustics_path: Raw channel-planar acoustics file (4 floats per voxel)
        root_path: Prefix for relative volume/acoustics paths
        is_row_major: True if the volume file is stored with z fastest
        is_save_det: Compute the detector mask (off when there are no detectors)
        is_dump_mask: Write the mask file after masking and stop the run
        session: Session name used for output files
        output_dir: Directory for the mask and metadata files
        shapes: Procedural shapes painted onto the volume
        save_metadata: Write a JSON summary of the prepared domain
        verbose: Show progress bars
    """

    dims: Tuple[int, int, int]
    medium_count: int
    source: Source
    detectors: List[Detector] = field(default_factory=list)
    volume_path: Optional[Path] = None
    acoustics_path: Optional[Path] = None
    root_path: Optional[Path] = None
    is_row_major: bool = False
    is_save_det: bool = True
    is_dump_mask: bool = False
    session: str = "domain"
    output_dir: Path = Path(".")
    shapes: list = field(default_factory=list)
    save_metadata: bool = False
    verbose: bool = False

    def __post_init__(self):
        """Validate configuration and normalise types."""
        self.dims = validate_dims(self.dims)

        if not 1 <= self.medium_count <= MAX_MEDIA:
            raise ConfigError(
                f"medium_count must be in [1, {MAX_MEDIA}], got {self.medium_count}"
            )

        if len(self.detectors) > MAX_DETECTORS:
            raise ConfigError(
                f"at most {MAX_DETECTORS} detectors are supported, got {len(self.detectors)}"
            )

        if self.is_save_det and not self.detectors:
            self.is_save_det = False

        if not self.session:
            raise ConfigError("session name must not be empty")

        self.output_dir = Path(self.output_dir)
        if self.volume_path is not None:
            self.volume_path = self.resolve_path(self.volume_path)
        if self.acoustics_path is not None:
            self.acoustics_path = self.resolve_path(self.acoustics_path)

    @property
    def num_voxels(self) -> int:
        """Total number of voxels in the grid."""
        return self.dims[0] * self.dims[1] * self.dims[2]

    def resolve_path(self, path: Path | str) -> Path:
        """Join a relative input path onto root_path."""
        path = Path(path)
        if self.root_path is not None and not path.is_absolute():
            return Path(self.root_path) / path
        return path

    @property
    def mask_path(self) -> Path:
        """Path of the detector mask dump."""
        return self.output_dir / f"{self.session}.mask"

    @property
    def metadata_path(self) -> Path:
        """Path of the domain metadata file."""
        return self.output_dir / f"{self.session}_domain.json"


def validate_dims(dims: Sequence[int]) -> Tuple[int, int, int]:
    """Check that dims are three positive integers.

    Raises:
        ConfigError: If any dimension is missing or not positive
    """
    if len(dims) != 3:
        raise ConfigError(f"dims must have 3 entries, got {len(dims)}")
    nx, ny, nz = (int(d) for d in dims)
    if nx <= 0 or ny <= 0 or nz <= 0:
        raise ConfigError(f"all grid dimensions must be positive, got {(nx, ny, nz)}")
    return nx, ny, nz


def _as_float3(value, name: str) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float32).reshape(-1)
    if arr.shape != (3,):
        raise ConfigError(f"{name} must have 3 components, got {arr.shape[0]}")
    if not np.all(np.isfinite(arr)):
        raise ConfigError(f"{name} must be finite, got {arr.tolist()}")
    return arr
