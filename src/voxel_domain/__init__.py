"""Voxel domain preparation for acousto-optic Monte Carlo transport."""

from .exceptions import (
    DomainSetupError,
    DomainIOError,
    DomainError,
    ConfigError,
    ResourceError,
    DetectorCoverageWarning,
)
from .utils.config import DomainConfig, Source, Detector
from .volume.store import VolumeStore, load_volume
from .acoustics.loader import AcousticsField, load_acoustics
from .source.placement import place_source
from .masking.detector_mask import DetectorMasker, MaskResult, mask_detectors, dump_mask
from .pipeline import DomainPreparer, PreparedDomain, run_domain_setup

__version__ = "0.1.0"
__all__ = [
    "DomainConfig",
    "Source",
    "Detector",
    "VolumeStore",
    "load_volume",
    "AcousticsField",
    "load_acoustics",
    "place_source",
    "DetectorMasker",
    "MaskResult",
    "mask_detectors",
    "dump_mask",
    "DomainPreparer",
    "PreparedDomain",
    "run_domain_setup",
    "DomainSetupError",
    "DomainIOError",
    "DomainError",
    "ConfigError",
    "ResourceError",
    "DetectorCoverageWarning",
]
