"""Domain preparation pipeline."""

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from .acoustics.loader import AcousticsField, load_acoustics
from .exceptions import ConfigError, DomainSetupError
from .logging_config import setup_logging
from .masking.detector_mask import DetectorMasker, dump_mask
from .source.placement import place_source
from .utils.config import Detector, DomainConfig, Source
from .utils.metadata import MetadataWriter
from .volume.store import VolumeStore, load_volume
from .voxelization.shapes import paint_shapes

logger = logging.getLogger(__name__)


@dataclass
class PreparedDomain:
    """Finalized domain handed to the transport kernel.

    Attributes:
        config: Configuration the domain was built from
        volume: Column-major volume with detector flags
        source: Source placed on a medium voxel
        acoustics: Pressure records, if an acoustics file was given
        coverage: Voxels flagged per detector (empty if masking was skipped)
        mask_path: Where the mask was dumped, if it was
        metadata_path: Where metadata was written, if it was
    """

    config: DomainConfig
    volume: VolumeStore
    source: Source
    acoustics: Optional[AcousticsField] = None
    coverage: List[int] = field(default_factory=list)
    mask_path: Optional[Path] = None
    metadata_path: Optional[Path] = None

    @property
    def mask_dumped(self) -> bool:
        return self.mask_path is not None


class DomainPreparer:
    """Builds a simulation domain from a configuration.

    Stages, in order:
    1. Load the medium volume (or start from background for shapes only)
    2. Convert row-major volumes to column-major storage
    3. Paint procedural shapes
    4. Load the acoustic pressure field
    5. Move the source onto a medium voxel
    6. Flag detector footprints, optionally dumping the mask
    7. Optionally write metadata
    """

    def __init__(self, config: DomainConfig):
        """Initialize the preparer.

        Args:
            config: Domain configuration
        """
        self.config = config
        self.masker = DetectorMasker(verbose=config.verbose)

    def load_volume(self) -> VolumeStore:
        """Load or create the volume and bring it to column-major order."""
        config = self.config
        if config.volume_path is not None:
            volume = load_volume(config.volume_path, config.dims, config.medium_count)
            if config.is_row_major:
                volume.convert_row_to_column()
        elif config.shapes:
            volume = VolumeStore.empty(config.dims)
        else:
            raise ConfigError(
                "one must specify a binary volume file or shapes in order to run the simulation"
            )

        if config.shapes:
            paint_shapes(volume, config.shapes, config.medium_count)
            logger.info(f"Painted {len(config.shapes)} shapes")
        return volume

    def prepare(self) -> PreparedDomain:
        """Run every stage and return the finalized domain.

        Raises:
            DomainSetupError: Any stage failure; nothing is partially recovered
        """
        config = self.config
        volume = self.load_volume()

        acoustics = None
        if config.acoustics_path is not None:
            acoustics = load_acoustics(config.acoustics_path, config.dims)

        source = place_source(config.source, volume)

        domain = PreparedDomain(
            config=config,
            volume=volume,
            source=source,
            acoustics=acoustics,
        )

        if config.is_save_det:
            result = self.masker.apply(volume, config.detectors)
            domain.coverage = result.coverage
            logger.info(
                f"Flagged {result.flagged_voxels} detector voxels for "
                f"{len(config.detectors)} detectors"
            )
            if config.is_dump_mask:
                domain.mask_path = dump_mask(volume, config.mask_path)

        if config.save_metadata:
            MetadataWriter.write_domain_metadata(config.metadata_path, domain)
            domain.metadata_path = config.metadata_path

        return domain


def run_domain_setup(config: DomainConfig) -> PreparedDomain:
    """Prepare a domain, exiting the process after a diagnostic mask dump.

    This is the outermost layer: it is the only place that terminates the
    process, and only for the mask-dump side exit.

    Raises:
        SystemExit: With code 0 when the mask was dumped
    """
    domain = DomainPreparer(config).prepare()
    if domain.mask_dumped:
        logger.info(f"Detector mask written to {domain.mask_path}, stopping")
        raise SystemExit(0)
    return domain


def main(argv=None):
    """Command-line entry point for preparing a domain."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Prepare a voxel domain for acousto-optic Monte Carlo transport"
    )
    parser.add_argument(
        "--dims",
        type=int,
        nargs=3,
        required=True,
        metavar=("NX", "NY", "NZ"),
        help="Grid dimensions in voxels"
    )
    parser.add_argument(
        "--medium-count",
        type=int,
        required=True,
        help="Number of media including background"
    )
    parser.add_argument("--volume", type=Path, help="Raw medium-index volume file")
    parser.add_argument("--acoustics", type=Path, help="Raw acoustic pressure file")
    parser.add_argument("--root", type=Path, help="Prefix for relative input paths")
    parser.add_argument(
        "--row-major",
        action="store_true",
        help="Volume file is stored with z fastest"
    )
    parser.add_argument(
        "--source",
        type=float,
        nargs=3,
        required=True,
        metavar=("X", "Y", "Z"),
        help="Source position in grid units"
    )
    parser.add_argument(
        "--direction",
        type=float,
        nargs=3,
        default=[0.0, 0.0, 1.0],
        metavar=("X", "Y", "Z"),
        help="Source launch direction"
    )
    parser.add_argument(
        "--detector",
        type=float,
        nargs=4,
        action="append",
        default=[],
        metavar=("X", "Y", "Z", "R"),
        help="Detector center and radius (repeatable)"
    )
    parser.add_argument(
        "--no-save-det",
        action="store_true",
        help="Skip detector masking"
    )
    parser.add_argument(
        "--dump-mask",
        action="store_true",
        help="Write <session>.mask after masking and stop"
    )
    parser.add_argument("--session", default="domain", help="Session name")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=Path("."),
        help="Output directory"
    )
    parser.add_argument(
        "--save-metadata",
        action="store_true",
        help="Write a JSON summary of the prepared domain"
    )
    parser.add_argument("--verbose", action="store_true", help="Show progress bars and debug logging")
    parser.add_argument("--log-file", help="Also log to this file")

    args = parser.parse_args(argv)

    setup_logging(verbose=args.verbose, log_file=args.log_file)

    try:
        config = DomainConfig(
            dims=tuple(args.dims),
            medium_count=args.medium_count,
            source=Source(position=args.source, direction=args.direction),
            detectors=[Detector(center=d[:3], radius=d[3]) for d in args.detector],
            volume_path=args.volume,
            acoustics_path=args.acoustics,
            root_path=args.root,
            is_row_major=args.row_major,
            is_save_det=not args.no_save_det,
            is_dump_mask=args.dump_mask,
            session=args.session,
            output_dir=args.output_dir,
            save_metadata=args.save_metadata,
            verbose=args.verbose,
        )
        return run_domain_setup(config)
    except DomainSetupError as e:
        logger.error(f"Domain setup failed: {e}")
        raise SystemExit(1) from e


if __name__ == "__main__":
    main()
