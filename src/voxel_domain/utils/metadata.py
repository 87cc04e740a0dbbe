"""Metadata generation for prepared domains."""

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Dict


class MetadataWriter:
    """Handles creation and writing of domain metadata files."""

    @staticmethod
    def domain_summary(domain) -> Dict[str, Any]:
        """Summarize a prepared domain as a JSON-serializable dict.

        Args:
            domain: PreparedDomain returned by DomainPreparer.prepare()
        """
        config = domain.config
        detectors = []
        for d, detector in enumerate(config.detectors):
            detectors.append({
                "index": d,
                "center": [float(v) for v in detector.center],
                "radius": float(detector.radius),
                "coverage": domain.coverage[d] if d < len(domain.coverage) else None,
            })

        return {
            "session": config.session,
            "created_at": datetime.now().isoformat(),
            "dims": list(domain.volume.dims),
            "medium_count": config.medium_count,
            "num_voxels": domain.volume.num_voxels,
            "num_occupied_voxels": domain.volume.occupied_count(),
            "num_detector_voxels": domain.volume.flag_count(),
            "source": {
                "position": [float(v) for v in domain.source.position],
                "direction": [float(v) for v in domain.source.direction],
            },
            "detectors": detectors,
            "has_acoustics": domain.acoustics is not None,
            "volume_file": str(config.volume_path) if config.volume_path else None,
            "acoustics_file": str(config.acoustics_path) if config.acoustics_path else None,
        }

    @staticmethod
    def write_domain_metadata(output_path: Path, domain):
        """Write domain-level metadata.

        Args:
            output_path: Path to the metadata JSON file
            domain: PreparedDomain to describe
        """
        metadata = MetadataWriter.domain_summary(domain)

        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        with open(output_path, "w") as f:
            json.dump(metadata, f, indent=2)

    @staticmethod
    def read_domain_metadata(input_path: Path) -> Dict[str, Any]:
        """Read domain metadata from JSON."""
        with open(input_path, "r") as f:
            return json.load(f)
