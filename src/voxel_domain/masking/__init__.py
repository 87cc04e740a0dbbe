"""Detector visibility masking."""

from .detector_mask import DetectorMasker, MaskResult, mask_detectors, dump_mask

__all__ = ["DetectorMasker", "MaskResult", "mask_detectors", "dump_mask"]
