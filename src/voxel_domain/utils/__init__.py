"""Utilities module."""

from .config import DomainConfig, Source, Detector
from .metadata import MetadataWriter

__all__ = ["DomainConfig", "Source", "Detector", "MetadataWriter"]
