"""Source placement."""

from .placement import place_source

__all__ = ["place_source"]
