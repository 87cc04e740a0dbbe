"""Procedural shapes for building medium volumes."""

from .shapes import Shape, Sphere, Box, Cylinder, Layers, MeshShape, paint_shapes

__all__ = ["Shape", "Sphere", "Box", "Cylinder", "Layers", "MeshShape", "paint_shapes"]
