#!/usr/bin/env python
"""CLI entry point for voxel domain preparation."""

from voxel_domain.pipeline import main

if __name__ == "__main__":
    main()
