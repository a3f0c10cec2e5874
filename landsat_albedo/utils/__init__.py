"""
Utility modules for Landsat albedo processing.

This package contains utility functions for:
- Input/output operations
- Land-cover class spectra and closest-class search
- Quality assessment of processed scenes
"""

from . import io, clustering, validation

__all__ = ["io", "clustering", "validation"]
