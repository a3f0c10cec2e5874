"""
Core processing modules for Landsat albedo computation.

This package contains the per-pixel algorithm:
- Narrow-to-broadband coefficient selection
- Class-level BRDF resolution
- Albedo-to-reflectance ratios and narrow-band albedo
- Quality classification and broadband aggregation
"""

from .processor import LandsatAlbedoProcessor, compute_pixel_albedo

__all__ = ["LandsatAlbedoProcessor", "compute_pixel_albedo"]
