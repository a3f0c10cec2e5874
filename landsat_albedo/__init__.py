"""
Landsat High Resolution Albedo - Python Implementation

Spectral and broadband (shortwave, visible, NIR) black-sky and white-sky
albedo from Landsat TM/ETM+/OLI and Sentinel-2 MSI surface reflectance,
using class-level MODIS BRDF parameters and narrow-to-broadband regressions.
"""

__version__ = "1.0.0"
__license__ = "GPL-3.0"

# Main entry points
from .core.processor import LandsatAlbedoProcessor, PixelAlbedo, compute_pixel_albedo
from .core.quality import QualityCode
from .core.sensor import Geometry, Instrument, SensorContext

__all__ = [
    "LandsatAlbedoProcessor",
    "PixelAlbedo",
    "compute_pixel_albedo",
    "QualityCode",
    "Geometry",
    "Instrument",
    "SensorContext",
    "__version__"
]
