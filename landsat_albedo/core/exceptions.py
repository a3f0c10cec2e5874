"""
Error types raised by the per-pixel albedo computation.

Validation, class-resolution and anisotropy errors are per-pixel: the
scene driver skips the pixel and continues. ``NoValidReflectanceError``
maps to the quality code -1.
"""

from typing import Optional


class AlbedoError(Exception):
    """Base class for per-pixel albedo failures."""

    def __init__(self, message: str, row: Optional[int] = None, col: Optional[int] = None):
        if row is not None and col is not None:
            message = f"{message} at pixel ({row},{col})"
        super().__init__(message)
        self.row = row
        self.col = col


class InputValidationError(AlbedoError, ValueError):
    """The pixel's land-cover class is the fill value, negative or out of range."""


class ClassResolutionError(AlbedoError, LookupError):
    """No substitute class with usable BRDF parameters could be found."""


class AnisotropyComputationError(AlbedoError, ArithmeticError):
    """The albedo-to-reflectance ratio could not be computed."""


class NoValidReflectanceError(AlbedoError):
    """At least one band holds fill-value reflectance; no albedo is produced."""

    quality_code = -1
