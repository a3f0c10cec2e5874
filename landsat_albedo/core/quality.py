"""
Per-pixel quality flag for the albedo product.

The quality code records the least confident path a pixel went through:
concurrent BRDF from the pixel's own class, a borrowed class, a Lambertian
rescue of a negative narrow-band albedo, or a rescue of a non-physical
broadband regression.
"""

from dataclasses import dataclass, fields
from enum import IntEnum


class QualityCode(IntEnum):
    NO_VALID_REFLECTANCE = -1
    CONCURRENT_BRDF = 0      # class BRDF from enough pure pixels at every band
    SPARSE_BRDF = 1          # class BRDF at every band, some from few pure pixels
    BORROWED_BRDF = 2        # closest-class BRDF used for some bands
    LAMBERTIAN_RESCUE = 3    # negative anisotropic albedo replaced at some band
    REGRESSION_RESCUE = 4    # broadband regression recomputed from reflectance
    INDETERMINATE = 5        # no rule above matched


# Scene raster value for pixels skipped on a per-pixel error
QA_FILL = -128


@dataclass
class FallbackTally:
    """Per-pixel counts of the path taken at each band."""

    high_confidence: int = 0
    marginal_confidence: int = 0
    borrowed_class: int = 0
    negative_anisotropy: int = 0
    isotropic_fallback: int = 0
    no_data: int = 0

    def as_dict(self):
        return {f.name: getattr(self, f.name) for f in fields(self)}


def classify_quality(tally: FallbackTally, nbands: int) -> QualityCode:
    """
    Assign the quality code from the band tallies.

    Rules are checked in order and the first match wins. A pixel matching
    none of them (e.g. isotropic bands from a class with few pure pixels)
    is ``INDETERMINATE``.

    Parameters
    ----------
    tally : FallbackTally
        Counts accumulated over the active bands
    nbands : int
        Number of active bands

    Returns
    -------
    QualityCode
        Quality code for the pixel
    """
    if tally.high_confidence == nbands:
        return QualityCode.CONCURRENT_BRDF
    if tally.high_confidence + tally.marginal_confidence == nbands:
        return QualityCode.SPARSE_BRDF
    if tally.borrowed_class + tally.high_confidence + tally.marginal_confidence == nbands:
        return QualityCode.BORROWED_BRDF
    if tally.negative_anisotropy > 0:
        return QualityCode.LAMBERTIAN_RESCUE
    return QualityCode.INDETERMINATE
