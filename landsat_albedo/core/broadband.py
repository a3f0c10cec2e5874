"""
Narrow-to-broadband conversion.

Shortwave, visible and near-infrared albedo are linear combinations of the
spectral albedo. When a combination is not positive, it is recomputed from
the scaled surface reflectance instead of the anisotropy-corrected albedo.
"""

import logging
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from .coefficients import CoefficientSet

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BroadbandAlbedo:
    shortwave_bsa: float
    shortwave_wsa: float
    visible_bsa: float
    visible_wsa: float
    nir_bsa: float
    nir_wsa: float
    rescued: Tuple[str, ...] = ()

    def as_tuple(self) -> Tuple[float, ...]:
        return (
            self.shortwave_bsa, self.shortwave_wsa,
            self.visible_bsa, self.visible_wsa,
            self.nir_bsa, self.nir_wsa,
        )


def aggregate_broadband(
    bsa: np.ndarray,
    wsa: np.ndarray,
    reflectance: np.ndarray,
    coefficients: CoefficientSet,
    scale_factor: float,
) -> BroadbandAlbedo:
    """
    Convert spectral albedo of the active bands into broadband albedo.

    Parameters
    ----------
    bsa, wsa : np.ndarray
        Narrow-band black-sky and white-sky albedo of the active bands
    reflectance : np.ndarray
        Unclamped stored reflectance of the same bands
    coefficients : CoefficientSet
        Regressions selected for the pixel
    scale_factor : float
        Reflectance scale factor

    Returns
    -------
    BroadbandAlbedo
        Broadband values; ``rescued`` names the products recomputed from
        reflectance
    """
    nbands = len(bsa)
    scaled = scale_factor * np.asarray(reflectance[:nbands], dtype=np.float64)

    values = {}
    rescued = []

    for product, n2b in coefficients.products():
        product_bsa = n2b.combine(bsa)
        product_wsa = n2b.combine(wsa)

        if product_bsa <= 0 or product_wsa <= 0:
            logger.debug(
                f"{product} albedo not positive (bsa={product_bsa:.4f}, wsa={product_wsa:.4f}), "
                f"recomputing from reflectance with {n2b.name}"
            )
            product_bsa = product_wsa = n2b.combine(scaled)
            rescued.append(product)

        values[f"{product}_bsa"] = product_bsa
        values[f"{product}_wsa"] = product_wsa

    return BroadbandAlbedo(rescued=tuple(rescued), **values)
