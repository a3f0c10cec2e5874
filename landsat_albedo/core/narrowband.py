"""
Spectral (narrow-band) black-sky and white-sky albedo.

For every active band the surface reflectance is multiplied by the
albedo-to-reflectance ratio of the band's resolved BRDF. Bands without
usable kernel weights are treated as isotropic, and a negative
anisotropic albedo falls back to the Lambertian assumption.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple

import numpy as np

from .brdf_resolver import BRDFResolver
from .exceptions import AnisotropyComputationError
from .quality import FallbackTally
from .sensor import Geometry, N_OUTPUT_BANDS, SensorContext

AnisotropyFn = Callable[[Sequence[float], float, float, float, float], Tuple[float, float]]


def clamp_reflectance(value: float, saturation: float) -> float:
    """
    Constrain stored reflectance to [0, saturation].

    Negative values come from over-correction of the atmosphere; values
    above saturation are capped.
    """
    return min(max(float(value), 0.0), saturation)


@dataclass
class NarrowbandAlbedo:
    """Per-band BSA and WSA for one pixel (NaN for inactive or fill bands)."""

    bsa: np.ndarray
    wsa: np.ndarray
    has_fill: bool = False

    @classmethod
    def empty(cls) -> "NarrowbandAlbedo":
        return cls(np.full(N_OUTPUT_BANDS, np.nan), np.full(N_OUTPUT_BANDS, np.nan))


class NarrowbandCalculator:
    """
    Calculator for per-band albedo of a single pixel.

    Parameters
    ----------
    context : SensorContext
        Scene snapshot
    resolver : BRDFResolver
        Resolver supplying the kernel weights per band
    anisotropy_fn : callable, optional
        ``fn(weights, sza, saa, vza, vaa) -> (bsa_ratio, wsa_ratio)``;
        defaults to the RTLSR calculator in ``core.an_ratios``
    """

    def __init__(
        self,
        context: SensorContext,
        resolver: BRDFResolver,
        anisotropy_fn: Optional[AnisotropyFn] = None,
    ):
        if anisotropy_fn is None:
            from .an_ratios import calculate_an_ratios
            anisotropy_fn = calculate_an_ratios

        self.context = context
        self.resolver = resolver
        self.anisotropy_fn = anisotropy_fn
        self.logger = logging.getLogger(__name__)

    def compute(
        self,
        row: int,
        col: int,
        class_index: int,
        tally: FallbackTally,
        geometry: Geometry,
    ) -> NarrowbandAlbedo:
        """
        Compute narrow-band albedo for every active band of a pixel.

        Parameters
        ----------
        row, col : int
            Pixel position
        class_index : int
            Validated land-cover class of the pixel
        tally : FallbackTally
            Tally updated with the path taken at each band
        geometry : Geometry
            Observation geometry of the pixel

        Returns
        -------
        NarrowbandAlbedo
            Per-band albedo; ``has_fill`` is set if any band was fill

        Raises
        ------
        ClassResolutionError
            Propagated from the resolver
        AnisotropyComputationError
            If the ratio function fails or returns non-finite ratios for a band
        """
        ctx = self.context
        scale = ctx.scale_factor
        saturation = ctx.saturation_value
        result = NarrowbandAlbedo.empty()

        for band in range(ctx.nbands):
            resolved = self.resolver.resolve(class_index, band, tally, row, col)
            raw = ctx.reflectance[band, row, col]

            # NaN nodata never compares equal to the fill value
            if not np.isfinite(raw) or raw == ctx.fill_value:
                tally.no_data += 1
                result.has_fill = True
                continue

            reflectance = scale * clamp_reflectance(raw, saturation)

            if resolved.available:
                bsa_ratio, wsa_ratio = self._ratios(resolved.weights, geometry, row, col)
                bsa = reflectance * bsa_ratio
                wsa = reflectance * wsa_ratio

                if bsa < 0 or wsa < 0:
                    self.logger.debug(
                        f"Pixel ({row},{col}) band {band}: negative albedo "
                        f"(bsa={bsa:.4f}, wsa={wsa:.4f}), using Lambertian reflectance"
                    )
                    bsa = wsa = reflectance
                    tally.negative_anisotropy += 1
            else:
                bsa = wsa = reflectance
                tally.isotropic_fallback += 1

            result.bsa[band] = bsa
            result.wsa[band] = wsa

        return result

    def _ratios(self, weights, geometry: Geometry, row: int, col: int) -> Tuple[float, float]:
        try:
            bsa_ratio, wsa_ratio = self.anisotropy_fn(
                weights,
                geometry.solar_zenith,
                geometry.solar_azimuth,
                geometry.view_zenith,
                geometry.view_azimuth,
            )
        except AnisotropyComputationError as e:
            raise AnisotropyComputationError(str(e), row, col) from e
        except Exception as e:
            raise AnisotropyComputationError(
                f"Ratio function failed: {type(e).__name__}: {e}", row, col
            ) from e

        bsa_ratio, wsa_ratio = float(bsa_ratio), float(wsa_ratio)
        if not (np.isfinite(bsa_ratio) and np.isfinite(wsa_ratio)):
            raise AnisotropyComputationError(
                f"Non-finite ratios (bsa={bsa_ratio}, wsa={wsa_ratio}) for weights {tuple(weights)}",
                row, col,
            )

        return bsa_ratio, wsa_ratio
