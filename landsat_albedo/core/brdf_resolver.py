"""
Class-level BRDF parameter lookup.

Each land-cover class carries MODIS kernel weights per band, averaged over
the pure pixels of that class. When a class has no weights for a band, the
spectrally closest class with weights stands in for it.
"""

import logging
from dataclasses import dataclass
from typing import Callable, Optional, Tuple

import numpy as np

from .exceptions import ClassResolutionError, InputValidationError
from .quality import FallbackTally
from .sensor import SensorContext

# Fraction of the pure-pixel histogram a class needs for high confidence
PUREPIX_THRESHOLD = 0.15
HISTOGRAM_BINS = 100

ClosestClassFn = Callable[[SensorContext, int, int], Optional[int]]


def purity_limit(threshold: float = PUREPIX_THRESHOLD, bins: int = HISTOGRAM_BINS) -> int:
    """Pure-pixel count separating high-confidence from marginal classes."""
    return int(round(threshold * bins))


def is_usable(weights: np.ndarray) -> bool:
    """BRDF weights are usable unless all three are exactly zero."""
    return not np.all(np.asarray(weights) == 0)


def round_weights(weights: np.ndarray) -> Tuple[int, int, int]:
    """Round kernel weights to the nearest integer, halves upward."""
    return tuple(int(w) for w in np.floor(np.asarray(weights, dtype=np.float64) + 0.5))


@dataclass(frozen=True)
class ResolvedBRDF:
    """Kernel weights chosen for one band of one pixel."""

    band: int
    canonical_band: int
    class_index: int
    weights: Tuple[int, int, int]
    borrowed: bool = False

    @property
    def available(self) -> bool:
        return any(w != 0 for w in self.weights)


class BRDFResolver:
    """
    Resolve the kernel weights used for each band of a pixel.

    Parameters
    ----------
    context : SensorContext
        Scene snapshot
    closest_class_fn : callable, optional
        ``fn(context, class_index, canonical_band) -> class index or None``;
        defaults to the spectral-distance search in ``utils.clustering``
    purity_threshold : float, optional
        Fraction of the pure-pixel histogram (default: 0.15)
    histogram_bins : int, optional
        Pure-pixel histogram bins (default: 100)
    """

    def __init__(
        self,
        context: SensorContext,
        closest_class_fn: Optional[ClosestClassFn] = None,
        purity_threshold: float = PUREPIX_THRESHOLD,
        histogram_bins: int = HISTOGRAM_BINS,
    ):
        if closest_class_fn is None:
            from ..utils.clustering import find_closest_class
            closest_class_fn = find_closest_class

        self.context = context
        self.closest_class_fn = closest_class_fn
        self.purity_limit = purity_limit(purity_threshold, histogram_bins)
        self.logger = logging.getLogger(__name__)

    def validate_class(self, row: int, col: int) -> int:
        """
        Return the pixel's class index.

        Raises
        ------
        InputValidationError
            If the class is the fill value, negative or above the class count
        """
        icls = int(self.context.classes[row, col])

        if icls == self.context.class_fill_value:
            raise InputValidationError(f"Class fill value {icls}", row, col)
        if icls < 0 or icls > self.context.class_count:
            raise InputValidationError(
                f"Class {icls} outside [0, {self.context.class_count}]", row, col
            )

        return icls

    def resolve(
        self,
        class_index: int,
        band: int,
        tally: FallbackTally,
        row: Optional[int] = None,
        col: Optional[int] = None,
    ) -> ResolvedBRDF:
        """
        Resolve the kernel weights for one band and update the tally.

        Parameters
        ----------
        class_index : int
            Validated class of the pixel
        band : int
            Sensor band index
        tally : FallbackTally
            Tally of the pixel being processed

        Returns
        -------
        ResolvedBRDF
            Rounded weights and the class they came from

        Raises
        ------
        ClassResolutionError
            If the class has no usable weights and no substitute exists
        """
        canonical_band = self.context.band_index[band]
        params = self.context.brdf_params

        if is_usable(params[class_index, canonical_band]):
            brdf_class = class_index
            borrowed = False

            purity = self.context.purity_counts[class_index]
            if purity > self.purity_limit:
                tally.high_confidence += 1
            elif purity == self.purity_limit:
                tally.marginal_confidence += 1
        else:
            brdf_class = self.closest_class_fn(self.context, class_index, canonical_band)
            if brdf_class is None or brdf_class < 0:
                raise ClassResolutionError(
                    f"No closest class for class {class_index} at BRDF band {canonical_band}",
                    row, col,
                )
            brdf_class = int(brdf_class)
            borrowed = True
            tally.borrowed_class += 1

            self.logger.debug(
                f"Band {band}: class {class_index} borrows BRDF from class {brdf_class}"
            )

        return ResolvedBRDF(
            band=band,
            canonical_band=canonical_band,
            class_index=brdf_class,
            weights=round_weights(params[brdf_class, canonical_band]),
            borrowed=borrowed,
        )
