"""
Land-cover class utilities.

This module provides the spectral description of land-cover classes and
the search for the closest class with usable BRDF parameters, used when a
pixel's own class has none for a band.
"""

import logging
from typing import Optional, Union

import numpy as np
from scipy.spatial.distance import cdist
from sklearn.preprocessing import StandardScaler

from ..core.brdf_resolver import is_usable
from ..core.sensor import SensorContext

logger = logging.getLogger(__name__)


def compute_class_spectra(
    reflectance: np.ndarray,
    classes: np.ndarray,
    class_count: int,
    fill_value: Union[int, float],
    class_fill_value: Optional[int] = None,
) -> np.ndarray:
    """
    Compute the mean reflectance of every class.

    Parameters
    ----------
    reflectance : np.ndarray
        Reflectance with shape (nbands, rows, cols)
    classes : np.ndarray
        Class raster with shape (rows, cols)
    class_count : int
        Highest class index
    fill_value : int or float
        Reflectance fill value, excluded from the means along with NaN
    class_fill_value : int, optional
        Class fill value, excluded from the means

    Returns
    -------
    np.ndarray
        Class spectra with shape (class_count + 1, nbands); NaN for classes
        without valid pixels
    """
    nbands = reflectance.shape[0]
    spectra = np.full((class_count + 1, nbands), np.nan)

    features = reflectance.reshape(nbands, -1).T.astype(np.float64)
    labels = classes.ravel()

    valid_mask = np.all(np.isfinite(features) & (features != fill_value), axis=1)
    valid_mask &= (labels >= 0) & (labels <= class_count)
    if class_fill_value is not None:
        valid_mask &= labels != class_fill_value

    for class_id in np.unique(labels[valid_mask]):
        class_mask = valid_mask & (labels == class_id)
        spectra[int(class_id)] = features[class_mask].mean(axis=0)

    logger.debug(f"Computed spectra for {int(np.sum(np.isfinite(spectra[:, 0])))} classes")

    return spectra


def find_closest_class(
    context: SensorContext,
    class_index: int,
    canonical_band: int,
) -> Optional[int]:
    """
    Find the class closest to ``class_index`` with usable BRDF parameters.

    Candidates are the other classes whose kernel weights at
    ``canonical_band`` are not all zero. Distances are Euclidean between
    standardized class spectra; without spectra, the nearest class index
    is used.

    Parameters
    ----------
    context : SensorContext
        Scene snapshot
    class_index : int
        Class lacking usable BRDF parameters
    canonical_band : int
        Band index into the BRDF parameters

    Returns
    -------
    int or None
        Closest class, or None if no class qualifies
    """
    candidates = np.array([
        j for j in range(context.class_count + 1)
        if j != class_index
        and j != context.class_fill_value
        and is_usable(context.brdf_params[j, canonical_band])
    ], dtype=int)

    if candidates.size == 0:
        return None

    spectra = context.class_spectra
    if spectra is not None and np.all(np.isfinite(spectra[class_index])):
        finite = np.all(np.isfinite(spectra), axis=1)
        candidates_with_spectra = candidates[finite[candidates]]

        if candidates_with_spectra.size > 0:
            scaler = StandardScaler().fit(spectra[finite])
            target = scaler.transform(spectra[class_index][np.newaxis, :])
            others = scaler.transform(spectra[candidates_with_spectra])

            distances = cdist(target, others)[0]
            return int(candidates_with_spectra[np.argmin(distances)])

    # argmin keeps the lower index on ties
    return int(candidates[np.argmin(np.abs(candidates - class_index))])
