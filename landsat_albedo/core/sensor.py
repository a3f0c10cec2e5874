"""
Sensor and scene description for Landsat-class albedo retrieval.

This module holds the read-only inputs shared by every pixel computation:
the instrument identity, the observation geometry, the surface reflectance
and land-cover rasters and the class-level BRDF parameters derived from
concurrent MODIS observations.

Based on Shuai et al. (2011) "An algorithm for the retrieval of 30-m
snow-free albedo from Landsat surface reflectance and MODIS BRDF".
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple, Union

import numpy as np


# Sensor band (blue, green, red, NIR, SWIR1, SWIR2) position in MODIS band order
# (red, NIR, blue, green, 1.2um, SWIR1, SWIR2)
CANONICAL_BAND_INDEX = (2, 3, 0, 1, 5, 6)

N_OUTPUT_BANDS = 6
N_KERNELS = 3

DEFAULT_SCALE_FACTOR = 0.0001
DEFAULT_SR_FILL_VALUE = -9999
DEFAULT_CLASS_FILL_VALUE = 255


class Instrument(Enum):
    """Multispectral instruments supported by the narrow-to-broadband tables."""

    TM = "TM"
    ETM = "ETM"
    OLI = "OLI"
    MSI = "MSI"

    @property
    def is_legacy(self) -> bool:
        return self in (Instrument.TM, Instrument.ETM)

    @classmethod
    def parse(cls, value: Union[str, "Instrument"]) -> "Instrument":
        """
        Parse an instrument name.

        Parameters
        ----------
        value : str or Instrument
            Instrument member or name, e.g. 'OLI', 'etm+', 'L8', 'S2'

        Returns
        -------
        Instrument
            Matching instrument

        Raises
        ------
        ValueError
            If the name is not a known instrument
        """
        if isinstance(value, cls):
            return value

        key = str(value).strip().upper().replace("+", "")
        aliases = {
            "L4": "TM", "L5": "TM", "LT05": "TM",
            "L7": "ETM", "LE07": "ETM",
            "L8": "OLI", "L9": "OLI", "LC08": "OLI", "LC09": "OLI",
            "S2": "MSI", "S2A": "MSI", "S2B": "MSI",
        }
        key = aliases.get(key, key)

        try:
            return cls(key)
        except ValueError:
            raise ValueError(f"Unknown instrument: {value}")


@dataclass(frozen=True)
class Geometry:
    """Sun and view angles for one observation, in degrees."""

    solar_zenith: float
    solar_azimuth: float
    view_zenith: float = 0.0
    view_azimuth: float = 0.0


def _freeze(array: Optional[np.ndarray], dtype=None) -> Optional[np.ndarray]:
    if array is None:
        return None
    frozen = np.array(array, dtype=dtype, copy=True)
    frozen.setflags(write=False)
    return frozen


@dataclass(frozen=True)
class SensorContext:
    """
    Immutable snapshot of one scene as seen by the albedo algorithm.

    The arrays are copied and flagged read-only on construction so that the
    same context can be shared by any number of pixel computations.

    Parameters
    ----------
    instrument : Instrument
        Instrument that acquired the reflectance
    reflectance : np.ndarray
        Scaled surface reflectance with shape (nbands, rows, cols)
    classes : np.ndarray
        Land-cover class index with shape (rows, cols)
    brdf_params : np.ndarray
        Class-level kernel weights with shape (class_count + 1, n_modis_bands, 3)
        in (iso, vol, geo) order
    purity_counts : np.ndarray
        Pure-pixel count per class, shape (class_count + 1,)
    geometry : Geometry
        Scene-level sun and view angles
    class_count : int, optional
        Highest valid class index (default: brdf_params.shape[0] - 1)
    scale_factor : float, optional
        Multiplier turning stored reflectance into reflectance units
    fill_value : int or float, optional
        Reflectance fill value
    class_fill_value : int, optional
        Land-cover fill value
    class_spectra : np.ndarray, optional
        Mean reflectance per class, shape (class_count + 1, nbands), used by
        the closest-class search
    band_index : tuple, optional
        Sensor band to MODIS band mapping
    """

    instrument: Instrument
    reflectance: np.ndarray
    classes: np.ndarray
    brdf_params: np.ndarray
    purity_counts: np.ndarray
    geometry: Geometry
    class_count: Optional[int] = None
    scale_factor: float = DEFAULT_SCALE_FACTOR
    fill_value: Union[int, float] = DEFAULT_SR_FILL_VALUE
    class_fill_value: int = DEFAULT_CLASS_FILL_VALUE
    class_spectra: Optional[np.ndarray] = None
    band_index: Tuple[int, ...] = field(default=CANONICAL_BAND_INDEX)

    def __post_init__(self):
        # frozen dataclass: normalise fields through object.__setattr__
        object.__setattr__(self, "instrument", Instrument.parse(self.instrument))
        object.__setattr__(self, "reflectance", _freeze(self.reflectance))
        object.__setattr__(self, "classes", _freeze(self.classes))
        object.__setattr__(self, "brdf_params", _freeze(self.brdf_params, dtype=np.float64))
        object.__setattr__(self, "purity_counts", _freeze(self.purity_counts))
        object.__setattr__(self, "class_spectra", _freeze(self.class_spectra, dtype=np.float64))
        object.__setattr__(self, "band_index", tuple(int(i) for i in self.band_index))

        if self.class_count is None:
            object.__setattr__(self, "class_count", self.brdf_params.shape[0] - 1)

        self._validate()

    def _validate(self):
        if self.reflectance.ndim != 3:
            raise ValueError(
                f"Reflectance must have shape (nbands, rows, cols), got {self.reflectance.shape}"
            )
        if not 0 < self.nbands <= N_OUTPUT_BANDS:
            raise ValueError(f"Number of bands must be between 1 and {N_OUTPUT_BANDS}, got {self.nbands}")
        if self.classes.shape != self.reflectance.shape[1:]:
            raise ValueError(
                f"Class raster shape {self.classes.shape} does not match "
                f"reflectance shape {self.reflectance.shape[1:]}"
            )
        if self.brdf_params.ndim != 3 or self.brdf_params.shape[2] != N_KERNELS:
            raise ValueError(
                f"BRDF parameters must have shape (n_classes, n_bands, {N_KERNELS}), "
                f"got {self.brdf_params.shape}"
            )
        if self.class_count < 0 or self.brdf_params.shape[0] <= self.class_count:
            raise ValueError(
                f"BRDF parameters hold {self.brdf_params.shape[0]} classes, "
                f"class_count={self.class_count} needs {self.class_count + 1}"
            )
        if self.purity_counts.shape[0] <= self.class_count:
            raise ValueError(
                f"Purity counts hold {self.purity_counts.shape[0]} classes, "
                f"class_count={self.class_count} needs {self.class_count + 1}"
            )
        if self.scale_factor <= 0:
            raise ValueError(f"Scale factor must be positive, got {self.scale_factor}")

        validate_band_index(self.band_index, self.brdf_params.shape[1])

        if self.class_spectra is not None and self.class_spectra.shape[0] <= self.class_count:
            raise ValueError(
                f"Class spectra hold {self.class_spectra.shape[0]} classes, "
                f"class_count={self.class_count} needs {self.class_count + 1}"
            )

    @property
    def nbands(self) -> int:
        return self.reflectance.shape[0]

    @property
    def shape(self) -> Tuple[int, int]:
        return self.reflectance.shape[1], self.reflectance.shape[2]

    @property
    def saturation_value(self) -> float:
        """Largest stored reflectance kept as-is (0.99 in reflectance units)."""
        return 0.99 / self.scale_factor


def validate_band_index(band_index: Tuple[int, ...], n_canonical_bands: int) -> None:
    """
    Check a sensor-to-MODIS band mapping.

    Raises
    ------
    ValueError
        If the mapping does not hold six distinct in-range entries
    """
    if len(band_index) != N_OUTPUT_BANDS:
        raise ValueError(f"Band mapping must have {N_OUTPUT_BANDS} entries, got {len(band_index)}")
    if len(set(band_index)) != len(band_index):
        raise ValueError(f"Band mapping entries must be distinct: {band_index}")
    if min(band_index) < 0 or max(band_index) >= n_canonical_bands:
        raise ValueError(
            f"Band mapping {band_index} out of range for {n_canonical_bands} BRDF bands"
        )
