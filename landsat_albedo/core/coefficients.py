"""
Narrow-to-broadband (N2B) regression coefficients.

Each coefficient set holds six band weights, in sensor band order
(blue, green, red, NIR, SWIR1, SWIR2), plus an intercept. The shortwave
set depends on the instrument and on the snow state; the visible and
near-infrared sets are shared by every instrument.

References:
- Liang (2000) - Narrowband to broadband conversions of land surface albedo
- He et al. (2012) - TM/ETM+ coefficients from ~250 USGS and ASTER spectra
- Sentinel-2 MSI coefficients from Q. Sun (2016), inherent (snow-free) and
  apparent (snow) sets
"""

import logging
from dataclasses import dataclass
from types import MappingProxyType
from typing import Sequence, Tuple, Union

import numpy as np

from .sensor import Instrument, N_OUTPUT_BANDS

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class N2BCoefficients:
    """One narrow-to-broadband regression: band weights and intercept."""

    name: str
    weights: Tuple[float, ...]
    intercept: float

    @classmethod
    def from_sequence(cls, name: str, values: Sequence[float]) -> "N2BCoefficients":
        if len(values) != N_OUTPUT_BANDS + 1:
            raise ValueError(
                f"Coefficient set {name} needs {N_OUTPUT_BANDS + 1} values, got {len(values)}"
            )
        return cls(name, tuple(float(v) for v in values[:-1]), float(values[-1]))

    def combine(self, narrowband: np.ndarray) -> float:
        """Weighted sum of the first ``len(narrowband)`` bands plus intercept."""
        n = len(narrowband)
        return float(np.dot(self.weights[:n], narrowband)) + self.intercept


@dataclass(frozen=True)
class CoefficientSet:
    """Shortwave, visible and near-infrared regressions used for one pixel."""

    shortwave: N2BCoefficients
    visible: N2BCoefficients
    nir: N2BCoefficients

    def products(self):
        return (("shortwave", self.shortwave), ("visible", self.visible), ("nir", self.nir))


TM_SW = N2BCoefficients.from_sequence(
    "TM_sw", (0.3206, 0.000, 0.1572, 0.3666, 0.1162, 0.0457, -0.0063)
)
TM_VIS = N2BCoefficients.from_sequence(
    "TM_vis", (0.6000, 0.2204, 0.1828, 0.000, 0.000, 0.000, -0.0033)
)
TM_NIR = N2BCoefficients.from_sequence(
    "TM_nir", (0.000, 0.000, 0.000, 0.6646, 0.2859, 0.0566, -0.0037)
)

LC8_N2B_LIB = N2BCoefficients.from_sequence(
    "LC8_n2b_lib",
    (0.2453421, 0.050843, 0.1803945, 0.3080635, 0.1331847, 0.0521349, 0.0011052),
)
LC8_N2B_LIB_SNOW = N2BCoefficients.from_sequence(
    "LC8_n2b_lib_snow",
    (1.22416, -0.431845, -0.3446429, 0.3367926, 0.1834496, 0.2554519, -0.0052154),
)

MSI_N2B_LIB_SW = N2BCoefficients.from_sequence(
    "MSI_n2b_lib_sw",
    (0.2687617, 0.0361839, 0.1501418, 0.3044542, 0.164433, 0.0356021, -0.0048673),
)
MSI_N2B_LIB_SW_SNOW = N2BCoefficients.from_sequence(
    "MSI_n2b_lib_sw_snow",
    (-0.1992158, 2.300191, -1.912122, 0.6714989, -2.272847, 1.934139, -0.0001144),
)

LEGACY_COEFFICIENTS = CoefficientSet(TM_SW, TM_VIS, TM_NIR)

# Built once, never mutated
COEFFICIENT_TABLE = MappingProxyType({
    (Instrument.TM, False): LEGACY_COEFFICIENTS,
    (Instrument.TM, True): LEGACY_COEFFICIENTS,
    (Instrument.ETM, False): LEGACY_COEFFICIENTS,
    (Instrument.ETM, True): LEGACY_COEFFICIENTS,
    (Instrument.OLI, False): CoefficientSet(LC8_N2B_LIB, TM_VIS, TM_NIR),
    (Instrument.OLI, True): CoefficientSet(LC8_N2B_LIB_SNOW, TM_VIS, TM_NIR),
    (Instrument.MSI, False): CoefficientSet(MSI_N2B_LIB_SW, TM_VIS, TM_NIR),
    (Instrument.MSI, True): CoefficientSet(MSI_N2B_LIB_SW_SNOW, TM_VIS, TM_NIR),
})


def select_coefficients(instrument: Union[Instrument, str], snow: bool = False) -> CoefficientSet:
    """
    Select the N2B coefficient sets for an instrument and snow state.

    Instruments without a dedicated table use the legacy (TM) coefficients.

    Parameters
    ----------
    instrument : Instrument or str
        Instrument identity
    snow : bool, optional
        True for snow-covered pixels

    Returns
    -------
    CoefficientSet
        Shortwave, visible and NIR regressions
    """
    try:
        instrument = Instrument.parse(instrument)
    except ValueError:
        logger.debug(f"No N2B table for instrument {instrument}, using legacy coefficients")
        return LEGACY_COEFFICIENTS

    return COEFFICIENT_TABLE.get((instrument, bool(snow)), LEGACY_COEFFICIENTS)
