"""
Albedo-to-reflectance ratio calculations.

This module computes the ratios that convert a reflectance observed at a
given sun/view geometry into black-sky albedo (BSA) and white-sky albedo
(WSA), using RossThick-LiSparse-Reciprocal (RTLSR) kernel weights.

Based on:
- Lucht et al. (2000) - MODIS BRDF/albedo algorithm and kernel integrals
- Shuai et al. (2011) - Landsat albedo from MODIS BRDF
"""

import logging
from typing import Optional, Sequence, Tuple

import numpy as np

from .exceptions import AnisotropyComputationError
from .geometry import GeometryCalculator
from .sensor import Geometry

# Polynomial kernel integrals over the viewing hemisphere: g0 + g1*sza^2 + g2*sza^3
BSA_POLYNOMIALS = {
    'k_vol': (-0.007574, -0.070987, 0.307588),
    'k_geo': (-1.284909, -0.166314, 0.041840),
}

# Kernel integrals over both hemispheres
WSA_KERNEL_INTEGRALS = {
    'k_vol': 0.189184,
    'k_geo': -1.377622,
}


class AlbedoNadirRatioCalculator:
    """
    Calculator for albedo-to-reflectance ratios from BRDF kernel weights.

    The ratio is the albedo predicted by the kernel model divided by the
    reflectance the same model predicts at the observation geometry, so
    the overall scale of the weights cancels out.

    Parameters
    ----------
    geometry_calc : GeometryCalculator, optional
        Geometry calculator instance
    hb_ratio : float, optional
        Crown height to vertical radius ratio of the LiSparse kernel
    br_ratio : float, optional
        Vertical to horizontal crown radius ratio of the LiSparse kernel
    """

    def __init__(
        self,
        geometry_calc: Optional[GeometryCalculator] = None,
        hb_ratio: float = 2.0,
        br_ratio: float = 1.0,
    ):
        self.geometry_calc = geometry_calc or GeometryCalculator()
        self.hb_ratio = hb_ratio
        self.br_ratio = br_ratio
        self.logger = logging.getLogger(__name__)

    def __call__(
        self,
        weights: Sequence[float],
        solar_zenith: float,
        solar_azimuth: float,
        view_zenith: float,
        view_azimuth: float,
    ) -> Tuple[float, float]:
        return self.compute_ratios(
            weights, solar_zenith, solar_azimuth, view_zenith, view_azimuth
        )

    def compute_ratios(
        self,
        weights: Sequence[float],
        solar_zenith: float,
        solar_azimuth: float,
        view_zenith: float,
        view_azimuth: float,
    ) -> Tuple[float, float]:
        """
        Compute BSA and WSA ratios for one set of kernel weights.

        Parameters
        ----------
        weights : sequence of float
            Kernel weights (f_iso, f_vol, f_geo)
        solar_zenith, solar_azimuth, view_zenith, view_azimuth : float
            Observation geometry in degrees

        Returns
        -------
        tuple
            (bsa_ratio, wsa_ratio)

        Raises
        ------
        AnisotropyComputationError
            If the geometry is invalid or the modelled reflectance is not
            a positive finite number
        """
        if len(weights) != 3:
            raise AnisotropyComputationError(f"Expected 3 kernel weights, got {len(weights)}")

        geometry = Geometry(solar_zenith, solar_azimuth, view_zenith, view_azimuth)
        if not self.geometry_calc.validate_geometry(geometry)['all_valid']:
            raise AnisotropyComputationError(f"Invalid observation geometry {geometry}")

        f_iso, f_vol, f_geo = (float(w) for w in weights)
        theta_s, theta_v, phi = self.geometry_calc.to_radians(geometry)

        r_omega = self._compute_brdf_at_geometry(f_iso, f_vol, f_geo, theta_s, theta_v, phi)
        if not np.isfinite(r_omega) or r_omega <= 0:
            raise AnisotropyComputationError(
                f"Modelled reflectance {r_omega} not positive for weights {tuple(weights)}"
            )

        bsa = self._compute_bsa(f_iso, f_vol, f_geo, theta_s)
        wsa = self._compute_wsa(f_iso, f_vol, f_geo)

        return bsa / r_omega, wsa / r_omega

    def _compute_brdf_at_geometry(self, f_iso, f_vol, f_geo, theta_s, theta_v, phi) -> float:
        """
        R_omega = f_iso + f_vol * k_vol_omega + f_geo * k_geo_omega
        """
        k_vol = self._compute_volumetric_kernel(theta_s, theta_v, phi)
        k_geo = self._compute_geometric_kernel(theta_s, theta_v, phi)

        return float(f_iso + f_vol * k_vol + f_geo * k_geo)

    def _compute_bsa(self, f_iso, f_vol, f_geo, theta_s) -> float:
        g_vol = BSA_POLYNOMIALS['k_vol']
        g_geo = BSA_POLYNOMIALS['k_geo']

        k_vol = g_vol[0] + g_vol[1] * theta_s**2 + g_vol[2] * theta_s**3
        k_geo = g_geo[0] + g_geo[1] * theta_s**2 + g_geo[2] * theta_s**3

        return float(f_iso + f_vol * k_vol + f_geo * k_geo)

    def _compute_wsa(self, f_iso, f_vol, f_geo) -> float:
        return float(
            f_iso
            + f_vol * WSA_KERNEL_INTEGRALS['k_vol']
            + f_geo * WSA_KERNEL_INTEGRALS['k_geo']
        )

    def _compute_volumetric_kernel(self, theta_s, theta_v, phi):
        """
        Compute Ross-Thick volumetric kernel.

        Parameters
        ----------
        theta_s, theta_v, phi : float
            Solar zenith, view zenith and relative azimuth in radians
        """
        cos_phase, phase = self.geometry_calc.compute_phase_angle(theta_s, theta_v, phi)

        return ((np.pi / 2 - phase) * cos_phase + np.sin(phase)) / \
            (np.cos(theta_s) + np.cos(theta_v)) - np.pi / 4

    def _compute_geometric_kernel(self, theta_s, theta_v, phi):
        """
        Compute Li-Sparse reciprocal geometric kernel.

        Parameters
        ----------
        theta_s, theta_v, phi : float
            Solar zenith, view zenith and relative azimuth in radians
        """
        # Transform angles for the crown shape
        theta_s_prime = np.arctan(self.br_ratio * np.tan(theta_s))
        theta_v_prime = np.arctan(self.br_ratio * np.tan(theta_v))

        tan_s = np.tan(theta_s_prime)
        tan_v = np.tan(theta_v_prime)
        sec_s = 1 / np.cos(theta_s_prime)
        sec_v = 1 / np.cos(theta_v_prime)

        distance_sq = tan_s**2 + tan_v**2 - 2 * tan_s * tan_v * np.cos(phi)

        cos_t = self.hb_ratio * np.sqrt(
            np.maximum(distance_sq, 0.0) + (tan_s * tan_v * np.sin(phi))**2
        ) / (sec_s + sec_v)
        cos_t = np.clip(cos_t, -1.0, 1.0)
        t = np.arccos(cos_t)

        overlap = (1 / np.pi) * (t - np.sin(t) * cos_t) * (sec_s + sec_v)

        cos_phase_prime, _ = self.geometry_calc.compute_phase_angle(
            theta_s_prime, theta_v_prime, phi
        )

        return overlap - sec_s - sec_v + 0.5 * (1 + cos_phase_prime) * sec_s * sec_v


_default_calculator = AlbedoNadirRatioCalculator()


def calculate_an_ratios(
    weights: Sequence[float],
    solar_zenith: float,
    solar_azimuth: float,
    view_zenith: float,
    view_azimuth: float,
) -> Tuple[float, float]:
    """Compute (bsa_ratio, wsa_ratio) with the default RTLSR calculator."""
    return _default_calculator.compute_ratios(
        weights, solar_zenith, solar_azimuth, view_zenith, view_azimuth
    )
