"""
Geometric calculations for sun and view angles.

This module converts the observation geometry of a pixel into the
quantities the kernel-driven BRDF model needs: zenith angles and the
relative azimuth in radians, and the phase angle between the sun and
view directions.
"""

import logging
from typing import Dict, Tuple

import numpy as np

from .sensor import Geometry

# Largest zenith angle (degrees) accepted by the kernel model
MAX_ZENITH = 89.0


class GeometryCalculator:
    """
    Calculator for sun and view geometry angles.

    This class provides methods to compute and process geometric angles
    needed for BRDF calculations, including:
    - Relative azimuth angles
    - Phase angles
    - Angle range validation
    """

    def __init__(self, max_zenith: float = MAX_ZENITH):
        self.max_zenith = max_zenith
        self.logger = logging.getLogger(__name__)

    def compute_phase_angle(self, theta_s, theta_v, phi):
        """
        Compute phase angle from sun/view geometry.

        Parameters
        ----------
        theta_s : float or np.ndarray
            Solar zenith angle in radians
        theta_v : float or np.ndarray
            View zenith angle in radians
        phi : float or np.ndarray
            Relative azimuth angle in radians

        Returns
        -------
        tuple
            (cos_phase, phase) with phase in radians
        """
        cos_phase = (np.cos(theta_s) * np.cos(theta_v) +
                     np.sin(theta_s) * np.sin(theta_v) * np.cos(phi))

        # Ensure cos_phase is within valid range [-1, 1]
        cos_phase = np.clip(cos_phase, -1.0, 1.0)

        return cos_phase, np.arccos(cos_phase)

    def normalize_azimuth(self, azimuth):
        """Normalize azimuth angles in radians to [0, 2π)."""
        return np.mod(azimuth, 2 * np.pi)

    def compute_relative_azimuth(self, phi_s, phi_v):
        """
        Compute relative azimuth angle between sun and view directions.

        The result is folded so that it is always the angle between the two
        directions, in [0, π].

        Parameters
        ----------
        phi_s : float or np.ndarray
            Solar azimuth angle in radians
        phi_v : float or np.ndarray
            View azimuth angle in radians

        Returns
        -------
        float or np.ndarray
            Relative azimuth angle in radians [0, π]
        """
        phi_rel = np.abs(self.normalize_azimuth(phi_s) - self.normalize_azimuth(phi_v))
        return np.where(phi_rel > np.pi, 2 * np.pi - phi_rel, phi_rel)

    def validate_geometry(self, geometry: Geometry) -> Dict[str, bool]:
        """
        Check that a geometry can be used by the kernel model.

        Zenith angles must lie in [0, max_zenith] degrees and every angle
        must be finite.
        """
        angles = [
            geometry.solar_zenith, geometry.solar_azimuth,
            geometry.view_zenith, geometry.view_azimuth,
        ]
        validation = {
            'no_nan': bool(np.all(np.isfinite(angles))),
            'theta_s_valid': 0.0 <= geometry.solar_zenith <= self.max_zenith,
            'theta_v_valid': 0.0 <= geometry.view_zenith <= self.max_zenith,
        }
        validation['all_valid'] = all(validation.values())

        if not validation['all_valid']:
            for key, value in validation.items():
                if not value:
                    self.logger.debug(f"Invalid geometry {geometry}: {key}")

        return validation

    def to_radians(self, geometry: Geometry) -> Tuple[float, float, float]:
        """Return (theta_s, theta_v, phi) in radians."""
        theta_s = np.radians(geometry.solar_zenith)
        theta_v = np.radians(geometry.view_zenith)
        phi = self.compute_relative_azimuth(
            np.radians(geometry.solar_azimuth), np.radians(geometry.view_azimuth)
        )
        return float(theta_s), float(theta_v), float(phi)
