"""Shared pytest fixtures for landsat-albedo tests."""

import numpy as np
import pytest

from landsat_albedo.core.sensor import Geometry, Instrument, SensorContext

# blue, green, red, NIR, SWIR1, SWIR2 (scaled by 1e-4)
PIXEL_REFLECTANCE = np.array([300, 500, 400, 3000, 2000, 1000])

SCALE = 0.0001


def make_brdf_params(n_classes=3, weights=(100.0, 20.0, 10.0)):
    """Usable kernel weights for every class and MODIS band."""
    params = np.zeros((n_classes, 7, 3))
    params[:, :, :] = weights
    return params


@pytest.fixture
def geometry():
    return Geometry(solar_zenith=30.0, solar_azimuth=150.0, view_zenith=0.0, view_azimuth=0.0)


@pytest.fixture
def constant_ratios():
    """Anisotropy function returning fixed ratios and recording its calls."""

    def _fn(weights, sza, saa, vza, vaa):
        _fn.calls.append((tuple(weights), sza, saa, vza, vaa))
        return _fn.ratios

    _fn.ratios = (0.9, 1.1)
    _fn.calls = []
    return _fn


@pytest.fixture
def make_context(geometry):
    """Factory fixture: 2x3 scene where every pixel holds PIXEL_REFLECTANCE and class 1."""

    def _make(**overrides):
        rows, cols = overrides.pop('shape', (2, 3))
        nbands = overrides.pop('nbands', 6)

        reflectance = np.empty((nbands, rows, cols), dtype=np.int16)
        reflectance[:] = PIXEL_REFLECTANCE[:nbands, np.newaxis, np.newaxis]

        kwargs = dict(
            instrument=Instrument.OLI,
            reflectance=reflectance,
            classes=np.ones((rows, cols), dtype=np.uint8),
            brdf_params=make_brdf_params(),
            purity_counts=np.array([20, 20, 20]),
            geometry=geometry,
            class_count=2,
            scale_factor=SCALE,
            fill_value=-9999,
            class_fill_value=255,
        )
        kwargs.update(overrides)
        return SensorContext(**kwargs)

    return _make
