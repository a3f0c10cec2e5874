"""
Per-pixel albedo computation and the scene-level driver.

This module chains the processing stages for one pixel:
1. Narrow-to-broadband coefficient selection (instrument, snow state)
2. BRDF resolution per band (own class or closest class)
3. Narrow-band BSA/WSA albedo
4. Quality classification
5. Broadband (shortwave, visible, NIR) aggregation

``LandsatAlbedoProcessor`` runs the chain over a scene, applying the
per-pixel error policy and collecting the results in an xarray Dataset.
"""

import logging
from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, Optional, Sequence, Tuple, Union

import numpy as np
import xarray as xr
from tqdm import tqdm

from .broadband import BroadbandAlbedo, aggregate_broadband
from .brdf_resolver import BRDFResolver, ClosestClassFn, HISTOGRAM_BINS, PUREPIX_THRESHOLD
from .coefficients import select_coefficients
from .exceptions import AlbedoError, AnisotropyComputationError, NoValidReflectanceError
from .narrowband import AnisotropyFn, NarrowbandCalculator
from .quality import FallbackTally, QA_FILL, QualityCode, classify_quality
from .sensor import Geometry, N_OUTPUT_BANDS, SensorContext

BROADBAND_VARIABLES = (
    "shortwave_bsa", "shortwave_wsa",
    "visible_bsa", "visible_wsa",
    "nir_bsa", "nir_wsa",
)

# Legacy 18-slot layout: (bsa, wsa) per band, then the broadband pairs
OUTPUT_VARIABLES = tuple(
    name
    for band in range(1, N_OUTPUT_BANDS + 1)
    for name in (f"bsa_b{band}", f"wsa_b{band}")
) + BROADBAND_VARIABLES


@dataclass(frozen=True)
class PixelAlbedo:
    """Albedo products and quality of one pixel."""

    bsa: np.ndarray
    wsa: np.ndarray
    broadband: BroadbandAlbedo
    quality: QualityCode
    tally: FallbackTally

    @property
    def shortwave_bsa(self) -> float:
        return self.broadband.shortwave_bsa

    @property
    def shortwave_wsa(self) -> float:
        return self.broadband.shortwave_wsa

    @property
    def visible_bsa(self) -> float:
        return self.broadband.visible_bsa

    @property
    def visible_wsa(self) -> float:
        return self.broadband.visible_wsa

    @property
    def nir_bsa(self) -> float:
        return self.broadband.nir_bsa

    @property
    def nir_wsa(self) -> float:
        return self.broadband.nir_wsa

    def to_vector(self) -> np.ndarray:
        """Return the 18 values in ``OUTPUT_VARIABLES`` order."""
        vector = np.empty(len(OUTPUT_VARIABLES))
        vector[0:2 * N_OUTPUT_BANDS:2] = self.bsa
        vector[1:2 * N_OUTPUT_BANDS:2] = self.wsa
        vector[2 * N_OUTPUT_BANDS:] = self.broadband.as_tuple()
        return vector


def compute_pixel_albedo(
    context: SensorContext,
    row: int,
    col: int,
    snow: bool = False,
    geometry: Optional[Geometry] = None,
    resolver: Optional[BRDFResolver] = None,
    calculator: Optional[NarrowbandCalculator] = None,
    anisotropy_fn: Optional[AnisotropyFn] = None,
    closest_class_fn: Optional[ClosestClassFn] = None,
) -> PixelAlbedo:
    """
    Compute spectral and broadband albedo for one pixel.

    Parameters
    ----------
    context : SensorContext
        Scene snapshot
    row, col : int
        Pixel position
    snow : bool, optional
        Use the snow regression for the shortwave product
    geometry : Geometry, optional
        Per-pixel geometry (default: scene geometry of the context)
    resolver : BRDFResolver, optional
        Reused resolver; built from ``closest_class_fn`` when omitted
    calculator : NarrowbandCalculator, optional
        Reused calculator; built from ``anisotropy_fn`` when omitted

    Returns
    -------
    PixelAlbedo
        Albedo products with quality code

    Raises
    ------
    InputValidationError
        If the pixel's class is invalid
    ClassResolutionError
        If a band has no usable BRDF and no substitute class
    AnisotropyComputationError
        If the albedo-to-reflectance ratio fails
    NoValidReflectanceError
        If any band holds fill-value reflectance
    """
    if resolver is None:
        resolver = BRDFResolver(context, closest_class_fn)
    if calculator is None:
        calculator = NarrowbandCalculator(context, resolver, anisotropy_fn)
    if geometry is None:
        geometry = context.geometry

    coefficients = select_coefficients(context.instrument, snow)
    class_index = resolver.validate_class(row, col)

    tally = FallbackTally()
    narrowband = calculator.compute(row, col, class_index, tally, geometry)

    if narrowband.has_fill:
        raise NoValidReflectanceError(
            f"{tally.no_data} of {context.nbands} bands hold fill reflectance", row, col
        )

    quality = classify_quality(tally, context.nbands)

    nbands = context.nbands
    broadband = aggregate_broadband(
        narrowband.bsa[:nbands],
        narrowband.wsa[:nbands],
        context.reflectance[:, row, col],
        coefficients,
        context.scale_factor,
    )
    if broadband.rescued:
        quality = QualityCode.REGRESSION_RESCUE

    return PixelAlbedo(
        bsa=narrowband.bsa,
        wsa=narrowband.wsa,
        broadband=broadband,
        quality=quality,
        tally=tally,
    )


class LandsatAlbedoProcessor:
    """
    Scene driver for Landsat-class albedo retrieval.

    Pixels failing with a per-pixel error are skipped: their albedo is NaN
    and their quality is ``QA_FILL`` (or -1 when reflectance is missing).

    Parameters
    ----------
    context : SensorContext
        Scene snapshot
    snow : bool or np.ndarray, optional
        Scene-wide snow flag or boolean snow mask of the scene shape
    anisotropy_fn : callable, optional
        Replacement albedo-to-reflectance ratio function
    closest_class_fn : callable, optional
        Replacement closest-class search
    purity_threshold : float, optional
        Fraction of the pure-pixel histogram (default: 0.15)
    histogram_bins : int, optional
        Pure-pixel histogram bins (default: 100)
    qa_fill : int, optional
        Quality value of skipped pixels (default: -128)
    coords : dict, optional
        'y' and 'x' coordinates for the output Dataset
    attrs : dict, optional
        Extra attributes (e.g. crs, transform) for the output Dataset
    """

    def __init__(
        self,
        context: SensorContext,
        snow: Union[bool, np.ndarray] = False,
        anisotropy_fn: Optional[AnisotropyFn] = None,
        closest_class_fn: Optional[ClosestClassFn] = None,
        **kwargs
    ):
        self.context = context
        self.snow = self._check_snow(snow)

        self.resolver = BRDFResolver(
            context,
            closest_class_fn,
            purity_threshold=kwargs.get('purity_threshold', PUREPIX_THRESHOLD),
            histogram_bins=kwargs.get('histogram_bins', HISTOGRAM_BINS),
        )
        self.calculator = NarrowbandCalculator(context, self.resolver, anisotropy_fn)

        self.qa_fill = kwargs.get('qa_fill', QA_FILL)
        self.coords = kwargs.get('coords')
        self.attrs = kwargs.get('attrs', {})

        # Processing state
        self.failures = Counter()
        self.albedo = None

        self._setup_logging()

        self.logger.info(
            f"Initialized LandsatAlbedoProcessor for {context.instrument.value} "
            f"({context.nbands} bands, {context.shape[0]}x{context.shape[1]} pixels)"
        )

    def _setup_logging(self):
        """Setup logging configuration."""
        self.logger = logging.getLogger(__name__)
        if not logging.getLogger().handlers and not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.INFO)

    def _check_snow(self, snow):
        if np.ndim(snow) == 0:
            return bool(snow)

        snow = np.asarray(snow, dtype=bool)
        if snow.shape != self.context.shape:
            raise ValueError(
                f"Snow mask shape {snow.shape} does not match scene shape {self.context.shape}"
            )
        return snow

    def _snow_at(self, row: int, col: int) -> bool:
        if isinstance(self.snow, bool):
            return self.snow
        return bool(self.snow[row, col])

    def process_pixel(
        self,
        row: int,
        col: int,
        snow: Optional[bool] = None,
        geometry: Optional[Geometry] = None,
    ) -> PixelAlbedo:
        """
        Compute albedo for one pixel.

        Errors are raised to the caller; see ``compute_pixel_albedo``.
        """
        if snow is None:
            snow = self._snow_at(row, col)

        return compute_pixel_albedo(
            self.context, row, col,
            snow=snow,
            geometry=geometry,
            resolver=self.resolver,
            calculator=self.calculator,
        )

    def process_row(self, row: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Compute albedo for every pixel of a row.

        Returns
        -------
        tuple
            (values, qa) with values of shape (cols, 18) and qa of shape (cols,)
        """
        ncols = self.context.shape[1]
        values = np.full((ncols, len(OUTPUT_VARIABLES)), np.nan)
        qa = np.full(ncols, self.qa_fill, dtype=np.int16)

        for col in range(ncols):
            try:
                pixel = self.process_pixel(row, col)
            except NoValidReflectanceError:
                qa[col] = NoValidReflectanceError.quality_code
                self.failures[NoValidReflectanceError.__name__] += 1
                continue
            except AnisotropyComputationError as e:
                self.failures[type(e).__name__] += 1
                self.logger.warning(f"Skipping pixel: {e}")
                continue
            except AlbedoError as e:
                self.failures[type(e).__name__] += 1
                self.logger.debug(f"Skipping pixel: {e}")
                continue

            values[col] = pixel.to_vector()
            qa[col] = int(pixel.quality)

        return values, qa

    def process_scene(
        self,
        rows: Optional[Sequence[int]] = None,
        show_progress: bool = True,
    ) -> xr.Dataset:
        """
        Compute albedo for every pixel of the scene.

        Parameters
        ----------
        rows : sequence of int, optional
            Rows to process (default: all)
        show_progress : bool, optional
            Display a progress bar over rows

        Returns
        -------
        xr.Dataset
            One variable per entry of ``OUTPUT_VARIABLES`` plus 'qa'
        """
        nrows, ncols = self.context.shape
        if rows is None:
            rows = range(nrows)

        self.logger.info(f"Computing albedo for {len(rows)} rows...")
        self.failures.clear()

        values = np.full((nrows, ncols, len(OUTPUT_VARIABLES)), np.nan)
        qa = np.full((nrows, ncols), self.qa_fill, dtype=np.int16)

        for row in tqdm(rows, desc="Albedo rows", disable=not show_progress):
            values[row], qa[row] = self.process_row(row)

        coords = self.coords or {'y': np.arange(nrows), 'x': np.arange(ncols)}
        data_vars = {
            name: (('y', 'x'), values[:, :, i])
            for i, name in enumerate(OUTPUT_VARIABLES)
        }
        data_vars['qa'] = (('y', 'x'), qa.astype(np.int8))

        attrs = {
            'instrument': self.context.instrument.value,
            'scale_factor': self.context.scale_factor,
            'qa_fill': self.qa_fill,
        }
        attrs.update(self.attrs)

        self.albedo = xr.Dataset(data_vars, coords=coords, attrs=attrs)

        for error_name, count in sorted(self.failures.items()):
            self.logger.info(f"{count} pixels skipped: {error_name}")
        self.logger.info("Albedo computation completed")

        return self.albedo

    def validate_results(self) -> Dict[str, Any]:
        """
        Assess the quality of the computed albedo.

        Returns
        -------
        dict
            Statistics from ``QualityAssessment.assess_quality``
        """
        if self.albedo is None:
            raise ValueError("Albedo must be computed first")

        from ..utils.validation import QualityAssessment

        self.logger.info("Validating results...")
        return QualityAssessment().assess_quality(self.albedo)

    def export_summary_report(self, output_file: Optional[str] = None) -> str:
        """
        Export a summary report of the processing results.

        Parameters
        ----------
        output_file : str, optional
            Output file path for the report

        Returns
        -------
        str
            Report content as string
        """
        ctx = self.context
        report_lines = [
            "# Landsat Albedo Processing Report",
            f"\nProcessing Date: {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}",
            f"Instrument: {ctx.instrument.value}",
            f"Bands: {ctx.nbands}",
            f"Scene size: {ctx.shape[0]} x {ctx.shape[1]}",
            f"Geometry: SZA={ctx.geometry.solar_zenith}, SAA={ctx.geometry.solar_azimuth}, "
            f"VZA={ctx.geometry.view_zenith}, VAA={ctx.geometry.view_azimuth}",
            "\n## Processing Status",
        ]

        if self.albedo is None:
            report_lines.append("Albedo not computed")
        else:
            counts = self.validate_results()['quality_codes']
            report_lines.append("\n| QA | Pixels |")
            report_lines.append("|---|---|")
            for code, count in counts.items():
                report_lines.append(f"| {code} | {count} |")

            if self.failures:
                report_lines.append("\n## Skipped Pixels")
                for error_name, count in sorted(self.failures.items()):
                    report_lines.append(f"- {error_name}: {count}")

        report_content = "\n".join(report_lines)

        if output_file:
            with open(output_file, "w") as f:
                f.write(report_content)
            self.logger.info(f"Report saved to {output_file}")

        return report_content
