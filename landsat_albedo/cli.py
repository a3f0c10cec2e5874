#!/usr/bin/env python3
"""
Command-line interface for Landsat albedo processing.

This module provides a command-line interface to the landsat-albedo
package, turning a surface reflectance scene, its land-cover classes and
a class-level BRDF table into spectral and broadband albedo GeoTIFFs.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import Optional, Sequence, Tuple

import xarray as xr

from . import LandsatAlbedoProcessor, __version__
from .core.brdf_resolver import HISTOGRAM_BINS, PUREPIX_THRESHOLD
from .core.geometry import MAX_ZENITH
from .core.sensor import (
    DEFAULT_CLASS_FILL_VALUE,
    DEFAULT_SCALE_FACTOR,
    DEFAULT_SR_FILL_VALUE,
    N_OUTPUT_BANDS,
    Geometry,
    Instrument,
    SensorContext,
)
from .utils.clustering import compute_class_spectra
from .utils.io import load_brdf_table, load_raster, save_albedo_dataset


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Setup logging configuration.

    Parameters
    ----------
    verbose : bool, optional
        Enable verbose logging
    quiet : bool, optional
        Only log errors
    """
    if quiet:
        level = logging.ERROR
    else:
        level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )


def validate_instrument(value: str) -> Instrument:
    """
    Parse an instrument name for argparse.

    Parameters
    ----------
    value : str
        Instrument name, e.g. 'OLI' or 'ETM+'

    Returns
    -------
    Instrument
        Parsed instrument
    """
    try:
        return Instrument.parse(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(
            f"{e}. Use one of {', '.join(i.value for i in Instrument)}."
        )


def validate_zenith(value: str) -> float:
    """Parse a zenith angle in degrees within [0, MAX_ZENITH]."""
    try:
        angle = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid angle: {value}")

    if not 0.0 <= angle <= MAX_ZENITH:
        raise argparse.ArgumentTypeError(
            f"Zenith angle must be in [0, {MAX_ZENITH}], got {angle}"
        )
    return angle


def validate_bands(value: str) -> Tuple[int, ...]:
    """
    Parse a comma-separated list of 1-indexed raster bands.

    Parameters
    ----------
    value : str
        Bands in blue, green, red, NIR, SWIR1, SWIR2 order, e.g. '1,2,3,4,5,7'

    Returns
    -------
    tuple
        Band numbers
    """
    try:
        bands = tuple(int(b) for b in value.split(","))
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid band list: {value}")

    if not 0 < len(bands) <= N_OUTPUT_BANDS:
        raise argparse.ArgumentTypeError(
            f"Between 1 and {N_OUTPUT_BANDS} bands are needed, got {len(bands)}"
        )
    if min(bands) < 1 or len(set(bands)) != len(bands):
        raise argparse.ArgumentTypeError(f"Bands must be distinct and >= 1: {value}")
    return bands


def create_parser() -> argparse.ArgumentParser:
    """
    Create command-line argument parser.

    Returns
    -------
    argparse.ArgumentParser
        Configured argument parser
    """
    parser = argparse.ArgumentParser(
        description='Compute spectral and broadband albedo from Landsat/Sentinel-2 '
                    'surface reflectance and class-level MODIS BRDF',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Landsat 8 scene, snow-free
  lnd-albedo --instrument OLI --reflectance sr.tif --classes classes.tif \\
             --brdf brdf_table.npz --sza 35.2 --saa 142.7 --output ./results

  # Landsat 7 scene with a snow mask and off-nadir view
  lnd-albedo --instrument ETM+ --reflectance sr.tif --classes classes.tif \\
             --brdf brdf_table.npz --sza 60.1 --saa 160.0 --vza 5.0 --vaa 100.0 \\
             --snow-mask snow.tif --output ./results --verbose
"""
    )

    parser.add_argument(
        '--version', action='version', version=f'landsat-albedo {__version__}'
    )

    # Required arguments
    required = parser.add_argument_group('required arguments')

    required.add_argument(
        '--instrument', type=validate_instrument, required=True,
        help='Instrument: TM, ETM, OLI or MSI'
    )

    required.add_argument(
        '--reflectance', type=Path, required=True,
        help='Surface reflectance GeoTIFF, bands ordered blue, green, red, NIR, SWIR1, SWIR2'
    )

    required.add_argument(
        '--classes', type=Path, required=True,
        help='Land-cover class GeoTIFF on the reflectance grid'
    )

    required.add_argument(
        '--brdf', type=Path, required=True,
        help='Class-level BRDF table (.npz with brdf_params and purity_counts)'
    )

    required.add_argument(
        '--sza', type=validate_zenith, required=True,
        help='Solar zenith angle in degrees'
    )

    required.add_argument(
        '--saa', type=float, required=True,
        help='Solar azimuth angle in degrees'
    )

    required.add_argument(
        '--output', type=Path, required=True,
        help='Output directory for results'
    )

    # Optional arguments
    parser.add_argument(
        '--vza', type=validate_zenith, default=0.0,
        help='View zenith angle in degrees (default: 0)'
    )

    parser.add_argument(
        '--vaa', type=float, default=0.0,
        help='View azimuth angle in degrees (default: 0)'
    )

    snow_group = parser.add_mutually_exclusive_group()

    snow_group.add_argument(
        '--snow', action='store_true',
        help='Use snow narrow-to-broadband coefficients for the whole scene'
    )

    snow_group.add_argument(
        '--snow-mask', type=Path,
        help='Snow mask GeoTIFF (non-zero = snow)'
    )

    # Scene parameters
    scene_group = parser.add_argument_group('scene parameters')

    scene_group.add_argument(
        '--scale-factor', type=float, default=DEFAULT_SCALE_FACTOR,
        help=f'Reflectance scale factor (default: {DEFAULT_SCALE_FACTOR})'
    )

    scene_group.add_argument(
        '--fill-value', type=float, default=None,
        help='Reflectance fill value (default: the raster nodata value, '
             f'else {DEFAULT_SR_FILL_VALUE})'
    )

    scene_group.add_argument(
        '--bands', type=validate_bands, default=None,
        help='Reflectance bands to use, 1-indexed, in blue, green, red, NIR, SWIR1, '
             'SWIR2 order (default: all bands, e.g. 1,2,3,4,5,7 for a LEDAPS stack)'
    )

    scene_group.add_argument(
        '--class-fill', type=int, default=DEFAULT_CLASS_FILL_VALUE,
        help=f'Land-cover fill value (default: {DEFAULT_CLASS_FILL_VALUE})'
    )

    # Quality parameters
    quality_group = parser.add_argument_group('quality parameters')

    quality_group.add_argument(
        '--purity-threshold', type=float, default=PUREPIX_THRESHOLD,
        help=f'Pure-pixel fraction for high-confidence BRDF (default: {PUREPIX_THRESHOLD})'
    )

    quality_group.add_argument(
        '--histogram-bins', type=int, default=HISTOGRAM_BINS,
        help=f'Pure-pixel histogram bins (default: {HISTOGRAM_BINS})'
    )

    # Output options
    output_group = parser.add_argument_group('output options')

    output_group.add_argument(
        '--prefix', default='albedo',
        help='Output file name prefix (default: albedo)'
    )

    output_group.add_argument(
        '--no-report', action='store_true',
        help='Skip generation of summary report'
    )

    # Logging
    parser.add_argument(
        '--verbose', '-v', action='store_true',
        help='Enable verbose logging'
    )

    parser.add_argument(
        '--quiet', '-q', action='store_true',
        help='Suppress all output except errors'
    )

    return parser


def build_context(args: argparse.Namespace) -> Tuple[SensorContext, xr.DataArray]:
    """
    Load the scene inputs named on the command line.

    Returns
    -------
    tuple
        (context, reflectance) where reflectance keeps the georeferencing
        of the input scene
    """
    reflectance = load_raster(args.reflectance)
    if reflectance.ndim == 2:
        reflectance = reflectance.expand_dims('band')

    if args.bands is not None:
        if max(args.bands) > reflectance.sizes['band']:
            raise ValueError(
                f"Band {max(args.bands)} requested but {args.reflectance} has "
                f"{reflectance.sizes['band']} bands"
            )
        reflectance = reflectance.isel(band=[b - 1 for b in args.bands])

    fill_value = args.fill_value
    if fill_value is None:
        fill_value = reflectance.attrs.get('nodata')
    if fill_value is None:
        fill_value = DEFAULT_SR_FILL_VALUE

    classes = load_raster(args.classes, band=1)
    table = load_brdf_table(args.brdf)
    class_count = table['brdf_params'].shape[0] - 1

    class_spectra = table['class_spectra']
    if class_spectra is None:
        class_spectra = compute_class_spectra(
            reflectance.values, classes.values, class_count,
            fill_value, args.class_fill,
        )

    return SensorContext(
        instrument=args.instrument,
        reflectance=reflectance.values,
        classes=classes.values,
        brdf_params=table['brdf_params'],
        purity_counts=table['purity_counts'],
        geometry=Geometry(args.sza, args.saa, args.vza, args.vaa),
        class_count=class_count,
        scale_factor=args.scale_factor,
        fill_value=fill_value,
        class_fill_value=args.class_fill,
        class_spectra=class_spectra,
    ), reflectance


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main CLI function.

    Returns
    -------
    int
        Exit code (0 for success, 1 for error)
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    setup_logging(args.verbose, args.quiet)
    logger = logging.getLogger(__name__)

    try:
        for path in (args.reflectance, args.classes, args.brdf):
            if not path.exists():
                raise FileNotFoundError(f"Input does not exist: {path}")

        if args.snow_mask and not args.snow_mask.exists():
            raise FileNotFoundError(f"Snow mask does not exist: {args.snow_mask}")

        logger.info("Loading scene inputs...")
        context, reflectance = build_context(args)

        snow = args.snow
        if args.snow_mask:
            snow = load_raster(args.snow_mask, band=1).values != 0

        processor = LandsatAlbedoProcessor(
            context,
            snow=snow,
            purity_threshold=args.purity_threshold,
            histogram_bins=args.histogram_bins,
            coords={'y': reflectance.y.values, 'x': reflectance.x.values},
            attrs={
                'crs': reflectance.attrs.get('crs'),
                'transform': reflectance.attrs.get('transform'),
            },
        )

        albedo = processor.process_scene(show_progress=not args.quiet)

        args.output.mkdir(parents=True, exist_ok=True)
        paths = save_albedo_dataset(albedo, args.output, prefix=args.prefix)

        quality_stats = processor.validate_results()
        for label, count in quality_stats['quality_codes'].items():
            logger.info(f"QA {label}: {count} pixels")

        if not args.no_report:
            report_file = args.output / f'{args.prefix}_report.md'
            processor.export_summary_report(str(report_file))

        logger.info(f"Albedo written to {paths['albedo']}")
        logger.info("Processing completed successfully")

        return 0

    except KeyboardInterrupt:
        logger.info("Processing interrupted by user")
        return 1

    except Exception as e:
        logger.error(f"Processing failed: {e}")
        if args.verbose:
            logger.exception("Details")
        return 1


if __name__ == '__main__':
    sys.exit(main())
