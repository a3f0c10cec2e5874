"""
Input/output utilities for raster data handling.

This module provides functions for loading reflectance and land-cover
rasters, the class-level BRDF table, and for writing the albedo products
as GeoTIFF using rasterio and xarray.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import numpy as np
import rasterio
import xarray as xr
from rasterio.crs import CRS
from rasterio.transform import Affine

from ..core.processor import OUTPUT_VARIABLES


def load_raster(
    filepath: Union[str, Path],
    band: Optional[int] = None
) -> xr.DataArray:
    """
    Load a raster file as xarray DataArray.

    Parameters
    ----------
    filepath : str or Path
        Path to raster file
    band : int, optional
        Specific band to load (1-indexed)

    Returns
    -------
    xr.DataArray
        Loaded raster data with dims ('band', 'y', 'x'), or ('y', 'x') for
        a single band, and 'crs', 'transform', 'nodata' attributes
    """
    logger = logging.getLogger(__name__)

    try:
        with rasterio.open(filepath) as src:
            bands = [band] if band is not None else list(range(1, src.count + 1))
            data = src.read(bands)
            transform = src.transform

            x_coords = np.arange(src.width) * transform.a + transform.c + transform.a / 2
            y_coords = np.arange(src.height) * transform.e + transform.f + transform.e / 2

            if len(bands) == 1:
                data = data[0]
                dims = ['y', 'x']
                coords = {'y': y_coords, 'x': x_coords}
            else:
                dims = ['band', 'y', 'x']
                coords = {'band': bands, 'y': y_coords, 'x': x_coords}

            return xr.DataArray(
                data,
                dims=dims,
                coords=coords,
                attrs={
                    'crs': src.crs.to_string() if src.crs else None,
                    'transform': transform,
                    'nodata': src.nodata,
                    'source_file': str(filepath)
                }
            )

    except Exception as e:
        logger.error(f"Error loading raster {filepath}: {e}")
        raise


def save_raster(
    data_array: xr.DataArray,
    filepath: Union[str, Path],
    crs: Optional[Union[str, CRS]] = None,
    compress: str = 'lzw',
    dtype: Optional[str] = None,
    nodata: Optional[Union[int, float]] = None
) -> None:
    """
    Save xarray DataArray as GeoTIFF.

    Parameters
    ----------
    data_array : xr.DataArray
        2-D or 3-D (band, y, x) data to save
    filepath : str or Path
        Output file path
    crs : str or CRS, optional
        Coordinate reference system (default: 'crs' attribute)
    compress : str, optional
        Compression method (default: 'lzw')
    dtype : str, optional
        Output data type (float64 is written as float32)
    nodata : int or float, optional
        NoData value (default: 'nodata' attribute)
    """
    logger = logging.getLogger(__name__)

    try:
        Path(filepath).parent.mkdir(parents=True, exist_ok=True)

        if crs is None:
            crs = data_array.attrs.get('crs')
        if isinstance(crs, str):
            crs = CRS.from_string(crs)

        transform = data_array.attrs.get('transform')
        if transform is None:
            transform = Affine.identity()
        elif not isinstance(transform, Affine):
            transform = Affine(*list(transform)[:6])

        data = data_array.values
        if data.ndim == 2:
            data = data[np.newaxis, :, :]
        elif data.ndim != 3:
            raise ValueError(f"Unsupported data dimensionality: {data.ndim}")
        count, height, width = data.shape

        if dtype is None:
            dtype = rasterio.float32 if data.dtype == np.float64 else data.dtype.name

        if nodata is None:
            nodata = data_array.attrs.get('nodata')

        with rasterio.open(
            filepath,
            'w',
            driver='GTiff',
            height=height,
            width=width,
            count=count,
            dtype=dtype,
            crs=crs,
            transform=transform,
            compress=compress,
            nodata=nodata
        ) as dst:
            dst.write(data.astype(dtype))

        logger.info(f"Raster saved to {filepath}")

    except Exception as e:
        logger.error(f"Error saving raster {filepath}: {e}")
        raise


def load_brdf_table(filepath: Union[str, Path]) -> Dict[str, np.ndarray]:
    """
    Load class-level BRDF parameters from a ``.npz`` archive.

    The archive holds 'brdf_params' (n_classes, n_bands, 3) and
    'purity_counts' (n_classes,), and optionally 'class_spectra'
    (n_classes, nbands).

    Returns
    -------
    dict
        Arrays keyed by name; 'class_spectra' is None when absent
    """
    with np.load(filepath) as archive:
        missing = {'brdf_params', 'purity_counts'} - set(archive.files)
        if missing:
            raise ValueError(f"BRDF table {filepath} is missing {sorted(missing)}")

        table = {
            'brdf_params': archive['brdf_params'],
            'purity_counts': archive['purity_counts'],
            'class_spectra': archive['class_spectra'] if 'class_spectra' in archive.files else None,
        }

    logging.getLogger(__name__).info(
        f"Loaded BRDF table for {table['brdf_params'].shape[0]} classes from {filepath}"
    )
    return table


def save_albedo_dataset(
    dataset: xr.Dataset,
    output_dir: Union[str, Path],
    prefix: str = "albedo",
    crs: Optional[Union[str, CRS]] = None,
) -> Dict[str, Path]:
    """
    Write an albedo scene as an 18-band albedo stack and a QA raster.

    Parameters
    ----------
    dataset : xr.Dataset
        Output of ``LandsatAlbedoProcessor.process_scene``
    output_dir : str or Path
        Output directory
    prefix : str, optional
        File name prefix
    crs : str or CRS, optional
        Coordinate reference system (default: dataset 'crs' attribute)

    Returns
    -------
    dict
        Paths of the written 'albedo' and 'qa' files
    """
    output_dir = Path(output_dir)
    attrs: Dict[str, Any] = {
        'crs': dataset.attrs.get('crs'),
        'transform': dataset.attrs.get('transform'),
    }

    stack = xr.concat([dataset[name] for name in OUTPUT_VARIABLES], dim='band')
    stack.attrs.update(attrs, nodata=np.nan)

    qa = dataset['qa'].copy()
    qa.attrs.update(attrs, nodata=dataset.attrs.get('qa_fill'))

    paths = {
        'albedo': output_dir / f"{prefix}_albedo.tif",
        'qa': output_dir / f"{prefix}_qa.tif",
    }
    save_raster(stack, paths['albedo'], crs=crs, dtype='float32')
    save_raster(qa, paths['qa'], crs=crs, dtype='int8')

    return paths
