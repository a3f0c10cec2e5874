"""
Quality assessment utilities.

This module summarises a processed albedo scene: the distribution of
quality codes and per-product statistics with a physical range check.
"""

import logging
from typing import Any, Dict

import numpy as np
import xarray as xr

from ..core.quality import QualityCode


class QualityAssessment:
    """
    Quality assessment tools for albedo products.

    This class provides methods to evaluate a processed scene using the
    per-pixel quality codes and simple statistics of each product.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def assess_quality(self, albedo_dataset: xr.Dataset) -> Dict[str, Any]:
        """
        Assess overall quality of an albedo scene.

        Parameters
        ----------
        albedo_dataset : xr.Dataset
            Output of ``LandsatAlbedoProcessor.process_scene``

        Returns
        -------
        dict
            'quality_codes' (pixel count per code), 'products' (statistics
            per variable) and 'overall'
        """
        self.logger.info("Assessing albedo product quality...")

        products = {
            name: self._assess_albedo_quality(data.values)
            for name, data in albedo_dataset.data_vars.items()
            if name != 'qa'
        }

        quality_codes = {}
        if 'qa' in albedo_dataset.data_vars:
            quality_codes = self._count_quality_codes(albedo_dataset['qa'].values)

        return {
            'quality_codes': quality_codes,
            'products': products,
            'overall': self._compute_dataset_stats(products),
        }

    def _count_quality_codes(self, qa: np.ndarray) -> Dict[str, int]:
        counts = {}
        codes, occurrences = np.unique(qa, return_counts=True)

        for code, count in zip(codes, occurrences):
            try:
                label = QualityCode(int(code)).name
            except ValueError:
                label = 'SKIPPED'
            counts[label] = counts.get(label, 0) + int(count)

        return counts

    def _assess_albedo_quality(self, values: np.ndarray) -> Dict[str, Any]:
        """
        Statistics of one albedo product.

        Parameters
        ----------
        values : np.ndarray
            Albedo values (NaN for skipped pixels)
        """
        valid_values = values[np.isfinite(values)]

        if len(valid_values) == 0:
            return {
                'mean': np.nan,
                'std': np.nan,
                'min': np.nan,
                'max': np.nan,
                'valid_pixels': 0,
                'total_pixels': values.size,
                'valid_fraction': 0.0,
                'physical_range_check': False,
            }

        return {
            'mean': float(np.mean(valid_values)),
            'std': float(np.std(valid_values)),
            'min': float(np.min(valid_values)),
            'max': float(np.max(valid_values)),
            'valid_pixels': len(valid_values),
            'total_pixels': values.size,
            'valid_fraction': len(valid_values) / values.size,
            'physical_range_check': self._check_physical_range(valid_values),
        }

    def _check_physical_range(self, values: np.ndarray) -> bool:
        # Albedo should be between 0 and 1
        return bool(np.all((values >= 0) & (values <= 1)))

    def _compute_dataset_stats(self, product_stats: Dict[str, Dict[str, Any]]) -> Dict[str, Any]:
        if not product_stats:
            return {}

        valid_fractions = [stats['valid_fraction'] for stats in product_stats.values()]
        physical_checks = [stats['physical_range_check'] for stats in product_stats.values()]

        return {
            'n_products': len(product_stats),
            'mean_valid_fraction': float(np.mean(valid_fractions)),
            'min_valid_fraction': float(np.min(valid_fractions)),
            'physical_range_ok': all(physical_checks),
        }
