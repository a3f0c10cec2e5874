import numpy as np
import pytest

from conftest import PIXEL_REFLECTANCE, SCALE, make_brdf_params
from landsat_albedo.core.coefficients import LC8_N2B_LIB, LC8_N2B_LIB_SNOW, TM_VIS
from landsat_albedo.core.exceptions import (
    AnisotropyComputationError,
    ClassResolutionError,
    InputValidationError,
    NoValidReflectanceError,
)
from landsat_albedo.core.processor import (
    OUTPUT_VARIABLES,
    LandsatAlbedoProcessor,
    compute_pixel_albedo,
)
from landsat_albedo.core.quality import QA_FILL, QualityCode
from landsat_albedo.core.sensor import Geometry


def _with_pixel(context_factory, row, col, values, **overrides):
    reflectance = np.array(context_factory().reflectance)
    reflectance[:, row, col] = values
    return context_factory(reflectance=reflectance, **overrides)


class TestComputePixelAlbedo:
    def test_concurrent_brdf(self, make_context, constant_ratios):
        pixel = compute_pixel_albedo(make_context(), 0, 0, anisotropy_fn=constant_ratios)

        bsa = SCALE * PIXEL_REFLECTANCE * 0.9
        wsa = SCALE * PIXEL_REFLECTANCE * 1.1
        assert pixel.quality == QualityCode.CONCURRENT_BRDF
        np.testing.assert_allclose(pixel.bsa, bsa)
        np.testing.assert_allclose(pixel.wsa, wsa)
        assert pixel.shortwave_bsa == pytest.approx(LC8_N2B_LIB.combine(bsa))
        assert pixel.shortwave_wsa == pytest.approx(LC8_N2B_LIB.combine(wsa))
        assert pixel.visible_bsa == pytest.approx(TM_VIS.combine(bsa))

    def test_snow_switches_shortwave_regression(self, make_context, constant_ratios):
        context = make_context()
        snow_free = compute_pixel_albedo(context, 0, 0, snow=False, anisotropy_fn=constant_ratios)
        snow = compute_pixel_albedo(context, 0, 0, snow=True, anisotropy_fn=constant_ratios)

        bsa = SCALE * PIXEL_REFLECTANCE * 0.9
        assert snow.shortwave_bsa == pytest.approx(LC8_N2B_LIB_SNOW.combine(bsa))
        assert snow.shortwave_bsa != pytest.approx(snow_free.shortwave_bsa)
        assert snow.visible_bsa == pytest.approx(snow_free.visible_bsa)

    def test_class_fill_is_rejected(self, make_context, constant_ratios):
        classes = np.ones((2, 3), dtype=np.uint8)
        classes[1, 1] = 255
        with pytest.raises(InputValidationError):
            compute_pixel_albedo(make_context(classes=classes), 1, 1, anisotropy_fn=constant_ratios)

    def test_fill_reflectance(self, make_context, constant_ratios):
        context = _with_pixel(make_context, 0, 1, [300, 500, -9999, 3000, 2000, 1000])

        with pytest.raises(NoValidReflectanceError) as excinfo:
            compute_pixel_albedo(context, 0, 1, anisotropy_fn=constant_ratios)

        assert excinfo.value.quality_code == -1
        assert (excinfo.value.row, excinfo.value.col) == (0, 1)

    def test_borrowed_isotropic_brdf(self, make_context, constant_ratios):
        params = np.zeros((3, 7, 3))
        params[0] = (0.3, 0.2, 0.1)
        context = make_context(brdf_params=params)

        pixel = compute_pixel_albedo(context, 0, 0, anisotropy_fn=constant_ratios)

        assert pixel.quality == QualityCode.BORROWED_BRDF
        assert pixel.tally.borrowed_class == 6
        assert pixel.tally.isotropic_fallback == 6
        np.testing.assert_allclose(pixel.bsa, SCALE * PIXEL_REFLECTANCE)
        np.testing.assert_allclose(pixel.wsa, SCALE * PIXEL_REFLECTANCE)
        assert constant_ratios.calls == []

    def test_no_usable_class_anywhere(self, make_context, constant_ratios):
        context = make_context(brdf_params=np.zeros((3, 7, 3)))
        with pytest.raises(ClassResolutionError):
            compute_pixel_albedo(context, 0, 0, anisotropy_fn=constant_ratios)

    def test_indeterminate_quality(self, make_context, constant_ratios):
        context = make_context(
            brdf_params=make_brdf_params(weights=(0.3, 0.2, 0.1)),
            purity_counts=np.array([5, 5, 5]),
        )

        pixel = compute_pixel_albedo(context, 0, 0, anisotropy_fn=constant_ratios)

        assert pixel.quality == QualityCode.INDETERMINATE

    def test_idempotent(self, make_context, constant_ratios):
        context = make_context()
        first = compute_pixel_albedo(context, 1, 2, anisotropy_fn=constant_ratios)
        second = compute_pixel_albedo(context, 1, 2, anisotropy_fn=constant_ratios)
        np.testing.assert_array_equal(first.to_vector(), second.to_vector())
        assert first.quality == second.quality

    def test_clamped_reflectance(self, make_context, constant_ratios):
        context = _with_pixel(make_context, 0, 0, [-50, 15000, 400, 3000, 2000, 1000])

        pixel = compute_pixel_albedo(context, 0, 0, anisotropy_fn=constant_ratios)

        assert pixel.bsa[0] == 0.0
        assert pixel.bsa[1] == pytest.approx(0.99 * 0.9)
        assert np.all(pixel.bsa >= 0)
        assert np.all(pixel.bsa[np.isfinite(pixel.bsa)] <= 0.99 * 1.1)

    def test_regression_rescue_uses_raw_reflectance(self, make_context, constant_ratios):
        context = _with_pixel(make_context, 0, 0, [-100] * 6)

        pixel = compute_pixel_albedo(context, 0, 0, anisotropy_fn=constant_ratios)

        assert pixel.quality == QualityCode.REGRESSION_RESCUE
        expected = sum(w * SCALE * -100 for w in TM_VIS.weights) + TM_VIS.intercept
        assert pixel.visible_bsa == pytest.approx(expected)
        assert pixel.visible_wsa == pytest.approx(expected)
        # the shortwave intercept is positive, so clamped zeros stay positive
        assert pixel.shortwave_bsa == pytest.approx(LC8_N2B_LIB.intercept)

    def test_to_vector_layout(self, make_context, constant_ratios):
        pixel = compute_pixel_albedo(make_context(), 0, 0, anisotropy_fn=constant_ratios)
        vector = pixel.to_vector()

        assert vector.shape == (len(OUTPUT_VARIABLES),)
        np.testing.assert_allclose(vector[0:12:2], pixel.bsa)
        np.testing.assert_allclose(vector[1:12:2], pixel.wsa)
        assert vector[OUTPUT_VARIABLES.index("shortwave_bsa")] == pixel.shortwave_bsa
        assert vector[OUTPUT_VARIABLES.index("nir_wsa")] == pixel.nir_wsa

    def test_missing_bands_are_nan(self, make_context, constant_ratios):
        pixel = compute_pixel_albedo(make_context(nbands=4), 0, 0, anisotropy_fn=constant_ratios)

        assert np.all(np.isnan(pixel.bsa[4:]))
        assert np.isfinite(pixel.shortwave_bsa)

    def test_context_is_not_modified(self, make_context, constant_ratios):
        context = _with_pixel(make_context, 0, 0, [-50, 15000, 400, 3000, 2000, 1000])
        before = np.array(context.reflectance)

        compute_pixel_albedo(context, 0, 0, anisotropy_fn=constant_ratios)

        np.testing.assert_array_equal(context.reflectance, before)
        with pytest.raises(ValueError):
            context.reflectance[0, 0, 0] = 1

    def test_geometry_override(self, make_context, constant_ratios):
        override = Geometry(55.0, 200.0, 3.0, 90.0)
        compute_pixel_albedo(make_context(), 0, 0, geometry=override, anisotropy_fn=constant_ratios)
        assert constant_ratios.calls[0][1:] == (55.0, 200.0, 3.0, 90.0)

    def test_anisotropy_failure_propagates(self, make_context):
        def failing(*args):
            raise AnisotropyComputationError("bad geometry")

        with pytest.raises(AnisotropyComputationError):
            compute_pixel_albedo(make_context(), 0, 0, anisotropy_fn=failing)


class TestLandsatAlbedoProcessor:
    def test_process_scene(self, make_context, constant_ratios):
        classes = np.ones((2, 3), dtype=np.uint8)
        classes[1, 2] = 255
        context = _with_pixel(make_context, 0, 1, [-9999] * 6, classes=classes)
        processor = LandsatAlbedoProcessor(context, anisotropy_fn=constant_ratios)

        albedo = processor.process_scene(show_progress=False)

        qa = albedo['qa'].values
        assert qa.dtype == np.int8
        assert qa[0, 0] == QualityCode.CONCURRENT_BRDF
        assert qa[0, 1] == -1
        assert qa[1, 2] == QA_FILL
        assert np.isnan(albedo['shortwave_bsa'].values[1, 2])
        assert np.isnan(albedo['bsa_b1'].values[0, 1])
        assert albedo['bsa_b1'].values[0, 0] == pytest.approx(SCALE * 300 * 0.9)
        assert set(OUTPUT_VARIABLES) <= set(albedo.data_vars)
        assert albedo.attrs['instrument'] == "OLI"
        assert processor.failures == {
            'NoValidReflectanceError': 1,
            'InputValidationError': 1,
        }

    def test_snow_mask(self, make_context, constant_ratios):
        snow = np.zeros((2, 3), dtype=bool)
        snow[0, 0] = True
        processor = LandsatAlbedoProcessor(make_context(), snow=snow, anisotropy_fn=constant_ratios)

        albedo = processor.process_scene(show_progress=False)

        bsa = SCALE * PIXEL_REFLECTANCE * 0.9
        assert albedo['shortwave_bsa'].values[0, 0] == pytest.approx(LC8_N2B_LIB_SNOW.combine(bsa))
        assert albedo['shortwave_bsa'].values[0, 1] == pytest.approx(LC8_N2B_LIB.combine(bsa))

    def test_snow_mask_shape_mismatch(self, make_context):
        with pytest.raises(ValueError):
            LandsatAlbedoProcessor(make_context(), snow=np.zeros((3, 3), dtype=bool))

    def test_nan_reflectance_pixel_has_no_albedo(self, make_context, constant_ratios):
        reflectance = np.array(make_context().reflectance, dtype=np.float32)
        reflectance[2, 1, 0] = np.nan
        processor = LandsatAlbedoProcessor(
            make_context(reflectance=reflectance), anisotropy_fn=constant_ratios
        )

        values, qa = processor.process_row(1)

        assert qa[0] == -1
        assert np.all(np.isnan(values[0]))
        assert np.all(qa[1:] == QualityCode.CONCURRENT_BRDF)

    def test_unexpected_ratio_failure_skips_pixel(self, make_context):
        processor = LandsatAlbedoProcessor(make_context(), anisotropy_fn=lambda *args: 1 / 0)

        values, qa = processor.process_row(0)

        assert np.all(qa == QA_FILL)
        assert np.all(np.isnan(values))
        assert processor.failures['AnisotropyComputationError'] == 3

    def test_nan_ratio_skips_pixel(self, make_context, constant_ratios):
        constant_ratios.ratios = (np.nan, 1.0)
        processor = LandsatAlbedoProcessor(make_context(), anisotropy_fn=constant_ratios)

        _, qa = processor.process_row(0)

        assert np.all(qa == QA_FILL)
        assert processor.failures['AnisotropyComputationError'] == 3

    def test_anisotropy_failure_skips_pixel(self, make_context):
        def failing(*args):
            raise AnisotropyComputationError("bad geometry")

        processor = LandsatAlbedoProcessor(make_context(), anisotropy_fn=failing)
        values, qa = processor.process_row(0)

        assert np.all(qa == QA_FILL)
        assert np.all(np.isnan(values))
        assert processor.failures['AnisotropyComputationError'] == 3

    def test_custom_qa_fill(self, make_context, constant_ratios):
        classes = np.full((2, 3), 255, dtype=np.uint8)
        processor = LandsatAlbedoProcessor(
            make_context(classes=classes), anisotropy_fn=constant_ratios, qa_fill=-100
        )
        _, qa = processor.process_row(0)
        assert np.all(qa == -100)

    def test_purity_threshold_option(self, make_context, constant_ratios):
        processor = LandsatAlbedoProcessor(
            make_context(), anisotropy_fn=constant_ratios, purity_threshold=0.2
        )
        assert processor.process_pixel(0, 0).quality == QualityCode.SPARSE_BRDF

    def test_validate_results_requires_scene(self, make_context):
        with pytest.raises(ValueError):
            LandsatAlbedoProcessor(make_context()).validate_results()

    def test_validate_results(self, make_context, constant_ratios):
        processor = LandsatAlbedoProcessor(make_context(), anisotropy_fn=constant_ratios)
        processor.process_scene(show_progress=False)

        results = processor.validate_results()

        assert results['quality_codes'] == {'CONCURRENT_BRDF': 6}
        assert results['products']['shortwave_bsa']['valid_fraction'] == 1.0
        assert results['overall']['n_products'] == len(OUTPUT_VARIABLES)
        assert results['overall']['physical_range_ok']

    def test_export_summary_report(self, make_context, constant_ratios, tmp_path):
        classes = np.ones((2, 3), dtype=np.uint8)
        classes[0, 0] = 255
        processor = LandsatAlbedoProcessor(
            make_context(classes=classes), anisotropy_fn=constant_ratios
        )
        processor.process_scene(show_progress=False)
        output_file = tmp_path / "report.md"

        report = processor.export_summary_report(str(output_file))

        assert output_file.read_text() == report
        assert "| CONCURRENT_BRDF | 5 |" in report
        assert "| SKIPPED | 1 |" in report
        assert "- InputValidationError: 1" in report

    def test_report_before_processing(self, make_context):
        report = LandsatAlbedoProcessor(make_context()).export_summary_report()
        assert "Albedo not computed" in report
