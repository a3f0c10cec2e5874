import numpy as np

from landsat_albedo.utils.clustering import compute_class_spectra, find_closest_class


def _params(usable_classes, n_classes=5):
    params = np.zeros((n_classes, 7, 3))
    for class_id in usable_classes:
        params[class_id] = (100.0, 10.0, 5.0)
    return params


class TestComputeClassSpectra:
    def test_class_means(self):
        reflectance = np.array([
            [[100, 200], [300, -9999]],
            [[10, 20], [30, 40]],
        ])
        classes = np.array([[0, 0], [1, 1]])

        spectra = compute_class_spectra(reflectance, classes, 2, fill_value=-9999)

        np.testing.assert_allclose(spectra[0], [150.0, 15.0])
        # the pixel with fill reflectance is excluded
        np.testing.assert_allclose(spectra[1], [300.0, 30.0])
        assert np.all(np.isnan(spectra[2]))

    def test_class_fill_excluded(self):
        reflectance = np.ones((1, 2, 2))
        classes = np.array([[0, 255], [255, 255]])

        spectra = compute_class_spectra(reflectance, classes, 1, -9999, class_fill_value=255)

        assert spectra.shape == (2, 1)
        assert spectra[0, 0] == 1.0
        assert np.isnan(spectra[1, 0])


class TestFindClosestClass:
    def test_nearest_index_without_spectra(self, make_context):
        context = make_context(
            brdf_params=_params([0, 4]), purity_counts=np.full(5, 20), class_count=4
        )
        assert find_closest_class(context, 1, 0) == 0
        assert find_closest_class(context, 3, 0) == 4

    def test_ties_keep_lower_index(self, make_context):
        context = make_context(
            brdf_params=_params([0, 2]), purity_counts=np.full(5, 20), class_count=4
        )
        assert find_closest_class(context, 1, 0) == 0

    def test_spectrally_closest_class(self, make_context):
        spectra = np.array([
            [0.05, 0.30],
            [0.40, 0.10],
            [0.30, 0.30],
            [0.39, 0.11],
            [0.01, 0.50],
        ])
        context = make_context(
            brdf_params=_params([0, 3, 4]),
            purity_counts=np.full(5, 20),
            class_count=4,
            class_spectra=spectra,
        )
        assert find_closest_class(context, 1, 0) == 3

    def test_no_candidate(self, make_context):
        context = make_context(brdf_params=_params([1], n_classes=3))
        assert find_closest_class(context, 1, 0) is None

    def test_fill_class_is_never_chosen(self, make_context):
        context = make_context(
            brdf_params=_params([0, 2], n_classes=3), class_fill_value=0
        )
        assert find_closest_class(context, 1, 0) == 2
