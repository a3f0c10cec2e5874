import pytest

from landsat_albedo.core.quality import FallbackTally, QualityCode, classify_quality


class TestClassifyQuality:
    def test_all_high_confidence(self):
        assert classify_quality(FallbackTally(high_confidence=6), 6) == QualityCode.CONCURRENT_BRDF

    def test_some_marginal(self):
        tally = FallbackTally(high_confidence=4, marginal_confidence=2)
        assert classify_quality(tally, 6) == QualityCode.SPARSE_BRDF

    def test_some_borrowed(self):
        tally = FallbackTally(high_confidence=3, borrowed_class=3)
        assert classify_quality(tally, 6) == QualityCode.BORROWED_BRDF

    def test_borrowed_wins_over_negative_anisotropy(self):
        tally = FallbackTally(high_confidence=5, borrowed_class=1, negative_anisotropy=2)
        assert classify_quality(tally, 6) == QualityCode.BORROWED_BRDF

    def test_concurrent_wins_over_negative_anisotropy(self):
        tally = FallbackTally(high_confidence=6, negative_anisotropy=6)
        assert classify_quality(tally, 6) == QualityCode.CONCURRENT_BRDF

    def test_negative_anisotropy(self):
        tally = FallbackTally(high_confidence=2, negative_anisotropy=1)
        assert classify_quality(tally, 6) == QualityCode.LAMBERTIAN_RESCUE

    def test_no_rule_matches(self):
        tally = FallbackTally(high_confidence=2, isotropic_fallback=4)
        assert classify_quality(tally, 6) == QualityCode.INDETERMINATE

    @pytest.mark.parametrize("nbands", [1, 4, 6])
    def test_band_count_is_respected(self, nbands):
        assert classify_quality(FallbackTally(high_confidence=nbands), nbands) == 0

    def test_codes_are_ordinal_integers(self):
        assert [int(code) for code in QualityCode] == [-1, 0, 1, 2, 3, 4, 5]


class TestFallbackTally:
    def test_as_dict(self):
        tally = FallbackTally(borrowed_class=2, no_data=1)
        assert tally.as_dict() == {
            'high_confidence': 0,
            'marginal_confidence': 0,
            'borrowed_class': 2,
            'negative_anisotropy': 0,
            'isotropic_fallback': 0,
            'no_data': 1,
        }
