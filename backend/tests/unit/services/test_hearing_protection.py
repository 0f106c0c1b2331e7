"""
Unit Tests for hearing protection effectiveness
"""
import pytest

from ohsurvey.services.hearing_protection import (
    calculate_effective_attenuation,
    calculate_protected_exposure,
    assess_protection_adequacy,
    recommend_best_device,
    get_protection_summary,
)


def device(rating, condition='Good', kind='SNR', **extra):
    return {
        'type': 'Earmuff', 'manufacturer': '3M', 'snr_or_nrr': kind,
        'snr_value': rating, 'condition': condition, **extra,
    }


class TestAttenuation:
    @pytest.mark.parametrize('kind,value,expected', [
        ('SNR', 25, 21),
        ('NRR', 29, 11),
        ('SNR', 2, 0),
        ('', 30, 0),
    ])
    def test_derating(self, kind, value, expected):
        assert calculate_effective_attenuation(kind, value) == expected

    def test_protected_exposure(self):
        assert calculate_protected_exposure(95.0, 'SNR', 25) == 74.0

    def test_ambient_floor(self):
        assert calculate_protected_exposure(50.0, 'SNR', 30) == 40.0


class TestAdequacy:
    @pytest.mark.parametrize('actual,protected,level', [
        (100.0, 70.0, 'over-protected'),
        (90.0, 72.0, 'excellent'),
        (90.0, 78.0, 'good'),
        (90.0, 82.0, 'acceptable'),
        (92.0, 86.0, 'marginal'),
        (95.0, 90.0, 'inadequate'),
    ])
    def test_levels(self, actual, protected, level):
        assert assess_protection_adequacy(actual, protected)['level'] == level

    def test_marginal_is_not_adequate(self):
        assert assess_protection_adequacy(92.0, 86.0)['is_adequate'] is False


class TestRecommendation:
    def test_prefers_less_attenuation_when_both_sufficient(self):
        result = recommend_best_device([device(30), device(20)], 100.0)
        assert result['best_device_index'] == 1
        assert result['reason'] == 'Provides acceptable protection (84.0 dB(A) protected level)'

    def test_skips_poor_condition(self):
        result = recommend_best_device([device(20, condition='Poor'), device(30)], 100.0)
        assert result['best_device_index'] == 1

    def test_no_good_devices(self):
        result = recommend_best_device([device(20, condition='Poor')], 100.0)
        assert result['best_device_index'] == 0
        assert 'need replacement' in result['reason']

    def test_warns_when_best_is_insufficient(self):
        result = recommend_best_device([device(10)], 105.0)
        assert result['reason'].startswith('Warning:')

    def test_no_devices(self):
        assert recommend_best_device([], 95.0) is None


class TestProtectionSummary:
    def test_uses_first_good_device(self):
        summary = get_protection_summary(95.0, [device(25, condition='Poor'), device(30)])

        assert summary['protected_lex8h'] == 69.0
        assert summary['effective_attenuation'] == 26
        assert summary['actual_zone']['zone'] == 'red'
        assert summary['protected_zone']['zone'] == 'green'
        assert summary['device_summary'] == 'Earmuff - 3M (SNR: 30 dB)'

    def test_falls_back_to_first_device(self):
        summary = get_protection_summary(95.0, [device(25, condition='Poor')])
        assert summary['protected_lex8h'] == 74.0

    def test_nothing_to_summarise(self):
        assert get_protection_summary(95.0, []) is None
        assert get_protection_summary(0, [device(25)]) is None
        assert get_protection_summary(95.0, [device(None)]) is None
