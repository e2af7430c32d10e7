import numpy as np
import pytest

from dewaff_nodes.scripts.config import (
    FILTER_TYPES,
    DeWAFFConfig,
    config_from_preset,
    get_dewaff_presets,
    resolve_filter_type,
)
from dewaff_nodes.scripts.deceived_filters import (
    deceived_bilateral_filter,
    deceived_guided_filter,
)
from dewaff_nodes.scripts.validation import InvalidParameterError


def test_filter_registry():
    assert set(FILTER_TYPES) == {'DBF', 'DSBF', 'DNLM', 'DGF'}
    assert FILTER_TYPES['DBF']['function'] is deceived_bilateral_filter
    assert FILTER_TYPES['DGF']['name'] == 'Deceived Guided Filter'


@pytest.mark.parametrize("name,expected", [("dbf", "DBF"), (" Dnlm ", "DNLM"), ("DGF", "DGF")])
def test_resolve_filter_type(name, expected):
    assert resolve_filter_type(name) == expected


def test_resolve_unknown_filter_type():
    with pytest.raises(InvalidParameterError):
        resolve_filter_type("median")


def test_defaults():
    config = DeWAFFConfig()
    assert config.acronym == 'DGF'
    assert config.window_size == 15
    assert config.resolved_spatial_sigma == pytest.approx(10.0)
    assert config.display_name == 'Deceived Guided Filter'
    assert config.validate() is config


def test_explicit_spatial_sigma_wins():
    assert DeWAFFConfig(window_size=9, spatial_sigma=2.5).resolved_spatial_sigma == 2.5


@pytest.mark.parametrize("kwargs", [
    {"window_size": 10},
    {"range_sigma": 0.0},
    {"spatial_sigma": -2.0},
    {"usm_lambda": -0.1},
    {"workers": 0},
    {"filter_type": "XYZ"},
    {"filter_type": "DNLM", "window_size": 5, "patch_size": 7},
])
def test_validate_rejects(kwargs):
    with pytest.raises(InvalidParameterError):
        DeWAFFConfig(**kwargs).validate()


def test_patch_size_only_checked_for_nonlocal_means():
    config = DeWAFFConfig(filter_type='DBF', window_size=5, patch_size=7)
    assert config.validate() is config
    assert 'patch_size' not in config.filter_kwargs()
    assert DeWAFFConfig(filter_type='dnlm', window_size=7, patch_size=5).filter_kwargs()['patch_size'] == 5


def test_apply_matches_direct_call(rng):
    image = rng.uniform(0, 100, (12, 12, 3))
    config = DeWAFFConfig(filter_type='DBF', window_size=5, range_sigma=8.0, usm_lambda=1.0)
    expected = deceived_bilateral_filter(image, 5, 5 / 1.5, 8.0, 1.0)
    np.testing.assert_array_equal(config.apply(image), expected)


def test_to_dict_round_trip():
    config = DeWAFFConfig(filter_type='DSBF', window_size=7, spatial_sigma=3.0)
    data = config.to_dict()
    assert data['filter_type'] == 'DSBF'
    assert DeWAFFConfig(**data) == config


def test_presets_build_valid_configs():
    presets = get_dewaff_presets()
    assert {'light', 'balanced', 'strong', 'fast'} <= set(presets)
    for name, preset in presets.items():
        assert preset['description']
        config = config_from_preset(name)
        assert config.window_size == preset['window_size']


def test_preset_overrides(rng):
    config = config_from_preset('fast', window_size=5)
    assert config.window_size == 5
    image = rng.uniform(0, 100, (10, 10, 3))
    np.testing.assert_allclose(config.apply(image), deceived_guided_filter(image, 5, 5 / 1.5, 10.0, 2.0))


def test_unknown_preset():
    with pytest.raises(InvalidParameterError):
        config_from_preset('extreme')
