import numpy as np
import pytest

from dewaff_nodes.scripts import deceived_filters
from dewaff_nodes.scripts.deceived_filters import (
    deceived_bilateral_filter,
    deceived_guided_filter,
    deceived_nonlocal_means_filter,
    deceived_scaled_bilateral_filter,
)
from dewaff_nodes.scripts.unsharp_mask import unsharp_mask
from dewaff_nodes.scripts.validation import InvalidParameterError
from dewaff_nodes.scripts.weighted_average_filters import (
    bilateral_filter,
    guided_filter,
    nonlocal_means_filter,
    scaled_bilateral_filter,
)

from conftest import make_step_image

WINDOW_SIZE = 11
SPATIAL_SIGMA = 11 / 1.5
RANGE_SIGMA = 10.0
USM_LAMBDA = 2.0

# A weighted mean of a constant window equals the constant up to rounding
# of the weight sum, a few ulps at most
FLAT_TOLERANCE = 1e-12


@pytest.fixture(scope="module")
def step_64():
    """Step on the [0, 1] scale: range weights stay close to 1 across the edge"""
    return make_step_image(height=64, width=64, low=0.2, high=0.8)


@pytest.fixture(scope="module")
def deceived_step(step_64):
    return deceived_bilateral_filter(step_64, WINDOW_SIZE, SPATIAL_SIGMA, RANGE_SIGMA, USM_LAMBDA)


class TestDeceivedBilateralStep:
    """64x64 two-region step through the deceived bilateral filter"""

    edge = 32
    radius = WINDOW_SIZE // 2

    def test_shape(self, step_64, deceived_step):
        assert deceived_step.shape == step_64.shape

    def test_far_pixels_preserved(self, step_64, deceived_step):
        left = slice(0, self.edge - self.radius)
        right = slice(self.edge + self.radius, None)
        np.testing.assert_allclose(deceived_step[:, left], step_64[:, left], rtol=0, atol=FLAT_TOLERANCE)
        np.testing.assert_allclose(deceived_step[:, right], step_64[:, right], rtol=0, atol=FLAT_TOLERANCE)

    def test_transition_band(self, step_64, deceived_step):
        assert deceived_step.min() >= 0.2 - FLAT_TOLERANCE
        assert deceived_step.max() <= 0.8 + FLAT_TOLERANCE

        deviation = np.abs(deceived_step - step_64).max(axis=(0, 2))
        band = np.flatnonzero(deviation > 1e-3)
        # Every column whose window reaches across the edge moves, nothing else does
        np.testing.assert_array_equal(band, np.arange(self.edge - self.radius, self.edge + self.radius))
        assert band.size == 2 * self.radius

    def test_sharper_than_plain_filters(self, step_64, deceived_step):
        blurred = bilateral_filter(step_64, window_size=WINDOW_SIZE, spatial_sigma=SPATIAL_SIGMA, range_sigma=1e8)
        plain = bilateral_filter(step_64, window_size=WINDOW_SIZE, spatial_sigma=SPATIAL_SIGMA, range_sigma=RANGE_SIGMA)
        for column in (self.edge - 1, self.edge):
            deceived_error = np.abs(deceived_step[:, column] - step_64[:, column]).max()
            assert deceived_error < np.abs(plain[:, column] - step_64[:, column]).max()
            assert deceived_error < np.abs(blurred[:, column] - step_64[:, column]).max()

    def test_rows_are_identical(self, deceived_step):
        np.testing.assert_allclose(deceived_step, np.broadcast_to(deceived_step[:1], deceived_step.shape))

    def test_reproducible(self, step_64, deceived_step):
        again = deceived_bilateral_filter(step_64, WINDOW_SIZE, SPATIAL_SIGMA, RANGE_SIGMA, USM_LAMBDA, workers=3)
        np.testing.assert_array_equal(again, deceived_step)


def test_high_contrast_step_is_kept():
    # 80 units apart at range_sigma 10: cross-edge weights vanish
    image = make_step_image(height=32, width=32, low=10.0, high=90.0)
    result = deceived_bilateral_filter(image, WINDOW_SIZE, SPATIAL_SIGMA, RANGE_SIGMA, USM_LAMBDA)
    np.testing.assert_allclose(result, image, rtol=0, atol=FLAT_TOLERANCE)


@pytest.mark.parametrize("deceived,plain", [
    (deceived_bilateral_filter, bilateral_filter),
    (deceived_scaled_bilateral_filter, scaled_bilateral_filter),
])
def test_bilateral_variants_use_sharpened_guide(noisy_image, deceived, plain):
    guide = unsharp_mask(noisy_image, 5, USM_LAMBDA, 2.0)
    expected = plain(noisy_image, guide, 5, 2.0, RANGE_SIGMA)
    np.testing.assert_array_equal(deceived(noisy_image, 5, 2.0, RANGE_SIGMA, USM_LAMBDA), expected)


def test_nonlocal_means_uses_sharpened_guide(rng):
    image = rng.uniform(0, 100, (12, 12, 3))
    guide = unsharp_mask(image, 5, USM_LAMBDA, 2.0)
    expected = nonlocal_means_filter(image, guide, 5, 3, RANGE_SIGMA)
    result = deceived_nonlocal_means_filter(image, 5, 2.0, RANGE_SIGMA, patch_size=3)
    np.testing.assert_array_equal(result, expected)


def test_guided_uses_sharpened_guide(noisy_image):
    guide = unsharp_mask(noisy_image, 7, USM_LAMBDA, 3.0)
    expected = guided_filter(noisy_image, guide, 7, RANGE_SIGMA)
    np.testing.assert_allclose(deceived_guided_filter(noisy_image, 7, 3.0, RANGE_SIGMA), expected)


def test_zero_lambda_falls_back_to_plain_filter(noisy_image):
    result = deceived_guided_filter(noisy_image, 7, 3.0, RANGE_SIGMA, usm_lambda=0.0)
    np.testing.assert_allclose(result, guided_filter(noisy_image, window_size=7, range_sigma=RANGE_SIGMA))


@pytest.mark.parametrize("filter_function", [
    deceived_bilateral_filter,
    deceived_scaled_bilateral_filter,
    deceived_nonlocal_means_filter,
    deceived_guided_filter,
])
def test_gray_images_keep_their_shape(rng, filter_function):
    image = rng.uniform(0, 100, (10, 11))
    result = filter_function(image, window_size=5, spatial_sigma=2.0)
    assert result.shape == image.shape


def test_deceived_guided_keeps_step_far_from_edge():
    image = make_step_image(height=32, width=32)
    result = deceived_guided_filter(image, 5, 5 / 1.5, RANGE_SIGMA, USM_LAMBDA)
    # USM reach plus two box radii
    np.testing.assert_allclose(result[:, :10], image[:, :10], atol=1e-9)
    np.testing.assert_allclose(result[:, 22:], image[:, 22:], atol=1e-9)


@pytest.mark.parametrize("filter_function,kwargs", [
    (deceived_bilateral_filter, {"window_size": 8}),
    (deceived_bilateral_filter, {"window_size": 5, "range_sigma": -1.0}),
    (deceived_scaled_bilateral_filter, {"window_size": 5, "spatial_sigma": 0.0}),
    (deceived_scaled_bilateral_filter, {"window_size": 5, "workers": 0}),
    (deceived_nonlocal_means_filter, {"window_size": 5, "patch_size": 7}),
    (deceived_nonlocal_means_filter, {"window_size": 5, "patch_size": 4}),
    (deceived_guided_filter, {"usm_lambda": -1.0}),
    (deceived_guided_filter, {"window_size": 5, "workers": 0}),
    (deceived_guided_filter, {"window_size": 5, "workers": -3}),
    (deceived_guided_filter, {"window_size": 5, "range_sigma": float("inf")}),
])
def test_invalid_parameters_rejected_before_filtering(step_image, monkeypatch, filter_function, kwargs):
    usm_calls = []
    monkeypatch.setattr(deceived_filters, "unsharp_mask", lambda *args, **kw: usm_calls.append(args))
    with pytest.raises(InvalidParameterError):
        filter_function(step_image, **kwargs)
    assert usm_calls == []
