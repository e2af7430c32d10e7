"""
Deceived Weighted Average Filters (DeWAFF)

The "deceive": the filter weights are computed from an unsharp-masked proxy of
the image (the guide), while the averaged values come from the untouched image
(the subject). Edges in the proxy are steeper, so the weights cut across them
more decisively than they would on the noisy original.

    usm = USM(U, window_size, lambda, spatial_sigma)
    Y   = WAF(subject=U, guide=usm)
"""

import logging
from typing import Optional

import numpy as np

from .unsharp_mask import unsharp_mask
from .validation import (
    validate_lambda,
    validate_patch_size,
    validate_sigma,
    validate_window_size,
    validate_workers,
)
from .weighted_average_filters import (
    bilateral_filter,
    guided_filter,
    nonlocal_means_filter,
    scaled_bilateral_filter,
)

logger = logging.getLogger(__name__)

DEFAULT_USM_LAMBDA = 2.0


def _validate_parameters(window_size, spatial_sigma, range_sigma, usm_lambda, workers):
    """Every check of the USM and of the wrapped filter, before the USM runs"""
    validate_window_size(window_size)
    validate_sigma(spatial_sigma, "spatial_sigma")
    validate_sigma(range_sigma, "range_sigma")
    validate_lambda(usm_lambda)
    validate_workers(workers)


def deceived_bilateral_filter(image: np.ndarray, window_size: int = 11,
                              spatial_sigma: float = 11 / 1.5, range_sigma: float = 10.0,
                              usm_lambda: float = DEFAULT_USM_LAMBDA,
                              workers: Optional[int] = None) -> np.ndarray:
    """Deceived Bilateral Filter (DBF)"""
    _validate_parameters(window_size, spatial_sigma, range_sigma, usm_lambda, workers)
    usm_image = unsharp_mask(image, window_size, usm_lambda, spatial_sigma)
    return bilateral_filter(image, usm_image, window_size, spatial_sigma, range_sigma, workers=workers)


def deceived_scaled_bilateral_filter(image: np.ndarray, window_size: int = 11,
                                     spatial_sigma: float = 11 / 1.5, range_sigma: float = 10.0,
                                     usm_lambda: float = DEFAULT_USM_LAMBDA,
                                     workers: Optional[int] = None) -> np.ndarray:
    """Deceived Scaled Bilateral Filter (DSBF)"""
    _validate_parameters(window_size, spatial_sigma, range_sigma, usm_lambda, workers)
    usm_image = unsharp_mask(image, window_size, usm_lambda, spatial_sigma)
    return scaled_bilateral_filter(image, usm_image, window_size, spatial_sigma, range_sigma, workers=workers)


def deceived_nonlocal_means_filter(image: np.ndarray, window_size: int = 11,
                                   spatial_sigma: float = 11 / 1.5, range_sigma: float = 10.0,
                                   patch_size: int = 3, usm_lambda: float = DEFAULT_USM_LAMBDA,
                                   workers: Optional[int] = None) -> np.ndarray:
    """
    Deceived Non-Local Means Filter (DNLM)

    spatial_sigma only drives the unsharp mask; NLM itself has no spatial term.
    """
    _validate_parameters(window_size, spatial_sigma, range_sigma, usm_lambda, workers)
    validate_patch_size(patch_size, window_size)
    usm_image = unsharp_mask(image, window_size, usm_lambda, spatial_sigma)
    return nonlocal_means_filter(image, usm_image, window_size, patch_size, range_sigma, workers=workers)


def deceived_guided_filter(image: np.ndarray, window_size: int = 11,
                           spatial_sigma: float = 11 / 1.5, range_sigma: float = 10.0,
                           usm_lambda: float = DEFAULT_USM_LAMBDA,
                           workers: Optional[int] = None) -> np.ndarray:
    """
    Deceived Guided Filter (DGF)

    The sharpened proxy is the guiding image, the original is filtered.
    workers is checked like the other variants but unused; the box filter
    passes are sequential.
    """
    _validate_parameters(window_size, spatial_sigma, range_sigma, usm_lambda, workers)
    usm_image = unsharp_mask(image, window_size, usm_lambda, spatial_sigma)
    return guided_filter(image, usm_image, window_size, range_sigma)
