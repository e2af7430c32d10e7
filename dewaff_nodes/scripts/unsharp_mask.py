"""
Non-adaptive Unsharp Mask (USM) with a Laplacian of Gaussian kernel
Produces the sharpened guide image for the deceived filters

    USM(U) = U + lambda * L,   L = rescale(U (*) -LoG)

The high-pass response L is rescaled to the dynamic range of U before being
added back, so lambda means the same thing for [0,1] images and CIELab frames.
"""

import logging

import cv2
import numpy as np

from .kernel_math import log_kernel, global_min_max
from .validation import (
    as_image_buffer,
    validate_lambda,
    validate_sigma,
    validate_window_size,
)

logger = logging.getLogger(__name__)


def laplacian_response(image: np.ndarray, window_size: int, sigma: float) -> np.ndarray:
    """Correlate an H x W x C image with the negated LoG kernel (edge-replicate border)"""
    kernel = -1.0 * log_kernel(window_size, sigma)
    # cv2.filter2D is a correlation, which is what we want for a symmetric kernel anyway
    channels = [
        cv2.filter2D(np.ascontiguousarray(image[:, :, c]), cv2.CV_64F, kernel,
                     borderType=cv2.BORDER_REPLICATE)
        for c in range(image.shape[2])
    ]
    return np.stack(channels, axis=2)


def unsharp_mask(image: np.ndarray, window_size: int = 17, lam: float = 2.0,
                 sigma: float = 0.005) -> np.ndarray:
    """
    Sharpen an image with a Laplacian of Gaussian unsharp mask

    Args:
        image: H x W or H x W x C float image
        window_size: LoG kernel side (odd, >= 3)
        lam: sharpening strength, >= 0. 0 returns the image unchanged
        sigma: LoG standard deviation, > 0

    Returns:
        Sharpened image with the same shape as the input (not clipped)
    """
    window_size = validate_window_size(window_size)
    sigma = validate_sigma(sigma, "sigma")
    lam = validate_lambda(lam)

    buffer, was_2d = as_image_buffer(image)

    if lam == 0:
        result = buffer.copy()
    else:
        response = laplacian_response(buffer, window_size, sigma)

        # Match the high pass magnitude to the input's dynamic range
        _, max_response = global_min_max(np.abs(response))
        _, max_input = global_min_max(np.abs(buffer))
        # Rounding residue of a zero-sum kernel on a flat image
        noise_floor = 64 * np.finfo(np.float64).eps * max_input * np.abs(log_kernel(window_size, sigma)).sum()
        if max_response > noise_floor:
            response = max_input * (response / max_response)
        else:
            logger.debug("Flat LoG response, USM leaves the image unchanged")
            response = np.zeros_like(buffer)

        result = buffer + lam * response

    logger.debug(f"USM: window={window_size}, sigma={sigma}, lambda={lam}")
    return result[:, :, 0] if was_2d else result
