"""
Weighted Average Filters (WAFs) with a decoupled guide and subject

All windowed filters share one skeleton: for every pixel p, a weight kernel is
computed from the guide window around p and used to average the subject window
around p. Only the weight kernel changes between the bilateral, scaled
bilateral and non-local means filters. The guided filter is solved in closed
form with box filters instead.

    output(p) = sum_m W(guide, m, p) * subject(m) / sum_m W(guide, m, p)

Passing the same image as guide and subject gives the classic filters; passing
a sharpened proxy as the guide gives the "deceived" filters.

Border policy: edge replication everywhere (np.pad 'edge', cv2 BORDER_REPLICATE,
scipy mode 'nearest').
"""

import logging
import os
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import cv2
import numpy as np
from scipy import ndimage

from .kernel_math import gaussian_function, spatial_gaussian
from .patch_distance import region_distance_matrix
from .validation import (
    as_image_buffer,
    validate_pair,
    validate_patch_size,
    validate_sigma,
    validate_window_size,
    validate_workers,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Weight kernels
# ---------------------------------------------------------------------------

class WeightKernel:
    """
    Strategy computing the per-pixel weights of a windowed average

    Subclasses implement compute_weight(). prepare_guide() may transform the
    whole guide image once before the pixel loop starts.
    """

    name = "weight kernel"

    def prepare_guide(self, guide: np.ndarray) -> np.ndarray:
        return guide

    def compute_weight(self, guide_window: np.ndarray, guide_pixel: np.ndarray) -> np.ndarray:
        """
        Args:
            guide_window: window_size x window_size x C region of the guide
            guide_pixel: C values of the guide at the window center

        Returns:
            window_size x window_size non-negative weights (not normalized)
        """
        raise NotImplementedError


class BilateralWeight(WeightKernel):
    """Spatial Gaussian times a range Gaussian on the summed channel differences"""

    name = "bilateral"

    def __init__(self, window_size: int, spatial_sigma: float, range_sigma: float):
        self.window_size = window_size
        self.spatial_sigma = spatial_sigma
        self.range_sigma = range_sigma
        self.spatial_kernel = spatial_gaussian(window_size, spatial_sigma)

    def compute_weight(self, guide_window, guide_pixel):
        range_distances = np.sum((guide_window - guide_pixel) ** 2, axis=2)
        return self.spatial_kernel * gaussian_function(range_distances, self.range_sigma)


class ScaledBilateralWeight(BilateralWeight):
    """Bilateral weights computed on a Gaussian low-passed guide (robust under heavy AWGN)"""

    name = "scaled bilateral"

    def prepare_guide(self, guide):
        blurred = cv2.GaussianBlur(
            np.ascontiguousarray(guide), (self.window_size, self.window_size),
            self.spatial_sigma, borderType=cv2.BORDER_REPLICATE
        )
        # cv2 drops a trailing singleton channel axis
        return blurred.reshape(guide.shape)


class NonLocalMeansWeight(WeightKernel):
    """
    Patch similarity weights, summed over channels

        W(m) = sum_c exp(-||B_c(m) - B_c(p)||^2 / h^2),   h^2 = 2 range_sigma^2

    There is no separate spatial term; locality comes from the window bound.
    """

    name = "non-local means"

    def __init__(self, patch_size: int, range_sigma: float):
        self.patch_size = patch_size
        self.range_sigma = range_sigma
        self.h_squared = 2.0 * range_sigma ** 2

    def compute_weight(self, guide_window, guide_pixel):
        weights = np.zeros(guide_window.shape[:2], dtype=np.float64)
        for c in range(guide_window.shape[2]):
            distances = region_distance_matrix(guide_window[:, :, c], self.patch_size)
            weights += np.exp(-distances / self.h_squared)
        return weights


# ---------------------------------------------------------------------------
# Generic windowed average
# ---------------------------------------------------------------------------

def _resolve_workers(workers: Optional[int]) -> int:
    workers = validate_workers(workers)
    return workers or os.cpu_count() or 1


def windowed_average(guide: np.ndarray, subject: np.ndarray, window_size: int,
                     weight_kernel: WeightKernel, workers: Optional[int] = None) -> np.ndarray:
    """
    Evaluate a windowed weighted average for every pixel of the subject

    Args:
        guide: H x W x C float64 image used for the weights
        subject: H x W x C float64 image whose values are averaged
        window_size: odd window side
        weight_kernel: strategy producing the per-pixel weights
        workers: size of the thread pool running the rows (None = cpu count)

    Returns:
        H x W x C filtered image
    """
    height, width, _ = subject.shape
    padding = (window_size - 1) // 2

    guide = weight_kernel.prepare_guide(guide)
    padded_guide = np.pad(guide, ((padding, padding), (padding, padding), (0, 0)), mode='edge')
    padded_subject = np.pad(subject, ((padding, padding), (padding, padding), (0, 0)), mode='edge')

    output = np.empty_like(subject)

    def filter_row(i):
        # Rows write disjoint slices of output, nothing else is shared mutably
        degenerate = 0
        rows = slice(i, i + window_size)
        for j in range(width):
            cols = slice(j, j + window_size)
            weights = weight_kernel.compute_weight(padded_guide[rows, cols], guide[i, j])
            norm = weights.sum()
            if norm > 0 and np.isfinite(norm):
                output[i, j] = np.tensordot(weights, padded_subject[rows, cols], axes=2) / norm
            else:
                # Undefined average: keep the subject pixel
                output[i, j] = subject[i, j]
                degenerate += 1
        return degenerate

    with ThreadPoolExecutor(max_workers=_resolve_workers(workers)) as executor:
        degenerate_pixels = sum(executor.map(filter_row, range(height)))

    if degenerate_pixels:
        logger.debug(f"{weight_kernel.name}: {degenerate_pixels} pixels with a zero weight sum kept their input value")

    return output


def _prepare_inputs(subject, guide):
    """Validate a subject/guide pair and return float64 H x W x C buffers"""
    if guide is None:
        guide = subject
    validate_pair(subject, guide)
    subject_buffer, was_2d = as_image_buffer(subject, "subject")
    guide_buffer, _ = as_image_buffer(guide, "guide")
    return subject_buffer, guide_buffer, was_2d


def _restore_shape(output, was_2d):
    return output[:, :, 0] if was_2d else output


# ---------------------------------------------------------------------------
# Public filters
# ---------------------------------------------------------------------------

def bilateral_filter(subject: np.ndarray, guide: Optional[np.ndarray] = None,
                     window_size: int = 11, spatial_sigma: float = 11 / 1.5,
                     range_sigma: float = 10.0, workers: Optional[int] = None) -> np.ndarray:
    """
    Bilateral filter with a decoupled weighting image

    Args:
        subject: H x W or H x W x C image whose values are averaged
        guide: image used to compute the weights (None = subject)
        window_size: odd processing window side, >= 3
        spatial_sigma: spatial standard deviation
        range_sigma: range (radiometric) standard deviation
        workers: thread pool size

    Returns:
        Filtered image, same shape as subject
    """
    window_size = validate_window_size(window_size)
    spatial_sigma = validate_sigma(spatial_sigma, "spatial_sigma")
    range_sigma = validate_sigma(range_sigma, "range_sigma")
    subject_buffer, guide_buffer, was_2d = _prepare_inputs(subject, guide)

    logger.debug(f"Bilateral filter: window={window_size}, spatial_sigma={spatial_sigma}, range_sigma={range_sigma}")
    kernel = BilateralWeight(window_size, spatial_sigma, range_sigma)
    output = windowed_average(guide_buffer, subject_buffer, window_size, kernel, workers)
    return _restore_shape(output, was_2d)


def scaled_bilateral_filter(subject: np.ndarray, guide: Optional[np.ndarray] = None,
                            window_size: int = 11, spatial_sigma: float = 11 / 1.5,
                            range_sigma: float = 10.0, workers: Optional[int] = None) -> np.ndarray:
    """
    Scaled bilateral filter: the guide is Gaussian blurred (window_size kernel,
    spatial_sigma) before the range weights are computed
    """
    window_size = validate_window_size(window_size)
    spatial_sigma = validate_sigma(spatial_sigma, "spatial_sigma")
    range_sigma = validate_sigma(range_sigma, "range_sigma")
    subject_buffer, guide_buffer, was_2d = _prepare_inputs(subject, guide)

    logger.debug(f"Scaled bilateral filter: window={window_size}, spatial_sigma={spatial_sigma}, range_sigma={range_sigma}")
    kernel = ScaledBilateralWeight(window_size, spatial_sigma, range_sigma)
    output = windowed_average(guide_buffer, subject_buffer, window_size, kernel, workers)
    return _restore_shape(output, was_2d)


def nonlocal_means_filter(subject: np.ndarray, guide: Optional[np.ndarray] = None,
                          window_size: int = 11, patch_size: int = 3,
                          range_sigma: float = 10.0, workers: Optional[int] = None) -> np.ndarray:
    """
    Non-Local Means filter with a decoupled weighting image

    Computationally the most demanding filter: one patch distance matrix per
    channel per output pixel, O(window_size^2 * patch_size^2) each.

    Args:
        subject: H x W or H x W x C image whose values are averaged
        guide: image used to compute the weights (None = subject)
        window_size: odd search window side, >= 3
        patch_size: odd patch side, 3 <= patch_size <= window_size
        range_sigma: sets the decay h^2 = 2 range_sigma^2
        workers: thread pool size

    Returns:
        Filtered image, same shape as subject
    """
    window_size = validate_window_size(window_size)
    patch_size = validate_patch_size(patch_size, window_size)
    range_sigma = validate_sigma(range_sigma, "range_sigma")
    subject_buffer, guide_buffer, was_2d = _prepare_inputs(subject, guide)

    logger.debug(f"Non-local means filter: window={window_size}, patch={patch_size}, range_sigma={range_sigma}")
    kernel = NonLocalMeansWeight(patch_size, range_sigma)
    output = windowed_average(guide_buffer, subject_buffer, window_size, kernel, workers)
    return _restore_shape(output, was_2d)


# ---------------------------------------------------------------------------
# Guided filter
# ---------------------------------------------------------------------------

def box_filter(image: np.ndarray, radius: int) -> np.ndarray:
    """Local mean over a (2r+1) x (2r+1) box, per channel"""
    size = 2 * radius + 1
    if image.ndim == 3:
        size = (size, size, 1)
    return ndimage.uniform_filter(image, size=size, mode='nearest')


def _guided_filter_gray(guide, subject, radius, epsilon):
    """Single channel guide, any number of subject channels"""
    I = guide[:, :, 0]
    mean_I = box_filter(I, radius)
    var_I = box_filter(I * I, radius) - mean_I * mean_I

    output = np.empty_like(subject)
    for c in range(subject.shape[2]):
        p = subject[:, :, c]
        mean_p = box_filter(p, radius)
        cov_Ip = box_filter(I * p, radius) - mean_I * mean_p

        a = cov_Ip / (var_I + epsilon)
        b = mean_p - a * mean_I
        output[:, :, c] = box_filter(a, radius) * I + box_filter(b, radius)
    return output


def _guided_filter_color(guide, subject, radius, epsilon):
    """Three channel guide: per window a 3x3 regularized covariance, inverted analytically"""
    r_, g_, b_ = guide[:, :, 0], guide[:, :, 1], guide[:, :, 2]
    mean_r, mean_g, mean_b = box_filter(r_, radius), box_filter(g_, radius), box_filter(b_, radius)

    var_rr = box_filter(r_ * r_, radius) - mean_r * mean_r + epsilon
    var_rg = box_filter(r_ * g_, radius) - mean_r * mean_g
    var_rb = box_filter(r_ * b_, radius) - mean_r * mean_b
    var_gg = box_filter(g_ * g_, radius) - mean_g * mean_g + epsilon
    var_gb = box_filter(g_ * b_, radius) - mean_g * mean_b
    var_bb = box_filter(b_ * b_, radius) - mean_b * mean_b + epsilon

    # Cofactors of the symmetric covariance matrix
    inv_rr = var_gg * var_bb - var_gb * var_gb
    inv_rg = var_gb * var_rb - var_rg * var_bb
    inv_rb = var_rg * var_gb - var_gg * var_rb
    inv_gg = var_rr * var_bb - var_rb * var_rb
    inv_gb = var_rb * var_rg - var_rr * var_gb
    inv_bb = var_rr * var_gg - var_rg * var_rg

    det = inv_rr * var_rr + inv_rg * var_rg + inv_rb * var_rb
    inv_rr, inv_rg, inv_rb = inv_rr / det, inv_rg / det, inv_rb / det
    inv_gg, inv_gb, inv_bb = inv_gg / det, inv_gb / det, inv_bb / det

    output = np.empty_like(subject)
    for c in range(subject.shape[2]):
        p = subject[:, :, c]
        mean_p = box_filter(p, radius)

        cov_rp = box_filter(r_ * p, radius) - mean_r * mean_p
        cov_gp = box_filter(g_ * p, radius) - mean_g * mean_p
        cov_bp = box_filter(b_ * p, radius) - mean_b * mean_p

        a_r = inv_rr * cov_rp + inv_rg * cov_gp + inv_rb * cov_bp
        a_g = inv_rg * cov_rp + inv_gg * cov_gp + inv_gb * cov_bp
        a_b = inv_rb * cov_rp + inv_gb * cov_gp + inv_bb * cov_bp
        b = mean_p - a_r * mean_r - a_g * mean_g - a_b * mean_b

        output[:, :, c] = (box_filter(a_r, radius) * r_
                           + box_filter(a_g, radius) * g_
                           + box_filter(a_b, radius) * b_
                           + box_filter(b, radius))
    return output


def guided_filter(subject: np.ndarray, guide: Optional[np.ndarray] = None,
                  window_size: int = 11, range_sigma: float = 10.0,
                  epsilon: Optional[float] = None) -> np.ndarray:
    """
    Guided filter (He et al.) with a decoupled guiding image

    Assumes a local linear model subject ~ a_k * guide + b_k in every window
    w_k, solved by regularized linear regression. The output averages the
    models of all windows covering a pixel:

        q_i = mean_k(a_k) * I_i + mean_k(b_k)

    Args:
        subject: H x W or H x W x C image to filter
        guide: guiding image with 1 or 3 channels (None = subject)
        window_size: odd window side; the box radius is window_size // 2
        range_sigma: sets the regularization epsilon = range_sigma^2
        epsilon: explicit regularization, overrides range_sigma

    Returns:
        Filtered image, same shape as subject
    """
    window_size = validate_window_size(window_size)
    if epsilon is None:
        epsilon = validate_sigma(range_sigma, "range_sigma") ** 2
    else:
        epsilon = validate_sigma(epsilon, "epsilon")
    subject_buffer, guide_buffer, was_2d = _prepare_inputs(subject, guide)

    radius = window_size // 2
    logger.debug(f"Guided filter: radius={radius}, epsilon={epsilon}")

    if guide_buffer.shape[2] == 1:
        output = _guided_filter_gray(guide_buffer, subject_buffer, radius, epsilon)
    else:
        output = _guided_filter_color(guide_buffer, subject_buffer, radius, epsilon)
    return _restore_shape(output, was_2d)
