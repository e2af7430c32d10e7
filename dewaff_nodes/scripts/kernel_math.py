"""
Kernel math for the weighted average filters
Coordinate grids, Gaussian / Laplacian of Gaussian kernels and range helpers

Kernels are cached per (window_size, sigma) and handed out read-only, so the
same buffer can be shared by every pixel (and every worker) of one filter call.
"""

from functools import lru_cache
from typing import Tuple

import numpy as np

from .validation import InvalidParameterError


def gaussian_function(x: np.ndarray, sigma: float) -> np.ndarray:
    """Unnormalized Gaussian exp(-x / (2 sigma^2)), applied elementwise

    Args:
        x: squared distances (spatial or radiometric)
        sigma: standard deviation

    Returns:
        Array shaped like x
    """
    variance = float(sigma) ** 2
    return np.exp(np.asarray(x, dtype=np.float64) * (-1.0 / (2.0 * variance)))


def mesh_grid(window_size: int) -> Tuple[np.ndarray, np.ndarray]:
    """Column (X) and row (Y) offsets from the center of a square window

    For window_size = 3:
        X = [[-1, 0, 1],      Y = [[-1, -1, -1],
             [-1, 0, 1],           [ 0,  0,  0],
             [-1, 0, 1]]           [ 1,  1,  1]]
    """
    half = window_size // 2
    offsets = np.arange(-half, half + 1, dtype=np.float64)
    X, Y = np.meshgrid(offsets, offsets)
    return X, Y


def squared_distances(window_size: int) -> np.ndarray:
    """||m - p||^2 for every position m of a window centered at p"""
    X, Y = mesh_grid(window_size)
    return X ** 2 + Y ** 2


@lru_cache(maxsize=64)
def gaussian_kernel(window_size: int, sigma: float) -> np.ndarray:
    """Spatial Gaussian kernel normalized to sum 1 (low pass)"""
    X, Y = mesh_grid(window_size)
    kernel = gaussian_function(X ** 2, sigma) * gaussian_function(Y ** 2, sigma)
    kernel /= kernel.sum()
    kernel.setflags(write=False)
    return kernel


@lru_cache(maxsize=64)
def spatial_gaussian(window_size: int, sigma: float) -> np.ndarray:
    """Unnormalized spatial term of the bilateral filter, 1 at the center"""
    kernel = gaussian_function(squared_distances(window_size), sigma)
    kernel.setflags(write=False)
    return kernel


@lru_cache(maxsize=64)
def log_kernel(window_size: int, sigma: float) -> np.ndarray:
    """
    Laplacian of Gaussian kernel (same family as fspecial('log') in Matlab)

        LoG = 1 / (2 pi sigma^2) * exp(-(X^2 + Y^2) / (2 sigma^2)) * ((X^2 + Y^2) / sigma^2 - 2)

    The mean is subtracted afterwards so the kernel sums to zero: a pure high
    pass with no DC response.

    Args:
        window_size: odd kernel side
        sigma: Gaussian standard deviation, must be > 0

    Returns:
        window_size x window_size read-only array
    """
    if sigma <= 0:
        raise InvalidParameterError(f"LoG sigma must be positive, got {sigma}")

    S = squared_distances(window_size)
    variance = float(sigma) ** 2
    kernel = (1.0 / (2.0 * np.pi * variance)) * np.exp(-S / (2.0 * variance)) * (S / variance - 2.0)

    # Zero-sum: remove the DC component
    kernel -= kernel.sum() / window_size ** 2
    kernel.setflags(write=False)
    return kernel


def global_min_max(buffer: np.ndarray) -> Tuple[float, float]:
    """Per-channel min/max collapsed to one global (min, max) pair"""
    buffer = np.asarray(buffer)
    if buffer.ndim == 3:
        channel_min = buffer.min(axis=(0, 1))
        channel_max = buffer.max(axis=(0, 1))
        return float(channel_min.min()), float(channel_max.max())
    return float(buffer.min()), float(buffer.max())


def clear_kernel_cache():
    """Drop every cached kernel"""
    gaussian_kernel.cache_clear()
    spatial_gaussian.cache_clear()
    log_kernel.cache_clear()
