"""
Parameter and input validation for the weighted average filters

Every check runs before any pixel is processed, so a bad call fails as a
whole and never leaves a partially filtered image behind.
"""

from typing import Optional, Tuple

import numpy as np


class InvalidParameterError(ValueError):
    """A window size, patch size, sigma or strength outside its valid range"""


class InputMismatchError(ValueError):
    """Subject and guide buffers that cannot be filtered together"""


def validate_window_size(window_size: int, name: str = "window_size") -> int:
    try:
        is_integer = not isinstance(window_size, bool) and int(window_size) == window_size
    except (TypeError, ValueError, OverflowError):
        is_integer = False
    if not is_integer:
        raise InvalidParameterError(f"{name} must be an integer, got {window_size!r}")
    window_size = int(window_size)
    if window_size < 3 or window_size % 2 == 0:
        raise InvalidParameterError(
            f"{name} must be an odd number equal or greater than 3, got {window_size}"
        )
    return window_size


def validate_patch_size(patch_size: int, window_size: int) -> int:
    patch_size = validate_window_size(patch_size, name="patch_size")
    if patch_size > window_size:
        raise InvalidParameterError(
            f"patch_size ({patch_size}) must not exceed window_size ({window_size})"
        )
    return patch_size


def validate_sigma(sigma: float, name: str = "sigma") -> float:
    try:
        sigma = float(sigma)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"{name} must be a number, got {sigma!r}") from None
    if not np.isfinite(sigma) or sigma <= 0:
        raise InvalidParameterError(f"{name} must be a positive finite number, got {sigma}")
    return sigma


def validate_lambda(lam: float) -> float:
    try:
        lam = float(lam)
    except (TypeError, ValueError):
        raise InvalidParameterError(f"USM lambda must be a number, got {lam!r}") from None
    if not np.isfinite(lam) or lam < 0:
        raise InvalidParameterError(f"USM lambda must be >= 0, got {lam}")
    return lam


def validate_workers(workers: Optional[int]) -> Optional[int]:
    if workers is None:
        return None
    try:
        is_integer = not isinstance(workers, bool) and int(workers) == workers
    except (TypeError, ValueError, OverflowError):
        is_integer = False
    if not is_integer or workers < 1:
        raise InvalidParameterError(f"workers must be a positive integer, got {workers!r}")
    return int(workers)


def as_image_buffer(image: np.ndarray, name: str = "image") -> Tuple[np.ndarray, bool]:
    """
    Normalize an image to a float64 H x W x C buffer

    Args:
        image: H x W, H x W x 1 or H x W x 3 array
        name: used in error messages

    Returns:
        Tuple of (H x W x C float64 array, was_2d flag)
    """
    image = np.asarray(image)
    if image.ndim == 2:
        return image.astype(np.float64)[:, :, np.newaxis], True
    if image.ndim != 3:
        raise InputMismatchError(f"{name} must be 2D or 3D, got {image.ndim} dimensions")
    if image.shape[2] not in (1, 3):
        raise InputMismatchError(f"{name} must have 1 or 3 channels, got {image.shape[2]}")
    return image.astype(np.float64), False


def validate_pair(subject: np.ndarray, guide: np.ndarray) -> None:
    """Subject and guide must share dimensions and channel count"""
    subject = np.asarray(subject)
    guide = np.asarray(guide)
    if subject.shape != guide.shape:
        raise InputMismatchError(
            f"Guide shape {guide.shape} does not match subject shape {subject.shape}"
        )
