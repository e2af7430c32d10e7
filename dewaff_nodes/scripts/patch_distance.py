"""
Patch distances for Non-Local Means
Compares the patch centered in a window against every shifted patch of the
same size inside that window
"""

import numpy as np
from skimage.util import view_as_windows


def region_distance_matrix(window: np.ndarray, patch_size: int, squared: bool = True) -> np.ndarray:
    """
    Distance between the reference patch and the patch around every window position

    The window is edge-replicated by patch_size // 2 so that every position has
    a full patch and nothing is read from outside the window.

    Args:
        window: single channel window, window_size x window_size
        patch_size: odd patch side, <= window_size
        squared: True for the sum of squared differences, False for the L2 norm

    Returns:
        window_size x window_size distances, lower = more similar.
        The center entry is always 0.
    """
    window = np.asarray(window, dtype=np.float64)
    window_size = window.shape[0]
    half = patch_size // 2
    center = window_size // 2

    padded = np.pad(window, half, mode='edge')

    # (window_size, window_size, patch_size, patch_size) view, no copy
    patches = view_as_windows(padded, (patch_size, patch_size))
    reference = padded[center:center + patch_size, center:center + patch_size]

    distances = np.sum((patches - reference) ** 2, axis=(2, 3))
    if not squared:
        distances = np.sqrt(distances)
    return distances
