# dewaff_nodes/__init__.py
"""
DeWAFF Nodes for ComfyUI
Deceived Weighted Average Filters: edge preserving denoising where the filter
weights come from a sharpened proxy of the image and the averaged values come
from the image itself
"""

# Initialize mapping dictionaries to prevent NameError
DEWAFF_MAPPINGS = DEWAFF_DISPLAY = {}

# Core processing functions
from .scripts.kernel_math import (
    gaussian_function,
    mesh_grid,
    gaussian_kernel,
    log_kernel,
    global_min_max,
)

from .scripts.patch_distance import region_distance_matrix

from .scripts.unsharp_mask import unsharp_mask

from .scripts.weighted_average_filters import (
    WeightKernel,
    BilateralWeight,
    ScaledBilateralWeight,
    NonLocalMeansWeight,
    windowed_average,
    bilateral_filter,
    scaled_bilateral_filter,
    nonlocal_means_filter,
    guided_filter,
)

from .scripts.deceived_filters import (
    deceived_bilateral_filter,
    deceived_scaled_bilateral_filter,
    deceived_nonlocal_means_filter,
    deceived_guided_filter,
)

from .scripts.validation import InvalidParameterError, InputMismatchError

from .scripts.config import (
    DeWAFFConfig,
    FILTER_TYPES,
    get_dewaff_presets,
    config_from_preset,
)

from .scripts.frame_processor import FrameProcessor, Timer

# ComfyUI nodes need torch, the filters do not
try:
    from .nodes.dewaff_filter_node import (
        NODE_CLASS_MAPPINGS as DEWAFF_MAPPINGS,
        NODE_DISPLAY_NAME_MAPPINGS as DEWAFF_DISPLAY,
    )
except ImportError as e:
    print(f"Warning: DeWAFF nodes not available: {e}")

NODE_CLASS_MAPPINGS = {}
NODE_CLASS_MAPPINGS.update(DEWAFF_MAPPINGS)

NODE_DISPLAY_NAME_MAPPINGS = {}
NODE_DISPLAY_NAME_MAPPINGS.update(DEWAFF_DISPLAY)

# Export for ComfyUI
__all__ = [
    "NODE_CLASS_MAPPINGS",
    "NODE_DISPLAY_NAME_MAPPINGS",
    # Kernel math
    "gaussian_function",
    "mesh_grid",
    "gaussian_kernel",
    "log_kernel",
    "global_min_max",
    "region_distance_matrix",
    # Filters
    "unsharp_mask",
    "WeightKernel",
    "BilateralWeight",
    "ScaledBilateralWeight",
    "NonLocalMeansWeight",
    "windowed_average",
    "bilateral_filter",
    "scaled_bilateral_filter",
    "nonlocal_means_filter",
    "guided_filter",
    "deceived_bilateral_filter",
    "deceived_scaled_bilateral_filter",
    "deceived_nonlocal_means_filter",
    "deceived_guided_filter",
    # Configuration and I/O
    "InvalidParameterError",
    "InputMismatchError",
    "DeWAFFConfig",
    "FILTER_TYPES",
    "get_dewaff_presets",
    "config_from_preset",
    "FrameProcessor",
    "Timer",
]
