"""
Deceived Weighted Average Filter nodes for ComfyUI
Edge preserving denoising where the weights come from a sharpened proxy

Deceived WAFs:
    The guide is a Laplacian of Gaussian unsharp mask of the input, the
    averaged values come from the input itself. Bilateral, scaled bilateral,
    non-local means and guided filters are available.

Dependencies:
    - PyTorch (BSD 3-Clause License)
    - OpenCV (Apache 2.0 License)
    - NumPy (BSD 3-Clause License)
    - SciPy (BSD 3-Clause License)
    - scikit-image (BSD 3-Clause License)
"""

import numpy as np

from ..base_node import BaseImageProcessingNode
from ..scripts.config import DeWAFFConfig, FILTER_TYPES
from ..scripts.frame_processor import FrameProcessor
from ..scripts.unsharp_mask import unsharp_mask
from ..scripts.weighted_average_filters import (
    bilateral_filter,
    guided_filter,
    nonlocal_means_filter,
    scaled_bilateral_filter,
)


WINDOW_SIZE_INPUT = ("INT", {
    "default": 11,
    "min": 3,
    "max": 41,
    "step": 2,
    "tooltip": "Processing window (odd):\n• 5-9: Fast, light smoothing\n• 11-15: Standard choice (recommended)\n• 17-41: Heavy smoothing, much slower for DBF/DSBF/DNLM"
})


class DeceivedFilterNode(BaseImageProcessingNode):
    """
    Deceived Weighted Average Filter node

    Best for:
    - Photographs and video frames with sensor noise
    - Keeping edges crisp while flattening noise
    - DGF for large images (cost independent of window size)

    Performance: DGF fast, DBF/DSBF slow, DNLM slowest (pure Python pixel loop)
    """

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "image": ("IMAGE",),
                "filter_type": (sorted(FILTER_TYPES), {
                    "default": "DGF",
                    "tooltip": "Filter:\n• DBF: Deceived Bilateral\n• DSBF: Deceived Scaled Bilateral (heavy noise)\n• DNLM: Deceived Non-Local Means (best texture, slowest)\n• DGF: Deceived Guided (fastest)"
                }),
                "window_size": WINDOW_SIZE_INPUT,
            },
            "optional": {
                "spatial_sigma": ("FLOAT", {
                    "default": 0.0,
                    "min": 0.0,
                    "max": 50.0,
                    "step": 0.1,
                    "tooltip": "Spatial standard deviation, also drives the unsharp mask.\n0 = window_size / 1.5"
                }),
                "range_sigma": ("FLOAT", {
                    "default": 10.0,
                    "min": 0.1,
                    "max": 100.0,
                    "step": 0.1,
                    "tooltip": "Range standard deviation on the CIELab scale (L: 0-100):\n• 2-5: Subtle\n• 10: Balanced (recommended)\n• 20+: Strong, may flatten textures"
                }),
                "patch_size": ("INT", {
                    "default": 3,
                    "min": 3,
                    "max": 11,
                    "step": 2,
                    "tooltip": "Patch size for DNLM (odd, <= window_size)"
                }),
                "usm_lambda": ("FLOAT", {
                    "default": 2.0,
                    "min": 0.0,
                    "max": 10.0,
                    "step": 0.1,
                    "tooltip": "Unsharp mask strength of the guide.\n0 = plain (not deceived) filter"
                }),
                "working_space": (["lab", "rgb"], {
                    "default": "lab",
                    "tooltip": "• lab: filter in CIELab (recommended)\n• rgb: filter RGB channels on a 0-100 scale"
                }),
            }
        }

    RETURN_TYPES = ("IMAGE",)
    RETURN_NAMES = ("filtered_image",)
    FUNCTION = "filter"
    CATEGORY = "DeWAFF/Denoising"

    def filter(self, image, filter_type="DGF", window_size=11, spatial_sigma=0.0,
               range_sigma=10.0, patch_size=3, usm_lambda=2.0, working_space="lab"):
        """Apply a deceived filter to the input image"""

        try:
            config = DeWAFFConfig(
                filter_type=filter_type,
                window_size=window_size,
                spatial_sigma=spatial_sigma if spatial_sigma > 0 else None,
                range_sigma=range_sigma,
                patch_size=min(patch_size, window_size),
                usm_lambda=usm_lambda,
            ).validate()

            print(f"{config.display_name}: window={config.window_size}, "
                  f"spatial_sigma={config.resolved_spatial_sigma:.2f}, range_sigma={config.range_sigma}, "
                  f"lambda={config.usm_lambda}, space={working_space}")

            if working_space == "lab":
                processor = FrameProcessor(config, channel_order="RGB")
                process_func = processor.process_frame
            else:
                def process_func(img_np):
                    scaled = img_np.astype(np.float64) * (100.0 / 255.0)
                    return np.clip(config.apply(scaled) / 100.0, 0.0, 1.0).astype(np.float32)

            result = self.process_image_safe(image, process_func)
            return (result,)

        except Exception as e:
            print(f"Error in deceived filtering: {str(e)}")
            # Return original image on error
            return (image,)


class GuidedWeightedAverageNode(BaseImageProcessingNode):
    """
    Weighted average filter with an explicit guide image

    The guide decides the weights, the subject supplies the averaged values.
    Feeding the same image twice gives the classic filter.
    """

    FILTERS = {
        "BF": bilateral_filter,
        "SBF": scaled_bilateral_filter,
        "NLM": nonlocal_means_filter,
        "GF": guided_filter,
    }

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "subject": ("IMAGE",),
                "guide": ("IMAGE",),
                "filter_type": (list(cls.FILTERS), {
                    "default": "GF",
                    "tooltip": "• BF: Bilateral\n• SBF: Scaled Bilateral\n• NLM: Non-Local Means\n• GF: Guided"
                }),
                "window_size": WINDOW_SIZE_INPUT,
            },
            "optional": {
                "spatial_sigma": ("FLOAT", {
                    "default": 0.0,
                    "min": 0.0,
                    "max": 50.0,
                    "step": 0.1,
                    "tooltip": "Spatial standard deviation (BF/SBF). 0 = window_size / 1.5"
                }),
                "range_sigma": ("FLOAT", {
                    "default": 0.1,
                    "min": 0.001,
                    "max": 1.0,
                    "step": 0.001,
                    "tooltip": "Range standard deviation on the 0-1 image scale"
                }),
                "patch_size": ("INT", {
                    "default": 3,
                    "min": 3,
                    "max": 11,
                    "step": 2,
                    "tooltip": "Patch size for NLM (odd, <= window_size)"
                }),
            }
        }

    RETURN_TYPES = ("IMAGE",)
    RETURN_NAMES = ("filtered_image",)
    FUNCTION = "filter"
    CATEGORY = "DeWAFF/Denoising"

    def filter(self, subject, guide, filter_type="GF", window_size=11, spatial_sigma=0.0,
               range_sigma=0.1, patch_size=3):
        """Filter subject with weights taken from guide"""

        try:
            spatial = spatial_sigma if spatial_sigma > 0 else window_size / 1.5
            filter_func = self.FILTERS[filter_type]

            def process_func(subject_np, guide_np):
                if filter_type == "NLM":
                    return filter_func(subject_np, guide_np, window_size, min(patch_size, window_size), range_sigma)
                if filter_type == "GF":
                    return filter_func(subject_np, guide_np, window_size, range_sigma)
                return filter_func(subject_np, guide_np, window_size, spatial, range_sigma)

            result = self.process_pair_safe(subject, guide, process_func)
            return (result,)

        except Exception as e:
            print(f"Error in guided weighted average filtering: {str(e)}")
            return (subject,)


class UnsharpMaskGuideNode(BaseImageProcessingNode):
    """Shows the Laplacian of Gaussian unsharp mask used as the deceived guide"""

    @classmethod
    def INPUT_TYPES(cls):
        return {
            "required": {
                "image": ("IMAGE",),
                "window_size": WINDOW_SIZE_INPUT,
                "usm_lambda": ("FLOAT", {
                    "default": 2.0,
                    "min": 0.0,
                    "max": 10.0,
                    "step": 0.1,
                    "tooltip": "Sharpening strength, 0 = no change"
                }),
                "sigma": ("FLOAT", {
                    "default": 0.0,
                    "min": 0.0,
                    "max": 50.0,
                    "step": 0.001,
                    "tooltip": "LoG standard deviation. 0 = window_size / 1.5"
                }),
            }
        }

    RETURN_TYPES = ("IMAGE",)
    RETURN_NAMES = ("guide_image",)
    FUNCTION = "sharpen"
    CATEGORY = "DeWAFF/Sharpening"

    def sharpen(self, image, window_size=11, usm_lambda=2.0, sigma=0.0):
        try:
            log_sigma = sigma if sigma > 0 else window_size / 1.5

            def process_func(img_np):
                img_float = img_np.astype(np.float64) / 255.0
                return unsharp_mask(img_float, window_size, usm_lambda, log_sigma)

            result = self.process_image_safe(image, process_func)
            return (result,)

        except Exception as e:
            print(f"Error in unsharp mask: {str(e)}")
            return (image,)


# Node registration for ComfyUI
NODE_CLASS_MAPPINGS = {
    "DeceivedFilter": DeceivedFilterNode,
    "GuidedWeightedAverage": GuidedWeightedAverageNode,
    "UnsharpMaskGuide": UnsharpMaskGuideNode,
}

NODE_DISPLAY_NAME_MAPPINGS = {
    "DeceivedFilter": "Deceived Weighted Average Filter (DeWAFF)",
    "GuidedWeightedAverage": "Guided Weighted Average Filter (DeWAFF)",
    "UnsharpMaskGuide": "LoG Unsharp Mask Guide (DeWAFF)",
}
