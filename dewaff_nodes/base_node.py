"""
Base node class for the DeWAFF ComfyUI nodes
Handles ComfyUI tensor conversions, validation and memory cleanup
"""

import torch
import numpy as np
from typing import Callable
import gc


class BaseImageProcessingNode:
    """Base class for the deceived filter nodes with ComfyUI integration"""

    CATEGORY = "DeWAFF"

    @staticmethod
    def tensor_to_numpy(tensor: torch.Tensor, as_uint8: bool = True) -> np.ndarray:
        """Convert a ComfyUI image tensor ([H, W, C], values 0-1) to numpy

        Args:
            tensor: image tensor [H, W, C] with values 0-1
            as_uint8: True for uint8 0-255 (what the frame processor expects),
                      False for float32 0-1

        Returns:
            Contiguous numpy array [H, W, C]
        """
        # OpenCV needs contiguous memory, permuted tensors are not
        img_np = tensor.detach().contiguous().cpu().numpy()

        if as_uint8:
            img_np = np.clip(img_np * 255.0 + 0.5, 0, 255).astype(np.uint8)
        else:
            img_np = img_np.astype(np.float32)

        return np.ascontiguousarray(img_np)

    @staticmethod
    def numpy_to_tensor(img_np: np.ndarray) -> torch.Tensor:
        """Convert a numpy image back to a ComfyUI tensor [H, W, C] with values 0-1

        uint8 input is scaled from 0-255, float input is taken as 0-1 and clipped.
        """
        img_np = np.ascontiguousarray(img_np)

        if img_np.dtype == np.uint8:
            img_np = img_np.astype(np.float32) / 255.0
        else:
            img_np = np.clip(img_np.astype(np.float32), 0.0, 1.0)

        if img_np.ndim == 2:
            img_np = img_np[:, :, np.newaxis]

        return torch.from_numpy(np.ascontiguousarray(img_np))

    @staticmethod
    def cleanup_memory():
        """Release cached GPU memory after processing"""
        if torch.cuda.is_available():
            torch.cuda.empty_cache()
        gc.collect()

    @staticmethod
    def validate_image_tensor(tensor: torch.Tensor) -> bool:
        """Validate that tensor is a ComfyUI image tensor

        Returns:
            True if valid, raises ValueError if not
        """
        if not isinstance(tensor, torch.Tensor):
            raise ValueError("Input must be a torch.Tensor")

        if len(tensor.shape) not in [3, 4]:
            raise ValueError(f"Image tensor must have 3 or 4 dimensions, got {len(tensor.shape)}")

        c = tensor.shape[-1]
        if c not in [1, 3]:
            raise ValueError(f"Image must have 1 or 3 channels, got {c}")

        return True

    def process_image_safe(self, image: torch.Tensor, processing_func: Callable, **kwargs) -> torch.Tensor:
        """Apply processing_func to every image of a batch

        Args:
            image: image tensor [N, H, W, C] or [H, W, C]
            processing_func: function taking a uint8 [H, W, C] array
            **kwargs: forwarded to processing_func

        Returns:
            Tensor with the same batch layout as the input
        """
        try:
            self.validate_image_tensor(image)

            if len(image.shape) == 3:
                return self._run_single(processing_func, image, **kwargs)

            results = [self._run_single(processing_func, image[i], **kwargs)
                       for i in range(image.shape[0])]
            return torch.stack(results, dim=0)

        except Exception as e:
            print(f"Error in image processing: {str(e)}")
            raise
        finally:
            self.cleanup_memory()

    def process_pair_safe(self, subject: torch.Tensor, guide: torch.Tensor,
                          processing_func: Callable, **kwargs) -> torch.Tensor:
        """Apply processing_func(subject_np, guide_np) over matching batches

        Images are handed over as float32 0-1 arrays. A single guide is reused
        for every subject of a batch.
        """
        try:
            self.validate_image_tensor(subject)
            self.validate_image_tensor(guide)

            subjects = subject if len(subject.shape) == 4 else subject.unsqueeze(0)
            guides = guide if len(guide.shape) == 4 else guide.unsqueeze(0)
            if guides.shape[0] not in (1, subjects.shape[0]):
                raise ValueError(
                    f"Guide batch ({guides.shape[0]}) must be 1 or match the subject batch ({subjects.shape[0]})"
                )

            results = []
            for i in range(subjects.shape[0]):
                subject_np = self.tensor_to_numpy(subjects[i], as_uint8=False)
                guide_np = self.tensor_to_numpy(guides[i if guides.shape[0] > 1 else 0], as_uint8=False)
                results.append(self.numpy_to_tensor(processing_func(subject_np, guide_np, **kwargs)))

            result = torch.stack(results, dim=0)
            return result if len(subject.shape) == 4 else result[0]

        except Exception as e:
            print(f"Error in guided image processing: {str(e)}")
            raise
        finally:
            self.cleanup_memory()

    def _run_single(self, processing_func, image, **kwargs):
        img_np = self.tensor_to_numpy(image)
        return self.numpy_to_tensor(processing_func(img_np, **kwargs))
