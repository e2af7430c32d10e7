"""
Configuration for the deceived filters
Filter registry, the DeWAFFConfig parameter set and named presets
"""

from dataclasses import dataclass, asdict, replace
from typing import Any, Callable, Dict, Optional

import numpy as np

from .deceived_filters import (
    DEFAULT_USM_LAMBDA,
    deceived_bilateral_filter,
    deceived_guided_filter,
    deceived_nonlocal_means_filter,
    deceived_scaled_bilateral_filter,
)
from .validation import (
    InvalidParameterError,
    validate_lambda,
    validate_patch_size,
    validate_sigma,
    validate_window_size,
    validate_workers,
)


# Acronym -> (display name, deceived entry point)
FILTER_TYPES: Dict[str, Dict[str, Any]] = {
    'DBF': {
        'name': 'Deceived Bilateral Filter',
        'function': deceived_bilateral_filter,
    },
    'DSBF': {
        'name': 'Deceived Scaled Bilateral Filter',
        'function': deceived_scaled_bilateral_filter,
    },
    'DNLM': {
        'name': 'Deceived Non-Local Means Filter',
        'function': deceived_nonlocal_means_filter,
    },
    'DGF': {
        'name': 'Deceived Guided Filter',
        'function': deceived_guided_filter,
    },
}


def resolve_filter_type(filter_type: str) -> str:
    """Normalize a filter acronym ('dbf', 'DBF', ...)"""
    acronym = str(filter_type).strip().upper()
    if acronym not in FILTER_TYPES:
        raise InvalidParameterError(
            f"Unknown filter type {filter_type!r}, expected one of {sorted(FILTER_TYPES)}"
        )
    return acronym


@dataclass
class DeWAFFConfig:
    """Parameters of one deceived filtering run

    spatial_sigma defaults to window_size / 1.5 when left as None.
    """
    filter_type: str = 'DGF'
    window_size: int = 15
    spatial_sigma: Optional[float] = None
    range_sigma: float = 10.0
    patch_size: int = 3
    usm_lambda: float = DEFAULT_USM_LAMBDA
    workers: Optional[int] = None

    @property
    def resolved_spatial_sigma(self) -> float:
        if self.spatial_sigma is None:
            return self.window_size / 1.5
        return self.spatial_sigma

    @property
    def acronym(self) -> str:
        return resolve_filter_type(self.filter_type)

    @property
    def display_name(self) -> str:
        return FILTER_TYPES[self.acronym]['name']

    def validate(self) -> 'DeWAFFConfig':
        """Check every parameter, raising InvalidParameterError on the first bad one"""
        resolve_filter_type(self.filter_type)
        validate_window_size(self.window_size)
        validate_sigma(self.resolved_spatial_sigma, "spatial_sigma")
        validate_sigma(self.range_sigma, "range_sigma")
        validate_lambda(self.usm_lambda)
        validate_workers(self.workers)
        if self.acronym == 'DNLM':
            validate_patch_size(self.patch_size, self.window_size)
        return self

    def filter_function(self) -> Callable[..., np.ndarray]:
        return FILTER_TYPES[self.acronym]['function']

    def filter_kwargs(self) -> Dict[str, Any]:
        kwargs = {
            'window_size': self.window_size,
            'spatial_sigma': self.resolved_spatial_sigma,
            'range_sigma': self.range_sigma,
            'usm_lambda': self.usm_lambda,
            'workers': self.workers,
        }
        if self.acronym == 'DNLM':
            kwargs['patch_size'] = self.patch_size
        return kwargs

    def apply(self, image: np.ndarray) -> np.ndarray:
        """Run the configured deceived filter on an already converted image"""
        self.validate()
        return self.filter_function()(image, **self.filter_kwargs())

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def get_dewaff_presets() -> Dict[str, Dict[str, Any]]:
    """
    Get predefined parameter sets

    Returns:
        Dictionary of preset configurations (DeWAFFConfig keyword arguments)
    """
    return {
        'light': {
            'window_size': 7,
            'range_sigma': 5.0,
            'usm_lambda': 1.0,
            'description': 'Light denoising, keeps fine texture'
        },
        'balanced': {
            'window_size': 15,
            'range_sigma': 10.0,
            'usm_lambda': 2.0,
            'description': 'Default deceived filtering strength'
        },
        'strong': {
            'window_size': 21,
            'range_sigma': 20.0,
            'usm_lambda': 2.0,
            'description': 'Heavy noise, smoother flat regions'
        },
        'fast': {
            'filter_type': 'DGF',
            'window_size': 9,
            'range_sigma': 10.0,
            'usm_lambda': 2.0,
            'description': 'Guided filter only, O(1) per pixel'
        },
    }


def config_from_preset(preset: str, **overrides) -> DeWAFFConfig:
    """Build a DeWAFFConfig from a named preset plus keyword overrides"""
    presets = get_dewaff_presets()
    if preset not in presets:
        raise InvalidParameterError(f"Unknown preset {preset!r}, expected one of {sorted(presets)}")
    params = {k: v for k, v in presets[preset].items() if k != 'description'}
    return replace(DeWAFFConfig(**params), **overrides).validate()
