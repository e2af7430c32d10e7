"""
ComfyUI node implementations
"""

# The node mappings are aggregated in the main __init__.py

try:
    from .dewaff_filter_node import (
        DeceivedFilterNode,
        GuidedWeightedAverageNode,
        UnsharpMaskGuideNode,
    )
except ImportError:
    DeceivedFilterNode = None
    GuidedWeightedAverageNode = None
    UnsharpMaskGuideNode = None

__all__ = [
    'DeceivedFilterNode',
    'GuidedWeightedAverageNode',
    'UnsharpMaskGuideNode',
]
