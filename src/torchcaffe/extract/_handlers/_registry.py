"""Extractor registry.

Maps upper-cased Caffe layer type strings to extractor functions.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "EXTRACTORS",
    "Extractor",
    "get_extractor",
    "register_extractor",
]

from collections.abc import Callable

from torchcaffe.graph import GraphNode
from torchcaffe.proto import LayerParameter

# Extractor type: takes a decoded layer, returns its graph nodes.
# The first node consumes the layer bottoms; the last node produces its tops.
Extractor = Callable[[LayerParameter], list[GraphNode]]

EXTRACTORS: dict[str, Extractor] = {}


def register_extractor(layer_type: str, extractor: Extractor) -> None:
    """Register extractor for a Caffe layer type.

    :param layer_type: Caffe type string (case-insensitive, e.g. "Convolution")
    :param extractor: Extractor function
    """
    EXTRACTORS[layer_type.upper()] = extractor


def get_extractor(layer_type: str) -> Extractor | None:
    """Get extractor for a Caffe layer type.

    :param layer_type: Caffe type string (case-insensitive)
    :return: Extractor function or None if not found
    """
    return EXTRACTORS.get(layer_type.upper())
