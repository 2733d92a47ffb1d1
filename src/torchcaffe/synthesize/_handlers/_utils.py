"""Helpers shared by layer synthesizers."""

__docformat__ = "restructuredtext"
__all__ = ["add_blob", "new_layer", "pair"]

import torch

from torchcaffe.graph import GraphNode
from torchcaffe.proto import BlobProto, LayerParameter, tensor_to_blob


def new_layer(node: GraphNode, layer_type: str, bottoms: list[str], fan_out: int) -> LayerParameter:
    """Create a wired layer for a node.

    Tops are named ``<node name><index>`` for each of the ``fan_out`` outputs.

    :param node: Node being exported
    :param layer_type: Caffe type string
    :param bottoms: Input blob names, in operand order
    :param fan_out: Number of tops to generate
    :return: Layer with name, type, bottoms and tops set
    """
    layer = LayerParameter()
    layer.name = node.name
    layer.type = layer_type
    layer.bottom.extend(bottoms)
    layer.top.extend(f"{node.name}{index}" for index in range(max(fan_out, 1)))
    return layer


def add_blob(layer: LayerParameter, tensor: torch.Tensor) -> BlobProto:
    """Append a tensor to the layer's blobs."""
    return tensor_to_blob(tensor, layer.blobs.add())


def pair(value: int | tuple[int, ...]) -> tuple[int, int]:
    """Expand a scalar or 2-tuple module argument to ``(h, w)``."""
    if isinstance(value, tuple | list):
        return int(value[0]), int(value[1])
    return int(value), int(value)
