"""Synthesizers for layers with learned parameters.

Inverse of the extraction rules: parameters are written to blobs at single
precision, and declared fields are filled so a re-import resolves the same
geometry.
"""

__docformat__ = "restructuredtext"
__all__ = ["register_layer_synthesizers"]

import torch
from torch import nn

from torchcaffe.errors import UnsupportedOperatorError
from torchcaffe.graph import GraphNode, OperatorKind
from torchcaffe.proto import LayerParameter
from torchcaffe.synthesize._handlers._registry import register_synthesizer
from torchcaffe.synthesize._handlers._utils import add_blob, new_layer, pair


def _explicit_padding(node: GraphNode) -> tuple[int, int]:
    """Resolve a convolution's padding to per-axis pads.

    ``"same"`` padding is written as ``dilation * (kernel - 1) // 2`` when
    that total splits evenly between both sides of each axis.
    """
    module = node.module
    if not isinstance(module.padding, str):
        return pair(module.padding)
    if module.padding == "valid":
        return 0, 0

    pads = []
    for kernel, dilation in zip(pair(module.kernel_size), pair(module.dilation), strict=True):
        total = dilation * (kernel - 1)
        if total % 2 != 0:
            raise UnsupportedOperatorError(node.kind.value, "padding='same'")
        pads.append(total // 2)
    return pads[0], pads[1]


def _synthesize_convolution(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write a plain, dilated or transposed convolution.

    Besides the explicit blob shape, the weight blob's legacy fields are set:
    ``num`` is the output plane count and ``channels`` the input planes per
    group.
    """
    module = node.module
    transposed = isinstance(module, nn.ConvTranspose2d)
    layer = new_layer(node, "Deconvolution" if transposed else "Convolution", bottoms, fan_out)
    param = layer.convolution_param

    kernel_h, kernel_w = pair(module.kernel_size)
    stride_h, stride_w = pair(module.stride)
    pad_h, pad_w = _explicit_padding(node)
    dilation_h, _ = pair(module.dilation)

    param.num_output = module.out_channels
    param.bias_term = module.bias is not None
    param.kernel_h, param.kernel_w = kernel_h, kernel_w
    param.stride_h, param.stride_w = stride_h, stride_w
    param.pad_h, param.pad_w = pad_h, pad_w
    param.group = module.groups
    if dilation_h != 1:
        param.dilation.append(dilation_h)

    weight = add_blob(layer, module.weight)
    weight.num = module.weight.shape[0]
    if transposed:
        weight.channels = module.weight.shape[1]
    else:
        weight.channels = module.in_channels // module.groups
    weight.height, weight.width = kernel_h, kernel_w
    if module.bias is not None:
        add_blob(layer, module.bias)
    return [layer]


def _synthesize_linear(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "InnerProduct", bottoms, fan_out)
    param = layer.inner_product_param
    param.num_output = module.out_features
    param.bias_term = module.bias is not None

    weight = add_blob(layer, module.weight)
    weight.height = module.out_features
    weight.width = module.in_features
    if module.bias is not None:
        add_blob(layer, module.bias)
    return [layer]


def _channel_vector(tensor: torch.Tensor) -> torch.Tensor:
    """Flatten a ``(1, C)`` or ``(1, C, 1, 1)`` broadcast tensor to ``(C,)``."""
    if tensor.dim() in (2, 4) and tensor.numel() == tensor.shape[1]:
        return tensor.reshape(-1)
    return tensor


def _synthesize_batchnorm(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write running statistics with a unit scale factor.

    Affine batch normalization has no single Caffe layer; its weight and bias
    go to an in-place Scale layer named ``<name>_scale`` that follows.
    """
    module = node.module
    if module.affine and fan_out > 1:
        raise UnsupportedOperatorError(
            node.kind.value, f"affine batch normalization with {fan_out} outputs"
        )
    layer = new_layer(node, "BatchNorm", bottoms, fan_out)
    param = layer.batch_norm_param
    param.eps = module.eps
    if module.momentum is not None:
        param.moving_average_fraction = 1.0 - module.momentum

    if module.running_mean is not None and module.running_var is not None:
        add_blob(layer, module.running_mean)
        add_blob(layer, module.running_var)
    else:
        add_blob(layer, torch.zeros(module.num_features))
        add_blob(layer, torch.ones(module.num_features))
    add_blob(layer, torch.ones(1))

    if not module.affine:
        return [layer]

    scale = LayerParameter()
    scale.name = f"{node.name}_scale"
    scale.type = "Scale"
    scale.bottom.extend(layer.top)
    scale.top.extend(layer.top)
    scale.scale_param.bias_term = True
    add_blob(scale, module.weight)
    add_blob(scale, module.bias)
    return [layer, scale]


def _synthesize_scale(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "Scale", bottoms, fan_out)
    layer.scale_param.bias_term = module.bias is not None
    add_blob(layer, _channel_vector(module.weight))
    if module.bias is not None:
        add_blob(layer, _channel_vector(module.bias))
    return [layer]


def _synthesize_bias(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Bias", bottoms, fan_out)
    add_blob(layer, node.module.bias)
    return [layer]


def _synthesize_normalize(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "Normalize", bottoms, fan_out)
    param = layer.norm_param
    param.across_spatial = module.across_spatial
    param.channel_shared = module.channel_shared
    param.eps = module.eps
    param.scale_filler.type = "constant"
    param.scale_filler.value = float(module.weight.detach().reshape(-1)[0])
    add_blob(layer, module.weight.detach().reshape(-1))
    return [layer]


def _synthesize_prelu(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "PReLU", bottoms, fan_out)
    layer.prelu_param.channel_shared = module.num_parameters == 1
    add_blob(layer, module.weight)
    return [layer]


def register_layer_synthesizers() -> None:
    """Register synthesizers for layers with learned parameters."""
    register_synthesizer(OperatorKind.CONVOLUTION, _synthesize_convolution)
    register_synthesizer(OperatorKind.DILATED_CONVOLUTION, _synthesize_convolution)
    register_synthesizer(OperatorKind.FULL_CONVOLUTION, _synthesize_convolution)
    register_synthesizer(OperatorKind.LINEAR, _synthesize_linear)
    register_synthesizer(OperatorKind.BATCH_NORM, _synthesize_batchnorm)
    register_synthesizer(OperatorKind.SPATIAL_BATCH_NORM, _synthesize_batchnorm)
    register_synthesizer(OperatorKind.SCALE, _synthesize_scale)
    register_synthesizer(OperatorKind.BIAS, _synthesize_bias)
    register_synthesizer(OperatorKind.NORMALIZE, _synthesize_normalize)
    register_synthesizer(OperatorKind.PRELU, _synthesize_prelu)
