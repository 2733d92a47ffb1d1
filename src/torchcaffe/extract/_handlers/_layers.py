"""Extractors for layers with learned parameters.

Convolution, inner product, normalization, scale, bias and PReLU layers.
Blob data is copied into the produced modules, so exported weights survive a
round trip.
"""

__docformat__ = "restructuredtext"
__all__ = ["FC_NAME_PREFIX", "register_layer_extractors"]

import math

from torch import nn

from torchcaffe.errors import MalformedShapeError, UnsupportedOperatorError
from torchcaffe.extract._handlers._registry import register_extractor
from torchcaffe.graph import GraphNode
from torchcaffe.graph.modules import Add, NormalizeScale, Scale, View
from torchcaffe.proto import LayerParameter, blob_shape, copy_blob_into, get_blob
from torchcaffe.resolve import resolve_conv_geometry, resolve_inner_product_inputs

# Layers named like fully connected layers operate on (N, C) input
FC_NAME_PREFIX = "fc"


def _extract_convolution(layer: LayerParameter) -> list[GraphNode]:
    """Build a plain, transposed or dilated convolution.

    Any dilation other than 1 selects a dilated convolution, whatever the
    declared type. Otherwise "Deconvolution" selects a transposed convolution,
    whose blob layout puts input planes first.

    :param layer: Convolution or Deconvolution layer
    :return: Single convolution node
    """
    geometry = resolve_conv_geometry(layer)
    weight_blob = get_blob(layer, 0, required=True)
    bias_blob = get_blob(layer, 1)
    with_bias = bias_blob is not None

    if geometry.out_channels % geometry.group != 0:
        raise MalformedShapeError(
            f"Layer '{layer.name}': {geometry.out_channels} output planes "
            f"do not split into {geometry.group} groups"
        )

    if geometry.dilation == 1 and layer.type.upper() == "DECONVOLUTION":
        module: nn.Module = nn.ConvTranspose2d(
            in_channels=geometry.out_channels,
            out_channels=geometry.in_channels,
            kernel_size=geometry.kernel_size,
            stride=geometry.stride,
            padding=geometry.padding,
            groups=geometry.group,
            bias=with_bias,
        )
    else:
        module = nn.Conv2d(
            in_channels=geometry.in_channels,
            out_channels=geometry.out_channels,
            kernel_size=geometry.kernel_size,
            stride=geometry.stride,
            padding=geometry.padding,
            dilation=geometry.dilation,
            groups=geometry.group,
            bias=with_bias,
        )

    copy_blob_into(module.weight, weight_blob)
    if bias_blob is not None:
        copy_blob_into(module.bias, bias_blob)
    return [GraphNode(layer.name, module)]


def _extract_inner_product(layer: LayerParameter) -> list[GraphNode]:
    """Build a linear layer, preceded by a view when feature counts differ.

    :param layer: InnerProduct layer
    :return: ``[linear]`` or ``[view, linear]``
    """
    param = layer.inner_product_param
    if param.transpose:
        raise UnsupportedOperatorError(layer.type, "transposed inner product weights")

    weight_blob = get_blob(layer, 0, required=True)
    bias_blob = get_blob(layer, 1)
    in_features = resolve_inner_product_inputs(weight_blob)
    out_features = param.num_output
    if out_features == 0:
        if not weight_blob.HasField("shape"):
            raise MalformedShapeError(f"Layer '{layer.name}' declares no num_output")
        out_features = blob_shape(weight_blob)[0]

    linear = nn.Linear(in_features, out_features, bias=bias_blob is not None)
    copy_blob_into(linear.weight, weight_blob)
    if bias_blob is not None:
        copy_blob_into(linear.bias, bias_blob)
    node = GraphNode(layer.name, linear)

    if in_features == out_features:
        return [node]
    view = GraphNode(f"{layer.name}_view", View(in_features))
    node.inputs = [view.name]
    return [view, node]


def _extract_batchnorm(layer: LayerParameter) -> list[GraphNode]:
    """Build a non-affine batch normalization from Caffe's running sums.

    Caffe stores unnormalized mean/variance sums plus a scale factor blob;
    the running statistics are the sums multiplied by ``1 / factor`` (0 when
    the factor is 0).

    :param layer: BatchNorm layer
    :return: Single batch normalization node
    """
    param = layer.batch_norm_param
    mean_blob = get_blob(layer, 0, required=True)
    var_blob = get_blob(layer, 1, required=True)
    factor_blob = get_blob(layer, 2, required=True)

    num_features = blob_shape(mean_blob)[0] if mean_blob.HasField("shape") else mean_blob.num
    if num_features == 0:
        raise MalformedShapeError(f"Layer '{layer.name}' has an empty mean blob")
    if len(factor_blob.data) == 0:
        raise MalformedShapeError(f"Layer '{layer.name}' has an empty scale factor blob")

    factor = factor_blob.data[0]
    scale = 0.0 if factor == 0 else 1.0 / factor

    batchnorm_cls = nn.BatchNorm1d if layer.name.startswith(FC_NAME_PREFIX) else nn.BatchNorm2d
    module = batchnorm_cls(
        num_features,
        eps=param.eps,
        momentum=1.0 - param.moving_average_fraction,
        affine=False,
    )
    copy_blob_into(module.running_mean, mean_blob)
    copy_blob_into(module.running_var, var_blob)
    module.running_mean.mul_(scale)
    module.running_var.mul_(scale)
    return [GraphNode(layer.name, module)]


def _broadcast_shape(layer_name: str, channels: int) -> tuple[int, ...]:
    """Expand a per-channel count into a rank-2 or rank-4 broadcast shape."""
    if layer_name.startswith(FC_NAME_PREFIX):
        return (1, channels)
    return (1, channels, 1, 1)


def _scale_size(layer: LayerParameter) -> tuple[int, ...]:
    """Derive the shape of a Scale layer's parameters.

    The second blob decides when present: a 1-D blob expands to a broadcast
    shape, anything else is used as is. Otherwise the shape is the slice
    ``[axis, axis + num_axes)`` of the first blob's dims (up to the last dim,
    exclusive, when ``num_axes`` is -1); an empty slice falls back to the
    expanded first-blob length.
    """
    param = layer.scale_param
    second = get_blob(layer, 1)
    if second is not None:
        dims = blob_shape(second)
        if len(dims) == 1:
            return _broadcast_shape(layer.name, dims[0])
        return dims

    dims = blob_shape(get_blob(layer, 0, required=True))
    end = len(dims) - 1 if param.num_axes == -1 else param.axis + param.num_axes
    size = dims[param.axis : end]
    if size:
        return tuple(size)
    if len(dims) == 1:
        return _broadcast_shape(layer.name, dims[0])
    raise MalformedShapeError(
        f"Layer '{layer.name}': cannot derive a scale shape from {dims} "
        f"with axis={param.axis}, num_axes={param.num_axes}"
    )


def _extract_scale(layer: LayerParameter) -> list[GraphNode]:
    weight_blob = get_blob(layer, 0, required=True)
    bias_blob = get_blob(layer, 1)
    module = Scale(_scale_size(layer), bias=bias_blob is not None)
    copy_blob_into(module.weight, weight_blob)
    if bias_blob is not None:
        copy_blob_into(module.bias, bias_blob)
    return [GraphNode(layer.name, module)]


def _extract_bias(layer: LayerParameter) -> list[GraphNode]:
    """Build a learned bias sized by the flattened blob shape."""
    blob = get_blob(layer, 0, required=True)
    size = math.prod(blob_shape(blob))
    if size == 0:
        raise MalformedShapeError(f"Layer '{layer.name}' has an empty bias blob")
    module = Add(size)
    copy_blob_into(module.bias, blob)
    return [GraphNode(layer.name, module)]


def _extract_normalize(layer: LayerParameter) -> list[GraphNode]:
    """Build an L2 normalization with a per-channel scale."""
    param = layer.norm_param
    blob = get_blob(layer, 0, required=True)
    channels = blob_shape(blob)[0]
    module = NormalizeScale(
        p=2,
        eps=param.eps,
        scale=param.scale_filler.value,
        size=(1, channels, 1, 1),
        across_spatial=param.across_spatial,
        channel_shared=param.channel_shared,
    )
    copy_blob_into(module.weight, blob)
    return [GraphNode(layer.name, module)]


def _extract_prelu(layer: LayerParameter) -> list[GraphNode]:
    param = layer.prelu_param
    blob = get_blob(layer, 0)
    if param.channel_shared or blob is None:
        num_parameters = 1
    else:
        num_parameters = math.prod(blob_shape(blob))
    module = nn.PReLU(num_parameters=num_parameters)
    if blob is not None:
        copy_blob_into(module.weight, blob)
    return [GraphNode(layer.name, module)]


def register_layer_extractors() -> None:
    """Register extractors for layers with learned parameters."""
    register_extractor("Convolution", _extract_convolution)
    register_extractor("Deconvolution", _extract_convolution)
    register_extractor("InnerProduct", _extract_inner_product)
    register_extractor("BatchNorm", _extract_batchnorm)
    register_extractor("Scale", _extract_scale)
    register_extractor("Bias", _extract_bias)
    register_extractor("Normalize", _extract_normalize)
    register_extractor("PReLU", _extract_prelu)
