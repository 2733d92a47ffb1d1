"""Extractors for parameter-free layers.

Activations, pooling, shape manipulation and elementwise combinators.
"""

__docformat__ = "restructuredtext"
__all__ = ["register_operation_extractors"]

from torch import nn

from torchcaffe.errors import UnsupportedOperatorError
from torchcaffe.extract._handlers._registry import register_extractor
from torchcaffe.graph import GraphNode
from torchcaffe.graph.modules import (
    Abs,
    BinaryThreshold,
    Concat,
    EltwiseAdd,
    EltwiseMax,
    EltwiseMul,
    EltwiseSub,
    Exp,
    InferReshape,
    Log,
    Power,
    Replicate,
    Slice,
)
from torchcaffe.proto import LayerParameter, enum_value
from torchcaffe.resolve import resolve_pool_geometry

_POOL_MAX = enum_value("PoolingParameter.PoolMethod", "MAX")
_POOL_AVE = enum_value("PoolingParameter.PoolMethod", "AVE")
_ROUND_CEIL = enum_value("PoolingParameter.RoundMode", "CEIL")
_ELTWISE_PROD = enum_value("EltwiseParameter.EltwiseOp", "PROD")
_ELTWISE_SUM = enum_value("EltwiseParameter.EltwiseOp", "SUM")
_ELTWISE_MAX = enum_value("EltwiseParameter.EltwiseOp", "MAX")
_WITHIN_CHANNEL = enum_value("LRNParameter.NormRegion", "WITHIN_CHANNEL")


def _single(layer: LayerParameter, module: nn.Module) -> list[GraphNode]:
    return [GraphNode(layer.name, module)]


def _extract_relu(layer: LayerParameter) -> list[GraphNode]:
    slope = layer.relu_param.negative_slope
    if slope != 0:
        return _single(layer, nn.LeakyReLU(negative_slope=slope))
    return _single(layer, nn.ReLU())


def _extract_elu(layer: LayerParameter) -> list[GraphNode]:
    alpha = 1.0
    if layer.elu_param.HasField("alpha"):
        alpha = layer.elu_param.alpha
    return _single(layer, nn.ELU(alpha=alpha))


def _extract_tanh(layer: LayerParameter) -> list[GraphNode]:
    return _single(layer, nn.Tanh())


def _extract_sigmoid(layer: LayerParameter) -> list[GraphNode]:
    return _single(layer, nn.Sigmoid())


def _extract_absval(layer: LayerParameter) -> list[GraphNode]:
    return _single(layer, Abs())


def _extract_log(layer: LayerParameter) -> list[GraphNode]:
    param = layer.log_param
    return _single(layer, Log(base=param.base, scale=param.scale, shift=param.shift))


def _extract_exp(layer: LayerParameter) -> list[GraphNode]:
    param = layer.exp_param
    return _single(layer, Exp(base=param.base, scale=param.scale, shift=param.shift))


def _extract_power(layer: LayerParameter) -> list[GraphNode]:
    param = layer.power_param
    return _single(layer, Power(power=param.power, scale=param.scale, shift=param.shift))


def _extract_threshold(layer: LayerParameter) -> list[GraphNode]:
    return _single(layer, BinaryThreshold(layer.threshold_param.threshold))


def _extract_softmax(layer: LayerParameter) -> list[GraphNode]:
    return _single(layer, nn.Softmax(dim=layer.softmax_param.axis))


def _extract_lrn(layer: LayerParameter) -> list[GraphNode]:
    param = layer.lrn_param
    if param.norm_region == _WITHIN_CHANNEL:
        raise UnsupportedOperatorError(layer.type, "WITHIN_CHANNEL normalization")
    return _single(
        layer,
        nn.LocalResponseNorm(size=param.local_size, alpha=param.alpha, beta=param.beta, k=param.k),
    )


def _extract_pooling(layer: LayerParameter) -> list[GraphNode]:
    """Build max/average pooling, or an adaptive pool for global pooling.

    Caffe rounds output sizes up unless ``round_mode`` is FLOOR.
    """
    param = layer.pooling_param
    geometry = resolve_pool_geometry(param)

    if param.pool not in (_POOL_MAX, _POOL_AVE):
        raise UnsupportedOperatorError(layer.type, "stochastic pooling")

    if geometry.is_global:
        if param.pool == _POOL_MAX:
            return _single(layer, nn.AdaptiveMaxPool2d(1))
        return _single(layer, nn.AdaptiveAvgPool2d(1))

    kwargs = {
        "kernel_size": (geometry.kernel_h, geometry.kernel_w),
        "stride": (geometry.stride_h, geometry.stride_w),
        "padding": (geometry.pad_h, geometry.pad_w),
        "ceil_mode": param.round_mode == _ROUND_CEIL,
    }
    if param.pool == _POOL_MAX:
        return _single(layer, nn.MaxPool2d(**kwargs))
    return _single(layer, nn.AvgPool2d(count_include_pad=True, **kwargs))


def _extract_dropout(layer: LayerParameter) -> list[GraphNode]:
    return _single(layer, nn.Dropout(p=layer.dropout_param.dropout_ratio))


def _extract_flatten(layer: LayerParameter) -> list[GraphNode]:
    param = layer.flatten_param
    return _single(layer, nn.Flatten(start_dim=param.axis, end_dim=param.end_axis))


def _extract_reshape(layer: LayerParameter) -> list[GraphNode]:
    param = layer.reshape_param
    if param.axis != 0 or param.num_axes != -1:
        raise UnsupportedOperatorError(layer.type, "partial reshape with axis/num_axes")
    return _single(layer, InferReshape(list(param.shape.dim)))


def _extract_concat(layer: LayerParameter) -> list[GraphNode]:
    param = layer.concat_param
    if param.HasField("axis") or not param.HasField("concat_dim"):
        dim = param.axis
    else:
        dim = param.concat_dim
    return _single(layer, Concat(dim))


def _extract_slice(layer: LayerParameter) -> list[GraphNode]:
    param = layer.slice_param
    if param.HasField("axis") or not param.HasField("slice_dim"):
        dim = param.axis
    else:
        dim = param.slice_dim
    return _single(layer, Slice(dim, list(param.slice_point), num_outputs=len(layer.top)))


def _extract_eltwise(layer: LayerParameter) -> list[GraphNode]:
    """Build the elementwise combinator selected by operation and coefficients.

    A SUM with coefficients ``[1, -1]`` is a subtraction; other non-unit
    coefficients are not representable.
    """
    param = layer.eltwise_param
    if param.operation == _ELTWISE_PROD:
        return _single(layer, EltwiseMul())
    if param.operation == _ELTWISE_MAX:
        return _single(layer, EltwiseMax())

    coeffs = [float(coeff) for coeff in param.coeff]
    if not coeffs or all(coeff == 1.0 for coeff in coeffs):
        return _single(layer, EltwiseAdd())
    if coeffs == [1.0, -1.0]:
        return _single(layer, EltwiseSub())
    raise UnsupportedOperatorError(layer.type, f"SUM with coefficients {coeffs}")


def _extract_tile(layer: LayerParameter) -> list[GraphNode]:
    param = layer.tile_param
    return _single(layer, Replicate(param.tiles, param.axis))


def register_operation_extractors() -> None:
    """Register extractors for parameter-free layers."""
    register_extractor("ReLU", _extract_relu)
    register_extractor("ELU", _extract_elu)
    register_extractor("TanH", _extract_tanh)
    register_extractor("Sigmoid", _extract_sigmoid)
    register_extractor("AbsVal", _extract_absval)
    register_extractor("Log", _extract_log)
    register_extractor("Exp", _extract_exp)
    register_extractor("Power", _extract_power)
    register_extractor("Threshold", _extract_threshold)
    register_extractor("Softmax", _extract_softmax)
    register_extractor("LRN", _extract_lrn)
    register_extractor("Pooling", _extract_pooling)
    register_extractor("Dropout", _extract_dropout)
    register_extractor("Flatten", _extract_flatten)
    register_extractor("Reshape", _extract_reshape)
    register_extractor("Concat", _extract_concat)
    register_extractor("Slice", _extract_slice)
    register_extractor("Eltwise", _extract_eltwise)
    register_extractor("Tile", _extract_tile)
