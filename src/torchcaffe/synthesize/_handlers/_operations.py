"""Synthesizers for parameter-free layers.

These layers carry no blobs; only their type-specific parameters are set.
"""

__docformat__ = "restructuredtext"
__all__ = ["register_operation_synthesizers"]

from torch import nn

from torchcaffe.errors import UnsupportedOperatorError
from torchcaffe.graph import GraphNode, OperatorKind
from torchcaffe.proto import LayerParameter, enum_value
from torchcaffe.synthesize._handlers._registry import register_synthesizer
from torchcaffe.synthesize._handlers._utils import new_layer, pair

_POOL_MAX = enum_value("PoolingParameter.PoolMethod", "MAX")
_POOL_AVE = enum_value("PoolingParameter.PoolMethod", "AVE")
_ROUND_CEIL = enum_value("PoolingParameter.RoundMode", "CEIL")
_ROUND_FLOOR = enum_value("PoolingParameter.RoundMode", "FLOOR")
_ELTWISE_PROD = enum_value("EltwiseParameter.EltwiseOp", "PROD")
_ELTWISE_SUM = enum_value("EltwiseParameter.EltwiseOp", "SUM")
_ELTWISE_MAX = enum_value("EltwiseParameter.EltwiseOp", "MAX")


def _plain(layer_type: str):
    """Build a synthesizer for a layer type without parameters."""

    def synthesize(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
        return [new_layer(node, layer_type, bottoms, fan_out)]

    return synthesize


def _synthesize_leaky_relu(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "ReLU", bottoms, fan_out)
    layer.relu_param.negative_slope = node.module.negative_slope
    return [layer]


def _synthesize_elu(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "ELU", bottoms, fan_out)
    layer.elu_param.alpha = node.module.alpha
    return [layer]


def _synthesize_log(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "Log", bottoms, fan_out)
    layer.log_param.base = module.base
    layer.log_param.scale = module.scale
    layer.log_param.shift = module.shift
    return [layer]


def _synthesize_exp(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "Exp", bottoms, fan_out)
    layer.exp_param.base = module.base
    layer.exp_param.scale = module.scale
    layer.exp_param.shift = module.shift
    return [layer]


def _synthesize_power(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "Power", bottoms, fan_out)
    layer.power_param.power = module.power
    layer.power_param.scale = module.scale
    layer.power_param.shift = module.shift
    return [layer]


def _synthesize_threshold(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Threshold", bottoms, fan_out)
    layer.threshold_param.threshold = node.module.threshold
    return [layer]


def _synthesize_softmax(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write a Softmax layer; log-softmax is exported as a plain softmax."""
    layer = new_layer(node, "Softmax", bottoms, fan_out)
    dim = node.module.dim
    layer.softmax_param.axis = 1 if dim is None else dim
    return [layer]


def _synthesize_lrn(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "LRN", bottoms, fan_out)
    param = layer.lrn_param
    param.local_size = module.size
    param.alpha = module.alpha
    param.beta = module.beta
    param.k = module.k
    return [layer]


def _synthesize_pooling(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write a windowed pooling layer with explicit per-axis geometry."""
    module = node.module
    if isinstance(module, nn.MaxPool2d):
        if pair(module.dilation) != (1, 1):
            raise UnsupportedOperatorError(node.kind.value, f"dilation {module.dilation}")
    else:
        # Caffe averages over the padded window
        if not module.count_include_pad:
            raise UnsupportedOperatorError(node.kind.value, "count_include_pad=False")
        if module.divisor_override is not None:
            raise UnsupportedOperatorError(node.kind.value, "divisor_override")

    layer = new_layer(node, "Pooling", bottoms, fan_out)
    param = layer.pooling_param
    param.pool = _POOL_MAX if isinstance(module, nn.MaxPool2d) else _POOL_AVE

    kernel_h, kernel_w = pair(module.kernel_size)
    stride_h, stride_w = pair(module.stride if module.stride is not None else module.kernel_size)
    pad_h, pad_w = pair(module.padding)
    param.kernel_h, param.kernel_w = kernel_h, kernel_w
    param.stride_h, param.stride_w = stride_h, stride_w
    param.pad_h, param.pad_w = pad_h, pad_w
    param.round_mode = _ROUND_CEIL if module.ceil_mode else _ROUND_FLOOR
    return [layer]


def _synthesize_global_pooling(
    node: GraphNode, bottoms: list[str], fan_out: int
) -> list[LayerParameter]:
    module = node.module
    if pair(module.output_size) != (1, 1):
        raise UnsupportedOperatorError(
            node.kind.value, f"adaptive pooling to {module.output_size}"
        )
    layer = new_layer(node, "Pooling", bottoms, fan_out)
    param = layer.pooling_param
    param.pool = _POOL_MAX if isinstance(module, nn.AdaptiveMaxPool2d) else _POOL_AVE
    param.global_pooling = True
    return [layer]


def _synthesize_dropout(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Dropout", bottoms, fan_out)
    layer.dropout_param.dropout_ratio = node.module.p
    return [layer]


def _synthesize_flatten(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Flatten", bottoms, fan_out)
    layer.flatten_param.axis = node.module.start_dim
    layer.flatten_param.end_axis = node.module.end_dim
    return [layer]


def _synthesize_view(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write a view as a Reshape whose leading dim is inferred."""
    layer = new_layer(node, "Reshape", bottoms, fan_out)
    layer.reshape_param.shape.dim.extend([-1, *node.module.sizes])
    return [layer]


def _synthesize_reshape(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Reshape", bottoms, fan_out)
    layer.reshape_param.shape.dim.extend(node.module.shape)
    return [layer]


def _synthesize_concat(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Concat", bottoms, fan_out)
    layer.concat_param.axis = node.module.dim
    return [layer]


def _synthesize_slice(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    module = node.module
    layer = new_layer(node, "Slice", bottoms, max(fan_out, module.num_outputs))
    layer.slice_param.axis = module.dim
    layer.slice_param.slice_point.extend(module.slice_points)
    return [layer]


def _eltwise(operation: int, coeffs: tuple[float, ...] = ()):
    """Build an Eltwise synthesizer for one operation."""

    def synthesize(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
        layer = new_layer(node, "Eltwise", bottoms, fan_out)
        layer.eltwise_param.operation = operation
        layer.eltwise_param.coeff.extend(coeffs)
        return [layer]

    return synthesize


def _synthesize_tile(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Tile", bottoms, fan_out)
    layer.tile_param.tiles = node.module.tiles
    layer.tile_param.axis = node.module.axis
    return [layer]


def register_operation_synthesizers() -> None:
    """Register synthesizers for parameter-free layers."""
    register_synthesizer(OperatorKind.RELU, _plain("ReLU"))
    register_synthesizer(OperatorKind.LEAKY_RELU, _synthesize_leaky_relu)
    register_synthesizer(OperatorKind.ELU, _synthesize_elu)
    register_synthesizer(OperatorKind.TANH, _plain("TanH"))
    register_synthesizer(OperatorKind.SIGMOID, _plain("Sigmoid"))
    register_synthesizer(OperatorKind.ABS, _plain("AbsVal"))
    register_synthesizer(OperatorKind.LOG, _synthesize_log)
    register_synthesizer(OperatorKind.EXP, _synthesize_exp)
    register_synthesizer(OperatorKind.POWER, _synthesize_power)
    register_synthesizer(OperatorKind.THRESHOLD, _synthesize_threshold)
    register_synthesizer(OperatorKind.SOFTMAX, _synthesize_softmax)
    register_synthesizer(OperatorKind.LOG_SOFTMAX, _synthesize_softmax)
    register_synthesizer(OperatorKind.LRN, _synthesize_lrn)
    register_synthesizer(OperatorKind.MAX_POOLING, _synthesize_pooling)
    register_synthesizer(OperatorKind.AVG_POOLING, _synthesize_pooling)
    register_synthesizer(OperatorKind.GLOBAL_MAX_POOLING, _synthesize_global_pooling)
    register_synthesizer(OperatorKind.GLOBAL_AVG_POOLING, _synthesize_global_pooling)
    register_synthesizer(OperatorKind.DROPOUT, _synthesize_dropout)
    register_synthesizer(OperatorKind.FLATTEN, _synthesize_flatten)
    register_synthesizer(OperatorKind.VIEW, _synthesize_view)
    register_synthesizer(OperatorKind.RESHAPE, _synthesize_reshape)
    register_synthesizer(OperatorKind.CONCAT, _synthesize_concat)
    register_synthesizer(OperatorKind.SLICE, _synthesize_slice)
    register_synthesizer(OperatorKind.ELTWISE_ADD, _eltwise(_ELTWISE_SUM))
    register_synthesizer(OperatorKind.ELTWISE_SUB, _eltwise(_ELTWISE_SUM, (1.0, -1.0)))
    register_synthesizer(OperatorKind.ELTWISE_MUL, _eltwise(_ELTWISE_PROD))
    register_synthesizer(OperatorKind.ELTWISE_MAX, _eltwise(_ELTWISE_MAX))
    register_synthesizer(OperatorKind.TILE, _synthesize_tile)
