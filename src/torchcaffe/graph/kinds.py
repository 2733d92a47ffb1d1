"""Closed set of operator kinds carried by graph nodes."""

__docformat__ = "restructuredtext"
__all__ = ["MODULE_KINDS", "OperatorKind", "kind_of"]

from enum import Enum

from torch import nn

from torchcaffe.errors import UnsupportedOperatorError
from torchcaffe.graph import modules


class OperatorKind(str, Enum):
    """Operator kind of a graph node.

    The kind selects the synthesizer used on export. Most kinds map to one
    module class; convolution is split by dilation.
    """

    INPUT = "input"
    CONVOLUTION = "convolution"
    FULL_CONVOLUTION = "full_convolution"
    DILATED_CONVOLUTION = "dilated_convolution"
    LINEAR = "linear"
    BATCH_NORM = "batch_norm"
    SPATIAL_BATCH_NORM = "spatial_batch_norm"
    RELU = "relu"
    LEAKY_RELU = "leaky_relu"
    PRELU = "prelu"
    ELU = "elu"
    TANH = "tanh"
    SIGMOID = "sigmoid"
    ABS = "abs"
    LOG = "log"
    EXP = "exp"
    POWER = "power"
    THRESHOLD = "threshold"
    SOFTMAX = "softmax"
    LOG_SOFTMAX = "log_softmax"
    LRN = "lrn"
    MAX_POOLING = "max_pooling"
    AVG_POOLING = "avg_pooling"
    GLOBAL_MAX_POOLING = "global_max_pooling"
    GLOBAL_AVG_POOLING = "global_avg_pooling"
    DROPOUT = "dropout"
    FLATTEN = "flatten"
    VIEW = "view"
    RESHAPE = "reshape"
    CONCAT = "concat"
    SLICE = "slice"
    ELTWISE_ADD = "eltwise_add"
    ELTWISE_SUB = "eltwise_sub"
    ELTWISE_MUL = "eltwise_mul"
    ELTWISE_MAX = "eltwise_max"
    SCALE = "scale"
    BIAS = "bias"
    TILE = "tile"
    NORMALIZE = "normalize"
    PERMUTE = "permute"
    PRIOR_BOX = "prior_box"
    DETECTION_OUTPUT = "detection_output"
    SEQUENTIAL = "sequential"


MODULE_KINDS: dict[type[nn.Module], OperatorKind] = {
    modules.Input: OperatorKind.INPUT,
    nn.Conv2d: OperatorKind.CONVOLUTION,
    nn.ConvTranspose2d: OperatorKind.FULL_CONVOLUTION,
    nn.Linear: OperatorKind.LINEAR,
    nn.BatchNorm1d: OperatorKind.BATCH_NORM,
    nn.BatchNorm2d: OperatorKind.SPATIAL_BATCH_NORM,
    nn.ReLU: OperatorKind.RELU,
    nn.LeakyReLU: OperatorKind.LEAKY_RELU,
    nn.PReLU: OperatorKind.PRELU,
    nn.ELU: OperatorKind.ELU,
    nn.Tanh: OperatorKind.TANH,
    nn.Sigmoid: OperatorKind.SIGMOID,
    modules.Abs: OperatorKind.ABS,
    modules.Log: OperatorKind.LOG,
    modules.Exp: OperatorKind.EXP,
    modules.Power: OperatorKind.POWER,
    modules.BinaryThreshold: OperatorKind.THRESHOLD,
    nn.Softmax: OperatorKind.SOFTMAX,
    nn.LogSoftmax: OperatorKind.LOG_SOFTMAX,
    nn.LocalResponseNorm: OperatorKind.LRN,
    nn.MaxPool2d: OperatorKind.MAX_POOLING,
    nn.AvgPool2d: OperatorKind.AVG_POOLING,
    nn.AdaptiveMaxPool2d: OperatorKind.GLOBAL_MAX_POOLING,
    nn.AdaptiveAvgPool2d: OperatorKind.GLOBAL_AVG_POOLING,
    nn.Dropout: OperatorKind.DROPOUT,
    nn.Flatten: OperatorKind.FLATTEN,
    modules.View: OperatorKind.VIEW,
    modules.InferReshape: OperatorKind.RESHAPE,
    modules.Concat: OperatorKind.CONCAT,
    modules.Slice: OperatorKind.SLICE,
    modules.EltwiseAdd: OperatorKind.ELTWISE_ADD,
    modules.EltwiseSub: OperatorKind.ELTWISE_SUB,
    modules.EltwiseMul: OperatorKind.ELTWISE_MUL,
    modules.EltwiseMax: OperatorKind.ELTWISE_MAX,
    modules.Scale: OperatorKind.SCALE,
    modules.Add: OperatorKind.BIAS,
    modules.Replicate: OperatorKind.TILE,
    modules.NormalizeScale: OperatorKind.NORMALIZE,
    modules.Transpose: OperatorKind.PERMUTE,
    modules.PriorBox: OperatorKind.PRIOR_BOX,
    modules.DetectionOutput: OperatorKind.DETECTION_OUTPUT,
    nn.Sequential: OperatorKind.SEQUENTIAL,
}


def kind_of(module: nn.Module) -> OperatorKind:
    """Get the operator kind of a module.

    Subclasses resolve to the kind of their nearest registered base.

    :param module: Graph node module
    :return: Operator kind
    :raises UnsupportedOperatorError: If no kind covers the module's class
    """
    for cls in type(module).__mro__:
        kind = MODULE_KINDS.get(cls)
        if kind is None:
            continue
        if kind is OperatorKind.CONVOLUTION and tuple(module.dilation) != (1, 1):
            return OperatorKind.DILATED_CONVOLUTION
        return kind
    raise UnsupportedOperatorError(type(module).__name__)
