"""Stage 1: Caffe wire format.

Message classes for the Caffe protobuf schema, net file loading, and the
blob/tensor transcoder.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "BatchNormParameter",
    "BiasParameter",
    "BlobProto",
    "BlobShape",
    "ConcatParameter",
    "ConvolutionParameter",
    "DetectionOutputParameter",
    "DropoutParameter",
    "ELUParameter",
    "EltwiseParameter",
    "ExpParameter",
    "FillerParameter",
    "FlattenParameter",
    "InnerProductParameter",
    "InputParameter",
    "LRNParameter",
    "LayerParameter",
    "LogParameter",
    "NetParameter",
    "NonMaximumSuppressionParameter",
    "NormalizeParameter",
    "PReLUParameter",
    "PermuteParameter",
    "PoolingParameter",
    "PowerParameter",
    "PriorBoxParameter",
    "ReLUParameter",
    "ReshapeParameter",
    "ResizeParameter",
    "ScaleParameter",
    "SliceParameter",
    "SoftmaxParameter",
    "ThresholdParameter",
    "TileParameter",
    "TransformationParameter",
    "blob_shape",
    "blob_to_tensor",
    "copy_blob_into",
    "enum_value",
    "get_blob",
    "load_net",
    "merge_weights",
    "save_net",
    "tensor_to_blob",
]

from torchcaffe.proto._schema import enum_value
from torchcaffe.proto.blobs import (
    blob_shape,
    blob_to_tensor,
    copy_blob_into,
    get_blob,
    tensor_to_blob,
)
from torchcaffe.proto.messages import (
    BatchNormParameter,
    BiasParameter,
    BlobProto,
    BlobShape,
    ConcatParameter,
    ConvolutionParameter,
    DetectionOutputParameter,
    DropoutParameter,
    ELUParameter,
    EltwiseParameter,
    ExpParameter,
    FillerParameter,
    FlattenParameter,
    InnerProductParameter,
    InputParameter,
    LRNParameter,
    LayerParameter,
    LogParameter,
    NetParameter,
    NonMaximumSuppressionParameter,
    NormalizeParameter,
    PReLUParameter,
    PermuteParameter,
    PoolingParameter,
    PowerParameter,
    PriorBoxParameter,
    ReLUParameter,
    ReshapeParameter,
    ResizeParameter,
    ScaleParameter,
    SliceParameter,
    SoftmaxParameter,
    ThresholdParameter,
    TileParameter,
    TransformationParameter,
)
from torchcaffe.proto.utils import load_net, merge_weights, save_net
