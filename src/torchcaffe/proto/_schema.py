"""Caffe wire schema.

Declares the subset of ``caffe.proto`` (BVLC layers plus the SSD detection
extensions) that the converters read and write. Field numbers, labels and
defaults follow upstream Caffe so binary ``.caffemodel`` files and text
``.prototxt`` files decode with the stock ``protobuf`` runtime.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "DESCRIPTOR",
    "MESSAGE_NAMES",
    "enum_value",
    "message_class",
]

from typing import Any

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory

_FDP = descriptor_pb2.FieldDescriptorProto

_SCALAR_TYPES: dict[str, int] = {
    "bool": _FDP.TYPE_BOOL,
    "double": _FDP.TYPE_DOUBLE,
    "float": _FDP.TYPE_FLOAT,
    "int32": _FDP.TYPE_INT32,
    "int64": _FDP.TYPE_INT64,
    "string": _FDP.TYPE_STRING,
    "uint32": _FDP.TYPE_UINT32,
}

# Field row: (name, number, type, default). Type prefixes:
#   "*"    repeated
#   "+"    repeated, packed
#   "msg:" nested message type
#   "enum:" enum type
# Enum names are fully qualified inside the "caffe" package.
_ENUMS: dict[str, dict[str, int]] = {
    "Phase": {"TRAIN": 0, "TEST": 1},
    "PoolingParameter.PoolMethod": {"MAX": 0, "AVE": 1, "STOCHASTIC": 2},
    "PoolingParameter.RoundMode": {"CEIL": 0, "FLOOR": 1},
    "EltwiseParameter.EltwiseOp": {"PROD": 0, "SUM": 1, "MAX": 2},
    "LRNParameter.NormRegion": {"ACROSS_CHANNELS": 0, "WITHIN_CHANNEL": 1},
    "PriorBoxParameter.CodeType": {"CORNER": 1, "CENTER_SIZE": 2, "CORNER_SIZE": 3},
    "ResizeParameter.ResizeMode": {
        "WARP": 1,
        "FIT_SMALL_SIZE": 2,
        "FIT_LARGE_SIZE_AND_PAD": 3,
    },
}

_MESSAGES: dict[str, list[tuple[str, int, str, Any]]] = {
    "BlobShape": [
        ("dim", 1, "+int64", None),
    ],
    "BlobProto": [
        ("shape", 7, "msg:BlobShape", None),
        ("data", 5, "+float", None),
        ("diff", 6, "+float", None),
        ("double_data", 8, "+double", None),
        ("double_diff", 9, "+double", None),
        ("num", 1, "int32", 0),
        ("channels", 2, "int32", 0),
        ("height", 3, "int32", 0),
        ("width", 4, "int32", 0),
    ],
    "FillerParameter": [
        ("type", 1, "string", "constant"),
        ("value", 2, "float", 0.0),
        ("min", 3, "float", 0.0),
        ("max", 4, "float", 1.0),
        ("mean", 5, "float", 0.0),
        ("std", 6, "float", 1.0),
        ("sparse", 7, "int32", -1),
    ],
    "NetParameter": [
        ("name", 1, "string", None),
        ("input", 3, "*string", None),
        ("input_shape", 8, "*msg:BlobShape", None),
        ("input_dim", 4, "*int32", None),
        ("force_backward", 5, "bool", False),
        ("layer", 100, "*msg:LayerParameter", None),
    ],
    "ResizeParameter": [
        ("prob", 1, "float", 1.0),
        ("resize_mode", 2, "enum:ResizeParameter.ResizeMode", "WARP"),
        ("height", 3, "uint32", 0),
        ("width", 4, "uint32", 0),
        ("height_scale", 8, "uint32", 0),
        ("width_scale", 9, "uint32", 0),
    ],
    "TransformationParameter": [
        ("scale", 1, "float", 1.0),
        ("mirror", 2, "bool", False),
        ("crop_size", 3, "uint32", 0),
        ("mean_file", 4, "string", None),
        ("mean_value", 5, "*float", None),
        ("force_color", 6, "bool", False),
        ("force_gray", 7, "bool", False),
        ("resize_param", 8, "msg:ResizeParameter", None),
    ],
    "BatchNormParameter": [
        ("use_global_stats", 1, "bool", None),
        ("moving_average_fraction", 2, "float", 0.999),
        ("eps", 3, "float", 1e-5),
    ],
    "BiasParameter": [
        ("axis", 1, "int32", 1),
        ("num_axes", 2, "int32", 1),
        ("filler", 3, "msg:FillerParameter", None),
    ],
    "ConcatParameter": [
        ("axis", 2, "int32", 1),
        ("concat_dim", 1, "uint32", 1),
    ],
    "ConvolutionParameter": [
        ("num_output", 1, "uint32", None),
        ("bias_term", 2, "bool", True),
        ("pad", 3, "*uint32", None),
        ("kernel_size", 4, "*uint32", None),
        ("stride", 6, "*uint32", None),
        ("dilation", 18, "*uint32", None),
        ("pad_h", 9, "uint32", 0),
        ("pad_w", 10, "uint32", 0),
        ("kernel_h", 11, "uint32", None),
        ("kernel_w", 12, "uint32", None),
        ("stride_h", 13, "uint32", None),
        ("stride_w", 14, "uint32", None),
        ("group", 5, "uint32", 1),
        ("weight_filler", 7, "msg:FillerParameter", None),
        ("bias_filler", 8, "msg:FillerParameter", None),
        ("axis", 16, "int32", 1),
    ],
    "DropoutParameter": [
        ("dropout_ratio", 1, "float", 0.5),
    ],
    "EltwiseParameter": [
        ("operation", 1, "enum:EltwiseParameter.EltwiseOp", "SUM"),
        ("coeff", 2, "*float", None),
        ("stable_prod_grad", 3, "bool", True),
    ],
    "ELUParameter": [
        ("alpha", 1, "float", 1.0),
    ],
    "ExpParameter": [
        ("base", 1, "float", -1.0),
        ("scale", 2, "float", 1.0),
        ("shift", 3, "float", 0.0),
    ],
    "FlattenParameter": [
        ("axis", 1, "int32", 1),
        ("end_axis", 2, "int32", -1),
    ],
    "InnerProductParameter": [
        ("num_output", 1, "uint32", None),
        ("bias_term", 2, "bool", True),
        ("weight_filler", 3, "msg:FillerParameter", None),
        ("bias_filler", 4, "msg:FillerParameter", None),
        ("axis", 5, "int32", 1),
        ("transpose", 6, "bool", False),
    ],
    "InputParameter": [
        ("shape", 1, "*msg:BlobShape", None),
    ],
    "LogParameter": [
        ("base", 1, "float", -1.0),
        ("scale", 2, "float", 1.0),
        ("shift", 3, "float", 0.0),
    ],
    "LRNParameter": [
        ("local_size", 1, "uint32", 5),
        ("alpha", 2, "float", 1.0),
        ("beta", 3, "float", 0.75),
        ("norm_region", 4, "enum:LRNParameter.NormRegion", "ACROSS_CHANNELS"),
        ("k", 5, "float", 1.0),
    ],
    "PoolingParameter": [
        ("pool", 1, "enum:PoolingParameter.PoolMethod", "MAX"),
        ("pad", 4, "uint32", 0),
        ("pad_h", 9, "uint32", 0),
        ("pad_w", 10, "uint32", 0),
        ("kernel_size", 2, "uint32", None),
        ("kernel_h", 5, "uint32", None),
        ("kernel_w", 6, "uint32", None),
        ("stride", 3, "uint32", 1),
        ("stride_h", 7, "uint32", None),
        ("stride_w", 8, "uint32", None),
        ("global_pooling", 12, "bool", False),
        ("round_mode", 13, "enum:PoolingParameter.RoundMode", "CEIL"),
    ],
    "PowerParameter": [
        ("power", 1, "float", 1.0),
        ("scale", 2, "float", 1.0),
        ("shift", 3, "float", 0.0),
    ],
    "PReLUParameter": [
        ("filler", 1, "msg:FillerParameter", None),
        ("channel_shared", 2, "bool", False),
    ],
    "ReLUParameter": [
        ("negative_slope", 1, "float", 0.0),
    ],
    "ReshapeParameter": [
        ("shape", 1, "msg:BlobShape", None),
        ("axis", 2, "int32", 0),
        ("num_axes", 3, "int32", -1),
    ],
    "ScaleParameter": [
        ("axis", 1, "int32", 1),
        ("num_axes", 2, "int32", 1),
        ("filler", 3, "msg:FillerParameter", None),
        ("bias_term", 4, "bool", False),
        ("bias_filler", 5, "msg:FillerParameter", None),
    ],
    "SliceParameter": [
        ("axis", 3, "int32", 1),
        ("slice_point", 2, "*uint32", None),
        ("slice_dim", 1, "uint32", 1),
    ],
    "SoftmaxParameter": [
        ("axis", 2, "int32", 1),
    ],
    "ThresholdParameter": [
        ("threshold", 1, "float", 0.0),
    ],
    "TileParameter": [
        ("axis", 1, "int32", 1),
        ("tiles", 2, "int32", None),
    ],
    "NormalizeParameter": [
        ("across_spatial", 1, "bool", True),
        ("scale_filler", 2, "msg:FillerParameter", None),
        ("channel_shared", 3, "bool", True),
        ("eps", 4, "float", 1e-10),
    ],
    "PermuteParameter": [
        ("order", 1, "*uint32", None),
    ],
    "PriorBoxParameter": [
        ("min_size", 1, "*float", None),
        ("max_size", 2, "*float", None),
        ("aspect_ratio", 3, "*float", None),
        ("flip", 4, "bool", True),
        ("clip", 5, "bool", False),
        ("variance", 6, "*float", None),
        ("img_size", 7, "uint32", None),
        ("img_h", 8, "uint32", None),
        ("img_w", 9, "uint32", None),
        ("step", 10, "float", None),
        ("step_h", 11, "float", None),
        ("step_w", 12, "float", None),
        ("offset", 13, "float", 0.5),
    ],
    "NonMaximumSuppressionParameter": [
        ("nms_threshold", 1, "float", 0.3),
        ("top_k", 2, "int32", None),
        ("eta", 3, "float", 1.0),
    ],
    "DetectionOutputParameter": [
        ("num_classes", 1, "uint32", None),
        ("share_location", 2, "bool", True),
        ("background_label_id", 3, "int32", 0),
        ("nms_param", 4, "msg:NonMaximumSuppressionParameter", None),
        ("code_type", 6, "enum:PriorBoxParameter.CodeType", "CORNER"),
        ("keep_top_k", 7, "int32", -1),
        ("variance_encoded_in_target", 8, "bool", False),
        ("confidence_threshold", 9, "float", None),
    ],
    "LayerParameter": [
        ("name", 1, "string", None),
        ("type", 2, "string", None),
        ("bottom", 3, "*string", None),
        ("top", 4, "*string", None),
        ("phase", 10, "enum:Phase", None),
        ("loss_weight", 5, "*float", None),
        ("blobs", 7, "*msg:BlobProto", None),
        ("propagate_down", 11, "*bool", None),
        ("transform_param", 100, "msg:TransformationParameter", None),
        ("batch_norm_param", 139, "msg:BatchNormParameter", None),
        ("bias_param", 141, "msg:BiasParameter", None),
        ("concat_param", 104, "msg:ConcatParameter", None),
        ("convolution_param", 106, "msg:ConvolutionParameter", None),
        ("dropout_param", 108, "msg:DropoutParameter", None),
        ("eltwise_param", 110, "msg:EltwiseParameter", None),
        ("elu_param", 140, "msg:ELUParameter", None),
        ("exp_param", 111, "msg:ExpParameter", None),
        ("flatten_param", 135, "msg:FlattenParameter", None),
        ("inner_product_param", 117, "msg:InnerProductParameter", None),
        ("input_param", 143, "msg:InputParameter", None),
        ("log_param", 134, "msg:LogParameter", None),
        ("lrn_param", 118, "msg:LRNParameter", None),
        ("pooling_param", 121, "msg:PoolingParameter", None),
        ("power_param", 122, "msg:PowerParameter", None),
        ("prelu_param", 131, "msg:PReLUParameter", None),
        ("relu_param", 123, "msg:ReLUParameter", None),
        ("reshape_param", 133, "msg:ReshapeParameter", None),
        ("scale_param", 142, "msg:ScaleParameter", None),
        ("softmax_param", 125, "msg:SoftmaxParameter", None),
        ("slice_param", 126, "msg:SliceParameter", None),
        ("threshold_param", 128, "msg:ThresholdParameter", None),
        ("tile_param", 138, "msg:TileParameter", None),
        ("permute_param", 202, "msg:PermuteParameter", None),
        ("prior_box_param", 203, "msg:PriorBoxParameter", None),
        ("detection_output_param", 204, "msg:DetectionOutputParameter", None),
        ("norm_param", 206, "msg:NormalizeParameter", None),
    ],
}

MESSAGE_NAMES: tuple[str, ...] = tuple(_MESSAGES)


def _format_default(value: Any) -> str:
    """Render a field default the way descriptor protos expect it."""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _add_field(
    message: descriptor_pb2.DescriptorProto,
    name: str,
    number: int,
    spec: str,
    default: Any,
) -> None:
    """Append one field declaration to a message descriptor.

    :param message: Message descriptor being built
    :param name: Field name
    :param number: Field number on the wire
    :param spec: Type spec (see the row format above)
    :param default: Field default or None
    """
    field = message.field.add()
    field.name = name
    field.number = number
    field.label = _FDP.LABEL_OPTIONAL

    if spec.startswith("+"):
        field.label = _FDP.LABEL_REPEATED
        field.options.packed = True
        spec = spec[1:]
    elif spec.startswith("*"):
        field.label = _FDP.LABEL_REPEATED
        spec = spec[1:]

    if spec.startswith("msg:"):
        field.type = _FDP.TYPE_MESSAGE
        field.type_name = f".caffe.{spec[4:]}"
    elif spec.startswith("enum:"):
        field.type = _FDP.TYPE_ENUM
        field.type_name = f".caffe.{spec[5:]}"
    else:
        field.type = _SCALAR_TYPES[spec]

    if default is not None:
        field.default_value = _format_default(default)


def _add_enum(container: Any, name: str, values: dict[str, int]) -> None:
    enum = container.enum_type.add()
    enum.name = name
    for value_name, number in values.items():
        enum_value_proto = enum.value.add()
        enum_value_proto.name = value_name
        enum_value_proto.number = number


def _build_file() -> descriptor_pb2.FileDescriptorProto:
    """Assemble the ``caffe.proto`` file descriptor from the tables above."""
    file_proto = descriptor_pb2.FileDescriptorProto()
    file_proto.name = "torchcaffe/caffe.proto"
    file_proto.package = "caffe"
    file_proto.syntax = "proto2"

    messages: dict[str, descriptor_pb2.DescriptorProto] = {}
    for message_name, fields in _MESSAGES.items():
        message = file_proto.message_type.add()
        message.name = message_name
        for name, number, spec, default in fields:
            _add_field(message, name, number, spec, default)
        messages[message_name] = message

    for qualified_name, values in _ENUMS.items():
        owner, _, enum_name = qualified_name.rpartition(".")
        container = messages[owner] if owner else file_proto
        _add_enum(container, enum_name, values)

    return file_proto


_POOL = descriptor_pool.DescriptorPool()
DESCRIPTOR = _POOL.AddSerializedFile(_build_file().SerializeToString())


def message_class(name: str) -> type:
    """Get the generated message class for a Caffe message.

    :param name: Unqualified message name (e.g. "LayerParameter")
    :return: Protobuf message class
    """
    descriptor = _POOL.FindMessageTypeByName(f"caffe.{name}")
    return message_factory.GetMessageClass(descriptor)


def enum_value(qualified_name: str, value_name: str) -> int:
    """Resolve an enum value number by name.

    :param qualified_name: Enum name within the caffe package
        (e.g. "PoolingParameter.PoolMethod")
    :param value_name: Enum value name (e.g. "MAX")
    :return: Enum number
    """
    enum = _POOL.FindEnumTypeByName(f"caffe.{qualified_name}")
    return enum.values_by_name[value_name].number
