"""Effective layer geometry from declared Caffe fields.

Caffe lets most geometric parameters be declared several ways: per-axis
``*_h``/``*_w`` fields, a shared repeated field, or nothing at all. Each
resolver here applies one fallback chain and returns plain integers, so the
defaulting rules live in one place.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "ConvGeometry",
    "PoolGeometry",
    "is_dilated",
    "resolve_channels",
    "resolve_conv_geometry",
    "resolve_dilation",
    "resolve_group",
    "resolve_inner_product_inputs",
    "resolve_kernel",
    "resolve_pad",
    "resolve_pool_geometry",
    "resolve_stride",
]

from dataclasses import dataclass

from torchcaffe.errors import MalformedShapeError
from torchcaffe.proto import (
    BlobProto,
    ConvolutionParameter,
    LayerParameter,
    PoolingParameter,
    blob_shape,
    get_blob,
)


@dataclass(frozen=True)
class ConvGeometry:
    """Resolved convolution geometry.

    :param in_channels: Input plane count (blob-derived, already multiplied by group)
    :param out_channels: Output plane count
    :param kernel_w: Kernel width
    :param kernel_h: Kernel height
    :param stride_w: Horizontal stride
    :param stride_h: Vertical stride
    :param pad_w: Horizontal padding
    :param pad_h: Vertical padding
    :param group: Channel group count
    :param dilation: Dilation applied to both axes (1 means none)
    """

    in_channels: int
    out_channels: int
    kernel_w: int
    kernel_h: int
    stride_w: int
    stride_h: int
    pad_w: int
    pad_h: int
    group: int
    dilation: int

    @property
    def kernel_size(self) -> tuple[int, int]:
        return (self.kernel_h, self.kernel_w)

    @property
    def stride(self) -> tuple[int, int]:
        return (self.stride_h, self.stride_w)

    @property
    def padding(self) -> tuple[int, int]:
        return (self.pad_h, self.pad_w)


@dataclass(frozen=True)
class PoolGeometry:
    """Resolved pooling geometry. Kernel is None for global pooling."""

    kernel_w: int | None
    kernel_h: int | None
    stride_w: int
    stride_h: int
    pad_w: int
    pad_h: int

    @property
    def is_global(self) -> bool:
        return self.kernel_w is None


def resolve_group(param: ConvolutionParameter) -> int:
    """Group count, treating a declared 0 as 1."""
    return param.group if param.group != 0 else 1


def resolve_kernel(
    param: ConvolutionParameter, weight_shape: tuple[int, ...] | None = None
) -> tuple[int, int]:
    """Resolve kernel width and height.

    Explicit ``kernel_w``/``kernel_h`` win when both are non-zero. Otherwise
    the first ``kernel_size`` entry is used for both axes. Without either, the
    trailing dims of the weight blob are used.

    :param param: Convolution parameters
    :param weight_shape: Weight blob dimensions, if known
    :return: ``(kernel_w, kernel_h)``
    """
    if param.kernel_w != 0 and param.kernel_h != 0:
        return param.kernel_w, param.kernel_h
    if len(param.kernel_size) > 0:
        return param.kernel_size[0], param.kernel_size[0]
    if weight_shape is not None and len(weight_shape) == 4:
        return weight_shape[3], weight_shape[2]
    raise MalformedShapeError("Convolution kernel size is not declared and cannot be inferred")


def resolve_stride(param: ConvolutionParameter) -> tuple[int, int]:
    """Resolve stride as ``(stride_w, stride_h)``; defaults to 1."""
    if param.stride_w != 0 and param.stride_h != 0:
        return param.stride_w, param.stride_h
    if len(param.stride) > 0:
        return param.stride[0], param.stride[0]
    return 1, 1


def resolve_pad(param: ConvolutionParameter) -> tuple[int, int]:
    """Resolve padding as ``(pad_w, pad_h)``.

    Explicit values win when both are non-zero; otherwise the first ``pad``
    entry applies to both axes. With no ``pad`` list the explicit pair is kept
    as declared, which is ``(0, 0)`` when neither is set.
    """
    if param.pad_w != 0 and param.pad_h != 0:
        return param.pad_w, param.pad_h
    if len(param.pad) > 0:
        return param.pad[0], param.pad[0]
    return param.pad_w, param.pad_h


def resolve_dilation(param: ConvolutionParameter) -> int:
    """First declared dilation, or 1 when none is declared."""
    if len(param.dilation) == 0:
        return 1
    return param.dilation[0]


def is_dilated(param: ConvolutionParameter) -> bool:
    """True when the layer needs a dilated convolution."""
    return resolve_dilation(param) != 1


def resolve_channels(weight: BlobProto, group: int) -> tuple[int, int]:
    """Derive ``(in_channels, out_channels)`` from a convolution weight blob.

    With an explicit blob shape the input count is ``shape[1] * group`` and
    the output count ``shape[0]``. Legacy blobs use ``channels * group`` and
    ``num`` instead.

    :param weight: Convolution weight blob
    :param group: Resolved group count
    :return: ``(in_channels, out_channels)``
    """
    if weight.HasField("shape"):
        dims = blob_shape(weight)
        if len(dims) < 2:
            raise MalformedShapeError(
                f"Convolution weight blob needs at least 2 dims, got {dims}"
            )
        return dims[1] * group, dims[0]
    if weight.channels == 0 or weight.num == 0:
        raise MalformedShapeError(
            "Convolution weight blob has neither a shape nor legacy num/channels"
        )
    return weight.channels * group, weight.num


def resolve_inner_product_inputs(weight: BlobProto) -> int:
    """Input feature count of an inner product weight blob.

    :param weight: Inner product weight blob
    :return: ``shape[1]``, or the legacy ``width`` field
    """
    if weight.HasField("shape"):
        dims = blob_shape(weight)
        if len(dims) < 2:
            raise MalformedShapeError(
                f"InnerProduct weight blob needs at least 2 dims, got {dims}"
            )
        return dims[1]
    if weight.width == 0:
        raise MalformedShapeError("InnerProduct weight blob has neither a shape nor a width")
    return weight.width


def resolve_conv_geometry(layer: LayerParameter) -> ConvGeometry:
    """Resolve every geometric value of a (de)convolution layer.

    :param layer: Decoded Convolution or Deconvolution layer
    :return: Resolved geometry
    :raises MissingRequiredBlobError: If the layer has no weight blob
    """
    param = layer.convolution_param
    group = resolve_group(param)
    weight = get_blob(layer, 0, required=True)
    in_channels, out_channels = resolve_channels(weight, group)

    weight_shape = blob_shape(weight) if weight.HasField("shape") else None
    kernel_w, kernel_h = resolve_kernel(param, weight_shape)
    stride_w, stride_h = resolve_stride(param)
    pad_w, pad_h = resolve_pad(param)

    return ConvGeometry(
        in_channels=in_channels,
        out_channels=out_channels,
        kernel_w=kernel_w,
        kernel_h=kernel_h,
        stride_w=stride_w,
        stride_h=stride_h,
        pad_w=pad_w,
        pad_h=pad_h,
        group=group,
        dilation=resolve_dilation(param),
    )


def resolve_pool_geometry(param: PoolingParameter) -> PoolGeometry:
    """Resolve pooling geometry.

    Pooling declares single-valued ``kernel_size``/``stride``/``pad`` fields
    rather than lists; the per-axis fields win when both are non-zero.

    :param param: Pooling parameters
    :return: Resolved geometry
    """
    if param.stride_w != 0 and param.stride_h != 0:
        stride_w, stride_h = param.stride_w, param.stride_h
    else:
        stride_w = stride_h = param.stride if param.stride != 0 else 1

    if param.pad_w != 0 and param.pad_h != 0:
        pad_w, pad_h = param.pad_w, param.pad_h
    elif param.HasField("pad"):
        pad_w = pad_h = param.pad
    else:
        pad_w, pad_h = param.pad_w, param.pad_h

    if param.global_pooling:
        return PoolGeometry(None, None, stride_w, stride_h, pad_w, pad_h)

    if param.kernel_w != 0 and param.kernel_h != 0:
        kernel_w, kernel_h = param.kernel_w, param.kernel_h
    elif param.kernel_size != 0:
        kernel_w = kernel_h = param.kernel_size
    else:
        raise MalformedShapeError("Pooling kernel size is not declared")

    return PoolGeometry(kernel_w, kernel_h, stride_w, stride_h, pad_w, pad_h)
