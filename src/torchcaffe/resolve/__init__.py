"""Shape and field resolution for declared Caffe layer parameters."""

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

from torchcaffe.resolve.geometry import (
    ConvGeometry,
    PoolGeometry,
    is_dilated,
    resolve_channels,
    resolve_conv_geometry,
    resolve_dilation,
    resolve_group,
    resolve_inner_product_inputs,
    resolve_kernel,
    resolve_pad,
    resolve_pool_geometry,
    resolve_stride,
)
