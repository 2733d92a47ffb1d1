"""Extractors for input placeholders and SSD detection layers."""

__docformat__ = "restructuredtext"
__all__ = ["SSD_PERMUTE_ORDER", "register_detection_extractors"]

import warnings

from torchcaffe.extract._handlers._registry import register_extractor
from torchcaffe.graph import GraphNode
from torchcaffe.graph.modules import (
    DetectionOutput,
    DetectionOutputParam,
    Input,
    PriorBox,
    Transpose,
)
from torchcaffe.proto import LayerParameter

# Channel-last order SSD heads permute their predictions into
SSD_PERMUTE_ORDER = (0, 2, 3, 1)
_SSD_PERMUTATIONS = ((1, 2), (2, 3))


def _extract_input(layer: LayerParameter) -> list[GraphNode]:
    """Create one placeholder per declared top, each named after the top.

    Data layers have no learned state; only their output names matter.
    """
    return [GraphNode(top, Input()) for top in layer.top]


def _extract_permute(layer: LayerParameter) -> list[GraphNode]:
    """Build the fixed channel-last transpose used by SSD heads.

    Only :data:`SSD_PERMUTE_ORDER` is produced; any other declared order is
    reported and replaced by it.
    """
    order = tuple(layer.permute_param.order)
    if order and order != SSD_PERMUTE_ORDER[: len(order)]:
        warnings.warn(
            f"Permute layer '{layer.name}' declares order {order}; "
            f"importing as {SSD_PERMUTE_ORDER}",
            UserWarning,
            stacklevel=2,
        )
    return [GraphNode(layer.name, Transpose(_SSD_PERMUTATIONS))]


def _extract_prior_box(layer: LayerParameter) -> list[GraphNode]:
    """Pass anchor configuration through to a :class:`PriorBox`.

    The image size comes from the layer's resize transform, falling back to
    the prior box's own ``img_h``/``img_w``.
    """
    param = layer.prior_box_param
    resize = layer.transform_param.resize_param
    img_h = resize.height or param.img_h
    img_w = resize.width or param.img_w

    module = PriorBox(
        min_sizes=list(param.min_size),
        max_sizes=list(param.max_size),
        aspect_ratios=list(param.aspect_ratio),
        is_flip=param.flip,
        is_clip=param.clip,
        variances=list(param.variance),
        offset=param.offset,
        img_h=img_h,
        img_w=img_w,
        img_size=param.img_size,
        step_h=param.step_h,
        step_w=param.step_w,
        step=param.step,
    )
    return [GraphNode(layer.name, module)]


def _extract_detection_output(layer: LayerParameter) -> list[GraphNode]:
    param = layer.detection_output_param
    config = DetectionOutputParam(
        n_classes=param.num_classes,
        share_location=param.share_location,
        bg_label=param.background_label_id,
        nms_thresh=param.nms_param.nms_threshold,
        nms_topk=param.nms_param.top_k,
        keep_top_k=param.keep_top_k,
        conf_thresh=param.confidence_threshold,
        variance_encoded_in_target=param.variance_encoded_in_target,
    )
    return [GraphNode(layer.name, DetectionOutput(config))]


def register_detection_extractors() -> None:
    """Register extractors for input and detection layers."""
    register_extractor("Input", _extract_input)
    register_extractor("Data", _extract_input)
    register_extractor("AnnotatedData", _extract_input)
    register_extractor("DummyData", _extract_input)
    register_extractor("Permute", _extract_permute)
    register_extractor("PriorBox", _extract_prior_box)
    register_extractor("DetectionOutput", _extract_detection_output)
