"""Synthesizers for input placeholders and SSD detection layers."""

__docformat__ = "restructuredtext"
__all__ = ["register_detection_synthesizers"]

from torchcaffe.graph import GraphNode, OperatorKind
from torchcaffe.proto import LayerParameter
from torchcaffe.synthesize._handlers._registry import register_synthesizer
from torchcaffe.synthesize._handlers._utils import new_layer


def _synthesize_input(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write an Input layer whose single top is the node name."""
    layer = LayerParameter()
    layer.name = node.name
    layer.type = "Input"
    layer.top.append(node.name)
    return [layer]


def _synthesize_permute(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    layer = new_layer(node, "Permute", bottoms, fan_out)
    layer.permute_param.order.extend(node.module.order())
    return [layer]


def _synthesize_prior_box(node: GraphNode, bottoms: list[str], fan_out: int) -> list[LayerParameter]:
    """Write anchor configuration.

    Image size and step are written in whichever form is set: the square
    value when non-zero, otherwise the per-axis pair.
    """
    module = node.module
    layer = new_layer(node, "PriorBox", bottoms, fan_out)
    param = layer.prior_box_param
    param.min_size.extend(module.min_sizes)
    param.max_size.extend(module.max_sizes)
    param.aspect_ratio.extend(module.aspect_ratios)
    param.flip = module.is_flip
    param.clip = module.is_clip
    param.variance.extend(module.variances)
    param.offset = module.offset

    if module.img_size:
        param.img_size = module.img_size
    elif module.img_h or module.img_w:
        param.img_h = module.img_h
        param.img_w = module.img_w

    if module.step:
        param.step = module.step
    elif module.step_h or module.step_w:
        param.step_h = module.step_h
        param.step_w = module.step_w
    return [layer]


def _synthesize_detection_output(
    node: GraphNode, bottoms: list[str], fan_out: int
) -> list[LayerParameter]:
    config = node.module.param
    layer = new_layer(node, "DetectionOutput", bottoms, fan_out)
    param = layer.detection_output_param
    param.num_classes = config.n_classes
    param.share_location = config.share_location
    param.background_label_id = config.bg_label
    param.nms_param.nms_threshold = config.nms_thresh
    param.nms_param.top_k = config.nms_topk
    param.keep_top_k = config.keep_top_k
    param.confidence_threshold = config.conf_thresh
    param.variance_encoded_in_target = config.variance_encoded_in_target
    return [layer]


def register_detection_synthesizers() -> None:
    """Register synthesizers for input and detection layers."""
    register_synthesizer(OperatorKind.INPUT, _synthesize_input)
    register_synthesizer(OperatorKind.PERMUTE, _synthesize_permute)
    register_synthesizer(OperatorKind.PRIOR_BOX, _synthesize_prior_box)
    register_synthesizer(OperatorKind.DETECTION_OUTPUT, _synthesize_detection_output)
