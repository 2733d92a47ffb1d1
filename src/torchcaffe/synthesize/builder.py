"""Stage 4: Graph export.

Turns module graph nodes back into Caffe layers. Each node's tops are
generated as ``<node name><index>``; consumers resolve their bottoms from the
tops their producers generated earlier in the same pass.
"""

__docformat__ = "restructuredtext"
__all__ = ["export_graph", "export_net", "export_node"]

import math
import threading
from collections.abc import Sequence

from torch import nn

from torchcaffe.errors import DanglingInputError, UnsupportedOperatorError
from torchcaffe.graph import GraphNode, ModuleGraph, OperatorKind, parse_endpoint
from torchcaffe.graph.modules import Slice
from torchcaffe.proto import LayerParameter, NetParameter
from torchcaffe.synthesize._handlers import (
    get_synthesizer,
    register_detection_synthesizers,
    register_layer_synthesizers,
    register_operation_synthesizers,
    register_synthesizer,
)


def _synthesize_sequential(
    node: GraphNode, bottoms: list[str], fan_out: int
) -> list[LayerParameter]:
    """Expand a container into its children, chained in order.

    Children are named ``<container>.<child>``. Each child reads the tops of
    the one before it; only the last child uses the container's fan-out.
    """
    children = list(node.module.named_children())
    layers: list[LayerParameter] = []
    current = list(bottoms)
    for position, (child_name, child) in enumerate(children):
        child_node = GraphNode(f"{node.name}.{child_name}", child)
        child_fan_out = fan_out if position == len(children) - 1 else 1
        produced = export_node(child_node, current, child_fan_out)
        if produced:
            layers.extend(produced)
            current = list(produced[-1].top)
    return layers


_registration_lock = threading.Lock()
_registered = False


def _ensure_synthesizers_registered() -> None:
    """Register all synthesizers on first use.

    Registration runs once under a lock; lookups start only after the table
    is complete.
    """
    global _registered
    if _registered:
        return
    with _registration_lock:
        if not _registered:
            register_layer_synthesizers()
            register_operation_synthesizers()
            register_detection_synthesizers()
            register_synthesizer(OperatorKind.SEQUENTIAL, _synthesize_sequential)
            _registered = True


def export_node(node: GraphNode, bottoms: Sequence[str], fan_out: int = 1) -> list[LayerParameter]:
    """Convert one graph node into Caffe layers.

    :param node: Node to export
    :param bottoms: Blob names the node reads, in operand order
    :param fan_out: Number of tops to generate
    :return: Layers in order; the last one produces the node's tops
    :raises UnsupportedOperatorError: If no synthesizer handles the node kind
    """
    _ensure_synthesizers_registered()
    kind = node.kind
    synthesizer = get_synthesizer(kind)
    if synthesizer is None:
        raise UnsupportedOperatorError(kind.value)
    return synthesizer(node, list(bottoms), fan_out)


def _is_implicit_flatten(graph: ModuleGraph, node: GraphNode) -> bool:
    """True for a view that only flattens input for linear consumers.

    An InnerProduct layer flattens its input itself, so such a view has no
    layer of its own.
    """
    if node.kind is not OperatorKind.VIEW or len(node.inputs) != 1:
        return False
    if node.name in (parse_endpoint(endpoint)[0] for endpoint in graph.output_names):
        return False
    consumers = graph.successors(node.name)
    features = math.prod(node.module.sizes)
    return bool(consumers) and all(
        isinstance(consumer.module, nn.Linear) and consumer.module.in_features == features
        for consumer in consumers
    )


def export_graph(graph: ModuleGraph) -> list[LayerParameter]:
    """Convert a module graph into Caffe layers, in node order.

    :param graph: Graph to export
    :return: Wired layers
    :raises DanglingInputError: If a node reads an endpoint no earlier node produced
    :raises UnsupportedOperatorError: If a node kind has no synthesizer
    """
    tops: dict[str, list[str]] = {}

    def resolve(endpoint: str, consumer: str) -> str:
        name, index = parse_endpoint(endpoint)
        produced = tops.get(name)
        if produced is None or index >= len(produced):
            raise DanglingInputError(
                f"Node '{consumer}' reads '{endpoint}', which no earlier node produces"
            )
        return produced[index]

    layers: list[LayerParameter] = []
    for node in graph:
        bottoms = [resolve(endpoint, node.name) for endpoint in node.inputs]
        if _is_implicit_flatten(graph, node):
            tops[node.name] = bottoms
            continue

        fan_out = graph.fan_out(node.name)
        if isinstance(node.module, Slice):
            fan_out = max(fan_out, node.module.num_outputs)
        produced = export_node(node, bottoms, fan_out)
        # An empty container passes its bottoms through
        tops[node.name] = list(produced[-1].top) if produced else bottoms
        layers.extend(produced)
    return layers


def export_net(graph: ModuleGraph, name: str | None = None) -> NetParameter:
    """Convert a module graph into a Caffe net.

    :param graph: Graph to export
    :param name: Net name
    :return: Net holding the exported layers
    """
    net = NetParameter()
    if name:
        net.name = name
    net.layer.extend(export_graph(graph))
    return net
