"""Stage 3: Graph import.

Walks decoded Caffe layers in declaration order and builds a
:class:`~torchcaffe.graph.ModuleGraph`. Blob names are resolved to node
endpoints with a name table scoped to one pass; in-place layers rebind the
blob name to the newest producer.
"""

__docformat__ = "restructuredtext"
__all__ = ["extract_layer", "import_layers", "import_net"]

import threading
from collections.abc import Iterable

from torchcaffe.errors import ConversionError, DanglingInputError, UnsupportedOperatorError
from torchcaffe.extract._handlers import (
    get_extractor,
    register_detection_extractors,
    register_layer_extractors,
    register_operation_extractors,
)
from torchcaffe.graph import GraphNode, ModuleGraph, format_endpoint
from torchcaffe.graph.modules import Input
from torchcaffe.proto import LayerParameter, NetParameter

_registration_lock = threading.Lock()
_registered = False


def _ensure_extractors_registered() -> None:
    """Register all extractors on first use.

    Registration runs once under a lock; lookups start only after the table
    is complete.
    """
    global _registered
    if _registered:
        return
    with _registration_lock:
        if not _registered:
            register_layer_extractors()
            register_operation_extractors()
            register_detection_extractors()
            _registered = True


def extract_layer(layer: LayerParameter) -> list[GraphNode]:
    """Convert one decoded layer into graph nodes.

    The returned nodes are not wired to the layer's bottoms yet; internal
    edges between them (e.g. view then linear) are already set.

    :param layer: Decoded layer
    :return: Non-empty node list, last node producing the layer's tops
    :raises UnsupportedOperatorError: If no extractor handles the layer type
    """
    _ensure_extractors_registered()
    extractor = get_extractor(layer.type)
    if extractor is None:
        raise UnsupportedOperatorError(layer.type)
    return extractor(layer)


def _is_placeholder_layer(nodes: list[GraphNode]) -> bool:
    return all(isinstance(node.module, Input) for node in nodes)


def import_layers(
    layers: Iterable[LayerParameter],
    input_names: Iterable[str] = (),
) -> ModuleGraph:
    """Build a module graph from decoded layers.

    :param layers: Layers in declaration (topological) order
    :param input_names: Net-level input blob names, imported as placeholders
    :return: Module graph whose output names are the unconsumed endpoints
    :raises UnsupportedOperatorError: If a layer type has no extractor
    :raises DanglingInputError: If a bottom names no earlier top
    :raises ConversionError: If two nodes end up with the same name
    """
    graph = ModuleGraph()
    producers: dict[str, str] = {}
    produced: list[str] = []
    consumed: set[str] = set()

    def add_node(node: GraphNode) -> None:
        if node.name in graph:
            raise ConversionError(f"Duplicate node name '{node.name}'")
        graph.nodes.append(node)

    def add_placeholder(name: str) -> None:
        add_node(GraphNode(name, Input()))
        graph.input_names.append(name)
        producers[name] = name
        produced.append(name)

    for name in input_names:
        add_placeholder(name)

    for layer in layers:
        nodes = extract_layer(layer)

        if _is_placeholder_layer(nodes):
            for node in nodes:
                add_placeholder(node.name)
            continue

        inputs = []
        for bottom in layer.bottom:
            endpoint = producers.get(bottom)
            if endpoint is None:
                raise DanglingInputError(
                    f"Layer '{layer.name}' reads blob '{bottom}', "
                    "which no earlier layer produces"
                )
            inputs.append(endpoint)
        nodes[0].inputs = inputs

        for node in nodes:
            consumed.update(node.inputs)
            add_node(node)

        last = nodes[-1]
        for index, top in enumerate(layer.top):
            endpoint = format_endpoint(last.name, index)
            producers[top] = endpoint
            produced.append(endpoint)

    live = set(producers.values())
    graph.output_names = [
        endpoint
        for endpoint in dict.fromkeys(produced)
        if endpoint in live and endpoint not in consumed
    ]
    return graph


def import_net(net: NetParameter) -> ModuleGraph:
    """Build a module graph from a whole net.

    :param net: Decoded net; its legacy ``input`` names become placeholders
    :return: Module graph
    """
    return import_layers(net.layer, input_names=list(net.input))
