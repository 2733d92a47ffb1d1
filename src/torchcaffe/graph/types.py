"""Module graph type definitions.

A :class:`ModuleGraph` is an ordered set of :class:`GraphNode` objects. Edges
are not stored as references: each node lists the *endpoints* it consumes,
where an endpoint is a producer node name, suffixed with ``:<index>`` when it
refers to an output other than the first.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "GraphNode",
    "ModuleGraph",
    "format_endpoint",
    "parse_endpoint",
]

from dataclasses import dataclass, field

from torch import nn

from torchcaffe.errors import DanglingInputError
from torchcaffe.graph.kinds import OperatorKind, kind_of


def format_endpoint(node_name: str, index: int = 0) -> str:
    """Build the endpoint string for output ``index`` of ``node_name``."""
    return node_name if index == 0 else f"{node_name}:{index}"


def parse_endpoint(endpoint: str) -> tuple[str, int]:
    """Split an endpoint into ``(node_name, output_index)``.

    Only a trailing ``:<digits>`` is treated as an index, so node names that
    themselves contain colons stay intact.
    """
    name, sep, index = endpoint.rpartition(":")
    if sep and index.isdigit():
        return name, int(index)
    return endpoint, 0


@dataclass
class GraphNode:
    """A named operator in a module graph.

    :param name: Unique node name
    :param module: Wrapped operator
    :param inputs: Consumed endpoints, in operand order
    """

    name: str
    module: nn.Module
    inputs: list[str] = field(default_factory=list)

    @property
    def kind(self) -> OperatorKind:
        return kind_of(self.module)

    def __repr__(self) -> str:
        return f"GraphNode(name={self.name!r}, kind={self.kind.value}, inputs={self.inputs})"


@dataclass
class ModuleGraph:
    """Directed operator graph, nodes kept in declaration order.

    :param nodes: Graph nodes in topological (declaration) order
    :param input_names: Names of the input placeholder nodes
    :param output_names: Endpoints no other node consumes
    """

    nodes: list[GraphNode] = field(default_factory=list)
    input_names: list[str] = field(default_factory=list)
    output_names: list[str] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def __contains__(self, name: str) -> bool:
        return any(node.name == name for node in self.nodes)

    def node(self, name: str) -> GraphNode:
        """Look up a node by name.

        :raises DanglingInputError: If no node has that name
        """
        for node in self.nodes:
            if node.name == name:
                return node
        raise DanglingInputError(f"No node named '{name}' in the graph")

    def predecessors(self, name: str) -> list[GraphNode]:
        """Producers of a node's inputs, in operand order."""
        return [self.node(parse_endpoint(endpoint)[0]) for endpoint in self.node(name).inputs]

    def successors(self, name: str) -> list[GraphNode]:
        """Nodes consuming any output of ``name``, in graph order."""
        return [
            node
            for node in self.nodes
            if any(parse_endpoint(endpoint)[0] == name for endpoint in node.inputs)
        ]

    def edges(self) -> list[tuple[str, str]]:
        """All ``(producer_endpoint, consumer_name)`` pairs in graph order."""
        return [(endpoint, node.name) for node in self.nodes for endpoint in node.inputs]

    def fan_out(self, name: str) -> int:
        """Number of output slots consumers of ``name`` address (at least 1)."""
        consumed = [endpoint for node in self.nodes for endpoint in node.inputs]
        indices = [
            parse_endpoint(endpoint)[1]
            for endpoint in (*consumed, *self.output_names)
            if parse_endpoint(endpoint)[0] == name
        ]
        return max(indices, default=0) + 1
