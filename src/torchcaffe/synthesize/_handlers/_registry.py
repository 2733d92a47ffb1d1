"""Synthesizer registry.

Maps operator kinds to layer synthesizer functions.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "SYNTHESIZERS",
    "Synthesizer",
    "get_synthesizer",
    "register_synthesizer",
]

from collections.abc import Callable

from torchcaffe.graph import GraphNode, OperatorKind
from torchcaffe.proto import LayerParameter

# Synthesizer type: takes a node, its bottom blob names and its fan-out,
# returns the layers it expands to. The last layer produces the node's tops.
Synthesizer = Callable[[GraphNode, list[str], int], list[LayerParameter]]

SYNTHESIZERS: dict[OperatorKind, Synthesizer] = {}


def register_synthesizer(kind: OperatorKind, synthesizer: Synthesizer) -> None:
    """Register synthesizer for an operator kind.

    :param kind: Operator kind
    :param synthesizer: Synthesizer function
    """
    SYNTHESIZERS[kind] = synthesizer


def get_synthesizer(kind: OperatorKind) -> Synthesizer | None:
    """Get synthesizer for an operator kind.

    :param kind: Operator kind
    :return: Synthesizer function or None if not found
    """
    return SYNTHESIZERS.get(kind)
