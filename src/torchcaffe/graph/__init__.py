"""Stage 2: Module graph.

In-memory operator graph: nodes wrapping ``torch.nn`` modules, wired by
endpoint names.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "GraphNode",
    "MODULE_KINDS",
    "ModuleGraph",
    "OperatorKind",
    "format_endpoint",
    "kind_of",
    "parse_endpoint",
]

from torchcaffe.graph.kinds import MODULE_KINDS, OperatorKind, kind_of
from torchcaffe.graph.types import GraphNode, ModuleGraph, format_endpoint, parse_endpoint
