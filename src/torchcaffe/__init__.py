__docformat__ = "restructuredtext"
__version__ = "2026.1.0"
__all__ = [
    "ConversionError",
    "DanglingInputError",
    "MalformedShapeError",
    "MissingRequiredBlobError",
    "ModuleGraph",
    "GraphNode",
    "OperatorKind",
    "TorchCaffe",
    "UnsupportedOperatorError",
    "export_graph",
    "export_net",
    "export_node",
    "import_layers",
    "import_net",
]

from torchcaffe._torchcaffe import TorchCaffe
from torchcaffe.errors import (
    ConversionError,
    DanglingInputError,
    MalformedShapeError,
    MissingRequiredBlobError,
    UnsupportedOperatorError,
)
from torchcaffe.extract import import_layers, import_net
from torchcaffe.graph import GraphNode, ModuleGraph, OperatorKind
from torchcaffe.synthesize import export_graph, export_net, export_node
