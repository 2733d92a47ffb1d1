"""Stage 4: Layer synthesis (export direction).

Converts module graph nodes into Caffe layers with their blobs.
"""

__docformat__ = "restructuredtext"
__all__ = ["export_graph", "export_net", "export_node"]

from torchcaffe.synthesize.builder import export_graph, export_net, export_node
