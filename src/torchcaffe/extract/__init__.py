"""Stage 3: Layer extraction (import direction).

Converts decoded Caffe layers into module graph nodes.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "FC_NAME_PREFIX",
    "SSD_PERMUTE_ORDER",
    "extract_layer",
    "import_layers",
    "import_net",
]

from torchcaffe.extract._handlers import FC_NAME_PREFIX, SSD_PERMUTE_ORDER
from torchcaffe.extract.builder import extract_layer, import_layers, import_net
