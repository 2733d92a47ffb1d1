"""Layer extractors.

Extractor registry and type-specific extraction routines.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "EXTRACTORS",
    "FC_NAME_PREFIX",
    "SSD_PERMUTE_ORDER",
    "Extractor",
    "get_extractor",
    "register_detection_extractors",
    "register_extractor",
    "register_layer_extractors",
    "register_operation_extractors",
]

from torchcaffe.extract._handlers._detection import (
    SSD_PERMUTE_ORDER,
    register_detection_extractors,
)
from torchcaffe.extract._handlers._layers import FC_NAME_PREFIX, register_layer_extractors
from torchcaffe.extract._handlers._operations import register_operation_extractors
from torchcaffe.extract._handlers._registry import (
    EXTRACTORS,
    Extractor,
    get_extractor,
    register_extractor,
)
