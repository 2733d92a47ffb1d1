"""Layer synthesizers.

Synthesizer registry and kind-specific layer builders.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "SYNTHESIZERS",
    "Synthesizer",
    "get_synthesizer",
    "register_detection_synthesizers",
    "register_layer_synthesizers",
    "register_operation_synthesizers",
    "register_synthesizer",
]

from torchcaffe.synthesize._handlers._detection import register_detection_synthesizers
from torchcaffe.synthesize._handlers._layers import register_layer_synthesizers
from torchcaffe.synthesize._handlers._operations import register_operation_synthesizers
from torchcaffe.synthesize._handlers._registry import (
    SYNTHESIZERS,
    Synthesizer,
    get_synthesizer,
    register_synthesizer,
)
