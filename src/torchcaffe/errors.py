"""Conversion error taxonomy.

Every failure raised by an import or export pass derives from
:class:`ConversionError`. Errors abort the whole pass; callers discard any
partially built graph or layer list.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "ConversionError",
    "DanglingInputError",
    "MalformedShapeError",
    "MissingRequiredBlobError",
    "UnsupportedOperatorError",
]


class ConversionError(Exception):
    """Base class for Caffe <-> module graph conversion failures."""


class MissingRequiredBlobError(ConversionError, ValueError):
    """A layer lacks a parameter blob its conversion cannot do without.

    :param layer_name: Name of the offending layer
    :param index: Position of the missing blob in ``layer.blobs``
    """

    def __init__(self, layer_name: str, index: int):
        self.layer_name = layer_name
        self.index = index
        super().__init__(f"Layer '{layer_name}' is missing required blob #{index}")


class UnsupportedOperatorError(ConversionError, NotImplementedError):
    """No extractor or synthesizer is registered for an operator.

    :param op_type: Declared Caffe type string or graph operator kind
    """

    def __init__(self, op_type: str, detail: str | None = None):
        self.op_type = op_type
        message = f"Unsupported operator: {op_type}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class MalformedShapeError(ConversionError, ValueError):
    """A blob shape disagrees with its data, or a dimension cannot be resolved."""


class DanglingInputError(ConversionError, ValueError):
    """A layer bottom or node input names no known producer."""
