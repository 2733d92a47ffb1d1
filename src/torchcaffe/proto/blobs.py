"""Blob/tensor transcoder.

Moves parameter tensors between ``torch.Tensor`` and Caffe ``BlobProto``.
Blob data is single precision on the wire: tensors are narrowed to float32
when written and come back as float32 when read, whatever dtype they had in
memory.
"""

__docformat__ = "restructuredtext"
__all__ = ["blob_shape", "blob_to_tensor", "copy_blob_into", "get_blob", "tensor_to_blob"]

import math

import numpy as np
import torch

from torchcaffe.errors import MalformedShapeError, MissingRequiredBlobError
from torchcaffe.proto.messages import BlobProto, LayerParameter


def get_blob(layer: LayerParameter, index: int, required: bool = False) -> BlobProto | None:
    """Get a layer blob by position.

    :param layer: Decoded layer
    :param index: Blob position
    :param required: Raise instead of returning None when the blob is absent
    :return: The blob, or None if the layer has fewer blobs
    """
    if len(layer.blobs) > index:
        return layer.blobs[index]
    if required:
        raise MissingRequiredBlobError(layer.name, index)
    return None


def blob_shape(blob: BlobProto) -> tuple[int, ...]:
    """Get the dimensions of a blob.

    Blobs written by current Caffe carry an explicit ``shape``; older ones
    only set the legacy ``num``/``channels``/``height``/``width`` quadruple.

    :param blob: Caffe blob
    :return: Blob dimensions
    """
    if blob.HasField("shape"):
        return tuple(int(dim) for dim in blob.shape.dim)
    return (blob.num, blob.channels, blob.height, blob.width)


def blob_to_tensor(blob: BlobProto, shape: tuple[int, ...] | None = None) -> torch.Tensor:
    """Decode a blob into a float32 tensor.

    :param blob: Caffe blob
    :param shape: Target shape; defaults to the blob's own shape. Must hold
        exactly as many elements as the blob carries.
    :return: Dense float32 tensor
    """
    if len(blob.double_data) > 0 and len(blob.data) == 0:
        values = np.asarray(blob.double_data, dtype=np.float32)
    else:
        values = np.asarray(blob.data, dtype=np.float32)

    if shape is None:
        shape = blob_shape(blob)
        # Legacy blobs may leave trailing dims at 0 while carrying data
        if not blob.HasField("shape") and math.prod(shape) != values.size:
            shape = tuple(dim for dim in shape if dim > 0)

    if math.prod(shape) != values.size:
        raise MalformedShapeError(
            f"Blob shape {tuple(shape)} holds {math.prod(shape)} values "
            f"but the blob carries {values.size}"
        )
    return torch.from_numpy(values.reshape(shape).copy())


def tensor_to_blob(tensor: torch.Tensor, blob: BlobProto | None = None) -> BlobProto:
    """Encode a tensor as a blob with an explicit shape.

    :param tensor: Parameter tensor (any float dtype, any device)
    :param blob: Blob to fill; a new one is created when omitted
    :return: The filled blob
    """
    if blob is None:
        blob = BlobProto()
    array = tensor.detach().cpu().numpy().astype(np.float32)
    blob.shape.SetInParent()
    blob.shape.dim.extend(int(dim) for dim in array.shape)
    blob.data.extend(array.ravel().tolist())
    return blob


def copy_blob_into(target: torch.Tensor, blob: BlobProto) -> torch.Tensor:
    """Overwrite a module parameter or buffer with blob data.

    The blob is reshaped to the target's shape, so legacy 4-D blobs load into
    vectors and matrices as long as the element counts agree.

    :param target: Parameter or buffer to overwrite
    :param blob: Source blob
    :return: The target tensor
    """
    values = blob_to_tensor(blob, tuple(target.shape))
    with torch.no_grad():
        target.copy_(values.to(dtype=target.dtype, device=target.device))
    return target
