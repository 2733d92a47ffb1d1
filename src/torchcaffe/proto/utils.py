"""Caffe net file loading and saving."""

__docformat__ = "restructuredtext"
__all__ = ["load_net", "merge_weights", "save_net"]

import warnings
from pathlib import Path

from google.protobuf import text_format
from google.protobuf.message import DecodeError

from torchcaffe.proto.messages import NetParameter


def merge_weights(net: NetParameter, weights: NetParameter) -> NetParameter:
    """Copy blobs from a binary net into a text net, matching layers by name.

    :param net: Net definition (usually parsed from a prototxt)
    :param weights: Net carrying trained blobs (usually a caffemodel)
    :return: The definition net, updated in place
    """
    by_name = {layer.name: layer for layer in net.layer}
    for trained in weights.layer:
        if len(trained.blobs) == 0:
            continue
        layer = by_name.get(trained.name)
        if layer is None:
            warnings.warn(
                f"Trained layer '{trained.name}' has no counterpart in the net definition",
                UserWarning,
                stacklevel=2,
            )
            continue
        del layer.blobs[:]
        layer.blobs.extend(trained.blobs)
    return net


def load_net(prototxt_path: str | Path, caffemodel_path: str | Path | None = None) -> NetParameter:
    """Load a Caffe net from a text definition and optional binary weights.

    :param prototxt_path: Path to the ``.prototxt`` net definition
    :param caffemodel_path: Path to the ``.caffemodel`` weights
    :return: Decoded net with blobs merged in
    :raises ValueError: If either file cannot be decoded
    """
    net = NetParameter()
    text = Path(prototxt_path).read_text()
    try:
        text_format.Merge(text, net, allow_unknown_field=True)
    except text_format.ParseError as error:
        raise ValueError(f"Invalid Caffe net definition {prototxt_path}: {error}") from error

    if caffemodel_path is not None:
        weights = NetParameter()
        try:
            weights.ParseFromString(Path(caffemodel_path).read_bytes())
        except DecodeError as error:
            raise ValueError(f"Invalid Caffe weights {caffemodel_path}: {error}") from error
        merge_weights(net, weights)

    return net


def save_net(
    net: NetParameter,
    prototxt_path: str | Path,
    caffemodel_path: str | Path | None = None,
) -> None:
    """Save a Caffe net as a text definition and optional binary weights.

    The text definition is written without blobs.

    :param net: Net to save
    :param prototxt_path: Destination of the ``.prototxt`` definition
    :param caffemodel_path: Destination of the ``.caffemodel`` weights
    """
    definition = NetParameter()
    definition.CopyFrom(net)
    for layer in definition.layer:
        del layer.blobs[:]
    Path(prototxt_path).write_text(text_format.MessageToString(definition))

    if caffemodel_path is not None:
        Path(caffemodel_path).write_bytes(net.SerializeToString())
