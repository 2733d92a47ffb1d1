"""Pytest configuration and shared fixtures for torchcaffe tests."""

import numpy as np
import pytest

from torchcaffe.proto import BlobProto, LayerParameter


@pytest.fixture
def rng():
    """Seeded random generator."""
    return np.random.default_rng(42)


@pytest.fixture
def make_blob(rng):
    """Factory for blobs with an explicit shape.

    Random float32 data is used unless ``values`` is given.
    """

    def _make_blob(*shape: int, values=None) -> BlobProto:
        blob = BlobProto()
        blob.shape.SetInParent()
        blob.shape.dim.extend(shape)
        if values is None:
            values = rng.standard_normal(shape).astype(np.float32)
        blob.data.extend(np.asarray(values, dtype=np.float32).ravel().tolist())
        return blob

    return _make_blob


@pytest.fixture
def make_layer():
    """Factory for decoded layers.

    Tops default to the layer name, the Caffe convention for single-output
    layers.
    """

    def _make_layer(
        name: str,
        layer_type: str,
        bottoms=(),
        tops=None,
        blobs=(),
    ) -> LayerParameter:
        layer = LayerParameter()
        layer.name = name
        layer.type = layer_type
        layer.bottom.extend(bottoms)
        layer.top.extend([name] if tops is None else tops)
        for blob in blobs:
            layer.blobs.add().CopyFrom(blob)
        return layer

    return _make_layer
