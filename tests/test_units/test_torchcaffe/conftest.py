"""Shared fixtures for torchcaffe unit tests.

Provides a small LeNet-style net as text definition plus binary weights.
"""

import pytest

from torchcaffe.proto import LayerParameter, NetParameter

LENET_PROTOTXT = """
name: "LeNet"
input: "data"
layer {
  name: "conv1"
  type: "Convolution"
  bottom: "data"
  top: "conv1"
  convolution_param { num_output: 4 kernel_size: 3 }
}
layer {
  name: "relu1"
  type: "ReLU"
  bottom: "conv1"
  top: "conv1"
}
layer {
  name: "pool1"
  type: "Pooling"
  bottom: "conv1"
  top: "pool1"
  pooling_param { pool: MAX kernel_size: 2 stride: 2 }
}
layer {
  name: "ip1"
  type: "InnerProduct"
  bottom: "pool1"
  top: "ip1"
  inner_product_param { num_output: 10 }
}
layer {
  name: "prob"
  type: "Softmax"
  bottom: "ip1"
  top: "prob"
}
"""


@pytest.fixture
def lenet_weights(make_blob) -> NetParameter:
    """Trained blobs for the LeNet definition, keyed by layer name."""
    net = NetParameter()
    net.name = "LeNet"
    for name, shapes in (("conv1", [(4, 1, 3, 3), (4,)]), ("ip1", [(10, 16), (10,)])):
        layer = net.layer.add()
        layer.name = name
        for shape in shapes:
            layer.blobs.add().CopyFrom(make_blob(*shape))
    return net


@pytest.fixture
def lenet_files(tmp_path, lenet_weights):
    """Write the LeNet definition and weights; return both paths."""
    prototxt_path = tmp_path / "lenet.prototxt"
    caffemodel_path = tmp_path / "lenet.caffemodel"
    prototxt_path.write_text(LENET_PROTOTXT)
    caffemodel_path.write_bytes(lenet_weights.SerializeToString())
    return prototxt_path, caffemodel_path


@pytest.fixture
def conv_layer(make_layer, make_blob) -> LayerParameter:
    """Convolution with a [16, 3, 3, 3] weight blob and no geometry fields."""
    return make_layer(
        "conv",
        "Convolution",
        bottoms=["data"],
        blobs=[make_blob(16, 3, 3, 3), make_blob(16)],
    )
