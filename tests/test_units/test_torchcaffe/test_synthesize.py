"""Stage 4 (Synthesize) Tests - Graph nodes to Caffe layers.

Test Coverage:
- TestExportNode: wiring, top naming and dispatch failures
- TestLayerSynthesis: layers with learned parameters and their blobs
- TestOperationSynthesis: parameter-free layers
- TestDetectionSynthesis: inputs and SSD layers
- TestSequentialSynthesis: container expansion
- TestSynthesizerTable: registration completeness
"""

from concurrent.futures import ThreadPoolExecutor

import pytest
import torch
from torch import nn

import torchcaffe.synthesize.builder as synthesize_builder
from torchcaffe.errors import UnsupportedOperatorError
from torchcaffe.graph import GraphNode, OperatorKind
from torchcaffe.graph.modules import (
    Add,
    DetectionOutput,
    DetectionOutputParam,
    EltwiseSub,
    Input,
    NormalizeScale,
    PriorBox,
    Scale,
    Slice,
    Transpose,
    View,
)
from torchcaffe.proto import blob_shape, blob_to_tensor, enum_value
from torchcaffe.synthesize import export_node
from torchcaffe.synthesize._handlers import SYNTHESIZERS


def _export_one(module, name="node", bottoms=("data",), fan_out=1):
    layers = export_node(GraphNode(name, module), list(bottoms), fan_out)
    assert len(layers) == 1
    return layers[0]


class TestExportNode:
    """Test generic export behaviour."""

    def test_bottoms_and_generated_tops(self):
        layer = _export_one(nn.ReLU(), name="relu", bottoms=["conv0"], fan_out=2)
        assert layer.name == "relu"
        assert layer.type == "ReLU"
        assert list(layer.bottom) == ["conv0"]
        assert list(layer.top) == ["relu0", "relu1"]

    def test_parameter_free_layer_has_no_blobs(self):
        assert len(_export_one(nn.Sigmoid()).blobs) == 0

    def test_unknown_module_raises(self):
        with pytest.raises(UnsupportedOperatorError, match="GRU"):
            export_node(GraphNode("rnn", nn.GRU(4, 4)), ["data"], 1)

    def test_unsupported_adaptive_size_raises(self):
        with pytest.raises(UnsupportedOperatorError):
            export_node(GraphNode("pool", nn.AdaptiveAvgPool2d(2)), ["data"], 1)


class TestLayerSynthesis:
    """Test layers with learned parameters."""

    def test_convolution(self):
        conv = nn.Conv2d(3, 16, kernel_size=3)
        layer = _export_one(conv, name="conv")
        param = layer.convolution_param
        assert layer.type == "Convolution"
        assert param.num_output == 16
        assert param.bias_term
        assert (param.kernel_h, param.kernel_w) == (3, 3)
        assert (param.stride_h, param.stride_w) == (1, 1)
        assert (param.pad_h, param.pad_w) == (0, 0)
        assert len(param.dilation) == 0
        assert len(layer.blobs) == 2
        assert blob_shape(layer.blobs[0]) == (16, 3, 3, 3)
        torch.testing.assert_close(blob_to_tensor(layer.blobs[0]), conv.weight.detach())

    def test_grouped_convolution_legacy_channels(self):
        """The legacy channel count is the input planes per group."""
        conv = nn.Conv2d(8, 4, kernel_size=(3, 1), stride=(2, 1), padding=(1, 0), groups=2, bias=False)
        layer = _export_one(conv)
        param = layer.convolution_param
        assert param.group == 2
        assert not param.bias_term
        assert (param.kernel_h, param.kernel_w) == (3, 1)
        assert (param.stride_h, param.stride_w) == (2, 1)
        assert (param.pad_h, param.pad_w) == (1, 0)
        weight = layer.blobs[0]
        assert (weight.num, weight.channels, weight.height, weight.width) == (4, 4, 3, 1)
        assert len(layer.blobs) == 1

    def test_dilated_convolution(self):
        layer = _export_one(nn.Conv2d(2, 2, kernel_size=3, dilation=2, padding=2))
        assert layer.type == "Convolution"
        assert list(layer.convolution_param.dilation) == [2]

    @pytest.mark.parametrize(
        ("kernel", "dilation", "pads"),
        [((3, 5), 1, (1, 2)), (3, 2, (2, 2)), (1, 1, (0, 0))],
    )
    def test_same_padding_written_as_explicit_pads(self, kernel, dilation, pads):
        conv = nn.Conv2d(3, 4, kernel_size=kernel, dilation=dilation, padding="same")
        param = _export_one(conv).convolution_param
        assert (param.pad_h, param.pad_w) == pads

    def test_valid_padding_is_zero(self):
        param = _export_one(nn.Conv2d(3, 4, 3, padding="valid")).convolution_param
        assert (param.pad_h, param.pad_w) == (0, 0)

    def test_asymmetric_same_padding_raises(self):
        with pytest.raises(UnsupportedOperatorError, match="same"):
            _export_one(nn.Conv2d(3, 4, kernel_size=4, padding="same"))

    def test_transposed_convolution(self):
        deconv = nn.ConvTranspose2d(8, 4, kernel_size=2, stride=2)
        layer = _export_one(deconv)
        assert layer.type == "Deconvolution"
        assert layer.convolution_param.num_output == 4
        assert blob_shape(layer.blobs[0]) == (8, 4, 2, 2)

    def test_linear(self):
        linear = nn.Linear(16, 10)
        layer = _export_one(linear, name="ip")
        assert layer.type == "InnerProduct"
        assert layer.inner_product_param.num_output == 10
        assert blob_shape(layer.blobs[0]) == (10, 16)
        assert layer.blobs[0].width == 16
        torch.testing.assert_close(blob_to_tensor(layer.blobs[1]), linear.bias.detach())

    def test_batchnorm_writes_unit_factor(self):
        bn = nn.BatchNorm2d(3, affine=False)
        bn.running_mean.copy_(torch.tensor([1.0, 2.0, 3.0]))
        bn.running_var.copy_(torch.tensor([4.0, 5.0, 6.0]))
        layer = _export_one(bn, name="bn")
        assert layer.type == "BatchNorm"
        assert len(layer.blobs) == 3
        torch.testing.assert_close(blob_to_tensor(layer.blobs[0]), bn.running_mean)
        torch.testing.assert_close(blob_to_tensor(layer.blobs[1]), bn.running_var)
        assert list(layer.blobs[2].data) == [1.0]
        assert layer.batch_norm_param.moving_average_fraction == pytest.approx(0.9)

    def test_affine_batchnorm_adds_inplace_scale(self):
        bn = nn.BatchNorm1d(4)
        layers = export_node(GraphNode("bn", bn), ["fc1"], 1)
        assert [layer.type for layer in layers] == ["BatchNorm", "Scale"]
        scale = layers[1]
        assert scale.name == "bn_scale"
        assert list(scale.bottom) == list(layers[0].top)
        assert list(scale.top) == list(layers[0].top)
        assert scale.scale_param.bias_term
        assert len(scale.blobs) == 2

    def test_scale_writes_channel_vectors(self):
        scale = Scale((1, 3, 1, 1))
        layer = _export_one(scale)
        assert layer.scale_param.bias_term
        assert blob_shape(layer.blobs[0]) == (3,)
        assert blob_shape(layer.blobs[1]) == (3,)

    def test_scale_without_bias_writes_weight_only(self):
        layer = _export_one(Scale((1, 3, 1, 1), bias=False))
        assert not layer.scale_param.bias_term
        assert len(layer.blobs) == 1
        assert blob_shape(layer.blobs[0]) == (3,)

    def test_affine_batchnorm_with_several_outputs_raises(self):
        with pytest.raises(UnsupportedOperatorError, match="2 outputs"):
            export_node(GraphNode("bn", nn.BatchNorm2d(3)), ["data"], 2)

    def test_bias(self):
        layer = _export_one(Add(5))
        assert layer.type == "Bias"
        assert blob_shape(layer.blobs[0]) == (5,)

    def test_normalize(self):
        module = NormalizeScale(p=2, eps=1e-10, scale=20.0, size=(1, 4, 1, 1))
        layer = _export_one(module, name="norm")
        assert layer.type == "Normalize"
        assert layer.norm_param.scale_filler.value == pytest.approx(20.0)
        assert not layer.norm_param.across_spatial
        assert blob_shape(layer.blobs[0]) == (4,)

    def test_prelu(self):
        layer = _export_one(nn.PReLU(num_parameters=1))
        assert layer.prelu_param.channel_shared
        assert blob_shape(layer.blobs[0]) == (1,)


class TestOperationSynthesis:
    """Test parameter-free layers."""

    @pytest.mark.parametrize(
        ("module", "layer_type"),
        [
            (nn.ReLU(), "ReLU"),
            (nn.Tanh(), "TanH"),
            (nn.Sigmoid(), "Sigmoid"),
            (nn.LogSoftmax(dim=1), "Softmax"),
            (nn.Flatten(), "Flatten"),
            (nn.Dropout(0.3), "Dropout"),
        ],
    )
    def test_type_strings(self, module, layer_type):
        assert _export_one(module).type == layer_type

    def test_leaky_relu(self):
        layer = _export_one(nn.LeakyReLU(0.2))
        assert layer.type == "ReLU"
        assert layer.relu_param.negative_slope == pytest.approx(0.2)

    def test_max_pooling(self):
        layer = _export_one(nn.MaxPool2d(kernel_size=3, stride=2, padding=1, ceil_mode=True))
        param = layer.pooling_param
        assert param.pool == enum_value("PoolingParameter.PoolMethod", "MAX")
        assert (param.kernel_h, param.kernel_w) == (3, 3)
        assert (param.stride_h, param.stride_w) == (2, 2)
        assert (param.pad_h, param.pad_w) == (1, 1)
        assert param.round_mode == enum_value("PoolingParameter.RoundMode", "CEIL")

    def test_average_pooling_floor(self):
        param = _export_one(nn.AvgPool2d(2)).pooling_param
        assert param.pool == enum_value("PoolingParameter.PoolMethod", "AVE")
        assert param.round_mode == enum_value("PoolingParameter.RoundMode", "FLOOR")

    @pytest.mark.parametrize(
        ("module", "detail"),
        [
            (nn.MaxPool2d(3, dilation=2), "dilation"),
            (nn.AvgPool2d(2, padding=1, count_include_pad=False), "count_include_pad"),
            (nn.AvgPool2d(2, divisor_override=3), "divisor_override"),
        ],
    )
    def test_pooling_options_without_caffe_field_raise(self, module, detail):
        with pytest.raises(UnsupportedOperatorError, match=detail):
            _export_one(module)

    def test_global_pooling(self):
        param = _export_one(nn.AdaptiveMaxPool2d(1)).pooling_param
        assert param.global_pooling
        assert param.pool == enum_value("PoolingParameter.PoolMethod", "MAX")

    def test_view_is_reshape_with_free_batch(self):
        layer = _export_one(View(16))
        assert layer.type == "Reshape"
        assert list(layer.reshape_param.shape.dim) == [-1, 16]

    def test_slice_tops_cover_outputs(self):
        layer = _export_one(Slice(1, [2, 4], num_outputs=3), name="split")
        assert list(layer.top) == ["split0", "split1", "split2"]
        assert list(layer.slice_param.slice_point) == [2, 4]

    def test_eltwise_sub_coefficients(self):
        layer = export_node(GraphNode("diff", EltwiseSub()), ["a", "b"], 1)[0]
        assert layer.eltwise_param.operation == enum_value("EltwiseParameter.EltwiseOp", "SUM")
        assert list(layer.eltwise_param.coeff) == [1.0, -1.0]
        assert list(layer.bottom) == ["a", "b"]


class TestDetectionSynthesis:
    """Test inputs and SSD layers."""

    def test_input_top_is_node_name(self):
        layer = export_node(GraphNode("data", Input()), [], 3)[0]
        assert layer.type == "Input"
        assert list(layer.top) == ["data"]
        assert list(layer.bottom) == []

    def test_permute_order(self):
        layer = _export_one(Transpose(((1, 2), (2, 3))))
        assert list(layer.permute_param.order) == [0, 2, 3, 1]

    def test_prior_box(self):
        module = PriorBox(min_sizes=[30.0], max_sizes=[60.0], aspect_ratios=[2.0], img_h=300, img_w=300, step=8.0)
        param = _export_one(module, bottoms=["conv4", "data"]).prior_box_param
        assert list(param.min_size) == [30.0]
        assert (param.img_h, param.img_w) == (300, 300)
        assert not param.HasField("img_size")
        assert param.step == 8.0
        assert not param.HasField("step_h")

    def test_detection_output(self):
        config = DetectionOutputParam(n_classes=2, keep_top_k=50)
        param = _export_one(DetectionOutput(config)).detection_output_param
        assert param.num_classes == 2
        assert param.keep_top_k == 50
        assert param.nms_param.top_k == 400
        assert param.nms_param.nms_threshold == pytest.approx(0.45)


class TestSequentialSynthesis:
    """Test container expansion."""

    def test_children_threaded_in_order(self):
        block = nn.Sequential(nn.Conv2d(3, 4, 3), nn.ReLU())
        layers = export_node(GraphNode("block", block), ["data"], 1)
        assert [layer.name for layer in layers] == ["block.0", "block.1"]
        assert list(layers[0].bottom) == ["data"]
        assert list(layers[1].bottom) == list(layers[0].top)

    def test_last_child_takes_fan_out(self):
        block = nn.Sequential(nn.ReLU(), nn.Tanh())
        layers = export_node(GraphNode("block", block), ["data"], 2)
        assert len(layers[0].top) == 1
        assert len(layers[1].top) == 2

    def test_nested_containers_flatten(self):
        block = nn.Sequential(nn.Sequential(nn.ReLU(), nn.Sigmoid()), nn.Tanh())
        layers = export_node(GraphNode("block", block), ["data"], 1)
        assert [layer.name for layer in layers] == ["block.0.0", "block.0.1", "block.1"]
        assert list(layers[2].bottom) == list(layers[1].top)

    def test_empty_container_writes_no_layers(self):
        assert export_node(GraphNode("block", nn.Sequential()), ["data"], 1) == []

    def test_empty_nested_container_is_skipped(self):
        block = nn.Sequential(nn.ReLU(), nn.Sequential(), nn.Tanh())
        layers = export_node(GraphNode("block", block), ["data"], 1)
        assert [layer.name for layer in layers] == ["block.0", "block.2"]
        assert list(layers[1].bottom) == list(layers[0].top)


class TestSynthesizerTable:
    """Test the synthesizer table."""

    def test_every_kind_has_a_synthesizer(self):
        export_node(GraphNode("r", nn.ReLU()), ["data"], 1)
        assert set(SYNTHESIZERS) == set(OperatorKind)

    def test_concurrent_first_use_sees_full_table(self, monkeypatch):
        export_node(GraphNode("r", nn.ReLU()), ["data"], 1)
        saved = dict(SYNTHESIZERS)
        monkeypatch.setattr(synthesize_builder, "_registered", False)
        SYNTHESIZERS.clear()
        try:
            modules = [nn.ReLU(), nn.Tanh(), View(4)] * 4
            nodes = [GraphNode(f"n{i}", module) for i, module in enumerate(modules)]
            with ThreadPoolExecutor(max_workers=8) as pool:
                results = list(pool.map(lambda node: export_node(node, ["data"], 1), nodes))
            assert [layers[0].name for layers in results] == [node.name for node in nodes]
            assert set(SYNTHESIZERS) == set(saved)
        finally:
            SYNTHESIZERS.clear()
            SYNTHESIZERS.update(saved)
