"""Module Graph Tests - Graph structure, import walking and export threading.

Test Coverage:
- TestEndpoints: endpoint formatting and parsing
- TestModuleGraph: lookups, adjacency and fan-out
- TestOperatorKinds: module class to kind mapping
- TestImportLayers: name resolution across a layer list
- TestExportGraph: bottom resolution from generated tops
"""

import pytest
from torch import nn

from torchcaffe.errors import ConversionError, DanglingInputError, UnsupportedOperatorError
from torchcaffe.extract import import_layers, import_net
from torchcaffe.graph import (
    GraphNode,
    ModuleGraph,
    OperatorKind,
    format_endpoint,
    kind_of,
    parse_endpoint,
)
from torchcaffe.graph.modules import Input, Slice, View
from torchcaffe.proto import NetParameter
from torchcaffe.synthesize import export_graph, export_net


class TestEndpoints:
    """Test endpoint strings."""

    def test_first_output_is_bare_name(self):
        assert format_endpoint("conv") == "conv"
        assert format_endpoint("split", 2) == "split:2"

    def test_parse(self):
        assert parse_endpoint("conv") == ("conv", 0)
        assert parse_endpoint("split:2") == ("split", 2)

    def test_non_numeric_suffix_is_part_of_name(self):
        assert parse_endpoint("scope:conv") == ("scope:conv", 0)


class TestModuleGraph:
    """Test graph queries."""

    @pytest.fixture
    def graph(self):
        return ModuleGraph(
            nodes=[
                GraphNode("data", Input()),
                GraphNode("split", Slice(1, [], num_outputs=2), ["data"]),
                GraphNode("a", nn.ReLU(), ["split"]),
                GraphNode("b", nn.Tanh(), ["split:1"]),
            ],
            input_names=["data"],
            output_names=["a", "b"],
        )

    def test_container_protocol(self, graph):
        assert len(graph) == 4
        assert "split" in graph
        assert "missing" not in graph
        assert [node.name for node in graph] == ["data", "split", "a", "b"]

    def test_node_lookup_failure(self, graph):
        with pytest.raises(DanglingInputError, match="missing"):
            graph.node("missing")

    def test_adjacency(self, graph):
        assert [node.name for node in graph.successors("split")] == ["a", "b"]
        assert [node.name for node in graph.predecessors("b")] == ["split"]
        assert ("split:1", "b") in graph.edges()

    def test_fan_out(self, graph):
        assert graph.fan_out("split") == 2
        assert graph.fan_out("a") == 1
        assert graph.fan_out("data") == 1


class TestOperatorKinds:
    """Test module kinds."""

    def test_dilation_splits_convolution_kind(self):
        assert kind_of(nn.Conv2d(1, 1, 3)) is OperatorKind.CONVOLUTION
        assert kind_of(nn.Conv2d(1, 1, 3, dilation=2)) is OperatorKind.DILATED_CONVOLUTION

    def test_subclass_resolves_to_base_kind(self):
        class Custom(nn.ReLU):
            pass

        assert kind_of(Custom()) is OperatorKind.RELU

    def test_unknown_module_raises(self):
        with pytest.raises(UnsupportedOperatorError):
            kind_of(nn.Identity())

    def test_node_kind_property(self):
        assert GraphNode("v", View(4)).kind is OperatorKind.VIEW


class TestImportLayers:
    """Test walking a layer list into a graph."""

    def test_inplace_layers_rebind_blob_name(self, make_layer, conv_layer):
        layers = [
            make_layer("data", "Input"),
            conv_layer,
            make_layer("relu", "ReLU", bottoms=["conv"], tops=["conv"]),
            make_layer("prob", "Softmax", bottoms=["conv"]),
        ]
        graph = import_layers(layers)
        assert [node.name for node in graph] == ["data", "conv", "relu", "prob"]
        assert graph.node("relu").inputs == ["conv"]
        assert graph.node("prob").inputs == ["relu"]
        assert graph.input_names == ["data"]
        assert graph.output_names == ["prob"]

    def test_net_inputs_become_placeholders(self, make_layer):
        graph = import_layers([make_layer("act", "TanH", bottoms=["x"])], input_names=["x"])
        assert isinstance(graph.node("x").module, Input)
        assert graph.node("act").inputs == ["x"]

    def test_multi_output_endpoints(self, make_layer):
        split = make_layer("split", "Slice", bottoms=["x"], tops=["left", "right"])
        layers = [
            split,
            make_layer("a", "ReLU", bottoms=["right"]),
            make_layer("b", "ReLU", bottoms=["left"]),
        ]
        graph = import_layers(layers, input_names=["x"])
        assert graph.node("a").inputs == ["split:1"]
        assert graph.node("b").inputs == ["split"]

    def test_view_wired_between_bottom_and_linear(self, make_layer, make_blob):
        ip = make_layer("ip", "InnerProduct", bottoms=["pool"], blobs=[make_blob(10, 16)])
        graph = import_layers([ip], input_names=["pool"])
        assert graph.node("ip_view").inputs == ["pool"]
        assert graph.node("ip").inputs == ["ip_view"]
        assert graph.output_names == ["ip"]

    def test_unknown_bottom_raises(self, make_layer):
        with pytest.raises(DanglingInputError, match="ghost"):
            import_layers([make_layer("act", "ReLU", bottoms=["ghost"])])

    def test_duplicate_names_raise(self, make_layer):
        layers = [make_layer("act", "ReLU", bottoms=["x"]), make_layer("act", "ReLU", bottoms=["act"])]
        with pytest.raises(ConversionError, match="Duplicate"):
            import_layers(layers, input_names=["x"])

    def test_unknown_layer_aborts_pass(self, make_layer):
        with pytest.raises(UnsupportedOperatorError):
            import_layers([make_layer("x", "Input"), make_layer("y", "Mystery", bottoms=["x"])])

    def test_import_net_uses_legacy_inputs(self, make_layer):
        net = NetParameter()
        net.input.append("data")
        net.layer.add().CopyFrom(make_layer("act", "Sigmoid", bottoms=["data"]))
        graph = import_net(net)
        assert graph.input_names == ["data"]
        assert graph.output_names == ["act"]


class TestExportGraph:
    """Test exporting whole graphs."""

    def test_bottoms_follow_generated_tops(self):
        graph = ModuleGraph(
            nodes=[
                GraphNode("data", Input()),
                GraphNode("conv", nn.Conv2d(3, 4, 3), ["data"]),
                GraphNode("relu", nn.ReLU(), ["conv"]),
            ],
            input_names=["data"],
            output_names=["relu"],
        )
        layers = export_graph(graph)
        assert [layer.name for layer in layers] == ["data", "conv", "relu"]
        assert list(layers[1].bottom) == ["data"]
        assert list(layers[2].bottom) == ["conv0"]
        assert list(layers[2].top) == ["relu0"]

    def test_slice_consumers_read_their_output(self):
        graph = ModuleGraph(
            nodes=[
                GraphNode("data", Input()),
                GraphNode("split", Slice(1, [2], num_outputs=2), ["data"]),
                GraphNode("a", nn.ReLU(), ["split:1"]),
            ],
            input_names=["data"],
            output_names=["a"],
        )
        layers = export_graph(graph)
        assert list(layers[1].top) == ["split0", "split1"]
        assert list(layers[2].bottom) == ["split1"]

    def test_flattening_view_before_linear_is_folded(self):
        graph = ModuleGraph(
            nodes=[
                GraphNode("pool", Input()),
                GraphNode("ip_view", View(16), ["pool"]),
                GraphNode("ip", nn.Linear(16, 10), ["ip_view"]),
            ],
            input_names=["pool"],
            output_names=["ip"],
        )
        layers = export_graph(graph)
        assert [layer.type for layer in layers] == ["Input", "InnerProduct"]
        assert list(layers[1].bottom) == ["pool"]

    def test_view_feeding_other_ops_is_kept(self):
        graph = ModuleGraph(
            nodes=[
                GraphNode("data", Input()),
                GraphNode("flat", View(16), ["data"]),
                GraphNode("act", nn.ReLU(), ["flat"]),
            ],
            input_names=["data"],
            output_names=["act"],
        )
        assert [layer.type for layer in export_graph(graph)] == ["Input", "Reshape", "ReLU"]

    def test_empty_container_passes_bottoms_through(self):
        graph = ModuleGraph(
            nodes=[
                GraphNode("data", Input()),
                GraphNode("block", nn.Sequential(), ["data"]),
                GraphNode("act", nn.ReLU(), ["block"]),
            ],
            input_names=["data"],
            output_names=["act"],
        )
        layers = export_graph(graph)
        assert [layer.name for layer in layers] == ["data", "act"]
        assert list(layers[1].bottom) == ["data"]

    def test_dangling_endpoint_raises(self):
        graph = ModuleGraph(nodes=[GraphNode("act", nn.ReLU(), ["nowhere"])])
        with pytest.raises(DanglingInputError, match="nowhere"):
            export_graph(graph)

    def test_export_net_name(self):
        graph = ModuleGraph(nodes=[GraphNode("data", Input())], input_names=["data"])
        net = export_net(graph, "tiny")
        assert net.name == "tiny"
        assert len(net.layer) == 1
