__docformat__ = "restructuredtext"
__all__ = ["TorchCaffe"]

from pathlib import Path

from torchcaffe.graph import ModuleGraph
from torchcaffe.proto import NetParameter


class TorchCaffe:
    def __init__(self, verbose: bool = False):
        self.verbose = verbose

    def load(self, prototxt_path: str | Path, caffemodel_path: str | Path | None = None) -> ModuleGraph:
        """Import a Caffe net as a module graph.

        :param prototxt_path: Path to the ``.prototxt`` net definition
        :param caffemodel_path: Path to the ``.caffemodel`` weights, merged
            into the definition by layer name
        :return: Module graph with weights loaded into its modules
        """
        # Stage 1: Decode net files
        net = self.read(prototxt_path, caffemodel_path)

        # Stage 3: Extract graph nodes
        from torchcaffe.extract import import_net

        graph = import_net(net)

        if self.verbose:
            print(f"Loaded: {prototxt_path} ({len(net.layer)} layers, {len(graph)} nodes)")
            if caffemodel_path is not None:
                print(f"Merged weights: {caffemodel_path}")
        return graph

    def save(
        self,
        graph: ModuleGraph,
        prototxt_path: str | Path,
        caffemodel_path: str | Path | None = None,
        net_name: str | None = None,
    ) -> NetParameter:
        """Export a module graph as Caffe net files.

        :param graph: Graph to export
        :param prototxt_path: Destination of the ``.prototxt`` definition
        :param caffemodel_path: Destination of the ``.caffemodel`` weights;
            defaults to the definition path with a ``.caffemodel`` suffix
        :param net_name: Net name; defaults to the definition file stem
        :return: The exported net
        """
        # Stage 4: Synthesize layers
        from torchcaffe.synthesize import export_net

        if net_name is None:
            net_name = Path(prototxt_path).stem
        net = export_net(graph, net_name)

        if caffemodel_path is None:
            caffemodel_path = Path(prototxt_path).with_suffix(".caffemodel")

        from torchcaffe.proto import save_net

        save_net(net, prototxt_path, caffemodel_path)

        if self.verbose:
            print(f"Generated: {prototxt_path}")
            print(f"Saved weights: {caffemodel_path}")
        return net

    @staticmethod
    def read(prototxt_path: str | Path, caffemodel_path: str | Path | None = None) -> NetParameter:
        """Decode Caffe net files without converting them.

        :param prototxt_path: Path to the ``.prototxt`` net definition
        :param caffemodel_path: Path to the ``.caffemodel`` weights
        :return: Decoded net with blobs merged in
        """
        from torchcaffe.proto import load_net

        return load_net(prototxt_path, caffemodel_path)
