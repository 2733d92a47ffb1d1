"""Modules for Caffe operators without a direct ``torch.nn`` counterpart.

Each module keeps the constructor arguments the exporter needs to write the
layer back out. Forward passes are provided where they are a single tensor
expression; detection modules only carry configuration.
"""

__docformat__ = "restructuredtext"
__all__ = [
    "Abs",
    "Add",
    "BinaryThreshold",
    "Concat",
    "DetectionOutput",
    "DetectionOutputParam",
    "EltwiseAdd",
    "EltwiseMax",
    "EltwiseMul",
    "EltwiseSub",
    "Exp",
    "InferReshape",
    "Input",
    "Log",
    "NormalizeScale",
    "Power",
    "PriorBox",
    "Replicate",
    "Scale",
    "Slice",
    "Transpose",
    "View",
]

import functools
import math
from dataclasses import dataclass

import torch
import torch.nn.functional as F
from torch import nn


def _channel_view(tensor: torch.Tensor, ndim: int) -> torch.Tensor:
    """Reshape a per-channel vector to broadcast over ``(N, C, ...)`` input."""
    return tensor.view(1, -1, *([1] * (ndim - 2)))


class Input(nn.Identity):
    """Graph input placeholder."""


class View(nn.Module):
    """Reshape each sample to ``sizes``, keeping the batch dimension free."""

    def __init__(self, *sizes: int):
        super().__init__()
        self.sizes = tuple(sizes)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.reshape(-1, *self.sizes)

    def extra_repr(self) -> str:
        return f"sizes={self.sizes}"


class InferReshape(nn.Module):
    """Caffe-style reshape: 0 copies the input dim, -1 is inferred."""

    def __init__(self, shape: tuple[int, ...] | list[int]):
        super().__init__()
        self.shape = tuple(int(dim) for dim in shape)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        dims = [x.shape[i] if dim == 0 else dim for i, dim in enumerate(self.shape)]
        return x.reshape(dims)

    def extra_repr(self) -> str:
        return f"shape={self.shape}"


class Scale(nn.Module):
    """Learned elementwise affine transform ``x * weight + bias``.

    Both tensors have shape ``size``, which broadcasts against the input.
    ``bias`` is ``None`` when the transform has no bias term.
    """

    def __init__(self, size: tuple[int, ...] | list[int], bias: bool = True):
        super().__init__()
        self.size = tuple(int(dim) for dim in size)
        self.weight = nn.Parameter(torch.ones(self.size))
        if bias:
            self.bias = nn.Parameter(torch.zeros(self.size))
        else:
            self.register_parameter("bias", None)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if self.bias is None:
            return x * self.weight
        return x * self.weight + self.bias

    def extra_repr(self) -> str:
        return f"size={self.size}, bias={self.bias is not None}"


class Add(nn.Module):
    """Learned bias over ``size`` channels."""

    def __init__(self, size: int):
        super().__init__()
        self.size = size
        self.bias = nn.Parameter(torch.zeros(size))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        if x.dim() > 2:
            return x + _channel_view(self.bias, x.dim())
        return x + self.bias

    def extra_repr(self) -> str:
        return f"size={self.size}"


class Replicate(nn.Module):
    """Tile the input ``tiles`` times along ``axis``."""

    def __init__(self, tiles: int, axis: int = 1):
        super().__init__()
        self.tiles = tiles
        self.axis = axis

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        repeats = [1] * x.dim()
        repeats[self.axis] = self.tiles
        return x.repeat(*repeats)

    def extra_repr(self) -> str:
        return f"tiles={self.tiles}, axis={self.axis}"


class NormalizeScale(nn.Module):
    """Lp-normalize across channels, then apply a learned per-channel scale."""

    def __init__(
        self,
        p: float,
        eps: float,
        scale: float,
        size: tuple[int, ...] | list[int],
        across_spatial: bool = False,
        channel_shared: bool = False,
    ):
        super().__init__()
        self.p = p
        self.eps = eps
        self.size = tuple(int(dim) for dim in size)
        self.across_spatial = across_spatial
        self.channel_shared = channel_shared
        self.weight = nn.Parameter(torch.full(self.size, float(scale)))

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return F.normalize(x, p=self.p, dim=1, eps=self.eps) * self.weight

    def extra_repr(self) -> str:
        return f"p={self.p}, eps={self.eps}, size={self.size}"


class Transpose(nn.Module):
    """Apply a sequence of pairwise dimension swaps."""

    def __init__(self, permutations: tuple[tuple[int, int], ...] | list[tuple[int, int]]):
        super().__init__()
        self.permutations = tuple((int(a), int(b)) for a, b in permutations)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        for dim0, dim1 in self.permutations:
            x = x.transpose(dim0, dim1)
        return x.contiguous()

    def order(self, ndim: int = 4) -> tuple[int, ...]:
        """Resulting axis order, as a permutation of ``range(ndim)``."""
        axes = list(range(ndim))
        for dim0, dim1 in self.permutations:
            axes[dim0], axes[dim1] = axes[dim1], axes[dim0]
        return tuple(axes)

    def extra_repr(self) -> str:
        return f"permutations={self.permutations}"


class Abs(nn.Module):
    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return x.abs()


class Log(nn.Module):
    """``log_base(shift + scale * x)``; base -1 means the natural log."""

    def __init__(self, base: float = -1.0, scale: float = 1.0, shift: float = 0.0):
        super().__init__()
        self.base = base
        self.scale = scale
        self.shift = shift

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        y = torch.log(self.shift + self.scale * x)
        if self.base != -1.0:
            y = y / math.log(self.base)
        return y


class Exp(nn.Module):
    """``base ** (shift + scale * x)``; base -1 means e."""

    def __init__(self, base: float = -1.0, scale: float = 1.0, shift: float = 0.0):
        super().__init__()
        self.base = base
        self.scale = scale
        self.shift = shift

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        y = self.shift + self.scale * x
        if self.base != -1.0:
            y = y * math.log(self.base)
        return torch.exp(y)


class Power(nn.Module):
    """``(shift + scale * x) ** power``."""

    def __init__(self, power: float = 1.0, scale: float = 1.0, shift: float = 0.0):
        super().__init__()
        self.power = power
        self.scale = scale
        self.shift = shift

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.pow(self.shift + self.scale * x, self.power)


class BinaryThreshold(nn.Module):
    """Caffe threshold: 1 where ``x > threshold``, else 0."""

    def __init__(self, threshold: float = 0.0):
        super().__init__()
        self.threshold = threshold

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return (x > self.threshold).to(x.dtype)


class Concat(nn.Module):
    def __init__(self, dim: int = 1):
        super().__init__()
        self.dim = dim

    def forward(self, *inputs: torch.Tensor) -> torch.Tensor:
        return torch.cat(inputs, dim=self.dim)


class Slice(nn.Module):
    """Split the input along ``dim`` at ``slice_points``.

    With no slice points the input is split evenly into ``num_outputs`` parts.
    """

    def __init__(self, dim: int, slice_points: tuple[int, ...] | list[int], num_outputs: int):
        super().__init__()
        self.dim = dim
        self.slice_points = tuple(int(point) for point in slice_points)
        self.num_outputs = num_outputs

    def forward(self, x: torch.Tensor) -> tuple[torch.Tensor, ...]:
        if not self.slice_points:
            return torch.chunk(x, self.num_outputs, dim=self.dim)
        bounds = (0, *self.slice_points, x.shape[self.dim])
        return tuple(
            x.narrow(self.dim, start, end - start)
            for start, end in zip(bounds[:-1], bounds[1:], strict=True)
        )


class EltwiseAdd(nn.Module):
    def forward(self, *inputs: torch.Tensor) -> torch.Tensor:
        return functools.reduce(torch.add, inputs)


class EltwiseSub(nn.Module):
    def forward(self, first: torch.Tensor, second: torch.Tensor) -> torch.Tensor:
        return first - second


class EltwiseMul(nn.Module):
    def forward(self, *inputs: torch.Tensor) -> torch.Tensor:
        return functools.reduce(torch.mul, inputs)


class EltwiseMax(nn.Module):
    def forward(self, *inputs: torch.Tensor) -> torch.Tensor:
        return functools.reduce(torch.maximum, inputs)


@dataclass(frozen=True)
class DetectionOutputParam:
    """SSD detection output configuration.

    :param n_classes: Number of classes, background included
    :param share_location: Whether box locations are shared across classes
    :param bg_label: Background label id
    :param nms_thresh: NMS overlap threshold
    :param nms_topk: Candidates kept before NMS
    :param keep_top_k: Detections kept per image after NMS (-1 keeps all)
    :param conf_thresh: Minimum confidence of a detection
    :param variance_encoded_in_target: Whether box variances are already
        encoded in the location predictions
    """

    n_classes: int = 21
    share_location: bool = True
    bg_label: int = 0
    nms_thresh: float = 0.45
    nms_topk: int = 400
    keep_top_k: int = 200
    conf_thresh: float = 0.01
    variance_encoded_in_target: bool = False


class DetectionOutput(nn.Module):
    """SSD detection output stage (configuration only)."""

    def __init__(self, param: DetectionOutputParam):
        super().__init__()
        self.param = param

    def forward(self, *inputs: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError("DetectionOutput is evaluated by the detection runtime")

    def extra_repr(self) -> str:
        return repr(self.param)


class PriorBox(nn.Module):
    """SSD prior (anchor) box generator (configuration only)."""

    def __init__(
        self,
        min_sizes: tuple[float, ...] | list[float],
        max_sizes: tuple[float, ...] | list[float] = (),
        aspect_ratios: tuple[float, ...] | list[float] = (),
        is_flip: bool = True,
        is_clip: bool = False,
        variances: tuple[float, ...] | list[float] = (),
        offset: float = 0.5,
        img_h: int = 0,
        img_w: int = 0,
        img_size: int = 0,
        step_h: float = 0.0,
        step_w: float = 0.0,
        step: float = 0.0,
    ):
        super().__init__()
        self.min_sizes = tuple(min_sizes)
        self.max_sizes = tuple(max_sizes)
        self.aspect_ratios = tuple(aspect_ratios)
        self.is_flip = is_flip
        self.is_clip = is_clip
        self.variances = tuple(variances)
        self.offset = offset
        self.img_h = img_h
        self.img_w = img_w
        self.img_size = img_size
        self.step_h = step_h
        self.step_w = step_w
        self.step = step

    def forward(self, *inputs: torch.Tensor) -> torch.Tensor:
        raise NotImplementedError("PriorBox is evaluated by the detection runtime")

    def extra_repr(self) -> str:
        return (
            f"min_sizes={self.min_sizes}, max_sizes={self.max_sizes}, "
            f"aspect_ratios={self.aspect_ratios}"
        )
