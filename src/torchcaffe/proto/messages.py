"""Message classes for the Caffe schema declared in :mod:`._schema`."""

__docformat__ = "restructuredtext"

from torchcaffe.proto._schema import message_class

BatchNormParameter = message_class("BatchNormParameter")
BiasParameter = message_class("BiasParameter")
BlobProto = message_class("BlobProto")
BlobShape = message_class("BlobShape")
ConcatParameter = message_class("ConcatParameter")
ConvolutionParameter = message_class("ConvolutionParameter")
DetectionOutputParameter = message_class("DetectionOutputParameter")
DropoutParameter = message_class("DropoutParameter")
ELUParameter = message_class("ELUParameter")
EltwiseParameter = message_class("EltwiseParameter")
ExpParameter = message_class("ExpParameter")
FillerParameter = message_class("FillerParameter")
FlattenParameter = message_class("FlattenParameter")
InnerProductParameter = message_class("InnerProductParameter")
InputParameter = message_class("InputParameter")
LRNParameter = message_class("LRNParameter")
LayerParameter = message_class("LayerParameter")
LogParameter = message_class("LogParameter")
NetParameter = message_class("NetParameter")
NonMaximumSuppressionParameter = message_class("NonMaximumSuppressionParameter")
NormalizeParameter = message_class("NormalizeParameter")
PReLUParameter = message_class("PReLUParameter")
PermuteParameter = message_class("PermuteParameter")
PoolingParameter = message_class("PoolingParameter")
PowerParameter = message_class("PowerParameter")
PriorBoxParameter = message_class("PriorBoxParameter")
ReLUParameter = message_class("ReLUParameter")
ReshapeParameter = message_class("ReshapeParameter")
ResizeParameter = message_class("ResizeParameter")
ScaleParameter = message_class("ScaleParameter")
SliceParameter = message_class("SliceParameter")
SoftmaxParameter = message_class("SoftmaxParameter")
ThresholdParameter = message_class("ThresholdParameter")
TileParameter = message_class("TileParameter")
TransformationParameter = message_class("TransformationParameter")
