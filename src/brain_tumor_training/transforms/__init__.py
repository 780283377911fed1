"""Torchvision v2 preprocessing for streamed images.

The preprocessor and shape guard are applied inline, once per record, by
``LabeledImageStream``; the custom ``v2.Transform`` classes can also be
expressed in Hydra YAML configs.
"""

from brain_tumor_training.transforms.conversion import ToChannelsLast, ToFloat32Tensor
from brain_tumor_training.transforms.guard import is_valid_shape
from brain_tumor_training.transforms.preprocess import ImagePreprocessor, preprocess

__all__ = [
    "ImagePreprocessor",
    "ToChannelsLast",
    "ToFloat32Tensor",
    "is_valid_shape",
    "preprocess",
]
