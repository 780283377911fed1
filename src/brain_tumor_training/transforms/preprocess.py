"""Per-sample preprocessing: bilinear resize, float cast, [0, 1] scaling."""

from __future__ import annotations

import torch
from PIL import Image
from torchvision.transforms import InterpolationMode, v2

from brain_tumor_training.config import DesiredShape
from brain_tumor_training.transforms.conversion import ToChannelsLast, ToFloat32Tensor


class ImagePreprocessor:
    """Resize a decoded image to the desired height and width and scale it.

    Stateless per call: the composed transforms are deterministic and hold no
    reference to their inputs, so one instance can be shared by any number
    of streams. The channel count is not touched here; a decoded image whose
    channel count disagrees with ``desired_shape`` passes through and is left
    for the shape guard to reject.

    Args:
        desired_shape: Target geometry; only height and width are applied.
        channels_last: Emit ``(H, W, C)`` instead of torchvision's ``(C, H, W)``.
    """

    def __init__(self, desired_shape: DesiredShape, channels_last: bool = False) -> None:
        self.desired_shape = desired_shape
        self.channels_last = channels_last
        steps: list[torch.nn.Module] = [
            v2.ToImage(),
            v2.Resize(
                (desired_shape.height, desired_shape.width),
                interpolation=InterpolationMode.BILINEAR,
                antialias=True,
            ),
            ToFloat32Tensor(scale=True),
        ]
        if channels_last:
            steps.append(ToChannelsLast())
        self._transform = v2.Compose(steps)

    @property
    def output_shape(self) -> tuple[int, int, int]:
        """Shape a correctly-decoded image has after preprocessing."""
        return self.desired_shape.as_tensor_shape(self.channels_last)

    def __call__(self, img: Image.Image | torch.Tensor) -> torch.Tensor:
        out = self._transform(img)
        return out.as_subclass(torch.Tensor)

    def __repr__(self) -> str:
        return (
            f"ImagePreprocessor(desired_shape={self.output_shape}, "
            f"channels_last={self.channels_last})"
        )


def preprocess(
    img: Image.Image | torch.Tensor,
    desired_shape: DesiredShape,
    channels_last: bool = False,
) -> torch.Tensor:
    """Functional form of :class:`ImagePreprocessor` for one-off calls."""
    return ImagePreprocessor(desired_shape, channels_last=channels_last)(img)
