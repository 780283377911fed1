"""Shape validation for preprocessed images."""

import torch


def is_valid_shape(img: torch.Tensor, expected_shape: tuple[int, ...]) -> bool:
    """True when every dimension of img matches expected_shape.

    Mismatching images are meant to be dropped, never padded or cropped.
    """
    return tuple(img.shape) == tuple(expected_shape)
