"""Pydantic frozen configuration models for brain_tumor_training."""

from pydantic import BaseModel, Field, field_validator


class DesiredShape(BaseModel, frozen=True):
    """Geometry every emitted image must have.

    Must match the input shape of the downstream model. Shared by the decode
    step, the preprocessor and the shape guard.
    """

    height: int = Field(ge=1)
    width: int = Field(ge=1)
    channels: int = Field(ge=1, le=4)

    def as_tensor_shape(self, channels_last: bool = False) -> tuple[int, int, int]:
        """Shape of a single preprocessed image tensor in the given layout."""
        if channels_last:
            return (self.height, self.width, self.channels)
        return (self.channels, self.height, self.width)


class PipelineConfig(BaseModel, frozen=True):
    """Configuration for the streaming dataset pipeline.

    All fields are validated at construction time and frozen afterwards.
    Roots, shape, batch size and shuffle window have no defaults and must be
    given explicitly.
    """

    training_root: str = Field(min_length=1)
    testing_root: str = Field(min_length=1)
    desired_shape: DesiredShape
    batch_size: int = Field(ge=1)
    shuffle_window: int = Field(ge=1)
    prefetch: int = Field(default=1, ge=0, le=1)
    seed: int | None = None
    force_channels: bool = True
    channels_last: bool = False
    extensions: tuple[str, ...] | None = None
    num_workers: int = Field(default=0, ge=0)

    @field_validator("extensions")
    @classmethod
    def _normalize_extensions(
        cls, value: tuple[str, ...] | None
    ) -> tuple[str, ...] | None:
        """Lower-case and dot-prefix suffixes so ".JPG" and "jpg" both match."""
        if value is None:
            return None
        return tuple(
            ext.lower() if ext.startswith(".") else f".{ext.lower()}" for ext in value
        )
