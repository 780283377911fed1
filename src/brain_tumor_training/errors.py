"""Exception hierarchy for the dataset pipeline.

Construction-time errors (missing roots, unreadable label directories) abort
pipeline creation. Per-sample errors (unreadable or corrupt image files)
abort the sequence being iterated. A shape mismatch is never an error.
"""


class PipelineError(Exception):
    """Base class for all dataset pipeline errors."""


class DatasetNotFoundError(PipelineError, FileNotFoundError):
    """A training or testing root directory does not exist."""


class DatasetIOError(PipelineError, OSError):
    """A label directory or image file exists but cannot be read."""


class DecodeError(PipelineError):
    """Image bytes were read but could not be decoded."""


class UnknownLabelError(PipelineError, KeyError):
    """A label is absent from the training-derived label map."""

    def __init__(self, label: str) -> None:
        super().__init__(label)
        self.label = label

    def __str__(self) -> str:
        return f"Label '{self.label}' is not in the training label map"
