"""Streaming labeled-image dataset pipeline for brain tumor MRI classification."""

__version__ = "0.0.1"
