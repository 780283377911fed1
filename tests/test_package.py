"""Smoke test: verify the brain_tumor_training package is importable."""

import brain_tumor_training


def test_package_version() -> None:
    """Package must declare a __version__ string."""
    assert isinstance(brain_tumor_training.__version__, str)
    assert brain_tumor_training.__version__ == "0.0.1"
