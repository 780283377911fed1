"""Utility functions for the data pipeline."""

from pathlib import Path

from brain_tumor_training.errors import DatasetIOError


def get_subdirectories(root: Path) -> list[Path]:
    """Immediate subdirectories of root, sorted by name.

    Non-directory entries are skipped.

    Raises:
        DatasetIOError: If root cannot be listed.
    """
    try:
        entries = list(root.iterdir())
    except OSError as e:
        raise DatasetIOError(f"Cannot list directory {root}: {e}") from e
    return sorted(p for p in entries if p.is_dir())


def get_files(root: Path, extensions: tuple[str, ...] | None = None) -> list[Path]:
    """Regular files directly under root, optionally filtered by extension.

    Args:
        root: Directory to list (not recursive).
        extensions: Tuple of lowercase extensions including dot
            (e.g., (".jpg", ".png")). ``None`` keeps every regular file.

    Returns:
        Sorted list of matching file paths.

    Raises:
        DatasetIOError: If root cannot be listed.
    """
    try:
        entries = list(root.iterdir())
    except OSError as e:
        raise DatasetIOError(f"Cannot list directory {root}: {e}") from e
    files = []
    for p in entries:
        if not p.is_file():
            continue
        if extensions is not None and p.suffix.lower() not in extensions:
            continue
        files.append(p)
    return sorted(files)
