"""Directory indexing for label-per-subdirectory image corpora.

Both roots are laid out the same way::

    Training/
     |_ glioma/
     |   |_ Tr-gl_0010.jpg
     |   |_ ...
     |_ notumor/
         |_ Tr-no_0010.jpg
         |_ ...

Each immediate subdirectory name is a label and every regular file inside it
is one image of that label.
"""

from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from brain_tumor_training.data.utils import get_files, get_subdirectories
from brain_tumor_training.errors import DatasetNotFoundError
from brain_tumor_training.types import ImageRecord


@dataclass
class CorpusIndex:
    """Result of indexing a training root and a testing root.

    training_records / testing_records are plain lists so they can be shuffled
    in place before being frozen. all_labels holds the training root's label
    directory names only, in sorted order; labels that appear only under the
    testing root are deliberately absent.
    """

    training_records: list[ImageRecord]
    testing_records: list[ImageRecord]
    all_labels: list[str]


def index_split(
    root: Path, extensions: tuple[str, ...] | None = None
) -> tuple[list[ImageRecord], list[str]]:
    """Index one split root into records and the label names found under it.

    Raises:
        DatasetNotFoundError: If root does not exist or is not a directory.
        DatasetIOError: If root or a label directory cannot be listed.
    """
    if not root.is_dir():
        raise DatasetNotFoundError(f"Dataset root not found: {root}")

    records: list[ImageRecord] = []
    labels: list[str] = []
    for label_dir in get_subdirectories(root):
        label = label_dir.name
        labels.append(label)
        for path in get_files(label_dir, extensions):
            records.append(ImageRecord(path=path, label=label))
    return records, labels


def index_corpus(
    training_root: Path,
    testing_root: Path,
    extensions: tuple[str, ...] | None = None,
) -> CorpusIndex:
    """Index both split roots; the label vocabulary comes from training only."""
    training_records, all_labels = index_split(training_root, extensions)
    testing_records, _ = index_split(testing_root, extensions)

    if not all_labels:
        logger.warning(f"No label directories found under {training_root}")
    logger.info(
        f"Indexed {len(training_records)} training and {len(testing_records)} "
        f"testing images across {len(all_labels)} labels"
    )
    return CorpusIndex(
        training_records=training_records,
        testing_records=testing_records,
        all_labels=all_labels,
    )
