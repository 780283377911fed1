"""Hydra ConfigStore registration utilities."""

from __future__ import annotations

from typing import Any

from hydra.core.config_store import ConfigStore
from loguru import logger


def register(
    cls: type[Any] | None = None,
    *,
    group: str | None = None,
    name: str | None = None,
    **kwargs: Any,
) -> type[Any] | Any:
    """Decorator to register a class with Hydra's ConfigStore.

    Stores a node whose ``_target_`` points at the decorated class, so a
    trainer config can select it with e.g. ``data=brain_tumor`` and override
    ``data.training_root`` / ``data.batch_size`` from the command line.

    If *group* is not provided, it is taken from the second-to-last element
    of the class's module path (``brain_tumor_training.data.datamodule``
    gives ``data``).

    Arguments:
        cls: The class to register.
        group: The ConfigStore group. If ``None``, inference is attempted.
        name: The name for the config. Defaults to class name.
        **kwargs: Default values for the configuration node.
    """

    def _process_class(target_cls: type[Any]) -> type[Any]:
        target_path = f"{target_cls.__module__}.{target_cls.__name__}"
        config_name = name or target_cls.__name__
        config_group = group
        if config_group is None:
            config_group = target_cls.__module__.split(".")[-2]

        logger.debug(
            f"Registering {target_cls.__name__} as '{config_name}' "
            f"in group '{config_group}'"
        )
        node = {"_target_": target_path}
        node.update(kwargs)
        ConfigStore.instance().store(group=config_group, name=config_name, node=node)
        return target_cls

    if cls is None:
        return _process_class
    return _process_class(cls)
