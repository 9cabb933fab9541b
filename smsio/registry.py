from __future__ import annotations

import importlib
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .composer import Composer

COMPOSER_REGISTRY: dict[str, type[Composer]] = {}


class UnknownComposer(LookupError):
    """No composer class is known by the given path."""


def register(composer: type[Composer], /):
    # Redefinitions replace the earlier class, as when a module is reloaded
    COMPOSER_REGISTRY[composer.composer_path] = composer


def resolve(path: str, /) -> type[Composer]:
    """Find a composer class by its ``module.QualName`` path.

    Composers already imported are found in the registry. Otherwise the
    longest importable module prefix is imported and the rest of the path
    is looked up as attributes.
    """
    if composer := COMPOSER_REGISTRY.get(path):
        return composer

    parts = path.split(".")
    for split in range(len(parts) - 1, 0, -1):
        module_name = ".".join(parts[:split])
        try:
            target = importlib.import_module(module_name)
        except ModuleNotFoundError as error:
            # Only a missing module on the path means a shorter prefix may work
            if error.name is None or not (
                module_name == error.name or module_name.startswith(f"{error.name}.")
            ):
                raise
            continue
        try:
            for attribute in parts[split:]:
                target = getattr(target, attribute)
        except AttributeError:
            break
        if composer := COMPOSER_REGISTRY.get(path):
            return composer
        raise UnknownComposer(f"{path} is not a composer")

    raise UnknownComposer(f"No composer found at {path!r}")
