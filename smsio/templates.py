import tomllib
from abc import ABC
from abc import abstractmethod
from collections.abc import Mapping
from pathlib import Path
from string import Formatter
from typing import Any
from typing import Self


class TemplateError(LookupError):
    """A message body could not be produced from the catalog."""


class MissingTemplate(TemplateError, KeyError):
    """No template is defined for the requested key."""

    def __init__(self, key: str):
        super().__init__(key)
        self.key = key

    def __str__(self):
        return f"Missing template: {self.key!r}"


class MissingInterpolation(TemplateError, KeyError):
    """The template references a value that wasn't supplied."""

    def __init__(self, key: str, name: str):
        super().__init__(key, name)
        self.key = key
        self.name = name

    def __str__(self):
        return f"Missing interpolation {self.name!r} for template {self.key!r}"


class Catalog(ABC):
    """Look up message bodies by dotted key."""

    @abstractmethod
    def lookup(self, key: str, interpolations: Mapping[str, Any] | None = None) -> str:
        """Render the template stored under the key."""
        raise NotImplementedError("Subclasses must implement this method.")


class TemplateCatalog(Catalog):
    """A catalog of nested tables, rendered with ``str.format`` fields.

    ``{"notifier": {"welcome": "Hi {name}"}}`` defines the key
    ``notifier.welcome``.
    """

    def __init__(self, templates: Mapping[str, Any] | None = None):
        self.__templates = dict(templates or {})

    @classmethod
    def from_path(cls, path: str | Path, /) -> Self:
        with Path(path).open("rb") as f:
            return cls(tomllib.load(f))

    def __contains__(self, key: str) -> bool:
        return isinstance(self.__resolve(key), str)

    def __resolve(self, key: str) -> Any:
        node: Any = self.__templates
        for part in key.split("."):
            if not isinstance(node, Mapping) or part not in node:
                return None
            node = node[part]
        return node

    def lookup(self, key: str, interpolations: Mapping[str, Any] | None = None) -> str:
        template = self.__resolve(key)
        if not isinstance(template, str):
            raise MissingTemplate(key)

        values = dict(interpolations or {})
        for _, name, _, _ in Formatter().parse(template):
            if name is not None and name.split(".")[0].split("[")[0] not in values:
                raise MissingInterpolation(key, name)
        return template.format_map(values)
