"""Template class registry keyed by file extension.

``Environment.from_file`` picks the template class for a path here.
``.str`` maps to ``Template``.

    >>> register("txt", MyTemplate)
    >>> lookup("notes.txt") is MyTemplate
    True

All mutations use copy-on-write, so lookups never lock.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from typing import Any

TemplateFactory = Callable[..., Any]


class TemplateRegistry:
    """File extensions mapped to template factories.

    Extensions are stored lowercased without the leading dot; ``for_filename``
    matches the longest registered extension.
    """

    __slots__ = ("_factories", "_lock")

    def __init__(self) -> None:
        self._factories: dict[str, TemplateFactory] = {}
        self._lock = threading.Lock()

    @staticmethod
    def _key(extension: str) -> str:
        key = extension.lower().lstrip(".")
        if not key:
            raise ValueError("Extension must not be empty")
        return key

    def __setitem__(self, extension: str, factory: TemplateFactory) -> None:
        self.update({extension: factory})

    def update(self, mapping: dict[str, TemplateFactory]) -> None:
        """Batch registration."""
        for factory in mapping.values():
            if not callable(factory):
                raise TypeError(f"Template factory must be callable, got {factory!r}")
        with self._lock:
            new = self._factories.copy()
            new.update({self._key(ext): factory for ext, factory in mapping.items()})
            self._factories = new

    def for_filename(self, filename: str) -> TemplateFactory | None:
        """Factory for the longest registered extension filename ends with."""
        factories = self._factories
        parts = filename.rsplit("/", 1)[-1].lower().split(".")
        for i in range(1, len(parts)):
            factory = factories.get(".".join(parts[i:]))
            if factory is not None:
                return factory
        return None

    def copy(self) -> dict[str, TemplateFactory]:
        return self._factories.copy()


_registry = TemplateRegistry()


def register(extension: str, factory: TemplateFactory) -> None:
    """Register a template factory for a file extension (``"str"`` or ``".str"``)."""
    _registry[extension] = factory


def lookup(filename: str) -> TemplateFactory | None:
    """Template factory registered for filename's extension, or None."""
    return _registry.for_filename(filename)


def registered() -> dict[str, TemplateFactory]:
    """Snapshot of the registry."""
    return _registry.copy()


def _register_builtins() -> None:
    from interpol.template import Template

    register("str", Template)


_register_builtins()
