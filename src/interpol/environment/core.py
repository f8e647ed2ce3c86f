"""Interpol Environment — configuration shared by a family of templates.

An Environment fixes the delimiter syntax, the value stringifier, the
default scope class, the nested render limit and the artifact cache its
templates install into. It creates templates from strings, providers and
files.

Example:
    >>> env = Environment()
    >>> env.from_string("Hey #{name}!").render(name="Joe")
    'Hey Joe!'

    >>> env = Environment(syntax=Syntax("{{", "}}"))
    >>> env.from_string("Hey {{ name }}!").render(name="Joe")
    'Hey Joe!'

Thread-Safety:
    Environments are frozen. The only mutable state they reach is the
    artifact cache, which synchronizes itself.

"""

from __future__ import annotations

import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from interpol._types import DEFAULT_SYNTAX, Syntax
from interpol.cache import DEFAULT_CACHE, ArtifactCache
from interpol.compiler import Compiler
from interpol.render_context import DEFAULT_MAX_DEPTH
from interpol.template.helpers import Scope

if TYPE_CHECKING:
    from interpol.template import Template


@dataclass(frozen=True)
class Environment:
    """Template configuration.

    Attributes:
        syntax: Delimiters of embedded expressions
        scope_class: Class instantiated as the scope when ``render()`` gets none
        stringify: Converts expression values to text
        cache: Artifact cache, the process-wide default when not given
        max_render_depth: Deepest allowed nesting of renders inside renders
    """

    syntax: Syntax = DEFAULT_SYNTAX
    scope_class: type = Scope
    stringify: Callable[[Any], str] = str
    cache: ArtifactCache = None  # type: ignore[assignment]
    max_render_depth: int = DEFAULT_MAX_DEPTH
    compiler: Compiler = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.cache is None:
            object.__setattr__(self, "cache", DEFAULT_CACHE)
        if not isinstance(self.syntax, Syntax):
            raise TypeError(f"syntax must be a Syntax, got {type(self.syntax).__name__}")
        if not callable(self.stringify):
            raise TypeError("stringify must be callable")
        if self.max_render_depth < 0:
            raise ValueError(f"max_render_depth must be >= 0, got {self.max_render_depth}")
        object.__setattr__(self, "compiler", Compiler(self.syntax, self.stringify))

    def compiler_for(
        self,
        syntax: Syntax | None = None,
        stringify: Callable[[Any], str] | None = None,
    ) -> Compiler:
        """Compiler for per-template overrides; the shared one when there are none."""
        if syntax is None and stringify is None:
            return self.compiler
        return Compiler(
            syntax if syntax is not None else self.syntax,
            stringify if stringify is not None else self.stringify,
        )

    def from_string(
        self,
        source: str,
        *,
        name: str | None = None,
        filename: str | None = None,
        lineno: int = 1,
    ) -> Template:
        """Template from a source string.

        Args:
            source: Template text
            name: Display name for errors
            filename: Origin file name for tracebacks, ``"<template>"`` if omitted
            lineno: Origin line of the first source line
        """
        from interpol.template import Template

        return Template(source, filename, lineno, env=self, name=name)

    def from_provider(
        self,
        provider: Callable[[], str],
        filename: str | None = None,
        lineno: int = 1,
        options: Mapping[str, Any] | None = None,
    ) -> Template:
        """Template whose source is read from provider on first use."""
        from interpol.template import Template

        return Template(provider, filename, lineno, options, env=self)

    def from_file(
        self,
        path: str | Path,
        lineno: int = 1,
        options: Mapping[str, Any] | None = None,
        *,
        encoding: str = "utf-8",
    ) -> Template:
        """Template for a file, read lazily.

        The template class comes from the extension registry, falling back
        to ``Template`` for unregistered extensions.
        """
        from interpol.environment.registry import lookup
        from interpol.template import Template

        path = Path(path)
        factory = lookup(path.name) or Template
        return factory(
            lambda: path.read_text(encoding),
            str(path),
            lineno,
            options,
            env=self,
        )

    def evict_compiled(self, capability: type, name: str) -> bool:
        """Evict an artifact from this environment's cache."""
        return self.cache.evict(capability, name)


_default_environment: Environment | None = None
_default_lock = threading.Lock()


def default_environment() -> Environment:
    """Shared Environment used by templates constructed without one."""
    global _default_environment
    if _default_environment is None:
        with _default_lock:
            if _default_environment is None:
                _default_environment = Environment()
    return _default_environment
