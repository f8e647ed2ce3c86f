"""Interpol Template — the execution engine.

A Template holds immutable source text plus its origin (file name and
first line). ``render()`` picks the compiled artifact matching the *names*
of the given locals, compiling and installing it on the scope's class on
first use, runs it, and relocates any failure to the template's own file
and line.

Architecture:
    ```
    Template
    ├── _env: Environment             # Configuration + artifact cache
    ├── _provider: () -> str          # Called once, on first source access
    ├── _tag: "__tpl<serial>_"        # Identity prefix of artifact names
    └── _filename, _lineno            # Origin, for line mapping and errors
    ```

Rendering:
    ```
    render(scope, locals, continuation)
      → cache.get_or_compile(type(scope), template, locals.keys())
      → artifact.invoke(scope, locals, continuation)
      → str  |  RenderError (template file:line, original kept)
    ```

Thread-Safety:
    - Source is read once under a lock; afterwards the template is immutable
    - ``render()`` keeps its state in locals and a ContextVar
    - Many threads may render one template concurrently, against
      independently constructed scopes

"""

from __future__ import annotations

import itertools
import keyword
import threading
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from interpol.environment.exceptions import (
    NameResolutionError,
    RenderDepthError,
    RenderError,
    SourceSnippet,
    TemplateError,
    build_source_snippet,
)
from interpol.render_context import RenderContext, render_context
from interpol.signature import artifact_name, signature
from interpol.template.helpers import missing_continuation

if TYPE_CHECKING:
    from interpol.compiler import CompiledArtifact, Compiler
    from interpol.environment import Environment

_serial = itertools.count(1)


def check_local_names(names: Iterable[Any]) -> None:
    """Reject locals that cannot be bound as plain names in generated code.

    Raises:
        TypeError: A name is not an identifier, is a keyword, is ``self``,
            or starts with a double underscore (reserved for generated code)
    """
    for name in names:
        if not isinstance(name, str) or not name.isidentifier():
            raise TypeError(f"Local name {name!r} is not a valid identifier")
        if keyword.iskeyword(name):
            raise TypeError(f"Local name {name!r} is a Python keyword")
        if name == "self":
            raise TypeError("Local name 'self' is reserved for the scope")
        if name.startswith("__"):
            raise TypeError(f"Local name {name!r} is reserved (double underscore prefix)")


class Template:
    """String interpolation template compiled per locals signature.

    Args:
        provider: Callable returning the template source (called once,
            lazily), or the source string itself
        filename: Origin file name reported in errors and tracebacks
        lineno: Line of ``filename`` where the template text begins
        options: Per-template options; ``syntax`` and ``stringify``
            override the environment's, other keys are kept as given
        env: Environment supplying configuration and the artifact cache
        name: Display name, defaults to ``filename``

    Example:
        >>> t = Template(lambda: "Hey #{name}!")
        >>> t.render(None, {"name": "Joe"})
        'Hey Joe!'
        >>> t.render(name="Moe")
        'Hey Moe!'

    """

    __slots__ = (
        "_compiler",
        "_env",
        "_filename",
        "_lineno",
        "_name",
        "_options",
        "_provider",
        "_source",
        "_source_lock",
        "_tag",
    )

    def __init__(
        self,
        provider: Callable[[], str] | str,
        filename: str | None = None,
        lineno: int = 1,
        options: Mapping[str, Any] | None = None,
        *,
        env: Environment | None = None,
        name: str | None = None,
    ):
        if env is None:
            from interpol.environment.core import default_environment

            env = default_environment()

        if isinstance(provider, str):
            self._source: str | None = provider
            self._provider: Callable[[], str] | None = None
        else:
            self._source = None
            self._provider = provider
        self._source_lock = threading.Lock()

        self._env = env
        self._filename = filename or "<template>"
        self._lineno = lineno
        self._name = name
        self._options: Mapping[str, Any] = MappingProxyType(dict(options or {}))
        self._compiler: Compiler = env.compiler_for(
            syntax=self._options.get("syntax"),
            stringify=self._options.get("stringify"),
        )
        self._tag = f"__tpl{next(_serial)}_"

    # -- attributes ------------------------------------------------------

    @property
    def source(self) -> str:
        """Template source, read from the provider on first access."""
        if self._source is None:
            with self._source_lock:
                if self._source is None:
                    assert self._provider is not None
                    source = self._provider()
                    if not isinstance(source, str):
                        raise TypeError(
                            f"Template source provider returned {type(source).__name__}, expected str"
                        )
                    self._source = source
                    self._provider = None
        return self._source

    @property
    def filename(self) -> str:
        return self._filename

    @property
    def lineno(self) -> int:
        return self._lineno

    @property
    def name(self) -> str:
        return self._name or self._filename

    @property
    def options(self) -> Mapping[str, Any]:
        return self._options

    @property
    def environment(self) -> Environment:
        return self._env

    @property
    def identity_tag(self) -> str:
        """Prefix shared by every artifact name of this template."""
        return self._tag

    # -- compilation -----------------------------------------------------

    def compile(self, local_names: Iterable[str], name: str) -> CompiledArtifact:
        """Compile this template for a set of local names.

        Called by the artifact cache on a miss; renders go through the cache.
        """
        return self._compiler.compile(
            self.source,
            name=name,
            filename=self._filename,
            lineno=self._lineno,
            local_names=local_names,
        )

    def compiled_name(self, local_names: Iterable[str] = ()) -> str:
        """Artifact name this template installs for a set of local names."""
        return artifact_name(self._tag, signature(local_names))

    def evict(self, capability: type, local_names: Iterable[str] = ()) -> bool:
        """Evict this template's artifact for a set of local names from a capability."""
        return self._env.cache.evict(capability, self.compiled_name(local_names))

    # -- rendering -------------------------------------------------------

    def render(
        self,
        scope: Any = None,
        variables: Mapping[str, Any] | None = None,
        continuation: Callable[..., Any] | None = None,
        /,
        **kwargs: Any,
    ) -> str:
        """Render the template.

        Args:
            scope: Object expressions resolve against (``self`` and free
                names); defaults to a new instance of the environment's
                scope class
            variables: Locals for this render; keyword arguments are merged in
            continuation: Callable a ``yield`` in the template invokes; its
                return value is interpolated

        Returns:
            Rendered text

        Raises:
            TemplateSyntaxError: The template does not compile
            NameResolutionError: An expression used an undefined name
            MissingContinuationError: The template yields without a continuation
            RenderError: Any other failure inside the template
            TypeError: A local name cannot be bound

        Example:
            >>> t = Template(lambda: "Hey #{yield}!")
            >>> t.render(None, None, lambda: "Joe")
            'Hey Joe!'
        """
        env = self._env
        if scope is None:
            scope = env.scope_class()

        values: dict[str, Any] = dict(variables) if variables else {}
        values.update(kwargs)
        check_local_names(values)

        artifact = env.cache.get_or_compile(type(scope), self, values)

        with render_context(
            template_name=self.name,
            filename=self._filename,
            artifact_name=artifact.name,
            max_depth=env.max_render_depth,
        ) as render_ctx:
            if render_ctx.exceeded:
                raise RenderDepthError(
                    f"Maximum render depth exceeded ({render_ctx.max_depth})",
                    filename=self._filename,
                    lineno=self._lineno,
                    template_name=self.name,
                    artifact_name=artifact.name,
                    template_stack=render_ctx.template_stack,
                )
            try:
                return artifact.invoke(
                    scope,
                    values,
                    continuation if continuation is not None else missing_continuation,
                )
            except RenderError as e:
                if e.located:
                    raise
                lineno = self._failure_line(e, artifact)
                e.locate(
                    filename=self._filename,
                    lineno=lineno,
                    template_name=self.name,
                    artifact_name=artifact.name,
                    source_snippet=self._snippet(lineno),
                    template_stack=render_ctx.template_stack,
                )
                raise
            except TemplateError:
                raise
            except Exception as e:
                raise self._enhance_error(e, artifact, render_ctx) from e

    def _failure_line(self, error: BaseException, artifact: CompiledArtifact) -> int:
        """Template line of the innermost artifact frame in error's traceback."""
        lines = list(artifact.frame_lines(error.__traceback__))
        if lines:
            return lines[-1]
        return artifact.first_line

    def _snippet(self, lineno: int) -> SourceSnippet | None:
        return build_source_snippet(self.source, lineno, first_line=self._lineno)

    def _enhance_error(
        self,
        error: Exception,
        artifact: CompiledArtifact,
        render_ctx: RenderContext,
    ) -> RenderError:
        """Wrap an exception raised inside the artifact, located at the template line.

        The original exception keeps its type and gains a note naming the
        template location, so a plain traceback shows it as well.
        """
        lineno = self._failure_line(error, artifact)
        location = f"{self._filename}:{lineno}"
        error.add_note(f"  in template {location}")

        error_str = str(error).strip()
        if not error_str:
            error_str = f"{type(error).__name__} (no details available)"

        context: dict[str, Any] = {
            "filename": self._filename,
            "lineno": lineno,
            "template_name": self.name,
            "original": error,
            "artifact_name": artifact.name,
            "source_snippet": self._snippet(lineno),
            "template_stack": render_ctx.template_stack,
        }

        if isinstance(error, NameError):
            name = getattr(error, "name", None)
            message = f"Undefined name '{name}'" if name else error_str
            return NameResolutionError(name, message, **context)

        return RenderError(error_str, **context)

    def __repr__(self) -> str:
        return f"<Template {self.name!r} line {self._lineno}>"
