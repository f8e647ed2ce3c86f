"""Interpol — string interpolation templates compiled to Python functions.

Template text with embedded ``#{expression}`` markers compiles into a
plain Python function. Rendering runs it against a *scope* object (``self``
inside expressions; free names resolve against its attributes) and a
mapping of *locals*.

Quickstart:
    >>> from interpol import Template
    >>> Template(lambda: "Hey #{name}!").render(None, {"name": "Joe"})
    'Hey Joe!'

    >>> class Person:
    ...     name = "Joe"
    >>> Template("Hey #{self.name}!").render(Person())
    'Hey Joe!'

    >>> Template("Hey #{yield}!").render(None, None, lambda: "Joe")
    'Hey Joe!'

Architecture:
Template Source → Lexer → generated Python + line map → ast → compile() → exec()

1. **Lexer**: Splits source into literal text and expression tokens
2. **Compiler**: Generates one function per template and locals name set,
   moving every AST node onto the template's own lines
3. **Cache**: Installs artifacts per scope class, keyed by template
   identity and a signature of the local names
4. **Template**: ``render()`` runs the artifact and reports failures at
   the template's file and line

Thread-Safety:
- Compilation is deterministic (same input → same generated code)
- Rendering keeps its state in locals and a ContextVar
- Artifact installs are insert-if-absent under a per-class lock

Free-Threading (PEP 703):
Declares GIL-independence via `_Py_mod_gil = 0` attribute.

"""

from interpol._types import DEFAULT_SYNTAX, Syntax, Token, TokenType
from interpol.environment import (
    Environment,
    ErrorCode,
    MissingContinuationError,
    NameResolutionError,
    RenderDepthError,
    RenderError,
    SourceSnippet,
    TemplateError,
    TemplateSyntaxError,
    build_source_snippet,
    default_environment,
    lookup,
    register,
    registered,
)
from interpol.cache import DEFAULT_CACHE, ArtifactCache, evict_compiled
from interpol.compiler import CompiledArtifact, Compiler
from interpol.render_context import RenderContext, get_render_context, render_context
from interpol.signature import signature
from interpol.template import Scope, Template

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_CACHE",
    "DEFAULT_SYNTAX",
    "ArtifactCache",
    "CompiledArtifact",
    "Compiler",
    "Environment",
    "ErrorCode",
    "MissingContinuationError",
    "NameResolutionError",
    "RenderContext",
    "RenderDepthError",
    "RenderError",
    "Scope",
    "SourceSnippet",
    "Syntax",
    "Template",
    "TemplateError",
    "TemplateSyntaxError",
    "Token",
    "TokenType",
    "__version__",
    "build_source_snippet",
    "default_environment",
    "evict_compiled",
    "get_render_context",
    "lookup",
    "register",
    "registered",
    "render_context",
    "signature",
]


def __getattr__(name: str) -> object:
    """Module-level getattr for the free-threading declaration."""
    if name == "_Py_mod_gil":
        # 0 = Py_MOD_GIL_NOT_USED
        return 0
    raise AttributeError(f"module 'interpol' has no attribute {name!r}")
