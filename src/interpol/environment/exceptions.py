"""Exceptions for the Interpol template system.

Exception Hierarchy:
TemplateError (base)
├── TemplateSyntaxError           # Compile-time: malformed markers, invalid expressions
└── RenderError                   # Render-time failure, located in the template
    ├── NameResolutionError       # Undefined name (also a NameError)
    ├── MissingContinuationError  # Template yields but no continuation was given
    └── RenderDepthError          # Nested renders exceeded the configured depth

Error Messages:
Every exception reports the template's own file name and line number,
never a location inside generated code. Render errors also carry a
source snippet of the template around the failing line and keep the
original exception in ``original`` (and ``__cause__``).

Example:
    ```
    Render Error: boom
      Location: page.str:6
       |
        4 |
        5 |
    >   6 |   <p>#{fail()}</p>
        7 | </body>
       |
      Caused by: RuntimeError
    ```

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

from interpol.environment import terminal

# ---------------------------------------------------------------------------
# Error codes
# ---------------------------------------------------------------------------


class ErrorCode(Enum):
    """Searchable error codes for Interpol errors.

    Format: I-{CATEGORY}-{NUMBER}
    Categories: LEX (lexer), PAR (expression parsing), RUN (render time)
    """

    # Lexer errors (I-LEX-xxx)
    UNTERMINATED_EXPRESSION = "I-LEX-001"
    EMPTY_EXPRESSION = "I-LEX-002"

    # Expression errors (I-PAR-xxx)
    INVALID_EXPRESSION = "I-PAR-001"

    # Runtime errors (I-RUN-xxx)
    UNDEFINED_NAME = "I-RUN-001"
    MISSING_CONTINUATION = "I-RUN-002"
    RUNTIME_ERROR = "I-RUN-003"
    RENDER_DEPTH = "I-RUN-004"

    @property
    def hint(self) -> str:
        """Short pointer towards fixing errors with this code."""
        return _HINTS[self]


_HINTS = {
    ErrorCode.UNTERMINATED_EXPRESSION: (
        "Close the expression with its end delimiter, or escape the start delimiter"
    ),
    ErrorCode.EMPTY_EXPRESSION: (
        "Put an expression between the delimiters, or escape the start delimiter"
    ),
    ErrorCode.INVALID_EXPRESSION: "Embedded code must be exactly one Python expression",
    ErrorCode.UNDEFINED_NAME: "Pass the name as a render() local or define it on the scope",
    ErrorCode.MISSING_CONTINUATION: "Pass a continuation to render() for templates that yield",
    ErrorCode.RUNTIME_ERROR: "The original exception is kept in __cause__",
    ErrorCode.RENDER_DEPTH: (
        "Look for a template that renders itself, or raise Environment.max_render_depth"
    ),
}


# ---------------------------------------------------------------------------
# Source snippets
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class SourceSnippet:
    """Template source context around an error line.

    Attributes:
        lines: Tuple of (line_number, line_content) pairs around the error.
        error_line: The 1-based line number where the error occurred.
        column: Optional column offset for caret pointer.
    """

    lines: tuple[tuple[int, str], ...]
    error_line: int
    column: int | None = None

    def format(self) -> str:
        """Format snippet with the error line highlighted."""
        parts: list[str] = [terminal.dim_text("   |")]
        for lineno, content in self.lines:
            is_error = lineno == self.error_line
            parts.append(terminal.format_source_line(lineno, content, is_error=is_error))
            if is_error and self.column is not None:
                caret = " " * (self.column + 7) + "^"
                parts.append(terminal.error_line(caret))
        parts.append(terminal.dim_text("   |"))
        return "\n".join(parts)


def build_source_snippet(
    source: str,
    error_line: int,
    *,
    first_line: int = 1,
    context_lines: int = 2,
    column: int | None = None,
) -> SourceSnippet | None:
    """Build a SourceSnippet from template source.

    Args:
        source: Full template source text.
        error_line: Line number of the error, in the template's own coordinates.
        first_line: Line number the first source line carries (the template's
            origin line).
        context_lines: Number of lines to show before/after the error line.
        column: Optional column offset for caret pointer.

    Returns:
        SourceSnippet with surrounding context lines, or None when the error
        line falls outside the source.
    """
    all_lines = source.split("\n")
    index = error_line - first_line
    if not 0 <= index < len(all_lines):
        return None
    start = max(0, index - context_lines)
    end = min(len(all_lines), index + context_lines + 1)
    lines = tuple((first_line + i, all_lines[i]) for i in range(start, end))
    return SourceSnippet(lines=lines, error_line=error_line, column=column)


def _location(filename: str | None, lineno: int | None, col_offset: int | None = None) -> str:
    loc = filename or "<template>"
    if lineno:
        loc += f":{lineno}"
        if col_offset is not None:
            loc += f":{col_offset}"
    return loc


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------


class TemplateError(Exception):
    """Base exception for all Interpol template errors.

        >>> try:
        ...     template.render(scope, {"name": "Joe"})
        ... except TemplateError as e:
        ...     log.error(e.format_compact())

    Attributes:
        code: Optional ErrorCode for searchable error identification.
    """

    code: ErrorCode | None = None

    def format_compact(self) -> str:
        """Format error as a short, human-readable summary without traceback noise."""
        header = str(self).split("\n", 1)[0]
        if self.code and self.code.value not in header:
            header = f"{self.code.value}: {header}"
        return header


class TemplateSyntaxError(TemplateError):
    """Compile-time error in template source.

    Raised for unterminated or empty expression markers and for embedded
    expressions that are not a single valid Python expression. Never
    raised during rendering, and a template that fails to compile is
    never cached.

    ``lineno`` is in the template's own coordinates (origin line applied).
    """

    code: ErrorCode | None = ErrorCode.INVALID_EXPRESSION

    def __init__(
        self,
        message: str,
        lineno: int | None = None,
        name: str | None = None,
        filename: str | None = None,
        source: str | None = None,
        col_offset: int | None = None,
        *,
        first_line: int = 1,
        code: ErrorCode | None = None,
    ):
        self.message = message
        self.lineno = lineno
        self.name = name
        self.filename = filename
        self.source = source
        self.col_offset = col_offset
        self.first_line = first_line
        if code is not None:
            self.code = code
        super().__init__(self._format_message())

    @property
    def source_snippet(self) -> SourceSnippet | None:
        if not self.source or not self.lineno:
            return None
        return build_source_snippet(
            self.source,
            self.lineno,
            first_line=self.first_line,
            context_lines=0,
            column=self.col_offset,
        )

    def _format_message(self) -> str:
        location = _location(self.filename or self.name, self.lineno, self.col_offset)
        header = f"Syntax Error: {self.message}\n  --> {location}"
        snippet = self.source_snippet
        if snippet is not None:
            return header + "\n" + snippet.format()
        return header

    def format_compact(self) -> str:
        """Format syntax error as structured terminal diagnostic."""
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  --> {terminal.location(_location(self.filename or self.name, self.lineno))}",
        ]
        snippet = self.source_snippet
        if snippet is not None:
            parts.append(snippet.format())
        if self.code:
            parts.append(f"  {terminal.dim_text('Hint:')} {terminal.docs_hint(self.code.hint)}")
        return "\n".join(parts)


class RenderError(TemplateError):
    """Render-time failure, reported at the template's file and line.

    Wraps any exception raised while a compiled template runs: a failing
    embedded expression, an undefined attribute on the scope, or an
    exception from the continuation. The wrapped exception is kept in
    ``original`` (also ``__cause__``) with its type untouched, so callers
    can still dispatch on it:

        >>> try:
        ...     template.render(scope)
        ... except RenderError as e:
        ...     if isinstance(e.original, PermissionError):
        ...         ...

    Attributes:
        message: Error description
        filename: Template file name
        lineno: Line in the template (origin line applied)
        template_name: Template name, when it differs from the file name
        original: The exception raised inside the template, if any
        artifact_name: Name of the compiled artifact that was running
        source_snippet: Template lines around ``lineno``
        template_stack: Enclosing templates for nested renders, outermost first
    """

    code: ErrorCode | None = ErrorCode.RUNTIME_ERROR

    def __init__(
        self,
        message: str,
        *,
        filename: str | None = None,
        lineno: int | None = None,
        template_name: str | None = None,
        original: BaseException | None = None,
        artifact_name: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[str] | None = None,
    ):
        self.message = message
        self.filename = filename
        self.lineno = lineno
        self.template_name = template_name
        self.original = original
        self.artifact_name = artifact_name
        self.source_snippet = source_snippet
        self.template_stack = template_stack or []
        super().__init__(self._format_message())

    @property
    def kind(self) -> type[BaseException]:
        """Type of the underlying failure (``original``'s type, or this error's)."""
        if self.original is not None:
            return type(self.original)
        return type(self)

    @property
    def located(self) -> bool:
        return self.lineno is not None

    def locate(
        self,
        *,
        filename: str | None,
        lineno: int | None,
        template_name: str | None = None,
        artifact_name: str | None = None,
        source_snippet: SourceSnippet | None = None,
        template_stack: list[str] | None = None,
    ) -> None:
        """Attach a template location to an error raised without one."""
        self.filename = filename
        self.lineno = lineno
        self.template_name = template_name
        self.artifact_name = artifact_name
        self.source_snippet = source_snippet
        if template_stack is not None:
            self.template_stack = template_stack
        self.args = (self._format_message(),)

    def _format_message(self) -> str:
        parts = [f"Render Error: {self.message}"]

        if self.filename or self.lineno:
            parts.append(f"  Location: {terminal.location(_location(self.filename, self.lineno))}")

        if self.source_snippet:
            parts.append(self.source_snippet.format())

        if self.template_stack:
            parts.append(f"  Render stack: {' -> '.join(self.template_stack)}")

        if self.original is not None:
            parts.append(f"  Caused by: {type(self.original).__name__}")

        return "\n".join(parts)

    def format_compact(self) -> str:
        """Format render error as structured terminal diagnostic."""
        parts = [
            terminal.format_error_header(self.code.value if self.code else None, self.message),
            f"  Location: {terminal.location(_location(self.filename, self.lineno))}",
        ]
        if self.source_snippet:
            parts.append(self.source_snippet.format())
        if self.template_stack:
            parts.append(f"  {terminal.dim_text('Render stack:')} {' -> '.join(self.template_stack)}")
        if self.original is not None:
            parts.append(f"  {terminal.hint('Caused by:')} {type(self.original).__name__}")
        if self.code:
            parts.append(f"  {terminal.dim_text('Hint:')} {terminal.docs_hint(self.code.hint)}")
        return "\n".join(parts)


class NameResolutionError(RenderError, NameError):
    """An embedded expression referenced an undefined name.

    Raised when a name is neither a local passed to ``render()``, a
    builtin, nor an attribute of the scope. Subclasses ``NameError`` so
    the failure keeps its kind for callers that catch name errors.

    Example:
        >>> Template(lambda: "Hey #{nmae}!").render(None, {"name": "Joe"})
        NameResolutionError: Undefined name 'nmae'
          Location: <template>:1
    """

    code: ErrorCode | None = ErrorCode.UNDEFINED_NAME

    def __init__(self, name: str | None, message: str | None = None, **kwargs: Any):
        msg = message or f"Undefined name '{name}'"
        super().__init__(msg, **kwargs)
        self.name = name


class MissingContinuationError(RenderError):
    """The template invoked its continuation (``yield``) but none was given."""

    code: ErrorCode | None = ErrorCode.MISSING_CONTINUATION

    def __init__(self, message: str | None = None, **kwargs: Any):
        super().__init__(
            message or "Template yields to a continuation, but render() was not given one",
            **kwargs,
        )


class RenderDepthError(RenderError):
    """Nested renders (a template rendered from inside another) went too deep."""

    code: ErrorCode | None = ErrorCode.RENDER_DEPTH
