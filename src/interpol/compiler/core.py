"""Interpol Compiler Core — template source to a line-mapped Python function.

Pipeline:
    Template source → Lexer → tokens → generated Python source + line map
    → ast.parse → ExpressionRewriter → relocate() → compile() → exec()

Generated Code:
    For ``'Hey #{name}!'`` compiled with locals ``{"name"}``:

    ```python
    def __tpl1_<signature>(self, __locals, __yield):
        name = __locals['name']
        __buf = []
        __append = __buf.append
        __append('Hey ')
        __append(__str((
            name
        )))
        __append('!')
        return ''.join(__buf)
    ```

Line Mapping:
    Literal text is emitted one ``__append`` per template line. Each
    expression is copied verbatim onto its own generated lines, padded so
    its columns match the template. Every generated line is recorded with
    the template line it came from; after parsing, every node is moved to
    template coordinates and the module is compiled under the template's
    file name. Tracebacks therefore point at the template, not at the
    generated source.

Determinism:
    Same source, name, file, origin line and local names always produce
    the same generated source, so redundant compiles racing to install the
    same artifact are interchangeable.

"""

from __future__ import annotations

import ast
import builtins
import logging
from collections.abc import Callable, Iterable
from typing import Any

from interpol._types import DEFAULT_SYNTAX, Syntax, Token, TokenType
from interpol.compiler.artifact import CompiledArtifact, collect_code_objects
from interpol.compiler.rewrite import (
    RESERVED_NAMES,
    ExpressionRewriter,
    bound_names,
    relocate,
)
from interpol.environment.exceptions import ErrorCode, TemplateSyntaxError
from interpol.lexer import tokenize
from interpol.template.helpers import lookup_scope_name

logger = logging.getLogger(__name__)

_INDENT = "    "


class _SourceBuffer:
    """Generated source lines, each paired with its template-relative line."""

    __slots__ = ("lines", "origins")

    def __init__(self) -> None:
        self.lines: list[str] = []
        self.origins: list[int] = []

    def emit(self, code: str, origin: int) -> None:
        self.lines.append(code)
        self.origins.append(origin)

    @property
    def last_origin(self) -> int:
        return max(self.origins, default=1)


class Compiler:
    """Compile template source into a ``CompiledArtifact``.

    Stateless apart from configuration; one instance can compile any
    number of templates from any number of threads.

    Attributes:
        syntax: Delimiter convention for embedded expressions
        stringify: Converts expression values to text (``str`` by default)

    Example:
        >>> compiler = Compiler()
        >>> artifact = compiler.compile(
        ...     "Hey #{name}!", name="greet", local_names={"name"}
        ... )
        >>> artifact.invoke(None, {"name": "Joe"}, None)
        'Hey Joe!'
    """

    __slots__ = ("_stringify", "_syntax")

    def __init__(
        self,
        syntax: Syntax = DEFAULT_SYNTAX,
        stringify: Callable[[Any], str] = str,
    ):
        self._syntax = syntax
        self._stringify = stringify

    @property
    def syntax(self) -> Syntax:
        return self._syntax

    @property
    def stringify(self) -> Callable[[Any], str]:
        return self._stringify

    def compile(
        self,
        source: str,
        *,
        name: str,
        filename: str = "<template>",
        lineno: int = 1,
        local_names: Iterable[str] = (),
    ) -> CompiledArtifact:
        """Compile template source to an artifact.

        Args:
            source: Template text
            name: Artifact name, used as the generated function's name
            filename: Template file name, used for the code object and errors
            lineno: Template line of the first source line
            local_names: Names the artifact binds from the locals mapping

        Raises:
            TemplateSyntaxError: Malformed marker or invalid expression
        """
        if not name.isidentifier():
            raise ValueError(f"Artifact name must be an identifier, got {name!r}")
        names = frozenset(local_names)

        tokens = tokenize(source, self._syntax, filename=filename, first_line=lineno)
        buffer = self._generate(tokens, source, name, names, filename, lineno)

        generated = "\n".join(buffer.lines) + "\n"
        line_map = tuple(
            (generated_line, lineno + origin - 1)
            for generated_line, origin in enumerate(buffer.origins, start=1)
        )
        mapping = dict(line_map)

        try:
            module = ast.parse(generated, filename=filename)
            module = ExpressionRewriter(bound_names(module), filename).visit(module)
        except SyntaxError as e:
            raise self._syntax_error(e, source, filename, lineno, mapping) from None

        relocate(module, mapping)
        ast.fix_missing_locations(module)

        try:
            code = compile(module, filename, "exec")
        except SyntaxError as e:
            # Already in template coordinates
            raise self._syntax_error(e, source, filename, lineno, None) from None

        namespace: dict[str, Any] = {
            "__builtins__": builtins,
            "__name__": "interpol.artifacts",
            "__str": self._stringify,
            "__lookup": lookup_scope_name,
        }
        exec(code, namespace)
        function = namespace[name]

        logger.debug(
            f"Compiled {name} from {filename}:{lineno} "
            f"({len(tokens)} tokens, {len(buffer.lines)} generated lines)"
        )

        return CompiledArtifact(
            name=name,
            source=generated,
            line_map=line_map,
            local_names=names,
            filename=filename,
            function=function,
            code_objects=collect_code_objects(function.__code__),
        )

    def _generate(
        self,
        tokens: list[Token],
        source: str,
        name: str,
        local_names: frozenset[str],
        filename: str,
        lineno: int,
    ) -> _SourceBuffer:
        """Emit the generated function, one template line per literal line."""
        out = _SourceBuffer()
        out.emit(f"def {name}(self, __locals, __yield):", 1)
        for local in sorted(local_names):
            out.emit(f"{_INDENT}{local} = __locals[{local!r}]", 1)
        out.emit(f"{_INDENT}__buf = []", 1)
        out.emit(f"{_INDENT}__append = __buf.append", 1)

        source_lines = source.split("\n")
        for token in tokens:
            if token.type is TokenType.DATA:
                self._emit_data(out, token)
            else:
                self._validate_expression(token, source, filename, lineno)
                self._emit_expression(out, token, source_lines[token.lineno - 1])

        out.emit(f"{_INDENT}return ''.join(__buf)", out.last_origin)
        return out

    def _emit_data(self, out: _SourceBuffer, token: Token) -> None:
        pieces = token.value.split("\n")
        last = len(pieces) - 1
        for offset, piece in enumerate(pieces):
            text = piece + "\n" if offset < last else piece
            if text:
                out.emit(f"{_INDENT}__append({text!r})", token.lineno + offset)

    def _emit_expression(self, out: _SourceBuffer, token: Token, line_text: str) -> None:
        # Pad the first line so byte columns match the template line
        pad = len(line_text[: token.col_offset].encode("utf-8"))
        body = _normalize_newlines(token.value)
        body_lines = (" " * pad + body).split("\n")

        out.emit(f"{_INDENT}__append(__str((", token.lineno)
        for offset, text in enumerate(body_lines):
            out.emit(text, token.lineno + offset)
        out.emit(f"{_INDENT})))", token.lineno + len(body_lines) - 1)

    def _validate_expression(
        self, token: Token, source: str, filename: str, lineno: int
    ) -> None:
        """Reject anything that is not exactly one Python expression."""
        try:
            tree = ast.parse(f"({_normalize_newlines(token.value)}\n)", mode="eval")
        except SyntaxError as e:
            # The closing paren sits on a line of its own
            rel_line = min(e.lineno or 1, token.value.count("\n") + 1)
            col = (e.offset or 1) - 1
            if rel_line == 1:
                col = token.col_offset + max(col - 1, 0)
            raise TemplateSyntaxError(
                f"Invalid expression: {e.msg}",
                lineno=lineno + token.lineno + rel_line - 2,
                filename=filename,
                source=source,
                col_offset=col,
                first_line=lineno,
                code=ErrorCode.INVALID_EXPRESSION,
            ) from None
        except ValueError as e:
            raise TemplateSyntaxError(
                f"Invalid expression: {e}",
                lineno=lineno + token.lineno - 1,
                filename=filename,
                source=source,
                first_line=lineno,
                code=ErrorCode.INVALID_EXPRESSION,
            ) from None

        for node in ast.walk(tree):
            if isinstance(node, ast.Name) and node.id in RESERVED_NAMES:
                col = node.col_offset
                if node.lineno == 1:
                    col = token.col_offset + max(col - 1, 0)
                raise TemplateSyntaxError(
                    f"Invalid expression: '{node.id}' is reserved for generated code",
                    lineno=lineno + token.lineno + node.lineno - 2,
                    filename=filename,
                    source=source,
                    col_offset=col,
                    first_line=lineno,
                    code=ErrorCode.INVALID_EXPRESSION,
                )

    def _syntax_error(
        self,
        error: SyntaxError,
        source: str,
        filename: str,
        lineno: int,
        mapping: dict[int, int] | None,
    ) -> TemplateSyntaxError:
        line = error.lineno
        if line is not None and mapping is not None:
            line = mapping.get(line, lineno)
        return TemplateSyntaxError(
            f"Invalid expression: {error.msg}",
            lineno=line,
            filename=filename,
            source=source,
            first_line=lineno,
            code=ErrorCode.INVALID_EXPRESSION,
        )


def _normalize_newlines(text: str) -> str:
    # The parser treats a lone \r as a line break; the line map counts \n only
    return text.replace("\r\n", "\n").replace("\r", " ")
