"""Interpol lexer — splits template source into literal text and expressions.

The lexer is a single forward scan. Literal text is copied until the next
start delimiter; an expression body then runs until the first end
delimiter found *outside* brackets and string literals, so expressions
may contain dicts, nested calls and quoted delimiter characters:

    >>> [t.value for t in tokenize("a#{ {'k': '}'}['k'] }b")]
    ['a', " {'k': '}'}['k'] ", 'b']

Escapes:
    An escape character (backslash by default) right before the start
    delimiter makes it literal: ``\\#{not code}`` renders ``#{not code}``.
    A doubled escape there stands for one literal escape character, so
    ``C:\\\\#{dir}`` renders ``C:\\`` followed by the value of ``dir``.
    Escape characters anywhere else are plain text.

Line tracking:
    Tokens carry their 1-based line and 0-based column relative to the
    source. Lines are counted on ``\\n`` only, the same convention the
    compiler uses for its line map.

"""

from __future__ import annotations

from bisect import bisect_right

from interpol._types import DEFAULT_SYNTAX, Syntax, Token, TokenType
from interpol.environment.exceptions import ErrorCode, TemplateSyntaxError

_OPENERS = frozenset("([{")
_CLOSERS = frozenset(")]}")
_QUOTES = frozenset("'\"")


class Lexer:
    """Tokenize one template source under a given ``Syntax``.

    Not reusable across sources; construct one per tokenize call.
    """

    __slots__ = ("_filename", "_first_line", "_newlines", "_source", "_syntax")

    def __init__(
        self,
        source: str,
        syntax: Syntax = DEFAULT_SYNTAX,
        *,
        filename: str | None = None,
        first_line: int = 1,
    ):
        self._source = source
        self._syntax = syntax
        self._filename = filename
        self._first_line = first_line
        self._newlines = [i for i, ch in enumerate(source) if ch == "\n"]

    def _position(self, pos: int) -> tuple[int, int]:
        """Source-relative (line, column) of an offset."""
        index = bisect_right(self._newlines, pos - 1)
        line_start = self._newlines[index - 1] + 1 if index else 0
        return index + 1, pos - line_start

    def _error(self, message: str, pos: int, code: ErrorCode) -> TemplateSyntaxError:
        line, col = self._position(pos)
        return TemplateSyntaxError(
            message,
            lineno=self._first_line + line - 1,
            filename=self._filename,
            source=self._source,
            col_offset=col,
            first_line=self._first_line,
            code=code,
        )

    def tokenize(self) -> list[Token]:
        source = self._source
        start, end, escape = self._syntax.start, self._syntax.end, self._syntax.escape
        tokens: list[Token] = []
        literal: list[str] = []
        literal_pos = 0
        pos = 0

        while True:
            idx = source.find(start, pos)
            if idx == -1:
                literal.append(source[pos:])
                break

            # Escapes right before the delimiter pair up into literal escapes;
            # an odd one left over makes the delimiter literal
            text_end = idx
            while escape and text_end > pos and source[text_end - 1] == escape:
                text_end -= 1
            run = idx - text_end
            literal.append(source[pos:text_end])
            literal.append(escape * (run // 2))
            if run % 2:
                literal.append(start)
                pos = idx + len(start)
                continue

            self._flush(tokens, literal, literal_pos)

            body_start = idx + len(start)
            body_end = self._find_end(body_start, idx)
            body = source[body_start:body_end]
            if not body.strip():
                raise self._error("Empty expression", idx, ErrorCode.EMPTY_EXPRESSION)

            line, col = self._position(body_start)
            tokens.append(Token(TokenType.EXPR, body, line, col))

            pos = literal_pos = body_end + len(end)

        self._flush(tokens, literal, literal_pos)
        return tokens

    def _flush(self, tokens: list[Token], literal: list[str], literal_pos: int) -> None:
        text = "".join(literal)
        literal.clear()
        if text:
            line, col = self._position(literal_pos)
            tokens.append(Token(TokenType.DATA, text, line, col))

    def _find_end(self, pos: int, marker_pos: int) -> int:
        """Offset of the end delimiter closing the expression opened at marker_pos."""
        source = self._source
        end = self._syntax.end
        depth = 0
        n = len(source)

        while pos < n:
            if depth == 0 and source.startswith(end, pos):
                return pos
            ch = source[pos]
            if ch in _QUOTES:
                pos = self._skip_string(pos, marker_pos)
                continue
            if ch == "#":
                # Python comment: runs to end of line
                newline = source.find("\n", pos)
                if newline == -1:
                    break
                pos = newline
                continue
            if ch in _OPENERS:
                depth += 1
            elif ch in _CLOSERS:
                if not depth:
                    raise self._error(
                        f"Unmatched {ch!r} in expression", pos, ErrorCode.INVALID_EXPRESSION
                    )
                depth -= 1
            pos += 1

        raise self._error(
            f"Unterminated expression: missing {end!r}",
            marker_pos,
            ErrorCode.UNTERMINATED_EXPRESSION,
        )

    def _skip_string(self, pos: int, marker_pos: int) -> int:
        """Offset just past the string literal starting at pos."""
        source = self._source
        quote = source[pos]
        delim = quote * 3 if source.startswith(quote * 3, pos) else quote
        pos += len(delim)
        n = len(source)

        while pos < n:
            ch = source[pos]
            if ch == "\\":
                pos += 2
                continue
            if source.startswith(delim, pos):
                return pos + len(delim)
            if ch == "\n" and len(delim) == 1:
                break
            pos += 1

        raise self._error(
            "Unterminated string literal in expression",
            marker_pos,
            ErrorCode.UNTERMINATED_EXPRESSION,
        )


def tokenize(
    source: str,
    syntax: Syntax = DEFAULT_SYNTAX,
    *,
    filename: str | None = None,
    first_line: int = 1,
) -> list[Token]:
    """Tokenize template source.

    Args:
        source: Template text
        syntax: Delimiter convention
        filename: Template file name, for error messages
        first_line: Origin line of the template, for error messages

    Raises:
        TemplateSyntaxError: Unterminated or empty expression marker
    """
    return Lexer(source, syntax, filename=filename, first_line=first_line).tokenize()
