"""Core lexical types for Interpol.

Provides the token model produced by the lexer and the delimiter
convention (``Syntax``) that decides what counts as an embedded
expression marker.

Thread-Safety:
All types here are frozen dataclasses or enums and safe to share.

"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class TokenType(Enum):
    """Classification of lexer tokens.

    DATA tokens carry literal text (escapes already resolved).
    EXPR tokens carry the raw body of one embedded expression.
    """

    DATA = "data"
    EXPR = "expr"


@dataclass(frozen=True, slots=True)
class Token:
    """A single lexer token.

    Attributes:
        type: Token classification
        value: Literal text (DATA) or expression body (EXPR)
        lineno: 1-based line, relative to the template source, where value starts
        col_offset: 0-based character column where value starts
    """

    type: TokenType
    value: str
    lineno: int
    col_offset: int

    def __repr__(self) -> str:
        return f"Token({self.type.name}, {self.value!r}, {self.lineno}:{self.col_offset})"


@dataclass(frozen=True, slots=True)
class Syntax:
    """Delimiter convention for embedded expressions.

    The default mirrors string interpolation as found in many scripting
    languages: ``Hey #{name}!``.

    Attributes:
        start: Sequence that opens an embedded expression
        end: Sequence that closes it (matched only outside brackets and strings)
        escape: Single character that, placed right before ``start``,
            makes the start sequence literal. Empty string disables escaping.

    Example:
        >>> Syntax("{{", "}}")
        Syntax(start='{{', end='}}', escape='\\\\')
    """

    start: str = "#{"
    end: str = "}"
    escape: str = "\\"

    def __post_init__(self) -> None:
        if not self.start or not self.end:
            raise ValueError("Syntax delimiters must be non-empty")
        if len(self.escape) > 1:
            raise ValueError(f"Syntax escape must be a single character, got {self.escape!r}")
        if self.start == self.end:
            raise ValueError(f"Start and end delimiters must differ, got {self.start!r} twice")


DEFAULT_SYNTAX = Syntax()
