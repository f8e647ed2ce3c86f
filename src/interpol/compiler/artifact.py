"""Compiled artifacts — the invocable output of the compiler."""

from __future__ import annotations

import types
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any


def collect_code_objects(code: types.CodeType) -> frozenset[types.CodeType]:
    """A code object plus every code object nested in its constants.

    Lambdas and generator expressions inside embedded expressions compile
    to their own code objects; failures raised inside them still belong to
    the artifact.
    """
    found: set[types.CodeType] = set()
    stack = [code]
    while stack:
        current = stack.pop()
        found.add(current)
        stack.extend(c for c in current.co_consts if isinstance(c, types.CodeType))
    return frozenset(found)


@dataclass(frozen=True, slots=True, eq=False)
class CompiledArtifact:
    """One template compiled for one set of local names.

    Immutable and shared by every scope instance of the capability it is
    installed on. Evicting it from a cache only removes it from lookup;
    holders of a reference can keep invoking it.

    Attributes:
        name: Installed name (template identity tag + locals signature)
        source: Generated Python source
        line_map: (generated line, original line) pairs, one per generated
            line, in order
        local_names: Local names the artifact binds
        filename: Template file name the code was compiled under
        function: Compiled function ``(scope, locals, continuation) -> str``
        code_objects: Code objects belonging to the artifact, for locating
            failures in a traceback
    """

    name: str
    source: str
    line_map: tuple[tuple[int, int], ...]
    local_names: frozenset[str]
    filename: str
    function: Callable[[Any, Mapping[str, Any], Callable[..., Any]], str] = field(repr=False)
    code_objects: frozenset[types.CodeType] = field(repr=False)

    def invoke(
        self,
        scope: Any,
        values: Mapping[str, Any],
        continuation: Callable[..., Any],
    ) -> str:
        """Run the artifact against a scope instance."""
        return self.function(scope, values, continuation)

    def original_line(self, generated_line: int) -> int | None:
        """Template line that a generated source line came from."""
        index = generated_line - 1
        if 0 <= index < len(self.line_map):
            return self.line_map[index][1]
        return None

    @property
    def first_line(self) -> int:
        return self.line_map[0][1]

    def frame_lines(self, tb: types.TracebackType | None) -> Iterator[int]:
        """Line numbers of this artifact's frames in a traceback, outermost first."""
        while tb is not None:
            if tb.tb_frame.f_code in self.code_objects and tb.tb_lineno is not None:
                yield tb.tb_lineno
            tb = tb.tb_next
