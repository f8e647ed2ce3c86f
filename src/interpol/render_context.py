"""Interpol RenderContext — per-render state isolated from scope and locals.

Each ``Template.render()`` runs inside a RenderContext held in a
ContextVar. Generated code never touches it; the engine uses it to
detect nested renders (a template rendered from a continuation or from
a scope method while another template is rendering), to bound their
depth, and to report the chain of enclosing templates in errors.

Thread Safety:
    ContextVars are per thread and per asyncio task, so concurrent
    renders never observe each other's state.

"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass, field

DEFAULT_MAX_DEPTH = 50


@dataclass
class RenderContext:
    """Per-render state.

    Attributes:
        template_name: Template name (or file name) being rendered
        filename: Template file name
        artifact_name: Compiled artifact running this render
        depth: Nesting depth, 0 for an outermost render
        max_depth: Depth at which nested renders are refused
        template_stack: Enclosing templates, outermost first
    """

    template_name: str | None = None
    filename: str | None = None
    artifact_name: str | None = None
    depth: int = 0
    max_depth: int = DEFAULT_MAX_DEPTH
    template_stack: list[str] = field(default_factory=list)

    def child_context(
        self,
        template_name: str | None,
        filename: str | None,
        artifact_name: str | None = None,
        max_depth: int | None = None,
    ) -> RenderContext:
        """Context for a render nested inside this one."""
        stack = self.template_stack.copy()
        stack.append(self.template_name or self.filename or "<template>")
        return RenderContext(
            template_name=template_name,
            filename=filename,
            artifact_name=artifact_name,
            depth=self.depth + 1,
            max_depth=self.max_depth if max_depth is None else max_depth,
            template_stack=stack,
        )

    @property
    def exceeded(self) -> bool:
        return self.depth > self.max_depth


_render_context: ContextVar[RenderContext | None] = ContextVar(
    "interpol_render_context",
    default=None,
)


def get_render_context() -> RenderContext | None:
    """Current render context, or None outside of a render."""
    return _render_context.get()


@contextmanager
def render_context(
    template_name: str | None = None,
    filename: str | None = None,
    artifact_name: str | None = None,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> Iterator[RenderContext]:
    """Set up render-scoped state for the duration of the with block.

    Nested calls produce child contexts (depth + 1, parent on the
    template stack). The previous context is restored on exit.

    Example:
        with render_context(template_name="page.str") as ctx:
            html = artifact.invoke(scope, values, continuation)
    """
    parent = _render_context.get()
    if parent is None:
        ctx = RenderContext(
            template_name=template_name,
            filename=filename,
            artifact_name=artifact_name,
            max_depth=max_depth,
        )
    else:
        ctx = parent.child_context(template_name, filename, artifact_name, max_depth)
    token: Token[RenderContext | None] = _render_context.set(ctx)
    try:
        yield ctx
    finally:
        _render_context.reset(token)
