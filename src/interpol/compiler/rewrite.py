"""AST passes applied to generated template code before it is compiled.

ExpressionRewriter:
    - ``yield`` / ``yield x`` / ``yield a, b`` become continuation calls
      ``__yield()`` / ``__yield(x)`` / ``__yield(a, b)``, so the generated
      function stays a plain function, never a generator.
    - Free names become ``__lookup(self, 'name')``, resolving against the
      scope first and builtins second. A name is free when it is neither a
      local, nor bound in the generated function, nor bound by an enclosing
      lambda or comprehension. Bindings are tracked per nested scope, so a
      lambda parameter ``name`` does not hide the scope's ``name`` outside
      that lambda.

relocate():
    Moves every node from generated-source coordinates to template
    coordinates using the compiler's line map, so tracebacks and debuggers
    only ever see the template's own lines.

"""

from __future__ import annotations

import ast
from collections.abc import Mapping

SCOPE_NAME = "self"
LOCALS_NAME = "__locals"
BUFFER_NAME = "__buf"
APPEND_NAME = "__append"
LOOKUP_NAME = "__lookup"
YIELD_NAME = "__yield"
STRINGIFY_NAME = "__str"

# Generated internals that template expressions may not name
RESERVED_NAMES = frozenset(
    {LOCALS_NAME, BUFFER_NAME, APPEND_NAME, LOOKUP_NAME, YIELD_NAME, STRINGIFY_NAME}
)

_COMPREHENSIONS = (ast.ListComp, ast.SetComp, ast.DictComp, ast.GeneratorExp)


def bound_names(tree: ast.AST) -> frozenset[str]:
    """Names bound in tree's own scope.

    Covers assignment targets, parameters and walrus targets. Lambda
    bodies are not entered (only their defaults, which evaluate outside).
    Comprehension targets stay inside the comprehension, but a walrus
    inside a comprehension binds in the enclosing scope.
    """
    names: set[str] = set()
    pending: list[tuple[ast.AST, bool]] = [(tree, False)]
    while pending:
        node, in_comprehension = pending.pop()
        if isinstance(node, ast.NamedExpr):
            names.add(node.target.id)
        elif isinstance(node, ast.Name):
            if not in_comprehension and isinstance(node.ctx, (ast.Store, ast.Del)):
                names.add(node.id)
        elif isinstance(node, ast.arg):
            names.add(node.arg)

        if isinstance(node, ast.Lambda):
            children = [d for d in (*node.args.defaults, *node.args.kw_defaults) if d is not None]
        else:
            children = list(ast.iter_child_nodes(node))
        nested = in_comprehension or isinstance(node, _COMPREHENSIONS)
        pending.extend((child, nested) for child in children)
    return frozenset(names)


def _parameter_names(args: ast.arguments) -> frozenset[str]:
    params = [*args.posonlyargs, *args.args, *args.kwonlyargs, args.vararg, args.kwarg]
    return frozenset(arg.arg for arg in params if arg is not None)


def _target_names(generators: list[ast.comprehension]) -> frozenset[str]:
    return frozenset(
        node.id
        for generator in generators
        for node in ast.walk(generator.target)
        if isinstance(node, ast.Name)
    )


class ExpressionRewriter(ast.NodeTransformer):
    """Rewrite continuation calls and free names in generated code.

    ``bound`` holds the names bound at function level; nested lambdas and
    comprehensions push their own bindings while their bodies are visited.

    Raises SyntaxError (in generated coordinates) for constructs that
    cannot be expressed as a continuation call.
    """

    def __init__(self, bound: frozenset[str], filename: str = "<template>"):
        self._scope_stack: list[frozenset[str]] = [bound | RESERVED_NAMES | {SCOPE_NAME}]
        self._filename = filename

    def _is_bound(self, name: str) -> bool:
        return any(name in scope for scope in self._scope_stack)

    def visit_Yield(self, node: ast.Yield) -> ast.AST:
        self.generic_visit(node)
        if node.value is None:
            args: list[ast.expr] = []
        elif isinstance(node.value, ast.Tuple):
            args = list(node.value.elts)
        else:
            args = [node.value]
        call = ast.Call(
            func=ast.Name(id=YIELD_NAME, ctx=ast.Load()),
            args=args,
            keywords=[],
        )
        return ast.copy_location(call, node)

    def visit_YieldFrom(self, node: ast.YieldFrom) -> ast.AST:
        raise SyntaxError(
            "'yield from' cannot be used in a template expression",
            (self._filename, node.lineno, node.col_offset + 1, None),
        )

    def visit_Lambda(self, node: ast.Lambda) -> ast.AST:
        args = node.args
        # Defaults evaluate in the enclosing scope
        args.defaults = [self.visit(default) for default in args.defaults]
        args.kw_defaults = [
            None if default is None else self.visit(default) for default in args.kw_defaults
        ]
        self._scope_stack.append(_parameter_names(args) | bound_names(node.body))
        try:
            node.body = self.visit(node.body)
        finally:
            self._scope_stack.pop()
        return node

    def _visit_comprehension(self, node: ast.expr) -> ast.AST:
        first, *rest = node.generators
        # The outermost iterable evaluates in the enclosing scope
        first.iter = self.visit(first.iter)
        self._scope_stack.append(_target_names(node.generators))
        try:
            first.ifs = [self.visit(condition) for condition in first.ifs]
            for generator in rest:
                self.generic_visit(generator)
            for field in ("elt", "key", "value"):
                child = getattr(node, field, None)
                if child is not None:
                    setattr(node, field, self.visit(child))
        finally:
            self._scope_stack.pop()
        return node

    visit_ListComp = _visit_comprehension
    visit_SetComp = _visit_comprehension
    visit_DictComp = _visit_comprehension
    visit_GeneratorExp = _visit_comprehension

    def visit_Name(self, node: ast.Name) -> ast.AST:
        if not isinstance(node.ctx, ast.Load) or self._is_bound(node.id):
            return node
        call = ast.Call(
            func=ast.Name(id=LOOKUP_NAME, ctx=ast.Load()),
            args=[ast.Name(id=SCOPE_NAME, ctx=ast.Load()), ast.Constant(value=node.id)],
            keywords=[],
        )
        return ast.copy_location(call, node)


def relocate(tree: ast.AST, line_map: Mapping[int, int]) -> None:
    """Rewrite node line numbers through line_map, in place.

    Several generated lines can map onto one template line; a node whose
    start and end collapse onto the same line gets its end column widened
    so the position range stays valid.
    """
    for node in ast.walk(tree):
        lineno = getattr(node, "lineno", None)
        if lineno is None:
            continue
        node.lineno = line_map.get(lineno, lineno)
        end_lineno = getattr(node, "end_lineno", None)
        if end_lineno is None:
            continue
        node.end_lineno = line_map.get(end_lineno, end_lineno)
        if end_lineno != lineno and node.end_lineno == node.lineno:
            end_col = getattr(node, "end_col_offset", None)
            if end_col is not None and end_col < node.col_offset:
                node.end_col_offset = node.col_offset
