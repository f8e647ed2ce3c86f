"""Runtime helpers called from compiled templates."""

from __future__ import annotations

import builtins
from typing import Any, NoReturn

from interpol.environment.exceptions import MissingContinuationError

_BUILTINS = vars(builtins)
_MISSING = object()


class Scope:
    """Default scope: an empty object whose class hosts compiled artifacts.

    Used when ``render()`` is called without a scope. Any class works as a
    scope; subclassing this one is optional.
    """

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {vars(self)!r}>"


def lookup_scope_name(scope: Any, name: str) -> Any:
    """Resolve a free template name: scope attribute first, then builtin.

    A scope attribute named ``id`` or ``type`` wins over the builtin.

    Raises:
        NameError: Neither the scope nor builtins define the name
    """
    try:
        return getattr(scope, name)
    except AttributeError:
        value = _BUILTINS.get(name, _MISSING)
        if value is _MISSING:
            raise NameError(f"name '{name}' is not defined", name=name) from None
        return value


def missing_continuation(*args: Any, **kwargs: Any) -> NoReturn:
    """Stand-in continuation for renders that were not given one."""
    raise MissingContinuationError()
