"""Interpol Template package — templates and the helpers their code calls."""

from interpol.template.core import Template, check_local_names
from interpol.template.helpers import Scope, lookup_scope_name, missing_continuation

__all__ = [
    "Scope",
    "Template",
    "check_local_names",
    "lookup_scope_name",
    "missing_continuation",
]
