"""Locals signatures — cache keys derived from the names of render locals.

Two renders passing the same set of local names (in any order, with any
values) share one signature, and so one compiled artifact. The signature
is lowercase hex, which keeps artifact names valid Python identifiers.
"""

from __future__ import annotations

from collections.abc import Iterable
from hashlib import blake2b

SIGNATURE_LENGTH = 20


def signature(local_names: Iterable[str]) -> str:
    """Order-independent signature of a set of local names.

    Example:
        >>> signature(["name", "foo"]) == signature(("foo", "name", "foo"))
        True
    """
    payload = "\0".join(sorted(set(local_names)))
    return blake2b(payload.encode("utf-8"), digest_size=SIGNATURE_LENGTH // 2).hexdigest()


def artifact_name(tag: str, sig: str) -> str:
    """Installed name for a template's artifact: identity tag plus signature."""
    return f"{tag}{sig}"
