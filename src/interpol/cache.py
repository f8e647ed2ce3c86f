"""Compiled artifact cache — artifacts installed per scope capability.

A *capability* is the scope's class. Every capability gets its own
``ArtifactTable`` mapping artifact names to artifacts, so all instances of
a class share the artifacts compiled for it. Tables are held in a
``weakref.WeakKeyDictionary``: a class that is garbage collected takes its
artifacts with it.

Concurrency:
    - Lookups are plain dict reads, no lock.
    - A miss compiles *outside* any lock, then installs with
      insert-if-absent under the table's lock. Two renders racing on the
      same name may both compile; the compiler is deterministic and only
      the first install is kept, so every caller ends up with the same
      artifact.
    - Installs for different capabilities never contend.
    - Eviction removes the name under the table's lock. An in-flight
      render keeps its own reference and finishes normally.

"""

from __future__ import annotations

import logging
import threading
import weakref
from collections.abc import Iterable
from typing import TYPE_CHECKING

from interpol.signature import artifact_name, signature

if TYPE_CHECKING:
    from interpol.compiler import CompiledArtifact
    from interpol.template import Template

logger = logging.getLogger(__name__)


class ArtifactTable:
    """Artifacts installed on one capability, keyed by artifact name."""

    __slots__ = ("_artifacts", "_lock")

    def __init__(self) -> None:
        self._artifacts: dict[str, CompiledArtifact] = {}
        self._lock = threading.Lock()

    def get(self, name: str) -> CompiledArtifact | None:
        return self._artifacts.get(name)

    def install(self, artifact: CompiledArtifact) -> tuple[CompiledArtifact, bool]:
        """Insert if absent. Returns the installed artifact and whether it is new."""
        with self._lock:
            existing = self._artifacts.get(artifact.name)
            if existing is not None:
                return existing, False
            self._artifacts[artifact.name] = artifact
            return artifact, True

    def remove(self, name: str) -> CompiledArtifact | None:
        with self._lock:
            return self._artifacts.pop(name, None)

    def names(self) -> frozenset[str]:
        with self._lock:
            return frozenset(self._artifacts)

    def __len__(self) -> int:
        return len(self._artifacts)


class ArtifactCache:
    """Process-lifetime cache of compiled artifacts, per capability.

    Example:
        >>> cache = ArtifactCache()
        >>> artifact = cache.get_or_compile(Scope, template, {"name"})
        >>> cache.lookup(Scope, artifact.name) is artifact
        True
        >>> cache.evict(Scope, artifact.name)
        True
    """

    __slots__ = ("_lock", "_stats", "_tables")

    def __init__(self) -> None:
        self._tables: weakref.WeakKeyDictionary[type, ArtifactTable] = (
            weakref.WeakKeyDictionary()
        )
        self._lock = threading.Lock()
        self._stats = {"hits": 0, "misses": 0, "compiles": 0, "evictions": 0}

    def _count(self, key: str) -> None:
        with self._lock:
            self._stats[key] += 1

    def _existing_table(self, capability: type) -> ArtifactTable | None:
        return self._tables.get(capability)

    def _table(self, capability: type) -> ArtifactTable:
        table = self._tables.get(capability)
        if table is not None:
            return table
        with self._lock:
            table = self._tables.get(capability)
            if table is None:
                table = self._tables[capability] = ArtifactTable()
            return table

    def get_or_compile(
        self,
        capability: type,
        template: Template,
        local_names: Iterable[str],
    ) -> CompiledArtifact:
        """Return the template's artifact for these local names, compiling on a miss.

        A failed compile raises and installs nothing.

        Raises:
            TemplateSyntaxError: The template does not compile
        """
        names = frozenset(local_names)
        name = artifact_name(template.identity_tag, signature(names))
        table = self._table(capability)

        artifact = table.get(name)
        if artifact is not None:
            self._count("hits")
            return artifact

        self._count("misses")
        compiled = template.compile(names, name)
        self._count("compiles")

        artifact, installed = table.install(compiled)
        if installed:
            logger.debug(f"Installed {name} on {capability.__qualname__}")
        else:
            logger.debug(f"Install race on {name}: kept the existing artifact")
        return artifact

    def lookup(self, capability: type, name: str) -> CompiledArtifact | None:
        """Installed artifact, or None."""
        table = self._existing_table(capability)
        return table.get(name) if table is not None else None

    def installed(self, capability: type) -> frozenset[str]:
        """Names of the artifacts currently installed on a capability."""
        table = self._existing_table(capability)
        return table.names() if table is not None else frozenset()

    def evict(self, capability: type, name: str) -> bool:
        """Remove an installed artifact.

        The next render needing it recompiles. Evicting a name that is not
        installed is a no-op.

        Returns:
            True if an artifact was removed
        """
        table = self._existing_table(capability)
        if table is None or table.remove(name) is None:
            return False
        self._count("evictions")
        logger.debug(f"Evicted {name} from {capability.__qualname__}")
        return True

    def clear(self, capability: type | None = None) -> None:
        """Drop every artifact of one capability, or of all capabilities."""
        with self._lock:
            if capability is None:
                self._tables.clear()
            else:
                self._tables.pop(capability, None)

    def stats(self) -> dict[str, int]:
        """Copy of the hit/miss/compile/eviction counters."""
        with self._lock:
            return dict(self._stats)

    def __len__(self) -> int:
        """Total installed artifacts across capabilities."""
        with self._lock:
            tables = list(self._tables.values())
        return sum(len(table) for table in tables)


DEFAULT_CACHE = ArtifactCache()


def evict_compiled(capability: type, name: str, cache: ArtifactCache | None = None) -> bool:
    """Evict an artifact from a cache (the process-wide default if none is given)."""
    return (cache if cache is not None else DEFAULT_CACHE).evict(capability, name)
