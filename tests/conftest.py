"""Pytest configuration and fixtures for Interpol tests."""

import pytest

from interpol import ArtifactCache, Environment, Template
from interpol.environment import terminal

# Template body used by the file/line reporting tests: the undefined
# name sits on line 3, the failing attribute on line 6.
PAGE_SOURCE = """<html>
<body>
  <h1>Hey #{name}!</h1>


  <p>#{fail}</p>
</body>
</html>"""


class FailingScope:
    """Scope whose ``fail`` attribute raises when read."""

    @property
    def fail(self):
        raise RuntimeError("boom")


@pytest.fixture
def cache():
    """Create an empty ArtifactCache, isolated from the process default."""
    return ArtifactCache()


@pytest.fixture
def env(cache):
    """Create a basic Interpol Environment backed by the isolated cache."""
    return Environment(cache=cache)


@pytest.fixture
def page(env):
    """Factory for the page template at a given origin line."""

    def make(lineno: int = 1) -> Template:
        return Template(lambda: PAGE_SOURCE, "test.str", lineno, env=env)

    return make


@pytest.fixture
def no_colors(monkeypatch):
    """Disable ANSI colors so messages compare as plain text."""
    monkeypatch.setattr(terminal, "_USE_COLORS", False)
