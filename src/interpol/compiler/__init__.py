"""Interpol compiler — template source to line-mapped Python functions."""

from interpol.compiler.artifact import CompiledArtifact
from interpol.compiler.core import Compiler

__all__ = ["CompiledArtifact", "Compiler"]
