"""Interpol environment — configuration, errors and the extension registry."""

from interpol.environment.exceptions import (
    ErrorCode,
    MissingContinuationError,
    NameResolutionError,
    RenderDepthError,
    RenderError,
    SourceSnippet,
    TemplateError,
    TemplateSyntaxError,
    build_source_snippet,
)
from interpol.environment.core import Environment, default_environment
from interpol.environment.registry import TemplateRegistry, lookup, register, registered

__all__ = [
    "Environment",
    "ErrorCode",
    "MissingContinuationError",
    "NameResolutionError",
    "RenderDepthError",
    "RenderError",
    "SourceSnippet",
    "TemplateError",
    "TemplateRegistry",
    "TemplateSyntaxError",
    "build_source_snippet",
    "default_environment",
    "lookup",
    "register",
    "registered",
]
