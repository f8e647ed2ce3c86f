"""Tests for failure reporting at the template's own file and line."""

import traceback

import pytest

from interpol import (
    ErrorCode,
    NameResolutionError,
    RenderError,
    Template,
    TemplateSyntaxError,
)

from .conftest import PAGE_SOURCE, FailingScope


def template_frames(error):
    """(filename, lineno) of every frame in the error's traceback."""
    return [(frame.filename, frame.lineno) for frame in traceback.extract_tb(error.__traceback__)]


class TestPageReporting:
    """The undefined name sits on template line 3, the failing attribute on line 6."""

    def test_undefined_name_without_locals(self, page):
        with pytest.raises(NameResolutionError) as exc_info:
            page(11).render()

        error = exc_info.value
        assert isinstance(error, NameError)
        assert error.name == "name"
        assert error.filename == "test.str"
        assert error.lineno == 13
        assert error.code is ErrorCode.UNDEFINED_NAME

    def test_runtime_error_with_locals(self, page):
        with pytest.raises(RenderError) as exc_info:
            page(1).render(FailingScope(), {"name": "Joe", "foo": "bar"})

        error = exc_info.value
        assert error.filename == "test.str"
        assert error.lineno == 6
        assert isinstance(error.original, RuntimeError)
        assert error.kind is RuntimeError
        assert error.__cause__ is error.original
        assert not isinstance(error, NameError)

    def test_original_traceback_names_template(self, page):
        with pytest.raises(RenderError) as exc_info:
            page(1).render(FailingScope(), {"name": "Joe", "foo": "bar"})

        assert ("test.str", 6) in template_frames(exc_info.value.original)

    def test_original_gets_location_note(self, page):
        with pytest.raises(RenderError) as exc_info:
            page(1).render(FailingScope(), {"name": "Joe"})

        assert "  in template test.str:6" in exc_info.value.original.__notes__

    def test_same_template_different_origin(self, page):
        for lineno in (1, 11, 101):
            with pytest.raises(NameResolutionError) as exc_info:
                page(lineno).render()
            assert exc_info.value.lineno == lineno + 2

    def test_snippet_around_failing_line(self, page):
        with pytest.raises(RenderError) as exc_info:
            page(1).render(FailingScope(), {"name": "Joe"})

        snippet = exc_info.value.source_snippet
        assert snippet is not None
        assert snippet.error_line == 6
        assert (6, "  <p>#{fail}</p>") in snippet.lines
        assert [n for n, _ in snippet.lines] == [4, 5, 6, 7, 8]

    def test_snippet_uses_origin_line(self, page):
        with pytest.raises(RenderError) as exc_info:
            page(11).render()

        snippet = exc_info.value.source_snippet
        assert (13, PAGE_SOURCE.split("\n")[2]) in snippet.lines

    def test_artifact_name_reported(self, page):
        template = page(1)
        with pytest.raises(RenderError) as exc_info:
            template.render()
        assert exc_info.value.artifact_name == template.compiled_name()


class TestLineOffsets:
    """Lines are counted from the template's origin line."""

    @pytest.mark.parametrize("blank_lines", [0, 1, 2])
    def test_leading_blank_lines(self, env, blank_lines):
        template = env.from_string("\n" * blank_lines + "#{missing}", filename="t.str")
        with pytest.raises(NameResolutionError) as exc_info:
            template.render()
        assert exc_info.value.lineno == 1 + blank_lines

    def test_failure_inside_multiline_expression(self, env):
        template = env.from_string("a\n#{ foo(\n  1,\n  bar) }", filename="t.str")
        with pytest.raises(NameResolutionError) as exc_info:
            template.render(foo=max)
        assert exc_info.value.name == "bar"
        assert exc_info.value.lineno == 4

    def test_failure_after_multiline_text(self, env):
        template = env.from_string("one\ntwo\nthree #{1 // 0}\nfour", filename="t.str", lineno=20)
        with pytest.raises(RenderError) as exc_info:
            template.render()
        assert isinstance(exc_info.value.original, ZeroDivisionError)
        assert exc_info.value.lineno == 22

    def test_failure_inside_lambda(self, env):
        template = env.from_string("a\n#{(lambda: 1 / 0)()}", filename="t.str")
        with pytest.raises(RenderError) as exc_info:
            template.render()
        assert exc_info.value.lineno == 2

    def test_failure_in_continuation(self, env):
        def continuation():
            raise ValueError("nope")

        template = env.from_string("a\nb\n#{yield}", filename="t.str")
        with pytest.raises(RenderError) as exc_info:
            template.render(None, None, continuation)
        error = exc_info.value
        assert error.lineno == 3
        assert isinstance(error.original, ValueError)

    def test_failure_in_stringify(self, cache):
        from interpol import Environment

        def strict(value):
            if value is None:
                raise ValueError("None in template")
            return str(value)

        env = Environment(stringify=strict, cache=cache)
        template = env.from_string("#{a}\n#{b}", filename="t.str")
        with pytest.raises(RenderError) as exc_info:
            template.render(a=1, b=None)
        assert exc_info.value.lineno == 2

    def test_attribute_error_keeps_kind(self, env):
        template = env.from_string("#{self.missing}", filename="t.str")
        with pytest.raises(RenderError) as exc_info:
            template.render()
        assert exc_info.value.kind is AttributeError


class TestNestedRenders:
    """Errors from inner templates keep the inner location."""

    def test_inner_error_passes_through(self, env):
        inner = Template(lambda: "x\n#{boom}", "inner.str", env=env)
        outer = Template(lambda: "#{yield}", "outer.str", env=env)

        with pytest.raises(NameResolutionError) as exc_info:
            outer.render(None, None, inner.render)

        error = exc_info.value
        assert error.filename == "inner.str"
        assert error.lineno == 2
        assert error.template_stack == ["outer.str"]

    def test_inner_syntax_error_passes_through(self, env):
        inner = Template(lambda: "#{ 1 + }", "inner.str", env=env)
        outer = Template(lambda: "#{yield}", "outer.str", env=env)

        with pytest.raises(TemplateSyntaxError) as exc_info:
            outer.render(None, None, inner.render)
        assert exc_info.value.filename == "inner.str"

    def test_render_error_raised_by_scope_is_located(self, env):
        class Strict:
            @property
            def value(self):
                raise RenderError("no value")

        template = env.from_string("a\n#{value}", filename="t.str")
        with pytest.raises(RenderError) as exc_info:
            template.render(Strict())
        assert exc_info.value.lineno == 2
        assert exc_info.value.filename == "t.str"


class TestCompileErrors:
    """Syntax errors report the template's file and line before anything runs."""

    def test_unterminated_marker(self, env):
        template = env.from_string("a\nHey #{name", filename="x.str", lineno=4)
        with pytest.raises(TemplateSyntaxError) as exc_info:
            template.render()
        error = exc_info.value
        assert error.lineno == 5
        assert error.filename == "x.str"
        assert error.code is ErrorCode.UNTERMINATED_EXPRESSION

    def test_invalid_expression(self, env):
        template = env.from_string("#{ name name }", filename="x.str", lineno=9)
        with pytest.raises(TemplateSyntaxError) as exc_info:
            template.render()
        assert exc_info.value.lineno == 9
        assert exc_info.value.code is ErrorCode.INVALID_EXPRESSION


class TestMessages:
    """Messages carry the location and, once colors are off, read as plain text."""

    def test_render_error_message(self, page, no_colors):
        with pytest.raises(RenderError) as exc_info:
            page(1).render(FailingScope(), {"name": "Joe"})
        message = str(exc_info.value)
        assert message.startswith("Render Error: boom")
        assert "test.str:6" in message
        assert "Caused by: RuntimeError" in message
        assert "\033[" not in message

    def test_format_compact(self, page, no_colors):
        with pytest.raises(RenderError) as exc_info:
            page(1).render(FailingScope(), {"name": "Joe"})
        compact = exc_info.value.format_compact()
        assert compact.startswith("I-RUN-003: boom")
        assert "test.str:6" in compact

    def test_name_error_message(self, page, no_colors):
        with pytest.raises(NameResolutionError) as exc_info:
            page(11).render()
        assert "Undefined name 'name'" in str(exc_info.value)
        assert exc_info.value.format_compact().startswith("I-RUN-001")

    def test_syntax_error_message(self, env, no_colors):
        template = env.from_string("#{ 1 +/ 2 }", filename="x.str")
        with pytest.raises(TemplateSyntaxError) as exc_info:
            template.render()
        assert str(exc_info.value).startswith("Syntax Error: Invalid expression")
        assert "x.str:1" in str(exc_info.value)
