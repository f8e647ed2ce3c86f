"""Tests for Environment configuration and the extension registry."""

import dataclasses

import pytest

from interpol import (
    DEFAULT_CACHE,
    Environment,
    Scope,
    Syntax,
    Template,
    default_environment,
    lookup,
    register,
    registered,
)
from interpol.environment import registry
from interpol.environment.registry import TemplateRegistry


class TestEnvironment:
    def test_defaults(self):
        env = Environment()
        assert env.syntax == Syntax()
        assert env.scope_class is Scope
        assert env.stringify is str
        assert env.cache is DEFAULT_CACHE
        assert env.max_render_depth == 50

    def test_frozen(self, env):
        with pytest.raises(dataclasses.FrozenInstanceError):
            env.max_render_depth = 3

    def test_invalid_syntax(self):
        with pytest.raises(TypeError):
            Environment(syntax=("{{", "}}"))

    def test_invalid_stringify(self):
        with pytest.raises(TypeError):
            Environment(stringify="str")

    def test_invalid_depth(self):
        with pytest.raises(ValueError):
            Environment(max_render_depth=-1)

    def test_compiler_shared_without_overrides(self, env):
        assert env.compiler_for() is env.compiler
        assert env.compiler_for(stringify=repr) is not env.compiler
        assert env.compiler_for(stringify=repr).syntax is env.syntax

    def test_default_environment_is_shared(self):
        assert default_environment() is default_environment()
        assert Template("x").environment is default_environment()

    def test_from_string(self, env):
        template = env.from_string("Hey #{name}!", name="greeting", filename="g.str", lineno=3)
        assert template.name == "greeting"
        assert template.filename == "g.str"
        assert template.lineno == 3
        assert template.render(name="Joe") == "Hey Joe!"

    def test_from_provider(self, env):
        template = env.from_provider(lambda: "#{x}", "p.str", 2, {"stringify": repr})
        assert template.render(x="a") == "'a'"
        assert template.lineno == 2


class TestFromFile:
    def test_reads_file(self, env, tmp_path):
        path = tmp_path / "hello.str"
        path.write_text("Hey #{name}!\n", encoding="utf-8")
        template = env.from_file(path)
        assert isinstance(template, Template)
        assert template.filename == str(path)
        assert template.render(name="Joe") == "Hey Joe!\n"

    def test_reads_lazily(self, env, tmp_path):
        path = tmp_path / "late.str"
        template = env.from_file(path)
        path.write_text("late", encoding="utf-8")
        assert template.render() == "late"

    def test_missing_file_raises_on_render(self, env, tmp_path):
        template = env.from_file(tmp_path / "missing.str")
        with pytest.raises(FileNotFoundError):
            template.render()

    def test_errors_report_file_path(self, env, tmp_path):
        from interpol import NameResolutionError

        path = tmp_path / "broken.str"
        path.write_text("ok\n#{nope}\n", encoding="utf-8")
        with pytest.raises(NameResolutionError) as exc_info:
            env.from_file(path, lineno=1).render()
        assert exc_info.value.filename == str(path)
        assert exc_info.value.lineno == 2

    def test_uses_registered_factory(self, env, tmp_path, monkeypatch):
        class TextTemplate(Template):
            pass

        fresh = TemplateRegistry()
        fresh.update(registered())
        monkeypatch.setattr(registry, "_registry", fresh)
        register(".txt", TextTemplate)

        path = tmp_path / "notes.txt"
        path.write_text("#{1 + 1}", encoding="utf-8")
        template = env.from_file(path)
        assert isinstance(template, TextTemplate)
        assert template.render() == "2"


class TestRegistry:
    def test_str_registered(self):
        assert lookup("test.str") is Template
        assert "str" in registered()

    def test_unregistered_extension(self):
        assert lookup("test.unknown") is None
        assert lookup("README") is None

    def test_compound_extension_falls_back(self):
        assert lookup("page.html.str") is Template
        assert lookup("dir.d/page.STR") is Template

    def test_longest_extension_wins(self):
        reg = TemplateRegistry()
        reg["str"] = Template

        class HtmlTemplate(Template):
            pass

        reg["html.str"] = HtmlTemplate
        assert reg.for_filename("page.html.str") is HtmlTemplate
        assert reg.for_filename("page.str") is Template

    def test_extensions_normalized(self):
        reg = TemplateRegistry()
        reg.update({".STR": Template})
        assert reg.copy() == {"str": Template}
        assert reg.for_filename("page.str") is Template
        assert reg.for_filename("page.txt") is None

    def test_copy_on_write(self):
        reg = TemplateRegistry()
        snapshot = reg.copy()
        reg["str"] = Template
        assert snapshot == {}

    def test_rejects_non_callable(self):
        reg = TemplateRegistry()
        with pytest.raises(TypeError):
            reg["str"] = "Template"

    def test_rejects_empty_extension(self):
        reg = TemplateRegistry()
        with pytest.raises(ValueError):
            reg["."] = Template
