"""Tests for template interpolation and condition evaluation."""

import pytest

from dagflow.engine.expression_engine import ExpressionEngine, get_nested_value
from dagflow.engine.types import ExecutionContext


@pytest.fixture
def engine():
    return ExpressionEngine()


@pytest.fixture
def context():
    return ExecutionContext(
        variables={
            "user": {"name": "Ada", "age": 36, "tags": ["admin", "ops"]},
            "count": 3,
            "active": True,
        },
        trigger_data={"source": "api"},
    )


class TestLookup:
    """Tests for dot-path lookup."""

    def test_nested_and_indexed_paths(self):
        data = {"a": {"b": [{"c": 1}, {"c": 2}]}}
        assert get_nested_value(data, "a.b.1.c") == 2

    def test_missing_path_resolves_to_none(self, engine, context):
        assert engine.lookup("user.missing.deep", context) is None

    def test_top_level_context_keys(self, engine, context):
        """Snapshot keys such as triggerData are reachable too."""
        assert engine.lookup("triggerData.source", context) == "api"


class TestInterpolate:
    """Tests for ExpressionEngine.interpolate."""

    def test_variables_mapping_context(self, engine):
        assert engine.interpolate("{{a.b}}", {"variables": {"a": {"b": "x"}}}) == "x"

    def test_missing_reference_renders_empty(self, engine, context):
        assert engine.interpolate("Hi {{nobody.name}}!", context) == "Hi !"

    def test_mixed_text_and_types(self, engine, context):
        result = engine.interpolate("{{user.name}} is {{user.age}}, active={{active}}", context)
        assert result == "Ada is 36, active=true"

    def test_objects_render_as_json(self, engine, context):
        assert engine.interpolate("{{user.tags}}", context) == '["admin", "ops"]'

    def test_json_prefix(self, engine, context):
        assert engine.interpolate('{"n": {{json user.name}}}', context) == '{"n": "Ada"}'

    def test_whitespace_inside_braces(self, engine, context):
        assert engine.interpolate("{{  count  }}", context) == "3"


class TestResolve:
    """Tests for structured resolution of node data."""

    def test_single_reference_keeps_type(self, engine, context):
        assert engine.resolve("{{user.tags}}", context) == ["admin", "ops"]
        assert engine.resolve("{{count}}", context) == 3

    def test_nested_structures(self, engine, context):
        data = {"headers": [{"name": "X-User", "value": "{{user.name}}"}], "limit": 10}
        assert engine.resolve(data, context) == {
            "headers": [{"name": "X-User", "value": "Ada"}],
            "limit": 10,
        }

    def test_interpolate_value_coerces_text(self, engine, context):
        assert engine.interpolate_value("{{count}}0", context) == 30
        assert engine.interpolate_value('{"n": {{count}}}', context) == {"n": 3}

    def test_at_reference(self, engine, context):
        assert engine.interpolate_value("@user.age", context) == 36


class TestCoerce:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("42", 42),
            ("4.5", 4.5),
            ("true", True),
            ("false", False),
            ("[1, 2]", [1, 2]),
            ("hello", "hello"),
            ("{not json}", "{not json}"),
        ],
    )
    def test_coerce(self, text, expected):
        assert ExpressionEngine.coerce(text) == expected


class TestConditions:
    """Tests for ExpressionEngine.evaluate_condition."""

    def test_true_and_false(self, engine, context):
        assert engine.evaluate_condition("count > 2", context) is True
        assert engine.evaluate_condition("{{ count > 5 }}", context) is False

    def test_helper_functions(self, engine, context):
        assert engine.evaluate_condition("includes(user['name'], 'Ad')", context) is True

    def test_failures_are_false(self, engine, context):
        assert engine.evaluate_condition("undefined_name > 1", context) is False
