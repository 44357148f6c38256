"""
Expression engine for resolving {{ }} template references.

Path references are resolved against the execution context without any
evaluation. Boolean conditions use simpleeval (no eval() or exec()).
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime
from typing import Any, Mapping

from simpleeval import DEFAULT_FUNCTIONS, DEFAULT_OPERATORS, SimpleEval

from .types import ExecutionContext

logger = logging.getLogger(__name__)

TEMPLATE_PATTERN = re.compile(r"\{\{(.+?)\}\}")
SINGLE_TEMPLATE_PATTERN = re.compile(r"^\s*\{\{([^{}]+?)\}\}\s*$")
AT_REFERENCE_PATTERN = re.compile(r"^@([A-Za-z_$][\w$]*(?:\.[\w$]+)*)$")
JSON_PREFIX = "json "

_MISSING = object()


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Walk a dot-notation path through nested dicts and lists.

    Returns the module-level missing sentinel when any segment is absent.
    """
    current: Any = obj
    for key in path.split("."):
        if isinstance(current, Mapping):
            if key not in current:
                return _MISSING
            current = current[key]
        elif isinstance(current, (list, tuple)) and key.lstrip("-").isdigit():
            index = int(key)
            if not -len(current) <= index < len(current):
                return _MISSING
            current = current[index]
        else:
            return _MISSING
    return current


class ExpressionEngine:
    """Resolves template references against an execution context."""

    def __init__(self) -> None:
        self._setup_evaluator()

    def _setup_evaluator(self) -> None:
        """Set up the safe evaluator with allowed functions."""
        self.evaluator = SimpleEval()
        self.evaluator.operators = DEFAULT_OPERATORS.copy()

        # Add safe helper functions
        self.evaluator.functions = {
            **DEFAULT_FUNCTIONS,
            # Type conversion
            "str": str,
            "int": int,
            "float": float,
            "bool": bool,
            # String functions
            "lower": lambda s: str(s).lower(),
            "upper": lambda s: str(s).upper(),
            "trim": lambda s: str(s).strip(),
            "includes": lambda s, search: search in str(s),
            "startswith": lambda s, prefix: str(s).startswith(prefix),
            "endswith": lambda s, suffix: str(s).endswith(suffix),
            "length": lambda x: len(x),
            # Math functions
            "abs": abs,
            "min": min,
            "max": max,
            "round": round,
            "floor": math.floor,
            "ceil": math.ceil,
            # Date functions
            "now": lambda: int(datetime.now().timestamp() * 1000),
            # Type checking
            "is_empty": lambda v: v is None or v == "" or (isinstance(v, (list, dict)) and len(v) == 0),
            "is_none": lambda v: v is None,
            "get": lambda d, key, default=None: d.get(key, default) if isinstance(d, dict) else default,
        }

    # --- Path lookup ---

    def lookup(self, path: str, context: ExecutionContext | Mapping[str, Any]) -> Any:
        """
        Resolve a dot path, first under ``variables`` then at the top level.

        Missing paths resolve to None.
        """
        variables, root = self._scopes(context)
        path = path.strip()

        value = get_nested_value(variables, path)
        if value is _MISSING:
            value = get_nested_value(root, path)
        return None if value is _MISSING else value

    def _scopes(
        self, context: ExecutionContext | Mapping[str, Any]
    ) -> tuple[Mapping[str, Any], Mapping[str, Any]]:
        if isinstance(context, ExecutionContext):
            return context.variables, context.snapshot()
        variables = context.get("variables")
        if not isinstance(variables, Mapping):
            variables = {}
        return variables, context

    # --- Interpolation ---

    def interpolate(self, template: str, context: ExecutionContext | Mapping[str, Any]) -> str:
        """
        Replace every {{path}} / {{json path}} occurrence with its rendering.

        Missing paths render as an empty string.
        """
        if not isinstance(template, str):
            return self.stringify(template)

        def replacer(match: re.Match[str]) -> str:
            return self._render(match.group(1), context)

        return TEMPLATE_PATTERN.sub(replacer, template)

    def interpolate_value(self, template: Any, context: ExecutionContext | Mapping[str, Any]) -> Any:
        """
        Resolve a template for a field that expects a structured value.

        A template made of exactly one reference ({{path}} or @path) returns
        the referenced value untouched. Anything else is interpolated and the
        resulting text coerced to JSON, number or boolean when it looks like one.
        """
        if not isinstance(template, str):
            return template

        single = self._single_reference(template)
        if single is not None:
            path, as_json = single
            value = self.lookup(path, context)
            return json.dumps(value, default=str) if as_json else value

        if not TEMPLATE_PATTERN.search(template):
            return template

        return self.coerce(self.interpolate(template, context))

    def resolve(self, value: Any, context: ExecutionContext | Mapping[str, Any]) -> Any:
        """
        Resolve all templates in a value.

        Handles strings, objects, and arrays recursively. Single-reference
        strings keep the referenced value's type; mixed strings stay strings.
        """
        if isinstance(value, str):
            match = SINGLE_TEMPLATE_PATTERN.match(value)
            if match and not match.group(1).strip().startswith(JSON_PREFIX):
                return self.lookup(match.group(1), context)
            return self.interpolate(value, context)

        if isinstance(value, (list, tuple)):
            return [self.resolve(item, context) for item in value]

        if isinstance(value, Mapping):
            return {key: self.resolve(val, context) for key, val in value.items()}

        return value

    def _single_reference(self, template: str) -> tuple[str, bool] | None:
        """Return (path, json_mode) when the whole template is one reference."""
        at_match = AT_REFERENCE_PATTERN.match(template.strip())
        if at_match:
            return at_match.group(1), False

        match = SINGLE_TEMPLATE_PATTERN.match(template)
        if not match:
            return None
        inner = match.group(1).strip()
        if inner.startswith(JSON_PREFIX):
            return inner[len(JSON_PREFIX):].strip(), True
        return inner, False

    def _render(self, expression: str, context: ExecutionContext | Mapping[str, Any]) -> str:
        inner = expression.strip()
        if inner.startswith(JSON_PREFIX):
            value = self.lookup(inner[len(JSON_PREFIX):], context)
            return "" if value is None else json.dumps(value, default=str)
        return self.stringify(self.lookup(inner, context))

    def stringify(self, value: Any) -> str:
        """Convert value to string for interpolation."""
        if value is None:
            return ""
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (dict, list, tuple)):
            return json.dumps(value, default=str)
        return str(value)

    @staticmethod
    def coerce(text: str) -> Any:
        """Best-effort conversion of interpolated text to a typed value."""
        stripped = text.strip()
        if (stripped.startswith("{") and stripped.endswith("}")) or (
            stripped.startswith("[") and stripped.endswith("]")
        ):
            try:
                return json.loads(stripped)
            except json.JSONDecodeError:
                return text

        if stripped:
            try:
                number = float(stripped)
            except ValueError:
                pass
            else:
                if math.isfinite(number):
                    return int(number) if number.is_integer() and "." not in stripped else number

        if text in ("true", "false"):
            return text == "true"

        return text

    # --- Conditions ---

    def evaluate_condition(self, expression: str, context: ExecutionContext | Mapping[str, Any]) -> bool:
        """
        Evaluate a boolean expression over the context's variables.

        Accepts a bare expression or one wrapped in {{ }}. Failures are logged
        and count as False.
        """
        single = SINGLE_TEMPLATE_PATTERN.match(expression)
        if single:
            expression = single.group(1)

        variables, root = self._scopes(context)
        names = {key: value for key, value in root.items() if key.isidentifier()}
        names.update({key: value for key, value in variables.items() if key.isidentifier()})

        try:
            self.evaluator.names = names
            return bool(self.evaluator.eval(expression.strip()))
        except Exception as e:
            logger.warning("Condition evaluation failed: %s (expression: %s)", e, expression)
            return False


# Singleton instance
expression_engine = ExpressionEngine()
