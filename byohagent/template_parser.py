"""Expansion of ``{{ .Field }}`` placeholders in cloud-init file content."""

from __future__ import annotations

import json
import re
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

_WHITESPACE = " \t\r\n"
_ACTION_RE = re.compile(r"\{\{(-[ \t\r\n])?(.*?)([ \t\r\n]-)?\}\}", re.DOTALL)
_FIELD_CHAIN_RE = re.compile(r"(?:\.[A-Za-z][A-Za-z0-9_]*)+")
_CAMEL_BOUNDARY_RE = re.compile(r"(?<!^)(?=[A-Z])")
_NO_VALUE = object()


def _snake_case(name: str) -> str:
    return _CAMEL_BOUNDARY_RE.sub("_", name).lower()


def _lookup(value: Any, name: str) -> Any:
    if value is _NO_VALUE or value is None:
        return _NO_VALUE
    if isinstance(value, Mapping):
        return value.get(name, _NO_VALUE)
    for attr in (name, _snake_case(name)):
        if hasattr(value, attr):
            return getattr(value, attr)
    raise ValueError(f"can't evaluate field {name} in type {type(value).__name__}")


def _format(value: Any) -> str:
    if value is _NO_VALUE:
        return "<no value>"
    if value is None:
        return "<nil>"
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _check_text(text: str) -> None:
    if "{{" in text:
        raise ValueError("unclosed action in template")


@dataclass
class TemplateParser:
    """Fills template placeholders from the fields of ``template``.

    Supported actions are ``{{ . }}``, field chains such as
    ``{{ .DefaultNetworkInterfaceName }}``, string literals, comments and the
    ``{{-``/``-}}`` whitespace trim markers. Fields are looked up as mapping
    keys, as attributes, or as their snake_case attribute names.
    """

    template: Any = None

    def parse_template(self, content: str) -> str:
        """Return ``content`` with every action replaced by its value."""
        pieces: list[str] = []
        position = 0
        trim_next = False
        for match in _ACTION_RE.finditer(content):
            text = content[position : match.start()]
            _check_text(text)
            if trim_next:
                text = text.lstrip(_WHITESPACE)
            if match.group(1):
                text = text.rstrip(_WHITESPACE)
            pieces.append(text)
            pieces.append(self._evaluate(match.group(2).strip(_WHITESPACE)))
            trim_next = bool(match.group(3))
            position = match.end()

        tail = content[position:]
        _check_text(tail)
        if trim_next:
            tail = tail.lstrip(_WHITESPACE)
        pieces.append(tail)
        return "".join(pieces)

    def _evaluate(self, expr: str) -> str:
        if expr.startswith("/*") and expr.endswith("*/") and len(expr) >= 4:
            return ""
        if not expr:
            raise ValueError("missing value for command")
        if expr == ".":
            return _format(self.template)
        if _FIELD_CHAIN_RE.fullmatch(expr):
            value = self.template
            for name in expr[1:].split("."):
                value = _lookup(value, name)
            return _format(value)
        if len(expr) >= 2 and expr[0] == expr[-1] == "`":
            return expr[1:-1]
        if len(expr) >= 2 and expr[0] == expr[-1] == '"':
            try:
                return json.loads(expr)
            except json.JSONDecodeError as exc:
                raise ValueError(f"bad string literal in template: {expr}") from exc
        raise ValueError(f"unsupported template action: {expr}")