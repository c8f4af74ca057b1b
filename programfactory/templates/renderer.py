"""``{{placeholder}}`` substitution for instruction templates."""

from __future__ import annotations

import re
from typing import Any, Mapping

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")
_INDEXED = re.compile(r"^(?P<name>[^\[\]]*)\[(?P<index>\d+)\]$")
_MISSING = object()


def _lookup(variables: Mapping[str, Any], path: str) -> Any:
    # Exact keys win so variables such as "session.title" can be passed flat.
    if path in variables:
        return variables[path]
    value: Any = variables
    for part in path.split("."):
        match = _INDEXED.match(part)
        index = None
        if match:
            part, index = match.group("name"), int(match.group("index"))
        if part:
            value = _child(value, part)
        if value is _MISSING:
            return _MISSING
        if index is not None:
            try:
                value = value[index]
            except (IndexError, KeyError, TypeError):
                return _MISSING
    return value


def _child(value: Any, name: str) -> Any:
    if isinstance(value, Mapping):
        return value.get(name, _MISSING)
    try:
        return getattr(value, name, _MISSING)
    except Exception:
        return _MISSING


def render_template(template: str, variables: Mapping[str, Any] | None = None) -> str:
    """Replace every ``{{name}}`` in ``template`` with ``str(variables[name])``.

    Names may be dotted paths (``{{program.client.name}}``) with optional
    list indices (``{{article_words[0]}}``). Placeholders that cannot be
    resolved, or resolve to ``None``, are left verbatim. Never raises.
    """
    variables = variables or {}

    def substitute(match: re.Match) -> str:
        value = _lookup(variables, match.group(1))
        if value is _MISSING or value is None:
            return match.group(0)
        return str(value)

    return _PLACEHOLDER.sub(substitute, template)
