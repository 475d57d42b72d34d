"""Value lookup over nested loop scopes.

A scope chain is a tuple of mappings, innermost first. Tag expressions are
resolved against each scope in turn: the literal key first, then a walk
over its dotted segments. A missing intermediate means "absent", never an
error, and absent values render as an empty string.
"""

import json
import re
from collections.abc import Iterator, Mapping
from typing import Any

from docfiller.strategies.template_engine.grammar import strip_description

Scope = tuple[Any, ...]

_ABSENT = object()

# Characters XML 1.0 forbids. \a, \t, \n and \f are kept: docxtpl turns them
# into paragraph, tab, line and page breaks.
_INVALID_XML = re.compile("[\x00-\x06\x08\x0b\x0e-\x1f\ufffe\uffff]")


def _resolve(scope: Any, expression: str) -> Any:
    if not isinstance(scope, Mapping):
        return _ABSENT
    if expression in scope:
        value = scope[expression]
        return _ABSENT if value is None else value

    current: Any = scope
    for part in expression.split("."):
        if isinstance(current, Mapping) and part in current:
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit() and int(part) < len(current):
            current = current[int(part)]
        else:
            return _ABSENT
        if current is None:
            return _ABSENT
    return current


def lookup(scope: Scope, expression: str) -> Any:
    """Resolve a tag expression against a scope chain.

    Returns:
        The first value found, innermost scope first, or None when absent.
    """
    key = strip_description(expression)
    if not key:
        return None
    for frame in scope:
        value = _resolve(frame, key)
        if value is not _ABSENT:
            return value
    return None


def format_value(value: Any) -> str:
    """Render a resolved value as document text."""
    if value is None:
        return ""
    if isinstance(value, str):
        return _INVALID_XML.sub("", value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    return _INVALID_XML.sub("", json.dumps(value, ensure_ascii=False))


def render_value(scope: Scope, expression: str) -> str:
    """Jinja2 global used for ``{{key}}`` tags."""
    return format_value(lookup(scope, expression))


def iter_section(scope: Scope, expression: str) -> Iterator[Scope]:
    """Jinja2 global used for ``{{#key}}`` loops.

    Yields one scope chain per iteration: each list item that is a mapping
    becomes the new innermost scope. A truthy mapping iterates once; any
    other truthy value iterates once with the scope unchanged.
    """
    value = lookup(scope, expression)
    if not value:
        return
    if isinstance(value, Mapping):
        yield (value,) + scope
    elif isinstance(value, (list, tuple)):
        for item in value:
            if isinstance(item, Mapping):
                yield (item,) + scope
            else:
                yield ({".": item},) + scope
    else:
        yield scope
