"""Placeholder tag grammar.

Tags look like ``{{key}}``, ``{{key:description}}``, ``{{#loop}}``,
``{{/loop}}`` and ``{{parent.child[:description]}}``.
"""

import re
from collections.abc import Iterator
from dataclasses import dataclass

# [1] prefix (#, / or empty), [2] identifier, [3] optional description
TAG_PATTERN = re.compile(r"\{\{([#/]?)([^\s{}:]+)(?::([^}]+))?\}\}")

# Identifier charset for dotted shorthand inside document XML
IDENTIFIER = r"[A-Za-z0-9_]+"
DOTTED_PATTERN = re.compile(
    r"\{\{(?P<parent>" + IDENTIFIER + r")\.(?P<child>[A-Za-z0-9_.]+)(?P<description>:[^}]*)?\}\}"
)

OPEN = "#"
CLOSE = "/"


class TagSyntaxError(ValueError):
    """Raised for a tag that matches the tag shape but is malformed."""


@dataclass(frozen=True)
class PlaceholderTag:
    """One tag occurrence in flattened text."""

    prefix: str
    name: str
    description: str | None
    start: int
    end: int

    @property
    def is_open(self) -> bool:
        return self.prefix == OPEN

    @property
    def is_close(self) -> bool:
        return self.prefix == CLOSE

    @property
    def is_dotted(self) -> bool:
        return "." in self.name

    @property
    def raw(self) -> str:
        suffix = f":{self.description}" if self.description else ""
        return f"{{{{{self.prefix}{self.name}{suffix}}}}}"

    def split_dotted(self) -> tuple[str, str]:
        """Return (parent, child) for a dotted name."""
        return split_dotted(self.name)


def iter_tags(text: str) -> Iterator[PlaceholderTag]:
    """Yield every placeholder tag in text, left to right."""
    for match in TAG_PATTERN.finditer(text):
        description = match.group(3)
        yield PlaceholderTag(
            prefix=match.group(1),
            name=match.group(2),
            description=description.strip() if description and description.strip() else None,
            start=match.start(),
            end=match.end(),
        )


def split_dotted(name: str) -> tuple[str, str]:
    """Split ``a.b.c`` into parent ``a`` and child ``b.c``.

    Raises:
        TagSyntaxError: If any segment is empty (``.``, ``a.``, ``.a``, ``a..b``).
    """
    parts = name.split(".")
    if len(parts) < 2 or any(not part for part in parts):
        raise TagSyntaxError(f"dot-syntax error in tag '{{{{{name}}}}}'")
    return parts[0], ".".join(parts[1:])


def strip_description(expression: str) -> str:
    """Return the lookup key of a tag expression (the part left of ':')."""
    return expression.split(":", 1)[0].strip()
